from .user import Student, StaffUser
from .book import Book
from .issued_book import IssuedBook
from .request import BookRequest, ReturnRequest

__all__ = [
    "Student",
    "StaffUser",
    "Book",
    "IssuedBook",
    "BookRequest",
    "ReturnRequest",
]
