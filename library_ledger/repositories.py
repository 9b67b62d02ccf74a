"""Per-entity data access used by the ledger service.

Each repository wraps one SQLAlchemy session and exposes only the queries
and mutations the borrowing rules need.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from library_ledger.exceptions import ConflictError
from library_ledger.models import Book, BookRequest, IssuedBook, ReturnRequest, StaffUser, Student

logger = logging.getLogger(__name__)


class BookRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, book_id: int) -> Optional[Book]:
        return self.db.query(Book).filter(Book.book_id == book_id).first()

    def find(self, ref: str) -> Optional[Book]:
        """Resolve a book by ISBN, exact title (case-insensitive) or id."""
        ref = ref.strip()
        book = self.db.query(Book).filter(Book.isbn == ref).first()
        if book:
            return book
        book = self.db.query(Book).filter(func.lower(Book.title) == ref.lower()).first()
        if book:
            return book
        if ref.isdigit():
            return self.get(int(ref))
        return None

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        return self.db.query(Book).filter(Book.isbn == isbn).first()

    def search(self, term: Optional[str] = None, available_only: bool = False) -> List[Book]:
        query = self.db.query(Book)
        if term:
            search_term = f"%{term}%"
            query = query.filter(
                or_(
                    Book.title.ilike(search_term),
                    Book.author.ilike(search_term),
                    Book.isbn.ilike(search_term)
                )
            )
        if available_only:
            query = query.filter(Book.available_copies > 0)
        return query.order_by(Book.title).all()

    def add(self, book: Book) -> Book:
        self.db.add(book)
        self.db.flush()
        return book

    def issue_copy(self, book: Book) -> Book:
        """Take one copy out of stock, failing when none is left."""
        result = self.db.execute(
            update(Book)
            .where(Book.book_id == book.book_id, Book.available_copies > 0)
            .values(available_copies=Book.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"{book.title} is not available")
        self.db.refresh(book)
        return book

    def return_copy(self, book: Book) -> Book:
        """Put one copy back in stock, never above the total."""
        result = self.db.execute(
            update(Book)
            .where(Book.book_id == book.book_id, Book.available_copies < Book.total_copies)
            .values(available_copies=Book.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(f"Book {book.book_id} already has all {book.total_copies} copies in stock")
        self.db.refresh(book)
        return book

    def totals(self):
        total, available = self.db.query(
            func.coalesce(func.sum(Book.total_copies), 0),
            func.coalesce(func.sum(Book.available_copies), 0)
        ).one()
        return int(total), int(available)


class StudentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, student_id: int) -> Optional[Student]:
        return self.db.query(Student).filter(Student.student_id == student_id).first()

    def find_by_name(self, name: str) -> Optional[Student]:
        return self.db.query(Student).filter(func.lower(Student.name) == name.strip().lower()).first()

    def find_by_student_number(self, student_number: str) -> Optional[Student]:
        return self.db.query(Student).filter(
            func.lower(Student.student_number) == student_number.strip().lower()
        ).first()

    def resolve(self, ref: str) -> Optional[Student]:
        """Resolve a student by student number, name or id."""
        student = self.find_by_student_number(ref) or self.find_by_name(ref)
        if student is None and ref.strip().isdigit():
            student = self.get(int(ref))
        return student

    def list(self) -> List[Student]:
        return self.db.query(Student).order_by(Student.name).all()

    def add(self, student: Student) -> Student:
        self.db.add(student)
        self.db.flush()
        return student


class StaffRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[StaffUser]:
        return self.db.query(StaffUser).filter(StaffUser.user_id == user_id).first()

    def find_by_username(self, username: str) -> Optional[StaffUser]:
        return self.db.query(StaffUser).filter(
            func.lower(StaffUser.username) == username.strip().lower()
        ).first()

    def add(self, user: StaffUser) -> StaffUser:
        self.db.add(user)
        self.db.flush()
        return user


class IssuedBookRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, issued_book_id: int) -> Optional[IssuedBook]:
        return self.db.query(IssuedBook).filter(IssuedBook.issued_book_id == issued_book_id).first()

    def for_student(self, student_id: int) -> List[IssuedBook]:
        return self.db.query(IssuedBook).filter(
            IssuedBook.student_id == student_id
        ).order_by(IssuedBook.issue_date.desc()).all()

    def list(self, student_id: Optional[int] = None, outstanding_only: bool = False) -> List[IssuedBook]:
        query = self.db.query(IssuedBook)
        if student_id is not None:
            query = query.filter(IssuedBook.student_id == student_id)
        if outstanding_only:
            query = query.filter(IssuedBook.return_date.is_(None))
        return query.order_by(IssuedBook.issue_date.desc()).all()

    def add(self, issued_book: IssuedBook) -> IssuedBook:
        self.db.add(issued_book)
        self.db.flush()
        return issued_book


class BookRequestRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, request_id: int) -> Optional[BookRequest]:
        return self.db.query(BookRequest).filter(BookRequest.request_id == request_id).first()

    def find_pending(self, student_id: int, book_id: int) -> Optional[BookRequest]:
        return self.db.query(BookRequest).filter(
            BookRequest.student_id == student_id,
            BookRequest.book_id == book_id,
            BookRequest.status == 'pending'
        ).first()

    def list(self, status: Optional[str] = None, student_id: Optional[int] = None) -> List[BookRequest]:
        query = self.db.query(BookRequest)
        if status:
            query = query.filter(BookRequest.status == status)
        if student_id is not None:
            query = query.filter(BookRequest.student_id == student_id)
        return query.order_by(BookRequest.request_date.asc()).all()

    def add(self, request: BookRequest) -> BookRequest:
        self.db.add(request)
        self.db.flush()
        return request


class ReturnRequestRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, return_request_id: int) -> Optional[ReturnRequest]:
        return self.db.query(ReturnRequest).filter(
            ReturnRequest.return_request_id == return_request_id
        ).first()

    def find_pending(self, issued_book_id: int) -> Optional[ReturnRequest]:
        return self.db.query(ReturnRequest).filter(
            ReturnRequest.issued_book_id == issued_book_id,
            ReturnRequest.status == 'pending'
        ).first()

    def list(self, status: Optional[str] = None, student_id: Optional[int] = None) -> List[ReturnRequest]:
        query = self.db.query(ReturnRequest)
        if status:
            query = query.filter(ReturnRequest.status == status)
        if student_id is not None:
            query = query.filter(ReturnRequest.student_id == student_id)
        return query.order_by(ReturnRequest.request_date.asc()).all()

    def add(self, request: ReturnRequest) -> ReturnRequest:
        self.db.add(request)
        self.db.flush()
        return request
