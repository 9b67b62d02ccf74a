from .auth import UserLogin, AccountResponse, Token
from .book import BookBase, BookCreate, BookResponse
from .user import StudentCreate, StaffUserCreate, StudentResponse, StaffUserResponse, DelinquencyResponse
from .issued_book import (
    DirectIssueRequest, IssuedBookResponse, IssueResult,
    ReturnConfirmation, FineQuoteResponse,
    FineCalculationRequest, FineCalculationResponse
)
from .request import (
    BookRequestCreate, BookRequestResponse,
    ReturnRequestCreate, ReturnRequestResponse,
    LibraryStats
)

__all__ = [
    "UserLogin", "AccountResponse", "Token",
    "BookBase", "BookCreate", "BookResponse",
    "StudentCreate", "StaffUserCreate", "StudentResponse", "StaffUserResponse", "DelinquencyResponse",
    "DirectIssueRequest", "IssuedBookResponse", "IssueResult",
    "ReturnConfirmation", "FineQuoteResponse",
    "FineCalculationRequest", "FineCalculationResponse",
    "BookRequestCreate", "BookRequestResponse",
    "ReturnRequestCreate", "ReturnRequestResponse",
    "LibraryStats",
]
