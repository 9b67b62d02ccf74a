from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from library_ledger.schemas.book import BookResponse
from library_ledger.utils.timezone import ensure_aware

class DirectIssueRequest(BaseModel):
    """Issue a book straight to a student, both given by id, name/title or student ID/ISBN."""
    student: str = Field(..., min_length=1, description="Student id, full name or student ID")
    book: str = Field(..., min_length=1, description="Book id, title or ISBN")

class IssuedBookResponse(BaseModel):
    id: str
    bookId: str
    studentId: str
    studentName: str
    issueDate: datetime
    dueDate: datetime
    returnDate: Optional[datetime] = None
    fineAmount: Optional[float] = None
    finePaid: bool
    book: Optional[BookResponse] = None

class IssueResult(BaseModel):
    issuedBook: IssuedBookResponse
    suggestedBooks: List[str] = []
    notice: Optional[str] = None  # Set when suggestions could not be fetched

class ReturnConfirmation(BaseModel):
    fine_collected: bool = Field(False, description="Acknowledge that any fine has been collected")
    fine_amount: Optional[float] = Field(None, ge=0, description="Fine shown in the quote; the return fails if it has changed since")

    def quoted_fine(self) -> Optional[Decimal]:
        return Decimal(str(self.fine_amount)) if self.fine_amount is not None else None

class FineQuoteResponse(BaseModel):
    dueDate: datetime
    returnDate: datetime
    overdueDays: int
    fineAmount: float
    requiresConfirmation: bool

class FineCalculationRequest(BaseModel):
    book_title: str = Field(..., min_length=1)
    issue_date: datetime
    return_date: datetime

    @model_validator(mode="after")
    def check_dates(self):
        self.issue_date = ensure_aware(self.issue_date)
        self.return_date = ensure_aware(self.return_date)
        if self.return_date < self.issue_date:
            raise ValueError("Return date must be on or after the issue date.")
        return self

class FineCalculationResponse(FineQuoteResponse):
    bookTitle: str
    summary: str

def fine_quote(assessment) -> FineQuoteResponse:
    return FineQuoteResponse(**assessment.to_dict(), requiresConfirmation=assessment.fine > 0)
