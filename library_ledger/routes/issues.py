import logging
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from library_ledger.exceptions import SuggestionServiceError
from library_ledger.models.user import StaffUser, Student
from library_ledger.services import policy
from library_ledger.services.auth import Account, get_current_user, require_staff, require_student
from library_ledger.services.ledger import LibraryLedger, get_ledger
from library_ledger.services.suggestion_service import suggestion_service
from library_ledger.schemas.issued_book import (
    DirectIssueRequest,
    IssuedBookResponse,
    IssueResult,
    ReturnConfirmation,
    FineQuoteResponse,
    fine_quote
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/library/issues", tags=["Issued Books"])

@router.post("", response_model=IssueResult, status_code=status.HTTP_201_CREATED)
async def issue_book(
    data: DirectIssueRequest,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Issue a book directly to a student, then fetch reading suggestions.
    The issuance is committed before the suggestion call; a failed call only adds a notice."""
    student = ledger.resolve_student(data.student)
    book = ledger.find_book(data.book)
    issued_book = ledger.issue_book(student.student_id, book.book_id)

    suggested_books: List[str] = []
    notice = None
    try:
        suggested_books = await suggestion_service.suggest_books(book.title, student.name)
    except SuggestionServiceError as e:
        logger.warning(f"Suggestions unavailable after issuing record {issued_book.issued_book_id}: {e}")
        notice = f"Book issued, but suggestions are unavailable: {e}"

    return IssueResult(
        issuedBook=IssuedBookResponse.model_validate(issued_book.to_dict()),
        suggestedBooks=suggested_books,
        notice=notice
    )

@router.get("", response_model=List[IssuedBookResponse])
async def list_issued_books(
    student_id: Optional[int] = Query(None, description="Filter by student"),
    outstanding: bool = Query(False, description="Only books not yet returned"),
    overdue: bool = Query(False, description="Only outstanding books past their due date"),
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """List issued book records, most recent first."""
    issued_books = ledger.issued_books.list(student_id=student_id, outstanding_only=outstanding or overdue)
    if overdue:
        at = ledger.clock()
        issued_books = [ib for ib in issued_books if policy.is_overdue(ib, at)]
    return [IssuedBookResponse.model_validate(ib.to_dict()) for ib in issued_books]

@router.get("/mine", response_model=List[IssuedBookResponse])
async def my_books(
    current_user: Student = Depends(require_student),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Books the current student still has out."""
    issued_books = ledger.issued_books.list(student_id=current_user.student_id, outstanding_only=True)
    return [IssuedBookResponse.model_validate(ib.to_dict()) for ib in issued_books]

@router.get("/{issued_book_id}", response_model=IssuedBookResponse)
async def get_issued_book(
    issued_book_id: int,
    current_user: Account = Depends(get_current_user),
    ledger: LibraryLedger = Depends(get_ledger)
):
    issued_book = ledger.get_issued_book(issued_book_id)
    if isinstance(current_user, Student) and issued_book.student_id != current_user.student_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Issued book record not found"
        )
    return IssuedBookResponse.model_validate(issued_book.to_dict())

@router.get("/{issued_book_id}/fine", response_model=FineQuoteResponse)
async def compute_return_fine(
    issued_book_id: int,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Fine owed if the book were returned now."""
    return fine_quote(ledger.compute_return_fine(issued_book_id))

@router.post("/{issued_book_id}/return", response_model=IssuedBookResponse)
async def confirm_return(
    issued_book_id: int,
    confirmation: Optional[ReturnConfirmation] = None,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Check a book back in. Any fine must be acknowledged with fine_collected=true."""
    fine_collected = confirmation.fine_collected if confirmation else False
    quoted_fine = confirmation.quoted_fine() if confirmation else None
    issued_book = ledger.confirm_return(issued_book_id, fine_collected, current_user, quoted_fine)
    return IssuedBookResponse.model_validate(issued_book.to_dict())
