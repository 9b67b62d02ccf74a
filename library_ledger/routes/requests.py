from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional
from library_ledger.models.user import StaffUser, Student
from library_ledger.services.auth import Account, get_current_user, require_staff, require_student
from library_ledger.services.ledger import LibraryLedger, get_ledger
from library_ledger.schemas.issued_book import IssuedBookResponse, ReturnConfirmation, FineQuoteResponse, fine_quote
from library_ledger.schemas.request import (
    BookRequestCreate,
    BookRequestResponse,
    ReturnRequestCreate,
    ReturnRequestResponse
)

router = APIRouter(prefix="/api/library/requests", tags=["Requests"])

STATUS_PATTERN = "^(pending|approved|rejected)$"

# Book (issue) requests
@router.post("/books", response_model=BookRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_book(
    data: BookRequestCreate,
    current_user: Student = Depends(require_student),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Ask the librarian to issue a book."""
    request = ledger.request_book(current_user.student_id, data.book_id)
    return BookRequestResponse.model_validate(request.to_dict())

@router.get("/books", response_model=List[BookRequestResponse])
async def list_book_requests(
    status_filter: Optional[str] = Query("pending", alias="status", pattern=STATUS_PATTERN),
    current_user: Account = Depends(get_current_user),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Staff see every request; students see their own."""
    student_id = current_user.student_id if isinstance(current_user, Student) else None
    requests = ledger.book_requests.list(status=status_filter, student_id=student_id)
    return [BookRequestResponse.model_validate(r.to_dict()) for r in requests]

@router.post("/books/{request_id}/approve", response_model=IssuedBookResponse)
async def approve_book_request(
    request_id: int,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Issue the requested book. The request is rejected if the student or book no longer qualifies."""
    issued_book = ledger.approve_book_request(request_id, current_user)
    return IssuedBookResponse.model_validate(issued_book.to_dict())

@router.post("/books/{request_id}/reject", response_model=BookRequestResponse)
async def reject_book_request(
    request_id: int,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    request = ledger.reject_book_request(request_id, current_user)
    return BookRequestResponse.model_validate(request.to_dict())

# Return requests
@router.post("/returns", response_model=ReturnRequestResponse, status_code=status.HTTP_201_CREATED)
async def request_return(
    data: ReturnRequestCreate,
    current_user: Student = Depends(require_student),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Ask the librarian to check one of your books back in."""
    request = ledger.request_return(current_user.student_id, data.issued_book_id)
    return ReturnRequestResponse.model_validate(request.to_dict())

@router.get("/returns", response_model=List[ReturnRequestResponse])
async def list_return_requests(
    status_filter: Optional[str] = Query("pending", alias="status", pattern=STATUS_PATTERN),
    current_user: Account = Depends(get_current_user),
    ledger: LibraryLedger = Depends(get_ledger)
):
    student_id = current_user.student_id if isinstance(current_user, Student) else None
    requests = ledger.return_requests.list(status=status_filter, student_id=student_id)
    return [ReturnRequestResponse.model_validate(r.to_dict()) for r in requests]

@router.get("/returns/{return_request_id}/fine", response_model=FineQuoteResponse)
async def quote_return_request(
    return_request_id: int,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """First step of approving a return: the fine to collect, if any."""
    return fine_quote(ledger.quote_return_request(return_request_id))

@router.post("/returns/{return_request_id}/approve", response_model=IssuedBookResponse)
async def approve_return_request(
    return_request_id: int,
    confirmation: Optional[ReturnConfirmation] = None,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Complete the return. Fails with fine_confirmation_required until a fine is acknowledged."""
    fine_collected = confirmation.fine_collected if confirmation else False
    quoted_fine = confirmation.quoted_fine() if confirmation else None
    issued_book = ledger.approve_return_request(return_request_id, fine_collected, current_user, quoted_fine)
    return IssuedBookResponse.model_validate(issued_book.to_dict())

@router.post("/returns/{return_request_id}/reject", response_model=ReturnRequestResponse)
async def reject_return_request(
    return_request_id: int,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    request = ledger.reject_return_request(return_request_id, current_user)
    return ReturnRequestResponse.model_validate(request.to_dict())
