from fastapi import APIRouter, Depends
from library_ledger.models.user import StaffUser
from library_ledger.services import policy
from library_ledger.services.auth import require_staff
from library_ledger.services.ledger import LibraryLedger, get_ledger
from library_ledger.schemas.issued_book import FineCalculationRequest, FineCalculationResponse
from library_ledger.schemas.request import LibraryStats

router = APIRouter(prefix="/api/library", tags=["Fines & Statistics"])

@router.post("/fines/calculate", response_model=FineCalculationResponse)
async def calculate_fine(
    data: FineCalculationRequest,
    current_user: StaffUser = Depends(require_staff)
):
    """Work out the overdue fine for a book issued and returned on the given dates."""
    assessment = policy.assess_fine(policy.due_date_for(data.issue_date), data.return_date)
    due = assessment.due_date.strftime("%B %d, %Y")
    if assessment.fine > 0:
        summary = (
            f'Book "{data.book_title}" was due on {due}. '
            f'Returned on {assessment.return_date.strftime("%B %d, %Y")}. '
            f'Overdue by {assessment.overdue_days} day(s). Fine: ${assessment.fine:.2f}.'
        )
    else:
        summary = f'Book "{data.book_title}" returned on or before the due date ({due}). No fine incurred.'

    return FineCalculationResponse(
        **assessment.to_dict(),
        requiresConfirmation=assessment.fine > 0,
        bookTitle=data.book_title,
        summary=summary
    )

@router.get("/stats", response_model=LibraryStats)
async def get_stats(
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Dashboard counters for the librarian overview."""
    return LibraryStats(**ledger.stats())
