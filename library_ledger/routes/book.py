from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional
from library_ledger.models.user import StaffUser
from library_ledger.services.auth import require_staff
from library_ledger.services.ledger import LibraryLedger, get_ledger
from library_ledger.schemas.book import BookResponse, BookCreate

router = APIRouter(prefix="/api/library/books", tags=["Library Books"])

@router.get("", response_model=List[BookResponse])
async def get_books(
    search: Optional[str] = Query(None, description="Search by title, author, or ISBN"),
    available_only: bool = Query(False, description="Only books with copies on the shelf"),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Get list of books with optional search."""
    books = ledger.books.search(search, available_only=available_only)
    return [BookResponse.model_validate(book.to_dict()) for book in books]

@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: int, ledger: LibraryLedger = Depends(get_ledger)):
    """Get book details by ID."""
    return BookResponse.model_validate(ledger.get_book(book_id).to_dict())

@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    current_user: StaffUser = Depends(require_staff),
    ledger: LibraryLedger = Depends(get_ledger)
):
    """Add a book to the catalogue."""
    book = ledger.add_book(
        title=book_data.title,
        author=book_data.author,
        isbn=book_data.isbn,
        total_copies=book_data.total_copies,
        available_copies=book_data.available_copies,
        description=book_data.description,
        cover_image_url=book_data.cover_image_url,
    )
    return BookResponse.model_validate(book.to_dict())
