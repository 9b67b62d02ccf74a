from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class BookRequestCreate(BaseModel):
    book_id: int

class BookRequestResponse(BaseModel):
    id: str
    bookId: str
    studentId: str
    studentName: str
    bookTitle: Optional[str] = None
    requestDate: datetime
    status: str
    processedBy: Optional[str] = None
    processedAt: Optional[datetime] = None

class ReturnRequestCreate(BaseModel):
    issued_book_id: int

class ReturnRequestResponse(BaseModel):
    id: str
    issuedBookId: str
    studentId: str
    studentName: str
    bookTitle: str
    requestDate: datetime
    status: str
    processedBy: Optional[str] = None
    processedAt: Optional[datetime] = None

class LibraryStats(BaseModel):
    totalCopies: int
    availableCopies: int
    issuedCount: int
    overdueCount: int
    pendingBookRequests: int
    pendingReturnRequests: int
