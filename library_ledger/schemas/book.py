from pydantic import BaseModel, Field
from typing import Optional

class BookBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    cover_image_url: Optional[str] = Field(None, max_length=500)

class BookCreate(BookBase):
    total_copies: int = Field(..., ge=1)
    available_copies: Optional[int] = Field(None, ge=0, description="Defaults to total_copies")

class BookResponse(BaseModel):
    id: str
    title: str
    author: str
    isbn: str
    description: Optional[str] = None
    coverImageUrl: Optional[str] = None
    totalCopies: int
    availableCopies: int
