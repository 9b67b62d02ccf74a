from sqlalchemy import Column, String, DateTime, Integer, Text, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from library_ledger.database import Base

class Book(Base):
    __tablename__ = "book"

    book_id = Column(Integer, primary_key=True, autoincrement=True)
    isbn = Column(String(20), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cover_image_url = Column(String(500), nullable=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    issued_books = relationship("IssuedBook", back_populates="book")
    requests = relationship("BookRequest", back_populates="book")

    __table_args__ = (
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="chk_book_copies"
        ),
    )

    def to_dict(self):
        return {
            "id": str(self.book_id),
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "coverImageUrl": self.cover_image_url,
            "totalCopies": self.total_copies,
            "availableCopies": self.available_copies,
        }
