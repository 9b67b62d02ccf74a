from sqlalchemy import Column, String, DateTime, Integer, Numeric, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from library_ledger.database import Base
from library_ledger.utils.timezone import LocalDateTime, to_iso

class IssuedBook(Base):
    __tablename__ = "issued_book"

    issued_book_id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("book.book_id", ondelete="RESTRICT"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("student.student_id", ondelete="RESTRICT"), nullable=False, index=True)
    student_name = Column(String(100), nullable=False)  # Snapshot taken at issue time
    issue_date = Column(LocalDateTime(timezone=True), nullable=False)
    due_date = Column(LocalDateTime(timezone=True), nullable=False, index=True)
    return_date = Column(LocalDateTime(timezone=True), nullable=True)
    fine_amount = Column(Numeric(10, 2), nullable=True)  # Set only at return time
    fine_paid = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    book = relationship("Book", back_populates="issued_books")
    student = relationship("Student", back_populates="issued_books")
    return_requests = relationship("ReturnRequest", back_populates="issued_book")

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    def to_dict(self):
        return {
            "id": str(self.issued_book_id),
            "bookId": str(self.book_id),
            "studentId": str(self.student_id),
            "studentName": self.student_name,
            "issueDate": to_iso(self.issue_date),
            "dueDate": to_iso(self.due_date),
            "returnDate": to_iso(self.return_date),
            "fineAmount": float(self.fine_amount) if self.fine_amount is not None else None,
            "finePaid": self.fine_paid,
            "book": self.book.to_dict() if self.book else None,
        }
