from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, CheckConstraint, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from library_ledger.database import Base
from library_ledger.utils.timezone import LocalDateTime, to_iso

REQUEST_STATUSES = ("pending", "approved", "rejected")

_PENDING_ONLY = text("status = 'pending'")

class BookRequest(Base):
    __tablename__ = "book_request"

    request_id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("book.book_id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("student.student_id", ondelete="CASCADE"), nullable=False, index=True)
    student_name = Column(String(100), nullable=False)  # Snapshot taken at request time
    request_date = Column(LocalDateTime(timezone=True), nullable=False)
    status = Column(String(50), default='pending', nullable=False, index=True)
    processed_by = Column(Integer, ForeignKey("staff_user.user_id", ondelete="SET NULL"), nullable=True)
    processed_at = Column(LocalDateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    book = relationship("Book", back_populates="requests")
    student = relationship("Student", back_populates="book_requests")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="chk_book_request_status"),
        # One pending request per student and book
        Index(
            "uq_book_request_pending", "student_id", "book_id",
            unique=True, sqlite_where=_PENDING_ONLY, postgresql_where=_PENDING_ONLY
        ),
    )

    def to_dict(self):
        return {
            "id": str(self.request_id),
            "bookId": str(self.book_id),
            "studentId": str(self.student_id),
            "studentName": self.student_name,
            "bookTitle": self.book.title if self.book else None,
            "requestDate": to_iso(self.request_date),
            "status": self.status,
            "processedBy": str(self.processed_by) if self.processed_by else None,
            "processedAt": to_iso(self.processed_at),
        }

class ReturnRequest(Base):
    __tablename__ = "return_request"

    return_request_id = Column(Integer, primary_key=True, autoincrement=True)
    issued_book_id = Column(Integer, ForeignKey("issued_book.issued_book_id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("student.student_id", ondelete="CASCADE"), nullable=False, index=True)
    student_name = Column(String(100), nullable=False)  # Snapshot
    book_title = Column(String(255), nullable=False)  # Snapshot
    request_date = Column(LocalDateTime(timezone=True), nullable=False)
    status = Column(String(50), default='pending', nullable=False, index=True)
    processed_by = Column(Integer, ForeignKey("staff_user.user_id", ondelete="SET NULL"), nullable=True)
    processed_at = Column(LocalDateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    issued_book = relationship("IssuedBook", back_populates="return_requests")
    student = relationship("Student", back_populates="return_requests")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="chk_return_request_status"),
        # One pending return request per issued book
        Index(
            "uq_return_request_pending", "issued_book_id",
            unique=True, sqlite_where=_PENDING_ONLY, postgresql_where=_PENDING_ONLY
        ),
    )

    def to_dict(self):
        return {
            "id": str(self.return_request_id),
            "issuedBookId": str(self.issued_book_id),
            "studentId": str(self.student_id),
            "studentName": self.student_name,
            "bookTitle": self.book_title,
            "requestDate": to_iso(self.request_date),
            "status": self.status,
            "processedBy": str(self.processed_by) if self.processed_by else None,
            "processedAt": to_iso(self.processed_at),
        }
