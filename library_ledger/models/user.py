from sqlalchemy import Column, String, DateTime, Integer, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from library_ledger.database import Base

STAFF_ROLES = ("librarian", "admin")

class Student(Base):
    __tablename__ = "student"

    student_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    student_number = Column(String(50), unique=True, nullable=False, index=True)  # University ID, e.g. S1001
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    issued_books = relationship("IssuedBook", back_populates="student")
    book_requests = relationship("BookRequest", back_populates="student")
    return_requests = relationship("ReturnRequest", back_populates="student")

    @property
    def role(self) -> str:
        return "student"

    def to_dict(self):
        return {
            "id": str(self.student_id),
            "name": self.name,
            "studentId": self.student_number,
            "role": self.role,
        }

class StaffUser(Base):
    __tablename__ = "staff_user"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    user_role = Column(String(50), default='librarian', nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("user_role IN ('librarian', 'admin')", name="chk_staff_role"),
    )

    @property
    def role(self) -> str:
        return self.user_role

    def to_dict(self):
        return {
            "id": str(self.user_id),
            "username": self.username,
            "role": self.user_role,
        }
