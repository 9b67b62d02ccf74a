"""Borrowing workflow: issuance, book requests, returns and fines.

``LibraryLedger`` is built around one SQLAlchemy session and the per-entity
repositories. Every public mutating method commits its own unit of work and
raises a ``LibraryError`` subclass on failure.

Request approvals re-check the rules at approval time. When a check fails the
request is marked rejected, committed, and the failure is raised to the caller.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from library_ledger.database import get_db
from library_ledger.exceptions import (
    ConflictError,
    FineConfirmationRequired,
    LedgerValidationError,
    LibraryError,
    NotFoundError,
    PolicyViolationError,
)
from library_ledger.models import Book, BookRequest, IssuedBook, ReturnRequest, StaffUser, Student
from library_ledger.repositories import (
    BookRepository,
    BookRequestRepository,
    IssuedBookRepository,
    ReturnRequestRepository,
    StaffRepository,
    StudentRepository,
)
from library_ledger.services import policy
from library_ledger.services.auth import get_password_hash
from library_ledger.utils.timezone import now

logger = logging.getLogger(__name__)


class LibraryLedger:
    def __init__(
        self,
        db: Session,
        books: Optional[BookRepository] = None,
        students: Optional[StudentRepository] = None,
        staff: Optional[StaffRepository] = None,
        issued_books: Optional[IssuedBookRepository] = None,
        book_requests: Optional[BookRequestRepository] = None,
        return_requests: Optional[ReturnRequestRepository] = None,
        clock: Callable[[], datetime] = now,
    ):
        self.db = db
        self.books = books or BookRepository(db)
        self.students = students or StudentRepository(db)
        self.staff = staff or StaffRepository(db)
        self.issued_books = issued_books or IssuedBookRepository(db)
        self.book_requests = book_requests or BookRequestRepository(db)
        self.return_requests = return_requests or ReturnRequestRepository(db)
        self.clock = clock

    # Lookups

    def get_book(self, book_id: int) -> Book:
        book = self.books.get(book_id)
        if not book:
            raise NotFoundError("Book not found")
        return book

    def find_book(self, ref: str) -> Book:
        book = self.books.find(ref)
        if not book:
            raise NotFoundError(f"No book matches '{ref}'")
        return book

    def get_student(self, student_id: int) -> Student:
        student = self.students.get(student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def resolve_student(self, ref: str) -> Student:
        student = self.students.resolve(ref)
        if not student:
            raise NotFoundError(f"No student matches '{ref}'")
        return student

    def get_issued_book(self, issued_book_id: int) -> IssuedBook:
        issued_book = self.issued_books.get(issued_book_id)
        if not issued_book:
            raise NotFoundError("Issued book record not found")
        return issued_book

    # Delinquency

    def get_delinquency_status(self, student_id: int) -> policy.DelinquencyStatus:
        self.get_student(student_id)
        return policy.delinquency_status(self.issued_books.for_student(student_id), self.clock())

    def _ensure_not_delinquent(self, student: Student, action: str):
        status = self.get_delinquency_status(student.student_id)
        if status.is_delinquent:
            logger.info(
                f"Blocked {action} for student {student.student_id}: "
                f"{status.overdue_books_count} overdue, {status.unpaid_fines_count} unpaid fines"
            )
            raise PolicyViolationError(
                f"{student.name} has overdue books or unpaid fines. Cannot {action}."
            )

    # Issuance

    def _issue(self, student: Student, book: Book) -> IssuedBook:
        self._ensure_not_delinquent(student, "issue a new book")
        self.books.issue_copy(book)
        issue_date = self.clock()
        return self.issued_books.add(IssuedBook(
            book_id=book.book_id,
            student_id=student.student_id,
            student_name=student.name,
            issue_date=issue_date,
            due_date=policy.due_date_for(issue_date),
            return_date=None,
            fine_amount=None,
            fine_paid=False,
        ))

    def issue_book(self, student_id: int, book_id: int) -> IssuedBook:
        """Issue a book directly to a student."""
        student = self.get_student(student_id)
        book = self.get_book(book_id)
        try:
            issued_book = self._issue(student, book)
        except LibraryError:
            self.db.rollback()
            raise
        self.db.commit()
        self.db.refresh(issued_book)
        logger.info(f"Issued '{book.title}' to {student.name} (record {issued_book.issued_book_id})")
        return issued_book

    # Book requests

    def request_book(self, student_id: int, book_id: int) -> BookRequest:
        student = self.get_student(student_id)
        book = self.get_book(book_id)
        self._ensure_not_delinquent(student, "request new books")
        if self.book_requests.find_pending(student.student_id, book.book_id):
            raise ConflictError(f"You have already requested \"{book.title}\". Please wait for librarian approval.")
        if book.available_copies <= 0:
            raise ConflictError(f"\"{book.title}\" is not available right now")

        try:
            request = self.book_requests.add(BookRequest(
                book_id=book.book_id,
                student_id=student.student_id,
                student_name=student.name,
                request_date=self.clock(),
                status='pending',
            ))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"A pending request for \"{book.title}\" already exists") from e
        self.db.refresh(request)
        logger.info(f"Book request {request.request_id}: {student.name} requested '{book.title}'")
        return request

    def _get_pending_book_request(self, request_id: int) -> BookRequest:
        request = self.book_requests.get(request_id)
        if not request:
            raise NotFoundError("Request not found")
        if request.status != 'pending':
            raise ConflictError(f"Request has already been {request.status}")
        return request

    def _close_request(self, request, status: str, staff: Optional[StaffUser]):
        request.status = status
        request.processed_at = self.clock()
        request.processed_by = staff.user_id if staff else None

    def approve_book_request(self, request_id: int, staff: Optional[StaffUser] = None) -> IssuedBook:
        request = self._get_pending_book_request(request_id)
        try:
            student = self.get_student(request.student_id)
            book = self.books.get(request.book_id)
            if not book:
                raise NotFoundError("Book not found for this request")
            issued_book = self._issue(student, book)
        except LibraryError as e:
            self.db.rollback()
            request = self.book_requests.get(request_id)
            self._close_request(request, 'rejected', staff)
            self.db.commit()
            logger.info(f"Book request {request_id} auto-rejected: {e.detail}")
            raise

        self._close_request(request, 'approved', staff)
        self.db.commit()
        self.db.refresh(issued_book)
        logger.info(f"Book request {request_id} approved: '{book.title}' issued to {student.name}")
        return issued_book

    def reject_book_request(self, request_id: int, staff: Optional[StaffUser] = None) -> BookRequest:
        request = self._get_pending_book_request(request_id)
        self._close_request(request, 'rejected', staff)
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Book request {request_id} rejected")
        return request

    # Returns

    def request_return(self, student_id: int, issued_book_id: int) -> ReturnRequest:
        student = self.get_student(student_id)
        issued_book = self.issued_books.get(issued_book_id)
        if not issued_book or issued_book.student_id != student.student_id:
            raise NotFoundError("Issued book record not found")
        if issued_book.is_returned:
            raise ConflictError("This book has already been returned")
        if self.return_requests.find_pending(issued_book.issued_book_id):
            raise ConflictError("A return request for this book is already pending")

        book = self.books.get(issued_book.book_id)
        if not book:
            raise NotFoundError("Book details not found")
        try:
            request = self.return_requests.add(ReturnRequest(
                issued_book_id=issued_book.issued_book_id,
                student_id=student.student_id,
                student_name=student.name,
                book_title=book.title,
                request_date=self.clock(),
                status='pending',
            ))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("A return request for this book is already pending") from e
        self.db.refresh(request)
        logger.info(f"Return request {request.return_request_id}: {student.name} returning '{book.title}'")
        return request

    def compute_return_fine(self, issued_book_id: int) -> policy.FineAssessment:
        """First phase of a return: the fine owed if the book came back now."""
        issued_book = self.get_issued_book(issued_book_id)
        if issued_book.is_returned:
            raise ConflictError("This book has already been returned")
        return policy.assess_fine(issued_book.due_date, self.clock())

    def confirm_return(self, issued_book_id: int, fine_collected: bool = False,
                       staff: Optional[StaffUser] = None, quoted_fine: Optional[Decimal] = None) -> IssuedBook:
        """Second phase of a return: finalise it, requiring acknowledgment of any fine.

        When the librarian passes the fine they were quoted, the return only
        goes through if it still matches the fine owed now.
        """
        issued_book = self.get_issued_book(issued_book_id)
        if issued_book.is_returned:
            raise ConflictError("This book has already been returned")

        assessment = policy.assess_fine(issued_book.due_date, self.clock())
        if assessment.fine > 0 and not fine_collected:
            raise FineConfirmationRequired(assessment.fine)
        if quoted_fine is not None and Decimal(quoted_fine) != assessment.fine:
            logger.info(f"Record {issued_book_id}: quoted fine {quoted_fine} is now {assessment.fine}")
            raise FineConfirmationRequired(assessment.fine)

        book = self.books.get(issued_book.book_id)
        if book:
            self.books.return_copy(book)
        else:
            logger.warning(f"Book {issued_book.book_id} missing while returning record {issued_book_id}")

        issued_book.return_date = assessment.return_date
        issued_book.fine_amount = assessment.fine
        issued_book.fine_paid = assessment.fine > 0 and fine_collected

        pending = self.return_requests.find_pending(issued_book.issued_book_id)
        if pending:
            self._close_request(pending, 'approved', staff)

        self.db.commit()
        self.db.refresh(issued_book)
        if assessment.fine > 0:
            logger.info(f"Record {issued_book_id} returned {assessment.overdue_days} day(s) late, fine {assessment.fine} collected")
        else:
            logger.info(f"Record {issued_book_id} returned, no fine incurred")
        return issued_book

    def _get_pending_return_request(self, return_request_id: int) -> ReturnRequest:
        request = self.return_requests.get(return_request_id)
        if not request:
            raise NotFoundError("Return request not found")
        if request.status != 'pending':
            raise ConflictError(f"Return request has already been {request.status}")
        if not self.issued_books.get(request.issued_book_id):
            self._close_request(request, 'rejected', None)
            self.db.commit()
            raise NotFoundError("Corresponding issued book record not found")
        return request

    def quote_return_request(self, return_request_id: int) -> policy.FineAssessment:
        request = self._get_pending_return_request(return_request_id)
        return self.compute_return_fine(request.issued_book_id)

    def approve_return_request(self, return_request_id: int, fine_collected: bool = False,
                               staff: Optional[StaffUser] = None,
                               quoted_fine: Optional[Decimal] = None) -> IssuedBook:
        request = self._get_pending_return_request(return_request_id)
        return self.confirm_return(request.issued_book_id, fine_collected, staff, quoted_fine)

    def reject_return_request(self, return_request_id: int, staff: Optional[StaffUser] = None) -> ReturnRequest:
        request = self.return_requests.get(return_request_id)
        if not request:
            raise NotFoundError("Return request not found")
        if request.status != 'pending':
            raise ConflictError(f"Return request has already been {request.status}")
        self._close_request(request, 'rejected', staff)
        self.db.commit()
        self.db.refresh(request)
        logger.info(f"Return request {return_request_id} rejected")
        return request

    # Catalog and accounts

    def add_book(self, title: str, author: str, isbn: str, total_copies: int,
                 available_copies: Optional[int] = None, description: Optional[str] = None,
                 cover_image_url: Optional[str] = None) -> Book:
        if available_copies is None:
            available_copies = total_copies
        if not 0 <= available_copies <= total_copies:
            raise LedgerValidationError("Available copies must be between 0 and the total number of copies")
        if self.books.find_by_isbn(isbn):
            raise ConflictError(f"Book with ISBN {isbn} already exists")
        book = self.books.add(Book(
            title=title,
            author=author,
            isbn=isbn,
            description=description,
            cover_image_url=cover_image_url,
            total_copies=total_copies,
            available_copies=available_copies,
        ))
        self.db.commit()
        self.db.refresh(book)
        logger.info(f"Added '{title}' ({total_copies} copies)")
        return book

    def add_student(self, name: str, student_number: str, password: str, confirm_password: str) -> Student:
        if password != confirm_password:
            raise LedgerValidationError("Passwords do not match")
        if self.students.find_by_student_number(student_number):
            raise ConflictError("Student ID already exists")
        if self.students.find_by_name(name):
            raise ConflictError("A student with this name already exists")
        student = self.students.add(Student(
            name=name.strip(),
            student_number=student_number.strip(),
            password_hash=get_password_hash(password),
        ))
        self.db.commit()
        self.db.refresh(student)
        logger.info(f"Student {student.name} added")
        return student

    def add_staff_user(self, username: str, role: str, password: str, confirm_password: str) -> StaffUser:
        if password != confirm_password:
            raise LedgerValidationError("Passwords do not match")
        if self.staff.find_by_username(username):
            raise ConflictError("Username already exists")
        user = self.staff.add(StaffUser(
            username=username.strip(),
            user_role=role,
            password_hash=get_password_hash(password),
        ))
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"{role.capitalize()} {user.username} added")
        return user

    # Dashboard

    def stats(self) -> dict:
        total_copies, available_copies = self.books.totals()
        at = self.clock()
        outstanding = self.issued_books.list(outstanding_only=True)
        return {
            "totalCopies": total_copies,
            "availableCopies": available_copies,
            "issuedCount": len(outstanding),
            "overdueCount": sum(1 for issued_book in outstanding if policy.is_overdue(issued_book, at)),
            "pendingBookRequests": len(self.book_requests.list(status='pending')),
            "pendingReturnRequests": len(self.return_requests.list(status='pending')),
        }


def get_ledger(db: Session = Depends(get_db)) -> LibraryLedger:
    return LibraryLedger(db)
