"""Sample catalogue, accounts and loans for demos and local development."""
import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from library_ledger.models import Book, IssuedBook, StaffUser, Student
from library_ledger.services import policy
from library_ledger.services.auth import get_password_hash
from library_ledger.utils.timezone import now

logger = logging.getLogger(__name__)

SAMPLE_BOOKS = [
    ("The Great Gatsby", "F. Scott Fitzgerald", "9780743273565", "A story of wealth, love, and tragedy in the Jazz Age.", 3, 5),
    ("To Kill a Mockingbird", "Harper Lee", "9780061120084", "A classic of modern American literature, focusing on racial injustice.", 2, 3),
    ("1984", "George Orwell", "9780451524935", "A dystopian novel set in a totalitarian society.", 5, 5),
    ("Pride and Prejudice", "Jane Austen", "9780141439518", "A romantic novel that also critiques the British gentry.", 0, 2),
    ("The Catcher in the Rye", "J.D. Salinger", "9780316769488", "A story about teenage angst and alienation.", 1, 4),
    ("Brave New World", "Aldous Huxley", "9780060850524", "A dystopian novel about a future society.", 4, 6),
    ("Moby Dick", "Herman Melville", "9781503280786", "The saga of Captain Ahab and his relentless pursuit of the great white whale.", 2, 3),
]

SAMPLE_STUDENTS = [
    ("Alice Wonderland", "S1001", "password123"),
    ("Bob The Builder", "S1002", "password123"),
    ("Charlie Brown", "S1003", "password123"),
]

SAMPLE_STAFF = [
    ("librarian", "librarian", "password123"),
    ("admin", "admin", "adminpass"),
]

# (student number, isbn, days since issue, days since return or None, fine)
SAMPLE_LOANS = [
    ("S1001", "9780743273565", 20, None, None),
    ("S1002", "9780451524935", 10, None, None),
    ("S1001", "9780061120084", 30, 10, Decimal("6")),
    ("S1003", "9780316769488", 5, None, None),
]


def seed_sample_data(db: Session) -> bool:
    """Load the sample records into an empty database. Returns False if data already exists."""
    if db.query(Book).first() or db.query(Student).first():
        logger.info("Database already has data, skipping sample seed")
        return False

    books = {}
    for title, author, isbn, description, available, total in SAMPLE_BOOKS:
        book = Book(title=title, author=author, isbn=isbn, description=description,
                    available_copies=available, total_copies=total)
        db.add(book)
        books[isbn] = book

    students = {}
    for name, student_number, password in SAMPLE_STUDENTS:
        student = Student(name=name, student_number=student_number, password_hash=get_password_hash(password))
        db.add(student)
        students[student_number] = student

    for username, role, password in SAMPLE_STAFF:
        db.add(StaffUser(username=username, user_role=role, password_hash=get_password_hash(password)))

    db.flush()

    today = now()
    for student_number, isbn, issued_days_ago, returned_days_ago, fine in SAMPLE_LOANS:
        student = students[student_number]
        issue_date = today - timedelta(days=issued_days_ago)
        db.add(IssuedBook(
            book_id=books[isbn].book_id,
            student_id=student.student_id,
            student_name=student.name,
            issue_date=issue_date,
            due_date=policy.due_date_for(issue_date),
            return_date=today - timedelta(days=returned_days_ago) if returned_days_ago is not None else None,
            fine_amount=fine,
            fine_paid=False,
        ))

    db.commit()
    logger.info(f"Seeded {len(SAMPLE_BOOKS)} books, {len(SAMPLE_STUDENTS)} students and {len(SAMPLE_LOANS)} loans")
    return True
