import os
from datetime import timedelta
from decimal import Decimal

import pytest

# Configure before the package reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_SAMPLE_DATA"] = "false"
os.environ["SUGGESTION_SERVICE_URL"] = ""
os.environ["TIMEZONE"] = "UTC"

from fastapi.testclient import TestClient

from library_ledger.database import Base, SessionLocal, engine
from library_ledger.main import app
from library_ledger.models import Book, IssuedBook, StaffUser, Student
from library_ledger.services import policy
from library_ledger.services.auth import create_token_for, get_password_hash
from library_ledger.services.ledger import LibraryLedger
from library_ledger.utils.timezone import now


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ledger(db):
    return LibraryLedger(db)


@pytest.fixture
def client(db):
    return TestClient(app)


def make_book(db, title="1984", author="George Orwell", isbn="9780451524935", total=5, available=None):
    book = Book(title=title, author=author, isbn=isbn, total_copies=total,
                available_copies=total if available is None else available)
    db.add(book)
    db.commit()
    db.refresh(book)
    return book


def make_student(db, name="Alice Wonderland", student_number="S1001", password="password123"):
    student = Student(name=name, student_number=student_number, password_hash=get_password_hash(password))
    db.add(student)
    db.commit()
    db.refresh(student)
    return student


def make_staff(db, username="librarian", role="librarian", password="password123"):
    user = StaffUser(username=username, user_role=role, password_hash=get_password_hash(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_issued_book(db, student, book, issued_days_ago=0, returned_days_ago=None, fine=None):
    """Record a loan issued some days ago, optionally already returned with a fine."""
    issue_date = now() - timedelta(days=issued_days_ago)
    issued_book = IssuedBook(
        book_id=book.book_id,
        student_id=student.student_id,
        student_name=student.name,
        issue_date=issue_date,
        due_date=policy.due_date_for(issue_date),
        return_date=now() - timedelta(days=returned_days_ago) if returned_days_ago is not None else None,
        fine_amount=Decimal(fine) if fine is not None else None,
        fine_paid=False,
    )
    db.add(issued_book)
    db.commit()
    db.refresh(issued_book)
    return issued_book


def auth_headers(account):
    return {"Authorization": f"Bearer {create_token_for(account)}"}


@pytest.fixture
def alice(db):
    return make_student(db)


@pytest.fixture
def orwell(db):
    return make_book(db)


@pytest.fixture
def librarian(db):
    return make_staff(db)


@pytest.fixture
def admin(db):
    return make_staff(db, username="admin", role="admin", password="adminpass")
