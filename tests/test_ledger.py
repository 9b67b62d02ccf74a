from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytz
from sqlalchemy.exc import IntegrityError

from conftest import make_book, make_issued_book, make_student
from library_ledger.exceptions import (
    ConflictError,
    FineConfirmationRequired,
    LedgerValidationError,
    NotFoundError,
    PolicyViolationError,
)
from library_ledger.models import BookRequest
from library_ledger.services.ledger import LibraryLedger
from library_ledger.utils import timezone
from library_ledger.utils.timezone import ensure_aware, now


def test_direct_issue_decrements_copies_and_sets_due_date(ledger, db, alice, orwell):
    issued = ledger.issue_book(alice.student_id, orwell.book_id)

    db.refresh(orwell)
    assert orwell.available_copies == 4
    assert issued.student_name == "Alice Wonderland"
    assert issued.return_date is None
    assert issued.fine_amount is None
    assert issued.due_date - issued.issue_date == timedelta(days=14)


def test_issue_without_copies_is_conflict_and_changes_nothing(ledger, db, alice):
    book = make_book(db, title="Pride and Prejudice", isbn="9780141439518", total=2, available=0)

    with pytest.raises(ConflictError):
        ledger.issue_book(alice.student_id, book.book_id)

    db.refresh(book)
    assert book.available_copies == 0
    assert ledger.issued_books.list() == []


def test_issue_to_delinquent_student_is_blocked(ledger, db, alice, orwell):
    gatsby = make_book(db, title="The Great Gatsby", isbn="9780743273565")
    make_issued_book(db, alice, gatsby, issued_days_ago=20)

    with pytest.raises(PolicyViolationError):
        ledger.issue_book(alice.student_id, orwell.book_id)

    db.refresh(orwell)
    assert orwell.available_copies == 5


def test_issue_to_student_with_recorded_fine_is_blocked(ledger, db, alice, orwell):
    mockingbird = make_book(db, title="To Kill a Mockingbird", isbn="9780061120084")
    make_issued_book(db, alice, mockingbird, issued_days_ago=30, returned_days_ago=10, fine=6)

    status = ledger.get_delinquency_status(alice.student_id)
    assert status.unpaid_fines_count == 1
    with pytest.raises(PolicyViolationError):
        ledger.issue_book(alice.student_id, orwell.book_id)


def test_issue_unknown_student_or_book(ledger, alice, orwell):
    with pytest.raises(NotFoundError):
        ledger.issue_book(999, orwell.book_id)
    with pytest.raises(NotFoundError):
        ledger.issue_book(alice.student_id, 999)


def test_find_book_and_resolve_student_by_reference(ledger, alice, orwell):
    assert ledger.find_book("1984").book_id == orwell.book_id
    assert ledger.find_book("9780451524935").book_id == orwell.book_id
    assert ledger.find_book(str(orwell.book_id)).book_id == orwell.book_id
    assert ledger.resolve_student("alice wonderland").student_id == alice.student_id
    assert ledger.resolve_student("s1001").student_id == alice.student_id
    with pytest.raises(NotFoundError):
        ledger.find_book("Ulysses")
    with pytest.raises(NotFoundError):
        ledger.resolve_student("Nobody")


def test_search_matches_title_author_and_isbn(ledger, db, orwell):
    make_book(db, title="Brave New World", author="Aldous Huxley", isbn="9780060850524")
    assert [b.title for b in ledger.books.search("orwell")] == ["1984"]
    assert [b.title for b in ledger.books.search("BRAVE")] == ["Brave New World"]
    assert [b.title for b in ledger.books.search("0850")] == ["Brave New World"]
    assert len(ledger.books.search()) == 2


def test_request_then_approve_issues_the_book(ledger, db, alice, orwell, librarian):
    request = ledger.request_book(alice.student_id, orwell.book_id)
    assert request.status == "pending"
    assert request.student_name == "Alice Wonderland"

    issued = ledger.approve_book_request(request.request_id, librarian)

    db.refresh(orwell)
    db.refresh(request)
    assert orwell.available_copies == 4
    assert request.status == "approved"
    assert request.processed_by == librarian.user_id
    assert issued.due_date - issued.issue_date == timedelta(days=14)


def test_duplicate_pending_request_is_conflict(ledger, alice, orwell):
    ledger.request_book(alice.student_id, orwell.book_id)
    with pytest.raises(ConflictError):
        ledger.request_book(alice.student_id, orwell.book_id)


def test_new_request_allowed_after_previous_one_is_closed(ledger, alice, orwell):
    first = ledger.request_book(alice.student_id, orwell.book_id)
    ledger.reject_book_request(first.request_id)
    second = ledger.request_book(alice.student_id, orwell.book_id)
    assert second.status == "pending"


def test_pending_request_index_rejects_duplicates(db, alice, orwell):
    for _ in range(2):
        db.add(BookRequest(book_id=orwell.book_id, student_id=alice.student_id,
                           student_name=alice.name, request_date=now(),
                           status="pending"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_delinquent_student_cannot_request(ledger, db, alice, orwell):
    gatsby = make_book(db, title="The Great Gatsby", isbn="9780743273565")
    make_issued_book(db, alice, gatsby, issued_days_ago=20)
    with pytest.raises(PolicyViolationError):
        ledger.request_book(alice.student_id, orwell.book_id)


def test_approval_rejects_request_when_book_ran_out(ledger, db, alice):
    book = make_book(db, title="The Catcher in the Rye", isbn="9780316769488", total=4, available=1)
    request = ledger.request_book(alice.student_id, book.book_id)
    bob = make_student(db, name="Bob The Builder", student_number="S1002")
    ledger.issue_book(bob.student_id, book.book_id)

    with pytest.raises(ConflictError):
        ledger.approve_book_request(request.request_id)

    db.refresh(request)
    db.refresh(book)
    assert request.status == "rejected"
    assert book.available_copies == 0


def test_approval_rejects_request_when_student_became_delinquent(ledger, db, alice, orwell):
    request = ledger.request_book(alice.student_id, orwell.book_id)
    gatsby = make_book(db, title="The Great Gatsby", isbn="9780743273565")
    make_issued_book(db, alice, gatsby, issued_days_ago=15)

    with pytest.raises(PolicyViolationError):
        ledger.approve_book_request(request.request_id)

    db.refresh(request)
    db.refresh(orwell)
    assert request.status == "rejected"
    assert orwell.available_copies == 5


def test_closed_request_cannot_be_processed_again(ledger, alice, orwell):
    request = ledger.request_book(alice.student_id, orwell.book_id)
    ledger.reject_book_request(request.request_id)
    with pytest.raises(ConflictError):
        ledger.approve_book_request(request.request_id)
    with pytest.raises(NotFoundError):
        ledger.reject_book_request(12345)


def test_on_time_return_needs_no_confirmation(ledger, db, alice, orwell):
    issued = ledger.issue_book(alice.student_id, orwell.book_id)
    assert ledger.compute_return_fine(issued.issued_book_id).fine == 0

    returned = ledger.confirm_return(issued.issued_book_id)

    db.refresh(orwell)
    assert returned.return_date is not None
    assert returned.fine_amount == 0
    assert not returned.fine_paid
    assert orwell.available_copies == 5
    assert not ledger.get_delinquency_status(alice.student_id).is_delinquent


def test_overdue_return_is_two_phase(ledger, db, alice, librarian):
    book = make_book(db, title="The Great Gatsby", isbn="9780743273565", total=5, available=3)
    issued = make_issued_book(db, alice, book, issued_days_ago=20)
    request = ledger.request_return(alice.student_id, issued.issued_book_id)

    assessment = ledger.quote_return_request(request.return_request_id)
    assert assessment.overdue_days == 6
    assert assessment.fine == 6

    with pytest.raises(FineConfirmationRequired) as excinfo:
        ledger.approve_return_request(request.return_request_id, fine_collected=False, staff=librarian)
    assert excinfo.value.to_dict()["fineAmount"] == 6.0
    db.refresh(book)
    assert book.available_copies == 3

    returned = ledger.approve_return_request(request.return_request_id, fine_collected=True, staff=librarian)

    db.refresh(book)
    db.refresh(request)
    assert returned.fine_amount == 6
    assert returned.fine_paid
    assert ensure_aware(returned.return_date) > ensure_aware(returned.due_date)
    assert book.available_copies == 4
    assert request.status == "approved"
    assert request.processed_by == librarian.user_id


def test_return_never_exceeds_total_copies(ledger, db, alice, orwell):
    issued = make_issued_book(db, alice, orwell, issued_days_ago=1)
    ledger.confirm_return(issued.issued_book_id)
    db.refresh(orwell)
    assert orwell.available_copies == orwell.total_copies == 5


def test_returned_book_cannot_be_returned_again(ledger, alice, orwell):
    issued = ledger.issue_book(alice.student_id, orwell.book_id)
    ledger.confirm_return(issued.issued_book_id)
    with pytest.raises(ConflictError):
        ledger.confirm_return(issued.issued_book_id)
    with pytest.raises(ConflictError):
        ledger.request_return(alice.student_id, issued.issued_book_id)


def test_duplicate_return_request_is_conflict(ledger, alice, orwell):
    issued = ledger.issue_book(alice.student_id, orwell.book_id)
    ledger.request_return(alice.student_id, issued.issued_book_id)
    with pytest.raises(ConflictError):
        ledger.request_return(alice.student_id, issued.issued_book_id)


def test_student_cannot_return_someone_elses_book(ledger, db, alice, orwell):
    bob = make_student(db, name="Bob The Builder", student_number="S1002")
    issued = ledger.issue_book(bob.student_id, orwell.book_id)
    with pytest.raises(NotFoundError):
        ledger.request_return(alice.student_id, issued.issued_book_id)


def test_rejected_return_leaves_ledger_untouched(ledger, db, alice, orwell):
    issued = ledger.issue_book(alice.student_id, orwell.book_id)
    request = ledger.request_return(alice.student_id, issued.issued_book_id)

    rejected = ledger.reject_return_request(request.return_request_id)

    db.refresh(issued)
    db.refresh(orwell)
    assert rejected.status == "rejected"
    assert issued.return_date is None
    assert orwell.available_copies == 4


def test_copy_counts_stay_in_bounds(ledger, db, orwell):
    students = [make_student(db, name=f"Student {i}", student_number=f"S20{i}") for i in range(6)]
    issued = []
    for student in students[:5]:
        issued.append(ledger.issue_book(student.student_id, orwell.book_id))
    with pytest.raises(ConflictError):
        ledger.issue_book(students[5].student_id, orwell.book_id)

    db.refresh(orwell)
    assert orwell.available_copies == 0
    for record in issued:
        ledger.confirm_return(record.issued_book_id)
        db.refresh(orwell)
        assert 0 <= orwell.available_copies <= orwell.total_copies
    assert orwell.available_copies == 5


def test_add_book_validates_copy_counts(ledger):
    with pytest.raises(LedgerValidationError):
        ledger.add_book("Moby Dick", "Herman Melville", "9781503280786", total_copies=2, available_copies=3)
    book = ledger.add_book("Moby Dick", "Herman Melville", "9781503280786", total_copies=3)
    assert book.available_copies == 3
    with pytest.raises(ConflictError):
        ledger.add_book("Moby Dick", "Herman Melville", "9781503280786", total_copies=1)


def test_add_accounts(ledger, alice):
    with pytest.raises(LedgerValidationError):
        ledger.add_student("Charlie Brown", "S1003", "password123", "password124")
    with pytest.raises(ConflictError):
        ledger.add_student("Someone Else", "s1001", "password123", "password123")
    with pytest.raises(ConflictError):
        ledger.add_student("ALICE WONDERLAND", "S1009", "password123", "password123")

    charlie = ledger.add_student("Charlie Brown", "S1003", "password123", "password123")
    assert charlie.student_number == "S1003"

    staff = ledger.add_staff_user("frontdesk", "librarian", "password123", "password123")
    assert staff.role == "librarian"
    with pytest.raises(ConflictError):
        ledger.add_staff_user("FrontDesk", "admin", "password123", "password123")


def test_stats(ledger, db, alice, orwell):
    gatsby = make_book(db, title="The Great Gatsby", isbn="9780743273565", total=5, available=3)
    make_issued_book(db, alice, gatsby, issued_days_ago=20)
    ledger.request_book(make_student(db, name="Bob The Builder", student_number="S1002").student_id, orwell.book_id)

    stats = ledger.stats()
    assert stats == {
        "totalCopies": 10,
        "availableCopies": 8,
        "issuedCount": 1,
        "overdueCount": 1,
        "pendingBookRequests": 1,
        "pendingReturnRequests": 0,
    }


def test_request_for_unavailable_book_is_conflict(ledger, db, alice):
    book = make_book(db, title="Pride and Prejudice", isbn="9780141439518", total=2, available=0)
    with pytest.raises(ConflictError):
        ledger.request_book(alice.student_id, book.book_id)
    assert db.query(BookRequest).count() == 0


def test_loan_period_is_exact_across_dst_change(db, monkeypatch, alice, orwell):
    new_york = pytz.timezone("America/New_York")
    monkeypatch.setattr(timezone, "LOCAL_TZ", new_york)
    issued_at = new_york.localize(datetime(2024, 3, 1, 10, 0))
    ledger = LibraryLedger(db, clock=lambda: issued_at)

    record_id = ledger.issue_book(alice.student_id, orwell.book_id).issued_book_id
    db.expire_all()
    issued = ledger.get_issued_book(record_id)

    assert issued.issue_date == issued_at
    assert issued.due_date - issued.issue_date == timedelta(days=14)
    assert issued.due_date.utcoffset() == timedelta(hours=-4)
    assert issued.due_date.hour == 11

    # Returning at the due instant owes nothing
    on_due = LibraryLedger(db, clock=lambda: issued.due_date)
    assert on_due.compute_return_fine(record_id).fine == 0


def test_confirm_return_refuses_a_stale_quoted_fine(ledger, db, alice):
    book = make_book(db, title="The Great Gatsby", isbn="9780743273565", total=5, available=4)
    issued = make_issued_book(db, alice, book, issued_days_ago=20)

    with pytest.raises(FineConfirmationRequired) as excinfo:
        ledger.confirm_return(issued.issued_book_id, fine_collected=True, quoted_fine=Decimal("5"))
    assert excinfo.value.fine == 6
    db.refresh(issued)
    assert issued.return_date is None

    returned = ledger.confirm_return(issued.issued_book_id, fine_collected=True, quoted_fine=Decimal("6.00"))
    assert returned.fine_amount == 6
    assert returned.fine_paid
