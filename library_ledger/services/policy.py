"""Borrowing policy: loan period, overdue fines and delinquency.

These are plain functions over issued-book records so they can be used by
the ledger service, the fine calculator endpoint and tests alike. The loan
period and per-day fine come from settings and are not repeated anywhere else.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from library_ledger.config import settings
from library_ledger.models.issued_book import IssuedBook
from library_ledger.utils.timezone import ensure_aware, now, to_local

LOAN_PERIOD = timedelta(days=settings.loan_period_days)
FINE_PER_DAY = Decimal(str(settings.fine_per_day))


@dataclass
class FineAssessment:
    due_date: datetime
    return_date: datetime
    overdue_days: int
    fine: Decimal

    def to_dict(self):
        return {
            "dueDate": self.due_date.isoformat(),
            "returnDate": self.return_date.isoformat(),
            "overdueDays": self.overdue_days,
            "fineAmount": float(self.fine),
        }


@dataclass
class DelinquencyStatus:
    overdue_books_count: int
    unpaid_fines_count: int

    @property
    def is_delinquent(self) -> bool:
        return self.overdue_books_count > 0 or self.unpaid_fines_count > 0

    def to_dict(self):
        return {
            "overdueBooksCount": self.overdue_books_count,
            "unpaidFinesCount": self.unpaid_fines_count,
            "isDelinquent": self.is_delinquent,
        }


def due_date_for(issue_date: datetime) -> datetime:
    return to_local(issue_date + LOAN_PERIOD)


def assess_fine(due_date: datetime, return_date: datetime) -> FineAssessment:
    """Fine for returning at ``return_date`` a book due at ``due_date``.

    Only whole days count: a book 6 days and 20 hours late is 6 days overdue.
    """
    due_date = ensure_aware(due_date)
    return_date = ensure_aware(return_date)
    if return_date <= due_date:
        return FineAssessment(due_date, return_date, 0, Decimal("0"))
    overdue_days = (return_date - due_date).days
    return FineAssessment(due_date, return_date, overdue_days, overdue_days * FINE_PER_DAY)


def is_overdue(issued_book: IssuedBook, at: Optional[datetime] = None) -> bool:
    at = at or now()
    return issued_book.return_date is None and ensure_aware(issued_book.due_date) < at


def has_unpaid_fine(issued_book: IssuedBook) -> bool:
    # Every recorded fine counts unless paid fines are configured to clear delinquency
    if issued_book.return_date is None or not issued_book.fine_amount or issued_book.fine_amount <= 0:
        return False
    if settings.delinquency_ignores_paid_fines and issued_book.fine_paid:
        return False
    return True


def delinquency_status(issued_books: Iterable[IssuedBook], at: Optional[datetime] = None) -> DelinquencyStatus:
    """Summarise one student's issued books into overdue and unpaid-fine counts."""
    at = at or now()
    overdue = 0
    unpaid = 0
    for issued_book in issued_books:
        if is_overdue(issued_book, at):
            overdue += 1
        elif has_unpaid_fine(issued_book):
            unpaid += 1
    return DelinquencyStatus(overdue_books_count=overdue, unpaid_fines_count=unpaid)
