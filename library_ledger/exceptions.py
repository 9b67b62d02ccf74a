"""Domain errors raised by the ledger and mapped to HTTP responses in main."""
from decimal import Decimal
from typing import Any, Dict

from fastapi import status


class LibraryError(Exception):
    """Base class for errors reported back to the acting user."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "library_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "code": self.code}


class NotFoundError(LibraryError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(LibraryError):
    """Duplicate pending request, book unavailable or record in the wrong state."""
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class PolicyViolationError(LibraryError):
    """Delinquent student blocked from requesting or being issued a book."""
    status_code = status.HTTP_403_FORBIDDEN
    code = "policy_violation"


class LedgerValidationError(LibraryError):
    status_code = 422  # Unprocessable content
    code = "validation_error"


class FineConfirmationRequired(LedgerValidationError):
    """A return with a fine was finalised without acknowledging collection."""
    code = "fine_confirmation_required"

    def __init__(self, fine: Decimal):
        super().__init__(f"A fine of {fine:.2f} must be confirmed as collected before completing the return")
        self.fine = fine

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["fineAmount"] = float(self.fine)
        return body


class SuggestionServiceError(Exception):
    """Suggestion call failed. Recovered locally and never fatal to an issuance."""
    pass
