"""Error taxonomy for complaint intake and mutation.

Services raise these; the API layer and the chat engine translate them
into HTTP statuses and replies respectively.
"""

from __future__ import annotations


class NagarSevaError(Exception):
    """Base class for all domain errors."""


class ClassificationFailure(NagarSevaError):
    """The classifier raised or returned something unusable."""


class ClassificationTimeout(ClassificationFailure):
    """The classifier did not answer within the configured timeout."""


class InvalidInput(NagarSevaError):
    """User-supplied input failed validation (too short, empty, ...)."""


class ComplaintNotFound(NagarSevaError):
    """No complaint exists for the given id."""

    def __init__(self, complaint_id: str) -> None:
        super().__init__(f"Complaint not found: {complaint_id}")
        self.complaint_id = complaint_id


class AuthFailure(NagarSevaError):
    """The supplied secret does not match the complaint's stored hash."""

    def __init__(self, complaint_id: str) -> None:
        super().__init__(f"Incorrect secret for complaint {complaint_id}")
        self.complaint_id = complaint_id


class ComplaintClosed(NagarSevaError):
    """The complaint is resolved or rejected and can no longer change."""

    def __init__(self, complaint_id: str, status: str) -> None:
        super().__init__(f"Complaint {complaint_id} is {status} and cannot be changed")
        self.complaint_id = complaint_id
        self.status = status


class StoreUnavailable(NagarSevaError):
    """The record store could not complete the operation."""
