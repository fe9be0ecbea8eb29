"""Durable complaint records and their append-only update log.

:class:`RecordStore` is the narrow interface the rest of the service
depends on.  :class:`InMemoryRecordStore` is the in-process implementation
used by the API and the tests; a database-backed store only has to honour
the same contract:

* ids are unique; an id collision is retried with a fresh id;
* ``create_complaint`` with an ``idempotency_key`` already seen returns the
  complaint created the first time instead of creating another.  Keys only
  need to be remembered for as long as a draft can be replayed (one intake
  session), so the in-memory store keeps the most recent ones and forgets
  the oldest;
* a status-changing update writes the complaint's status and appends the
  event as one indivisible step;
* resolved and rejected complaints reject edits and status changes.
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

import structlog

from src.models.complaint import (
    Complaint,
    ComplaintEdit,
    ComplaintUpdate,
    NewComplaint,
    new_complaint_id,
    parse_complaint_id,
)
from src.models.enums import ComplaintStatus
from src.services.errors import ComplaintClosed, ComplaintNotFound

logger = structlog.get_logger(__name__)

_MAX_ID_ATTEMPTS = 5
_MAX_IDEMPOTENCY_KEYS = 10_000


@runtime_checkable
class RecordStore(Protocol):
    """Async complaint storage interface."""

    async def create_complaint(
        self,
        fields: NewComplaint,
        secret_hash: str,
        idempotency_key: str | None = None,
    ) -> Complaint: ...

    async def get_complaint(self, complaint_id: str) -> Complaint: ...

    async def apply_mutation(self, complaint_id: str, edit: ComplaintEdit) -> Complaint: ...

    async def append_update(
        self,
        complaint_id: str,
        message: str,
        status: ComplaintStatus | None = None,
        actor_id: str | None = None,
    ) -> ComplaintUpdate: ...

    async def list_updates(self, complaint_id: str) -> list[ComplaintUpdate]: ...

    async def list_complaints(self, status: ComplaintStatus | None = None) -> list[Complaint]: ...

    async def stats(self) -> dict[str, Any]: ...


class InMemoryRecordStore:
    """Process-local :class:`RecordStore`.

    Every operation runs to completion without yielding to the event loop,
    so each one is atomic with respect to other tasks.  Records handed out
    are copies; callers cannot change stored state except through the
    store's methods.
    """

    def __init__(self, max_idempotency_keys: int = _MAX_IDEMPOTENCY_KEYS) -> None:
        self._complaints: dict[str, Complaint] = {}
        self._updates: dict[str, list[ComplaintUpdate]] = {}
        self._idempotency: OrderedDict[str, str] = OrderedDict()
        self._max_idempotency_keys = max_idempotency_keys

    def __len__(self) -> int:
        return len(self._complaints)

    def _lookup(self, complaint_id: str) -> Complaint:
        canonical = parse_complaint_id(complaint_id)
        complaint = self._complaints.get(canonical) if canonical else None
        if complaint is None:
            raise ComplaintNotFound(complaint_id)
        return complaint

    async def create_complaint(
        self,
        fields: NewComplaint,
        secret_hash: str,
        idempotency_key: str | None = None,
    ) -> Complaint:
        if idempotency_key is not None and idempotency_key in self._idempotency:
            existing = self._complaints[self._idempotency[idempotency_key]]
            logger.info("store.idempotent_replay", complaint_id=existing.id)
            return existing.model_copy()

        for _ in range(_MAX_ID_ATTEMPTS):
            complaint_id = new_complaint_id()
            if complaint_id not in self._complaints:
                break
            logger.warning("store.id_collision", complaint_id=complaint_id)
        else:
            raise RuntimeError("could not allocate a unique complaint id")

        complaint = Complaint(
            **fields.model_dump(),
            id=complaint_id,
            secret_hash=secret_hash,
        )
        self._complaints[complaint_id] = complaint
        self._updates[complaint_id] = []
        if idempotency_key is not None:
            self._idempotency[idempotency_key] = complaint_id
            while len(self._idempotency) > self._max_idempotency_keys:
                self._idempotency.popitem(last=False)

        logger.info(
            "store.complaint_created",
            complaint_id=complaint_id,
            category=complaint.category,
            priority=complaint.priority,
            source=complaint.source,
        )
        return complaint.model_copy()

    async def get_complaint(self, complaint_id: str) -> Complaint:
        return self._lookup(complaint_id).model_copy()

    async def apply_mutation(self, complaint_id: str, edit: ComplaintEdit) -> Complaint:
        current = self._lookup(complaint_id)
        if current.is_closed:
            raise ComplaintClosed(current.id, current.status)

        changes: dict[str, Any] = edit.model_dump(exclude_none=True)
        changes["updated_at"] = datetime.now(UTC)
        updated = current.model_copy(update=changes)
        self._complaints[current.id] = updated
        logger.info("store.complaint_edited", complaint_id=current.id, fields=sorted(changes))
        return updated.model_copy()

    async def append_update(
        self,
        complaint_id: str,
        message: str,
        status: ComplaintStatus | None = None,
        actor_id: str | None = None,
    ) -> ComplaintUpdate:
        current = self._lookup(complaint_id)
        if status is not None and current.is_closed:
            raise ComplaintClosed(current.id, current.status)

        update = ComplaintUpdate(
            complaint_id=current.id,
            actor_id=actor_id,
            message=message,
            status=status,
        )
        changes: dict[str, Any] = {"updated_at": update.created_at}
        if status is not None:
            changes["status"] = status
        self._complaints[current.id] = current.model_copy(update=changes)
        self._updates[current.id].append(update)

        logger.info(
            "store.update_appended",
            complaint_id=current.id,
            status=status,
            by_official=actor_id is not None,
        )
        return update

    async def list_updates(self, complaint_id: str) -> list[ComplaintUpdate]:
        complaint = self._lookup(complaint_id)
        return list(self._updates[complaint.id])

    async def list_complaints(self, status: ComplaintStatus | None = None) -> list[Complaint]:
        """Complaints newest first, optionally filtered by status."""
        selected = [
            c.model_copy()
            for c in self._complaints.values()
            if status is None or c.status == status
        ]
        selected.sort(key=lambda c: c.created_at, reverse=True)
        return selected

    async def stats(self) -> dict[str, Any]:
        complaints = list(self._complaints.values())
        return {
            "total": len(complaints),
            "by_status": dict(Counter(str(c.status) for c in complaints)),
            "by_category": dict(Counter(str(c.category) for c in complaints)),
            "by_priority": dict(Counter(str(c.priority) for c in complaints)),
        }
