"""Secret-gated mutation of anonymous complaints.

Citizens who filed without an account prove ownership of a complaint with
the secret they chose at filing time.  Every mutation path (web edit,
web status update, and any future chat command) goes through
:class:`MutationGate`; official actions share the same per-complaint lock
but are authorised by role at the API layer instead of by secret.

Verification and the write that follows it run under one per-complaint
lock, so two requests against the same complaint cannot interleave.
"""

from __future__ import annotations

from typing import Final

import structlog

from src.models.complaint import Complaint, ComplaintEdit, ComplaintUpdate, parse_complaint_id
from src.models.enums import ComplaintStatus
from src.services.errors import AuthFailure, ComplaintNotFound, InvalidInput
from src.services.keyed_lock import KeyedLock
from src.services.record_store import RecordStore
from src.services.secret_manager import SecretManager

logger = structlog.get_logger(__name__)

_DUMMY_SECRET: Final[str] = "nagarseva-timing-equaliser"


class MutationGate:
    """Authorise and apply complaint mutations."""

    def __init__(self, store: RecordStore, secrets: SecretManager) -> None:
        self._store = store
        self._secrets = secrets
        self._locks = KeyedLock()
        # Verified against when the complaint does not exist, so a miss
        # costs the same bcrypt work as a hit.
        self._dummy_hash = secrets.hash(_DUMMY_SECRET)

    @staticmethod
    def _lock_key(complaint_id: str) -> str:
        return parse_complaint_id(complaint_id) or complaint_id

    async def _verify(self, complaint_id: str, secret: str) -> Complaint:
        try:
            complaint = await self._store.get_complaint(complaint_id)
        except ComplaintNotFound:
            await self._secrets.verify_async(secret, self._dummy_hash)
            logger.info("gate.not_found")
            raise
        if not await self._secrets.verify_async(secret, complaint.secret_hash):
            logger.warning("gate.auth_failed", complaint_id=complaint.id)
            raise AuthFailure(complaint.id)
        return complaint

    async def authorize(self, complaint_id: str, secret: str) -> Complaint:
        """Return the complaint iff *secret* matches its stored hash.

        Raises
        ------
        ComplaintNotFound
            No complaint has this id.
        AuthFailure
            The secret does not match.
        """
        async with self._locks.hold(self._lock_key(complaint_id)):
            return await self._verify(complaint_id, secret)

    async def edit(self, complaint_id: str, secret: str, edit: ComplaintEdit) -> Complaint:
        """Apply an edit of the free-text fields."""
        if edit.is_empty:
            raise InvalidInput("Nothing to edit")
        async with self._locks.hold(self._lock_key(complaint_id)):
            complaint = await self._verify(complaint_id, secret)
            updated = await self._store.apply_mutation(complaint.id, edit)
        logger.info("gate.edited", complaint_id=updated.id)
        return updated

    async def change_status(
        self,
        complaint_id: str,
        secret: str,
        message: str,
        status: ComplaintStatus | None = None,
    ) -> ComplaintUpdate:
        """Append a citizen update, optionally changing the status."""
        if not message.strip():
            raise InvalidInput("Update message cannot be empty")
        async with self._locks.hold(self._lock_key(complaint_id)):
            complaint = await self._verify(complaint_id, secret)
            update = await self._store.append_update(complaint.id, message.strip(), status=status)
        logger.info("gate.citizen_update", complaint_id=complaint.id, status=status)
        return update

    async def official_update(
        self,
        complaint_id: str,
        actor_id: str,
        message: str,
        status: ComplaintStatus | None = None,
    ) -> ComplaintUpdate:
        """Append an update on behalf of an official; the caller checks the role."""
        if not message.strip():
            raise InvalidInput("Update message cannot be empty")
        async with self._locks.hold(self._lock_key(complaint_id)):
            update = await self._store.append_update(
                complaint_id,
                message.strip(),
                status=status,
                actor_id=actor_id,
            )
        logger.info("gate.official_update", complaint_id=update.complaint_id, actor_id=actor_id, status=status)
        return update
