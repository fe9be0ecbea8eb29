"""Tests for the in-memory record store."""

from __future__ import annotations

import pytest

from src.models.complaint import ComplaintEdit, NewComplaint, derive_status
from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from src.services.errors import ComplaintClosed, ComplaintNotFound
from src.services.record_store import InMemoryRecordStore, RecordStore


def _fields(**overrides: object) -> NewComplaint:
    fields: dict[str, object] = {
        "name": "Asha",
        "title": "Pothole on MG Road",
        "description": "Large pothole on MG Road near the bus stand",
        "category": ComplaintCategory.ROAD_TRANSPORTATION,
        "priority": ComplaintPriority.HIGH,
        "location": "MG Road",
    }
    fields.update(overrides)
    return NewComplaint(**fields)  # type: ignore[arg-type]


class TestCreate:
    async def test_create_assigns_id_and_submitted_status(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        assert complaint.id.startswith("CMP-")
        assert complaint.status == ComplaintStatus.SUBMITTED
        assert complaint.secret_hash == "hash"
        assert len(store) == 1

    async def test_idempotency_key_returns_first_complaint(self, store: InMemoryRecordStore) -> None:
        first = await store.create_complaint(_fields(), "hash", idempotency_key="draft-1")
        second = await store.create_complaint(_fields(title="different"), "hash2", idempotency_key="draft-1")
        assert second.id == first.id
        assert second.title == first.title
        assert len(store) == 1, "a replayed idempotency key must not create a second complaint"

    async def test_idempotency_keys_are_bounded_to_the_most_recent(self) -> None:
        store = InMemoryRecordStore(max_idempotency_keys=2)
        first = await store.create_complaint(_fields(), "hash", idempotency_key="draft-1")
        await store.create_complaint(_fields(), "hash", idempotency_key="draft-2")
        third = await store.create_complaint(_fields(), "hash", idempotency_key="draft-3")

        assert (await store.create_complaint(_fields(), "hash", idempotency_key="draft-3")).id == third.id
        replayed = await store.create_complaint(_fields(), "hash", idempotency_key="draft-1")
        assert replayed.id != first.id, "the oldest key is forgotten once the bound is exceeded"
        assert len(store) == 4

    async def test_returned_records_are_copies(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        complaint.title = "tampered"
        assert (await store.get_complaint(complaint.id)).title == "Pothole on MG Road"

    def test_satisfies_protocol(self, store: InMemoryRecordStore) -> None:
        assert isinstance(store, RecordStore)


class TestLookup:
    async def test_lookup_accepts_typed_forms(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        typed = complaint.id.lower().replace("-", " ")
        assert (await store.get_complaint(typed)).id == complaint.id

    @pytest.mark.parametrize("bad_id", ["CMP-00000000", "garbage", ""])
    async def test_unknown_id_is_not_found(self, store: InMemoryRecordStore, bad_id: str) -> None:
        with pytest.raises(ComplaintNotFound):
            await store.get_complaint(bad_id)


class TestMutation:
    async def test_edit_changes_only_given_fields(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        edited = await store.apply_mutation(complaint.id, ComplaintEdit(location="MG Road, gate 2"))
        assert edited.location == "MG Road, gate 2"
        assert edited.title == complaint.title
        assert edited.updated_at >= complaint.updated_at

    async def test_status_update_writes_status_and_event(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        update = await store.append_update(complaint.id, "Crew assigned", status=ComplaintStatus.IN_PROGRESS)
        current = await store.get_complaint(complaint.id)
        updates = await store.list_updates(complaint.id)
        assert current.status == ComplaintStatus.IN_PROGRESS
        assert updates == [update]
        assert derive_status(current, updates) == current.status

    async def test_closed_complaint_rejects_status_change_and_edit(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        await store.append_update(complaint.id, "Fixed", status=ComplaintStatus.RESOLVED)

        with pytest.raises(ComplaintClosed):
            await store.append_update(complaint.id, "Reopen", status=ComplaintStatus.IN_PROGRESS)
        with pytest.raises(ComplaintClosed):
            await store.apply_mutation(complaint.id, ComplaintEdit(title="new title"))

        current = await store.get_complaint(complaint.id)
        assert current.status == ComplaintStatus.RESOLVED
        assert len(await store.list_updates(complaint.id)) == 1, "rejected updates must not be logged"

    async def test_closed_complaint_accepts_message_only_update(self, store: InMemoryRecordStore) -> None:
        complaint = await store.create_complaint(_fields(), "hash")
        await store.append_update(complaint.id, "Rejected: duplicate", status=ComplaintStatus.REJECTED)
        await store.append_update(complaint.id, "Thanks anyway")
        assert (await store.get_complaint(complaint.id)).status == ComplaintStatus.REJECTED


class TestListing:
    async def test_list_filters_by_status(self, store: InMemoryRecordStore) -> None:
        a = await store.create_complaint(_fields(), "h")
        await store.create_complaint(_fields(), "h")
        await store.append_update(a.id, "done", status=ComplaintStatus.RESOLVED)
        resolved = await store.list_complaints(ComplaintStatus.RESOLVED)
        assert [c.id for c in resolved] == [a.id]
        assert len(await store.list_complaints()) == 2

    async def test_stats(self, store: InMemoryRecordStore) -> None:
        await store.create_complaint(_fields(), "h")
        await store.create_complaint(_fields(category="sanitation", priority=ComplaintPriority.LOW), "h")
        stats = await store.stats()
        assert stats["total"] == 2
        assert stats["by_status"] == {"submitted": 2}
        assert stats["by_category"] == {"road-transportation": 1, "sanitation": 1}
        assert stats["by_priority"] == {"high": 1, "low": 1}
