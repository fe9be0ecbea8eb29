"""Tests for complaint models, id parsing and category normalisation."""

from __future__ import annotations

import pytest

from src.models.complaint import (
    Complaint,
    ComplaintUpdate,
    NewComplaint,
    derive_status,
    derive_title,
    new_complaint_id,
    normalize_category,
    normalize_priority,
    parse_complaint_id,
)
from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from src.models.intake import IntakeSession


def _complaint(**overrides: object) -> Complaint:
    fields: dict[str, object] = {
        "name": "Asha",
        "title": "Pothole",
        "description": "Large pothole on MG Road",
        "location": "MG Road",
        "secret_hash": "$2b$04$abcdefghijklmnopqrstuv",
    }
    fields.update(overrides)
    return Complaint(**fields)  # type: ignore[arg-type]


class TestComplaintIds:
    def test_new_id_roundtrips_through_parser(self) -> None:
        cid = new_complaint_id()
        assert parse_complaint_id(cid) == cid

    @pytest.mark.parametrize(
        "typed",
        ["CMP-7F3A91C2", "cmp-7f3a91c2", " CMP 7F3A91C2 ", "CMP7F3A91C2", "cmp_7f3a91c2"],
    )
    def test_lenient_forms_parse(self, typed: str) -> None:
        assert parse_complaint_id(typed) == "CMP-7F3A91C2", f"{typed!r} should parse"

    @pytest.mark.parametrize("typed", ["", "hello", "CMP-123", "CMP-7F3A91C2X", "XYZ-7F3A91C2", "7F3A91C2"])
    def test_non_ids_do_not_parse(self, typed: str) -> None:
        assert parse_complaint_id(typed) is None


class TestNormalisation:
    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Roads & Transportation", ComplaintCategory.ROAD_TRANSPORTATION),
            ("roads", ComplaintCategory.ROAD_TRANSPORTATION),
            ("water_supply", ComplaintCategory.WATER_SUPPLY),
            ("Street Lighting", ComplaintCategory.STREET_LIGHTING),
            ("street-lighting", ComplaintCategory.STREET_LIGHTING),
            ("  Property Tax ", ComplaintCategory.PROPERTY_TAX),
            ("general", ComplaintCategory.OTHER),
            ("no such thing", ComplaintCategory.OTHER),
            (None, ComplaintCategory.OTHER),
        ],
    )
    def test_category_labels_become_slugs(self, label: str | None, expected: ComplaintCategory) -> None:
        assert normalize_category(label) == expected

    def test_model_normalises_category_on_input(self) -> None:
        complaint = NewComplaint(
            name="A",
            title="T",
            description="D",
            location="L",
            category="Parks & Recreation",  # type: ignore[arg-type]
        )
        assert complaint.category == ComplaintCategory.PARKS_RECREATION

    def test_priority_normalisation(self) -> None:
        assert normalize_priority("High") == ComplaintPriority.HIGH
        assert normalize_priority("bogus") == ComplaintPriority.MEDIUM
        assert normalize_priority(None) == ComplaintPriority.MEDIUM

    def test_priority_ordering(self) -> None:
        ranks = [p.rank for p in (ComplaintPriority.LOW, ComplaintPriority.MEDIUM, ComplaintPriority.HIGH, ComplaintPriority.URGENT)]
        assert ranks == sorted(ranks)


class TestComplaint:
    def test_secret_hash_never_serialised(self) -> None:
        complaint = _complaint()
        assert "secret_hash" not in complaint.model_dump()
        assert "secret_hash" not in complaint.model_dump_json()
        assert "abcdefghijklmnop" not in repr(complaint)

    def test_terminal_statuses_are_closed(self) -> None:
        assert _complaint(status=ComplaintStatus.RESOLVED).is_closed
        assert _complaint(status=ComplaintStatus.REJECTED).is_closed
        assert not _complaint(status=ComplaintStatus.UNDER_REVIEW).is_closed

    def test_derive_title_truncates(self) -> None:
        assert derive_title("short text") == "short text"
        long = "x" * 80
        assert derive_title(long) == "x" * 50 + "..."

    def test_derive_status_uses_latest_status_update(self) -> None:
        complaint = _complaint()
        updates = [
            ComplaintUpdate(complaint_id=complaint.id, message="on it", status=ComplaintStatus.IN_PROGRESS),
            ComplaintUpdate(complaint_id=complaint.id, message="note only"),
        ]
        assert derive_status(complaint, updates) == ComplaintStatus.IN_PROGRESS
        assert derive_status(complaint, []) == ComplaintStatus.SUBMITTED


class TestIntakeSession:
    def test_session_has_no_secret_field(self) -> None:
        session = IntakeSession(sender_id="+919876543210")
        dumped = session.model_dump()
        assert "secret" not in dumped
        assert "secret" not in (IntakeSession.model_fields.keys())
