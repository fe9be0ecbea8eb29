"""Tests for the pure intake transition logic."""

from __future__ import annotations

import pytest

from src.models.complaint import Complaint, ComplaintUpdate
from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus, IntakeState
from src.models.intake import IntakeDraft
from src.services.classifier import Classification
from src.services.intake import TRANSITIONS, Effect, InputClass, IntakeMachine, classify_input


def _draft_with_location() -> IntakeDraft:
    return IntakeDraft(
        description="Pothole near the bus stand",
        category=ComplaintCategory.ROAD_TRANSPORTATION,
        priority=ComplaintPriority.HIGH,
        location="MG Road",
    )


class TestClassifyInput:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("", InputClass.EMPTY),
            ("   ", InputClass.EMPTY),
            ("cancel", InputClass.CANCEL),
            ("STOP!", InputClass.CANCEL),
            ("CMP-7F3A91C2", InputClass.COMPLAINT_ID),
            ("cmp 7f3a91c2", InputClass.COMPLAINT_ID),
            ("hi", InputClass.GREETING),
            ("Hello there", InputClass.GREETING),
            ("check status", InputClass.STATUS_REQUEST),
            ("I want to track my complaint", InputClass.STATUS_REQUEST),
            ("check", InputClass.STATUS_REQUEST),
            ("There is a large pothole near the bus stand causing accidents daily", InputClass.DESCRIPTIVE),
            ("file a complaint", InputClass.FILING_INTENT),
            ("problem", InputClass.FILING_INTENT),
            ("ok", InputClass.OTHER),
            ("blue sky", InputClass.OTHER),
        ],
    )
    def test_classes(self, text: str, expected: InputClass) -> None:
        assert classify_input(text) == expected, f"{text!r} should be {expected}"

    def test_cancel_must_be_the_whole_message(self) -> None:
        assert classify_input("please do not cancel the water connection near my house") != InputClass.CANCEL


class TestTotality:
    def test_every_state_and_input_class_has_a_transition(self) -> None:
        for state in IntakeState:
            for input_class in InputClass:
                assert (state, input_class) in TRANSITIONS, f"missing transition for {state}/{input_class}"

    @pytest.mark.parametrize("state", list(IntakeState))
    @pytest.mark.parametrize(
        "text",
        ["", "cancel", "CMP-7F3A91C2", "hi", "status", "a long descriptive complaint about drains", "file", "ok"],
    )
    def test_step_always_produces_a_reply_or_effect(self, machine: IntakeMachine, state: IntakeState, text: str) -> None:
        transition = machine.step(state, _draft_with_location(), text)
        assert transition.reply or transition.effect != Effect.NONE
        assert transition.state in IntakeState


class TestIdle:
    def test_greeting_shows_menu(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.IDLE, None, "hi")
        assert transition.state == IntakeState.IDLE
        assert "file a complaint" in transition.reply
        assert "check status" in transition.reply

    def test_descriptive_text_requests_classification(self, machine: IntakeMachine) -> None:
        text = "There is a large pothole near the bus stand causing accidents daily"
        transition = machine.step(IntakeState.IDLE, None, text)
        assert transition.effect == Effect.CLASSIFY
        assert transition.payload == text

    def test_complaint_id_requests_lookup_with_canonical_id(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.IDLE, None, "cmp 7f3a91c2")
        assert transition.effect == Effect.LOOKUP_STATUS
        assert transition.payload == "CMP-7F3A91C2"

    def test_status_keyword_asks_for_id(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.IDLE, None, "check status")
        assert transition.state == IntakeState.AWAITING_COMPLAINT_ID

    @pytest.mark.parametrize("text", ["status CMP-7F3A91C2", "track cmp 7f3a91c2 please"])
    def test_status_request_with_embedded_id_looks_it_up(self, machine: IntakeMachine, text: str) -> None:
        transition = machine.step(IntakeState.IDLE, None, text)
        assert transition.effect == Effect.LOOKUP_STATUS
        assert transition.payload == "CMP-7F3A91C2"

    def test_embedded_id_while_awaiting_id_looks_it_up(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.AWAITING_COMPLAINT_ID, None, "status of CMP-7F3A91C2")
        assert transition.effect == Effect.LOOKUP_STATUS
        assert transition.payload == "CMP-7F3A91C2"

    def test_short_filing_intent_asks_for_description(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.IDLE, None, "file a complaint")
        assert transition.state == IntakeState.COLLECTING_DESCRIPTION
        assert transition.draft is not None

    def test_gibberish_gets_fallback(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.IDLE, None, "ok")
        assert transition.state == IntakeState.IDLE
        assert "didn't understand" in transition.reply


class TestEffectCompletion:
    def test_valid_classification_moves_to_location(self, machine: IntakeMachine) -> None:
        classification = Classification(ComplaintCategory.ROAD_TRANSPORTATION, ComplaintPriority.URGENT, True)
        transition = machine.on_classified(IntakeState.IDLE, None, "Pothole causing accidents", classification)
        assert transition.state == IntakeState.COLLECTING_LOCATION
        assert transition.draft is not None
        assert transition.draft.description == "Pothole causing accidents"
        assert transition.draft.category == ComplaintCategory.ROAD_TRANSPORTATION
        assert transition.draft.priority == ComplaintPriority.URGENT
        assert "Roads & Transportation" in transition.reply
        assert "location" in transition.reply.lower()

    def test_invalid_classification_from_description_retries(self, machine: IntakeMachine) -> None:
        classification = Classification(ComplaintCategory.OTHER, ComplaintPriority.LOW, False)
        draft = IntakeDraft()
        transition = machine.on_classified(IntakeState.COLLECTING_DESCRIPTION, draft, "bad", classification)
        assert transition.state == IntakeState.COLLECTING_DESCRIPTION
        assert transition.draft is not None
        assert transition.draft.draft_id == draft.draft_id

    def test_invalid_classification_from_idle_returns_to_idle(self, machine: IntakeMachine) -> None:
        classification = Classification(ComplaintCategory.OTHER, ComplaintPriority.LOW, False)
        transition = machine.on_classified(IntakeState.IDLE, None, "bad", classification)
        assert transition.state == IntakeState.IDLE
        assert transition.draft is None

    def test_status_found_renders_latest_update(self, machine: IntakeMachine) -> None:
        complaint = Complaint(
            name="A", title="T", description="D", location="L", status=ComplaintStatus.IN_PROGRESS,
        )
        update = ComplaintUpdate(complaint_id=complaint.id, message="Crew dispatched")
        transition = machine.on_status_found(complaint, update)
        assert transition.state == IntakeState.IDLE
        assert complaint.id in transition.reply
        assert "In Progress" in transition.reply
        assert "Crew dispatched" in transition.reply

    def test_status_missing_resets_to_idle(self, machine: IntakeMachine) -> None:
        transition = machine.on_status_missing("CMP-00000000")
        assert transition.state == IntakeState.IDLE
        assert "not found" in transition.reply


class TestCollecting:
    def test_empty_location_asks_again(self, machine: IntakeMachine) -> None:
        draft = IntakeDraft(description="d")
        transition = machine.step(IntakeState.COLLECTING_LOCATION, draft, "   ")
        assert transition.state == IntakeState.COLLECTING_LOCATION
        assert transition.draft == draft

    def test_location_is_stored_verbatim(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.COLLECTING_LOCATION, IntakeDraft(description="d"), " hi ")
        assert transition.state == IntakeState.COLLECTING_SECRET
        assert transition.draft is not None
        assert transition.draft.location == "hi", "even greeting words are a location here"

    @pytest.mark.parametrize("secret", ["abc", "", "12345"])
    def test_short_secret_stays(self, machine: IntakeMachine, secret: str) -> None:
        transition = machine.step(IntakeState.COLLECTING_SECRET, _draft_with_location(), secret)
        assert transition.state == IntakeState.COLLECTING_SECRET
        assert transition.effect == Effect.NONE
        assert "at least 6" in transition.reply

    def test_long_secret_stays(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.COLLECTING_SECRET, _draft_with_location(), "x" * 65)
        assert transition.state == IntakeState.COLLECTING_SECRET
        assert "at most 64" in transition.reply

    def test_multibyte_secret_over_byte_limit_stays(self, machine: IntakeMachine) -> None:
        secret = "मेरागुप्तकोड" * 3  # 36 characters, 108 bytes
        transition = machine.step(IntakeState.COLLECTING_SECRET, _draft_with_location(), secret)
        assert transition.state == IntakeState.COLLECTING_SECRET
        assert transition.effect == Effect.NONE
        assert "non-Latin" in transition.reply

    def test_valid_secret_requests_creation_without_leaking_it(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.COLLECTING_SECRET, _draft_with_location(), "mysecret")
        assert transition.effect == Effect.CREATE_COMPLAINT
        assert transition.payload == "mysecret"
        assert "mysecret" not in repr(transition)
        assert transition.draft is not None
        assert "mysecret" not in transition.draft.model_dump_json()

    @pytest.mark.parametrize(
        "state",
        [
            IntakeState.IDLE,
            IntakeState.COLLECTING_DESCRIPTION,
            IntakeState.COLLECTING_LOCATION,
            IntakeState.COLLECTING_SECRET,
            IntakeState.AWAITING_COMPLAINT_ID,
        ],
    )
    def test_cancel_from_any_state_discards_draft(self, machine: IntakeMachine, state: IntakeState) -> None:
        transition = machine.step(state, _draft_with_location(), "cancel")
        assert transition.state == IntakeState.IDLE
        assert transition.draft is None
        assert "cancelled" in transition.reply

    def test_awaiting_id_rejects_non_ids(self, machine: IntakeMachine) -> None:
        transition = machine.step(IntakeState.AWAITING_COMPLAINT_ID, None, "my complaint about the road")
        assert transition.state == IntakeState.AWAITING_COMPLAINT_ID
