"""The chat intake dialogue as an explicit state machine.

Every inbound message is first reduced to an :class:`InputClass`; the
pair ``(state, input_class)`` then selects a handler from
:data:`TRANSITIONS`, which is checked for totality when this module is
imported.  Handlers are pure: they return a :class:`Transition` naming the
next state, the draft, the reply and at most one :class:`Effect` for the
engine to carry out.  Effects that produce a result (classification,
status lookup, complaint creation) are completed by feeding that result
back through the ``on_*`` methods, which are pure as well.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Final

from src.models.complaint import Complaint, ComplaintUpdate, find_complaint_id, parse_complaint_id
from src.models.enums import IntakeState
from src.models.intake import IntakeDraft
from src.services.classifier import Classification
from src.services.intake import replies
from src.services.secret_manager import fits_bcrypt


class InputClass(StrEnum):
    __slots__ = ()

    EMPTY = "empty"
    CANCEL = "cancel"
    COMPLAINT_ID = "complaint_id"
    GREETING = "greeting"
    STATUS_REQUEST = "status_request"
    DESCRIPTIVE = "descriptive"
    FILING_INTENT = "filing_intent"
    OTHER = "other"


class Effect(StrEnum):
    __slots__ = ()

    NONE = "none"
    CLASSIFY = "classify"
    LOOKUP_STATUS = "lookup_status"
    CREATE_COMPLAINT = "create_complaint"


@dataclass(slots=True, frozen=True)
class Transition:
    """Result of one step of the dialogue.

    ``payload`` carries the effect's argument: the text to classify, the
    complaint id to look up, or the secret to hash.  It is kept out of the
    repr so a logged transition never shows a secret.
    """

    state: IntakeState
    draft: IntakeDraft | None
    reply: str
    effect: Effect = Effect.NONE
    payload: str | None = field(default=None, repr=False)


# ---------------------------------------------------------------------------
# Input classification
# ---------------------------------------------------------------------------

_WORD_RE: Final[re.Pattern[str]] = re.compile(r"[a-z0-9]+")

CANCEL_WORDS: Final[frozenset[str]] = frozenset({"cancel", "stop", "quit", "exit", "reset", "abort"})
GREETING_WORDS: Final[frozenset[str]] = frozenset(
    {"hi", "hello", "hey", "namaste", "namaskar", "help", "menu", "start"},
)
STATUS_WORDS: Final[frozenset[str]] = frozenset({"status", "track", "tracking"})
FILING_WORDS: Final[frozenset[str]] = frozenset(
    {"file", "complain", "complaint", "problem", "issue", "report", "register"},
)


def classify_input(text: str, min_description_chars: int = 20) -> InputClass:
    """Reduce a raw message to its :class:`InputClass`.

    Checks run in priority order: an explicit cancel word beats
    everything, a well-formed complaint id beats keyword matching, and
    short greetings or status requests are recognised before length makes
    a message "descriptive".
    """
    stripped = text.strip()
    if not stripped:
        return InputClass.EMPTY

    lowered = stripped.lower()
    words = _WORD_RE.findall(lowered)
    if len(words) == 1 and words[0] in CANCEL_WORDS:
        return InputClass.CANCEL
    if parse_complaint_id(stripped) is not None:
        return InputClass.COMPLAINT_ID
    if len(words) <= 3 and any(w in GREETING_WORDS for w in words):
        return InputClass.GREETING
    if len(words) <= 8 and (
        any(w in STATUS_WORDS for w in words) or (len(words) <= 3 and "check" in words)
    ):
        return InputClass.STATUS_REQUEST
    if len(stripped) > min_description_chars:
        return InputClass.DESCRIPTIVE
    if any(w in FILING_WORDS for w in words):
        return InputClass.FILING_INTENT
    return InputClass.OTHER


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------

Handler = Callable[["IntakeMachine", IntakeDraft | None, str], Transition]


class IntakeMachine:
    """Pure transition logic, parameterised by the intake limits."""

    __slots__ = ("max_secret_length", "min_description_chars", "min_secret_length")

    def __init__(
        self,
        *,
        min_description_chars: int = 20,
        min_secret_length: int = 6,
        max_secret_length: int = 64,
    ) -> None:
        self.min_description_chars = min_description_chars
        self.min_secret_length = min_secret_length
        self.max_secret_length = max_secret_length

    def step(self, state: IntakeState, draft: IntakeDraft | None, text: str) -> Transition:
        input_class = classify_input(text, self.min_description_chars)
        return TRANSITIONS[(state, input_class)](self, draft, text)

    # -- Idle -----------------------------------------------------------------

    def _greet(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.WELCOME)

    def _not_understood(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.NOT_UNDERSTOOD)

    def _lookup(self, draft: IntakeDraft | None, text: str) -> Transition:
        # The state is provisional: on_status_found / on_status_missing decide.
        return Transition(
            IntakeState.IDLE,
            None,
            "",
            effect=Effect.LOOKUP_STATUS,
            payload=parse_complaint_id(text),
        )

    def _ask_complaint_id(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.AWAITING_COMPLAINT_ID, None, replies.ASK_COMPLAINT_ID)

    def _lookup_or_ask_id(self, draft: IntakeDraft | None, text: str) -> Transition:
        if (complaint_id := find_complaint_id(text)) is not None:
            return Transition(IntakeState.IDLE, None, "", effect=Effect.LOOKUP_STATUS, payload=complaint_id)
        return self._ask_complaint_id(draft, text)

    def _ask_description(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.COLLECTING_DESCRIPTION, IntakeDraft(), replies.ASK_DESCRIPTION)

    def _classify_from_idle(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.IDLE, None, "", effect=Effect.CLASSIFY, payload=text.strip())

    # -- CollectingDescription ------------------------------------------------

    def _classify_description(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(
            IntakeState.COLLECTING_DESCRIPTION,
            draft or IntakeDraft(),
            "",
            effect=Effect.CLASSIFY,
            payload=text.strip(),
        )

    def _ask_description_again(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.COLLECTING_DESCRIPTION, draft or IntakeDraft(), replies.ASK_DESCRIPTION_AGAIN)

    # -- CollectingLocation ---------------------------------------------------

    def _store_location(self, draft: IntakeDraft | None, text: str) -> Transition:
        if draft is None:
            return self._restart(draft, text)
        updated = draft.model_copy(update={"location": text.strip()})
        return Transition(IntakeState.COLLECTING_SECRET, updated, replies.ask_secret(self.min_secret_length))

    def _ask_location_again(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.COLLECTING_LOCATION, draft, replies.ASK_LOCATION_AGAIN)

    # -- CollectingSecret -----------------------------------------------------

    def _take_secret(self, draft: IntakeDraft | None, text: str) -> Transition:
        if draft is None or draft.location is None:
            return self._restart(draft, text)
        secret = text.strip()
        if len(secret) < self.min_secret_length:
            return Transition(IntakeState.COLLECTING_SECRET, draft, replies.secret_too_short(self.min_secret_length))
        if len(secret) > self.max_secret_length or not fits_bcrypt(secret):
            return Transition(IntakeState.COLLECTING_SECRET, draft, replies.secret_too_long(self.max_secret_length))
        return Transition(
            IntakeState.COLLECTING_SECRET,
            draft,
            "",
            effect=Effect.CREATE_COMPLAINT,
            payload=secret,
        )

    # -- AwaitingComplaintId --------------------------------------------------

    def _ask_valid_complaint_id(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.AWAITING_COMPLAINT_ID, None, replies.ASK_VALID_COMPLAINT_ID)

    def _lookup_or_ask_valid_id(self, draft: IntakeDraft | None, text: str) -> Transition:
        if find_complaint_id(text) is not None:
            return self._lookup_or_ask_id(draft, text)
        return self._ask_valid_complaint_id(draft, text)

    # -- Any state ------------------------------------------------------------

    def _cancel(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.CANCELLED)

    def _restart(self, draft: IntakeDraft | None, text: str) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.INTERNAL_ERROR)

    # -- Effect completions ---------------------------------------------------

    def on_classified(
        self,
        origin: IntakeState,
        draft: IntakeDraft | None,
        description: str,
        classification: Classification,
    ) -> Transition:
        """Finish a CLASSIFY effect started from *origin*."""
        if not classification.is_valid:
            if origin == IntakeState.COLLECTING_DESCRIPTION:
                return Transition(origin, draft or IntakeDraft(), replies.ASK_DESCRIPTION_AGAIN)
            return Transition(IntakeState.IDLE, None, replies.NOT_UNDERSTOOD)

        base = draft or IntakeDraft()
        updated = base.model_copy(
            update={
                "description": description,
                "category": classification.category,
                "priority": classification.priority,
                "analysis": classification.to_analysis(),
            },
        )
        return Transition(
            IntakeState.COLLECTING_LOCATION,
            updated,
            replies.ask_location(classification.category, classification.priority),
        )

    def on_status_found(self, complaint: Complaint, latest_update: ComplaintUpdate | None) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.render_status(complaint, latest_update))

    def on_status_missing(self, complaint_id: str) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.complaint_not_found(complaint_id))

    def on_created(self, complaint_id: str) -> Transition:
        return Transition(IntakeState.IDLE, None, replies.complaint_created(complaint_id))


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

_S = IntakeState
_I = InputClass
_M = IntakeMachine

TRANSITIONS: Final[dict[tuple[IntakeState, InputClass], Handler]] = {
    (_S.IDLE, _I.EMPTY): _M._not_understood,
    (_S.IDLE, _I.CANCEL): _M._cancel,
    (_S.IDLE, _I.COMPLAINT_ID): _M._lookup,
    (_S.IDLE, _I.GREETING): _M._greet,
    (_S.IDLE, _I.STATUS_REQUEST): _M._lookup_or_ask_id,
    (_S.IDLE, _I.DESCRIPTIVE): _M._classify_from_idle,
    (_S.IDLE, _I.FILING_INTENT): _M._ask_description,
    (_S.IDLE, _I.OTHER): _M._not_understood,
    (_S.COLLECTING_DESCRIPTION, _I.EMPTY): _M._ask_description_again,
    (_S.COLLECTING_DESCRIPTION, _I.CANCEL): _M._cancel,
    (_S.COLLECTING_DESCRIPTION, _I.COMPLAINT_ID): _M._classify_description,
    (_S.COLLECTING_DESCRIPTION, _I.GREETING): _M._classify_description,
    (_S.COLLECTING_DESCRIPTION, _I.STATUS_REQUEST): _M._classify_description,
    (_S.COLLECTING_DESCRIPTION, _I.DESCRIPTIVE): _M._classify_description,
    (_S.COLLECTING_DESCRIPTION, _I.FILING_INTENT): _M._classify_description,
    (_S.COLLECTING_DESCRIPTION, _I.OTHER): _M._classify_description,
    (_S.COLLECTING_LOCATION, _I.EMPTY): _M._ask_location_again,
    (_S.COLLECTING_LOCATION, _I.CANCEL): _M._cancel,
    (_S.COLLECTING_LOCATION, _I.COMPLAINT_ID): _M._store_location,
    (_S.COLLECTING_LOCATION, _I.GREETING): _M._store_location,
    (_S.COLLECTING_LOCATION, _I.STATUS_REQUEST): _M._store_location,
    (_S.COLLECTING_LOCATION, _I.DESCRIPTIVE): _M._store_location,
    (_S.COLLECTING_LOCATION, _I.FILING_INTENT): _M._store_location,
    (_S.COLLECTING_LOCATION, _I.OTHER): _M._store_location,
    (_S.COLLECTING_SECRET, _I.EMPTY): _M._take_secret,
    (_S.COLLECTING_SECRET, _I.CANCEL): _M._cancel,
    (_S.COLLECTING_SECRET, _I.COMPLAINT_ID): _M._take_secret,
    (_S.COLLECTING_SECRET, _I.GREETING): _M._take_secret,
    (_S.COLLECTING_SECRET, _I.STATUS_REQUEST): _M._take_secret,
    (_S.COLLECTING_SECRET, _I.DESCRIPTIVE): _M._take_secret,
    (_S.COLLECTING_SECRET, _I.FILING_INTENT): _M._take_secret,
    (_S.COLLECTING_SECRET, _I.OTHER): _M._take_secret,
    (_S.AWAITING_COMPLAINT_ID, _I.EMPTY): _M._ask_valid_complaint_id,
    (_S.AWAITING_COMPLAINT_ID, _I.CANCEL): _M._cancel,
    (_S.AWAITING_COMPLAINT_ID, _I.COMPLAINT_ID): _M._lookup,
    (_S.AWAITING_COMPLAINT_ID, _I.GREETING): _M._ask_valid_complaint_id,
    (_S.AWAITING_COMPLAINT_ID, _I.STATUS_REQUEST): _M._lookup_or_ask_valid_id,
    (_S.AWAITING_COMPLAINT_ID, _I.DESCRIPTIVE): _M._ask_valid_complaint_id,
    (_S.AWAITING_COMPLAINT_ID, _I.FILING_INTENT): _M._ask_valid_complaint_id,
    (_S.AWAITING_COMPLAINT_ID, _I.OTHER): _M._ask_valid_complaint_id,
}


def _missing_transitions() -> list[tuple[IntakeState, InputClass]]:
    return [(s, i) for s in IntakeState for i in InputClass if (s, i) not in TRANSITIONS]


if _missing := _missing_transitions():
    raise RuntimeError(f"intake transition table is not total; missing {_missing}")
