"""Chat intake engine: one inbound message in, one reply out.

Each message for a sender is handled under that sender's registry lock:
fetch-or-create the session, step the machine, carry out the effect the
machine asked for, store the resulting state.  Messages from different
senders run concurrently.

A store failure leaves the session exactly as it was before the message,
so the sender can simply repeat the same step.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.models.enums import ChannelType, IntakeState
from src.models.intake import IntakeSession
from src.services.cache import stable_hash
from src.services.classifier import GuardedClassifier
from src.services.errors import ComplaintNotFound, InvalidInput, StoreUnavailable
from src.services.filing import ComplaintFiler, chat_display_name
from src.services.intake import replies
from src.services.intake.machine import Effect, IntakeMachine, Transition
from src.services.intake.registry import SessionRegistry
from src.services.record_store import RecordStore

logger = structlog.get_logger(__name__)


@dataclass(slots=True, frozen=True)
class IntakeReply:
    reply: str
    state: IntakeState
    complaint_id: str | None = None


class IntakeEngine:
    """Drive :class:`IntakeMachine` for every sender."""

    def __init__(
        self,
        *,
        registry: SessionRegistry,
        machine: IntakeMachine,
        classifier: GuardedClassifier,
        store: RecordStore,
        filer: ComplaintFiler,
    ) -> None:
        self._registry = registry
        self._machine = machine
        self._classifier = classifier
        self._store = store
        self._filer = filer

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    async def handle_message(
        self,
        sender_id: str,
        text: str,
        *,
        channel: ChannelType = ChannelType.WHATSAPP,
    ) -> IntakeReply:
        log = logger.bind(sender=stable_hash(sender_id), channel=channel)
        async with self._registry.lock(sender_id):
            session = await self._registry.get_or_create(sender_id)
            try:
                transition = self._machine.step(session.state, session.draft, text)
                transition, complaint_id = await self._complete(session, transition, channel)
            except StoreUnavailable:
                log.warning("intake.store_unavailable", state=session.state)
                return IntakeReply(replies.STORE_UNAVAILABLE, session.state)
            except Exception:
                log.error("intake.step_failed", state=session.state, exc_info=True)
                return IntakeReply(replies.INTERNAL_ERROR, session.state)

            await self._registry.put(
                session.model_copy(update={"state": transition.state, "draft": transition.draft}),
            )

        log.info(
            "intake.transition",
            from_state=session.state,
            to_state=transition.state,
            complaint_id=complaint_id,
        )
        return IntakeReply(transition.reply, transition.state, complaint_id)

    async def _complete(
        self,
        session: IntakeSession,
        transition: Transition,
        channel: ChannelType,
    ) -> tuple[Transition, str | None]:
        """Carry out *transition*'s effect and return the final transition."""
        match transition.effect:
            case Effect.NONE:
                return transition, None

            case Effect.CLASSIFY:
                description = transition.payload or ""
                classification = await self._classifier.classify(description)
                return (
                    self._machine.on_classified(
                        transition.state,
                        transition.draft,
                        description,
                        classification,
                    ),
                    None,
                )

            case Effect.LOOKUP_STATUS:
                complaint_id = transition.payload or ""
                try:
                    complaint = await self._store.get_complaint(complaint_id)
                    updates = await self._store.list_updates(complaint.id)
                except ComplaintNotFound:
                    return self._machine.on_status_missing(complaint_id), None
                latest = updates[-1] if updates else None
                return self._machine.on_status_found(complaint, latest), None

            case Effect.CREATE_COMPLAINT:
                draft = transition.draft
                assert draft is not None and draft.location is not None  # noqa: S101
                try:
                    complaint = await self._filer.file(
                        description=draft.description,
                        location=draft.location,
                        secret=transition.payload or "",
                        name=chat_display_name(session.sender_id, channel),
                        contact=session.sender_id,
                        category=draft.category,
                        priority=draft.priority,
                        analysis=draft.analysis,
                        source=channel,
                        idempotency_key=draft.draft_id,
                    )
                except InvalidInput as exc:
                    return Transition(session.state, session.draft, f"{exc}. Please try again."), None
                return self._machine.on_created(complaint.id), complaint.id

        raise ValueError(f"unknown effect: {transition.effect}")
