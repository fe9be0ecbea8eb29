"""Complaint classification: free text -> category, priority, validity.

The intake engine depends only on the :class:`Classifier` protocol.  Two
implementations ship with the service:

* :class:`KeywordClassifier` -- a dependency-free keyword heuristic used
  in development and whenever no GCP project is configured.
* :class:`LLMClassifier` -- Gemini via :class:`~src.services.llm.LLMService`.

Callers never talk to a classifier directly; they go through
:class:`GuardedClassifier`, which bounds every call with a timeout and
turns any failure into a default ``other`` / ``medium`` classification so
a slow or broken model can never stall a conversation.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

import structlog

from src.models.complaint import (
    ComplaintAnalysis,
    estimated_resolution_days,
    normalize_category,
    normalize_priority,
)
from src.models.enums import ComplaintCategory, ComplaintPriority
from src.services.errors import ClassificationFailure, ClassificationTimeout

if TYPE_CHECKING:
    from src.services.llm import LLMService

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Result type and protocol
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Classification:
    """Outcome of classifying a complaint description."""

    category: ComplaintCategory
    priority: ComplaintPriority
    is_valid: bool
    department: str | None = None
    confidence: float | None = None
    fallback: bool = False

    def to_analysis(self) -> ComplaintAnalysis:
        return ComplaintAnalysis(
            category=self.category,
            priority=self.priority,
            is_valid=self.is_valid,
            estimated_resolution_days=estimated_resolution_days(self.priority),
            department=self.department,
            confidence=self.confidence,
            fallback=self.fallback,
        )


DEFAULT_CLASSIFICATION: Final[Classification] = Classification(
    category=ComplaintCategory.OTHER,
    priority=ComplaintPriority.MEDIUM,
    is_valid=True,
    fallback=True,
)


@runtime_checkable
class Classifier(Protocol):
    """Async classifier interface."""

    async def classify(self, text: str) -> Classification: ...


# ---------------------------------------------------------------------------
# Keyword heuristic
# ---------------------------------------------------------------------------

# Checked in order; the first category with a matching keyword wins.
_CATEGORY_KEYWORDS: Final[tuple[tuple[ComplaintCategory, tuple[str, ...]], ...]] = (
    (ComplaintCategory.STREET_LIGHTING, ("street light", "streetlight", "lamp post", "lamp")),
    (ComplaintCategory.ROAD_TRANSPORTATION, ("road", "pothole", "pot hole", "traffic", "footpath", "bus stand")),
    (ComplaintCategory.WATER_SUPPLY, ("water", "pipe", "leak", "sewer", "drain")),
    (ComplaintCategory.ELECTRICITY, ("electric", "power", "transformer", "voltage", "light")),
    (ComplaintCategory.SANITATION, ("garbage", "waste", "clean", "dustbin", "toilet")),
    (ComplaintCategory.NOISE_POLLUTION, ("noise", "loudspeaker", "pollution", "smoke")),
    (ComplaintCategory.PARKS_RECREATION, ("park", "garden", "playground")),
    (ComplaintCategory.PROPERTY_TAX, ("property tax", "house tax")),
    (ComplaintCategory.ONLINE_SERVICES, ("website", "portal", "app ", "online")),
    (ComplaintCategory.ADMINISTRATION, ("certificate", "office", "bribe", "document")),
)

_URGENT_WORDS: Final[tuple[str, ...]] = (
    "urgent", "emergency", "danger", "accident", "fire", "collapse", "electrocut",
)
_HIGH_WORDS: Final[tuple[str, ...]] = (
    "sick", "health", "smell", "overflow", "flood", "children",
)
_MEDIUM_WORDS: Final[tuple[str, ...]] = (
    "broken", "problem", "issue", "not working", "damaged",
)

_MIN_VALID_CHARS: Final[int] = 10
_WHITESPACE_RE: Final[re.Pattern[str]] = re.compile(r"\s+")


class KeywordClassifier:
    """Keyword-matching classifier.

    Text is valid when, after trimming, it is longer than ten characters.
    """

    __slots__ = ()

    async def classify(self, text: str) -> Classification:
        cleaned = _WHITESPACE_RE.sub(" ", text).strip()
        lowered = f" {cleaned.lower()} "

        category = ComplaintCategory.OTHER
        for candidate, keywords in _CATEGORY_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                category = candidate
                break

        if any(word in lowered for word in _URGENT_WORDS):
            priority = ComplaintPriority.URGENT
        elif any(word in lowered for word in _HIGH_WORDS):
            priority = ComplaintPriority.HIGH
        elif any(word in lowered for word in _MEDIUM_WORDS):
            priority = ComplaintPriority.MEDIUM
        else:
            priority = ComplaintPriority.LOW

        return Classification(
            category=category,
            priority=priority,
            is_valid=len(cleaned) > _MIN_VALID_CHARS,
        )


# ---------------------------------------------------------------------------
# Gemini-backed classifier
# ---------------------------------------------------------------------------


class LLMClassifier:
    """Classifier backed by :meth:`LLMService.classify_complaint`.

    The model judges category and priority; validity is the same length
    check the keyword heuristic uses, since the model has no notion of an
    "empty" complaint.
    """

    __slots__ = ("_llm",)

    def __init__(self, llm: LLMService) -> None:
        self._llm = llm

    async def classify(self, text: str) -> Classification:
        cleaned = _WHITESPACE_RE.sub(" ", text).strip()
        try:
            result = await self._llm.classify_complaint(cleaned)
        except Exception as exc:
            raise ClassificationFailure(str(exc)) from exc

        confidence = result.get("confidence")
        return Classification(
            category=normalize_category(result.get("category")),
            priority=normalize_priority(result.get("priority")),
            is_valid=len(cleaned) > _MIN_VALID_CHARS,
            department=result.get("department") or None,
            confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
            fallback=bool(result.get("fallback", False)),
        )


# ---------------------------------------------------------------------------
# Timeout + fallback wrapper
# ---------------------------------------------------------------------------


class GuardedClassifier:
    """Wrap a classifier with a bounded timeout and a default fallback.

    Parameters
    ----------
    classifier:
        Any object implementing :class:`Classifier`.
    timeout_seconds:
        Upper bound on a single ``classify`` call.
    """

    __slots__ = ("_classifier", "_timeout")

    def __init__(self, classifier: Classifier, *, timeout_seconds: float = 5.0) -> None:
        self._classifier = classifier
        self._timeout = timeout_seconds

    @property
    def inner(self) -> Classifier:
        return self._classifier

    async def classify(self, text: str) -> Classification:
        """Classify *text*; never raises for classifier-side failures."""
        try:
            return await self._classify_bounded(text)
        except ClassificationFailure as exc:
            logger.warning(
                "classifier.fallback",
                reason=type(exc).__name__,
                classifier=type(self._classifier).__name__,
                text_length=len(text),
            )
            return DEFAULT_CLASSIFICATION

    async def _classify_bounded(self, text: str) -> Classification:
        try:
            result = await asyncio.wait_for(
                self._classifier.classify(text),
                timeout=self._timeout,
            )
        except TimeoutError as exc:
            raise ClassificationTimeout(f"classifier exceeded {self._timeout}s") from exc
        except ClassificationFailure:
            raise
        except Exception as exc:
            raise ClassificationFailure(str(exc)) from exc

        if not isinstance(result, Classification):
            raise ClassificationFailure(f"unexpected classifier result: {type(result).__name__}")
        return result
