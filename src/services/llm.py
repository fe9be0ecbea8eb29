"""Vertex AI Gemini service for complaint triage.

Wraps the ``vertexai`` SDK behind a single structured call,
:meth:`LLMService.classify_complaint`, which asks Gemini Flash to sort a
citizen's complaint into a municipal category and priority.  The result is
raw model output; :class:`~src.services.classifier.LLMClassifier` maps it
onto the canonical enums.
"""

from __future__ import annotations

import time
from typing import Any, Final

import orjson
import structlog
import vertexai
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from vertexai.generative_models import (
    Content,
    GenerationConfig,
    GenerativeModel,
    Part,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

SYSTEM_PROMPT: Final[str] = """\
You are a triage assistant for a municipal corporation's grievance cell. \
Citizens describe civic problems in plain language, often briefly and \
sometimes in a mix of English and Hindi. Your only job is to classify each \
complaint so that it reaches the right department quickly. Never invent \
facts that are not in the complaint.\
"""

_CLASSIFY_PROMPT: Final[str] = """\
Classify the following citizen complaint.

Return ONLY a JSON object with these keys:
- "category": one of water_supply, roads, electricity, sanitation, \
street_lighting, parks, administration, online_services, noise_pollution, \
property_tax, other
- "priority": one of low, medium, high, urgent. Use urgent only for risk \
to life or safety, high for health hazards or outages affecting many people.
- "department": the municipal department that should handle it
- "confidence": float 0-1
- "suggested_actions": list of at most three short next steps for the department

Complaint: {text}

JSON response:\
"""

_FALLBACK_RESULT: Final[dict[str, Any]] = {
    "category": "other",
    "priority": "medium",
    "department": "General Administration",
    "confidence": 0.0,
    "suggested_actions": [],
}


class LLMService:
    """Async interface to Vertex AI Gemini.

    The SDK is initialised lazily on first use so constructing the service
    never touches the network.
    """

    def __init__(
        self,
        project_id: str,
        region: str = "asia-south1",
        model_name: str = "gemini-2.0-flash",
    ) -> None:
        self._project_id = project_id
        self._region = region
        self._model_name = model_name
        self._model: GenerativeModel | None = None

    def _get_model(self) -> GenerativeModel:
        if self._model is None:
            vertexai.init(project=self._project_id, location=self._region)
            self._model = GenerativeModel(
                model_name=self._model_name,
                system_instruction=[Part.from_text(SYSTEM_PROMPT)],
            )
            logger.info(
                "llm.initialized",
                project=self._project_id,
                region=self._region,
                model=self._model_name,
            )
        return self._model

    @retry(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def classify_complaint(self, text: str) -> dict[str, Any]:
        """Return ``{"category", "priority", "department", "confidence",
        "suggested_actions", "fallback"}`` for *text*.

        Unparseable model output yields the ``other`` / ``medium`` fallback
        with zero confidence and ``fallback`` set; transport errors are
        retried, then raised.
        """
        start = time.perf_counter()
        model = self._get_model()

        response = await model.generate_content_async(
            contents=[
                Content(role="user", parts=[Part.from_text(_CLASSIFY_PROMPT.format(text=text))]),
            ],
            generation_config=GenerationConfig(
                temperature=0.1,
                top_p=0.8,
                max_output_tokens=256,
                response_mime_type="application/json",
            ),
        )

        raw_text = (response.text or "").strip()
        try:
            parsed = orjson.loads(raw_text)
        except orjson.JSONDecodeError:
            logger.warning("llm.classify_parse_failed", raw_length=len(raw_text))
            parsed = None
        result: dict[str, Any] = {**_FALLBACK_RESULT, "suggested_actions": [], "fallback": True}
        if isinstance(parsed, dict):
            result.update({k: v for k, v in parsed.items() if k in _FALLBACK_RESULT})
            result["fallback"] = False

        logger.info(
            "llm.classify_complaint",
            text_length=len(text),
            category=result["category"],
            priority=result["priority"],
            processing_time_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result
