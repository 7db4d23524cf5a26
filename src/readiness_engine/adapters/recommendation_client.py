"""Recommendation generator backed by an OpenAI-compatible chat endpoint.

Uses httpx for async HTTP requests. The prompt lists each category's 0-10
score (one decimal) with optional company context and asks for prioritised,
actionable next steps. Any transport or HTTP error propagates to the
post-completion pipeline, which records the failure.
"""

from typing import Any

import httpx

from readiness_engine.core.domain import CategoryScore
from readiness_engine.observability import get_logger

logger = get_logger(__name__)

_SYSTEM_PROMPT = (
    "You are an AI adoption consultant. Given an organisation's AI readiness "
    "scores per category on a 0-10 scale, write concise, prioritised "
    "recommendations. Start with the weakest categories and give two or three "
    "concrete actions for each."
)


def build_prompt(
    category_scores: list[CategoryScore],
    company_context: dict[str, Any] | None = None,
) -> str:
    """Render category scores and context as the user message."""
    lines = ["AI readiness category scores (0-10):"]
    for score in sorted(category_scores, key=lambda s: s.normalized_score):
        lines.append(f"- {score.category}: {score.normalized_score:.1f}")
    context = {k: v for k, v in (company_context or {}).items() if v not in (None, "")}
    if context:
        lines.append("")
        lines.append("Company context:")
        for key, value in context.items():
            lines.append(f"- {key.replace('_', ' ')}: {value}")
    return "\n".join(lines)


class HttpRecommendationGenerator:
    """IRecommendationGenerator over HTTP.

    Args:
        api_url: Chat completions endpoint.
        api_key: Bearer token; omitted from headers when empty.
        model: Model name sent in the request body.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._model = model
        self._timeout = timeout
        self._transport = transport
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    async def generate(
        self,
        category_scores: list[CategoryScore],
        company_context: dict[str, Any] | None = None,
    ) -> str:
        """Request recommendations for the given scores.

        Raises:
            ValueError: If there are no category scores or the response has no text.
            httpx.HTTPError: On transport failure or a non-2xx response.
        """
        if not category_scores:
            raise ValueError("No category scores to generate recommendations from")

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(category_scores, company_context)},
            ],
        }
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(self._api_url, headers=self._headers, json=payload)
            resp.raise_for_status()
            body = resp.json()

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError("Unexpected recommendation response shape") from exc
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Recommendation response contained no text")

        logger.info(
            "Recommendations generated",
            model=self._model,
            category_count=len(category_scores),
            length=len(content),
        )
        return content.strip()
