"""Client wrapper for the Vertex AI generateContent endpoint with search grounding."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vertex_gateway.core.config import VertexSettings
from vertex_gateway.core.errors import MalformedResponseError, UpstreamError
from vertex_gateway.core.logging import truncate
from vertex_gateway.schemas.ask import AskResult

logger = logging.getLogger(__name__)


class InferenceGateway:
    """Send an authorized, grounded question to the model and normalize the answer."""

    def __init__(
        self,
        settings: VertexSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def url(self) -> str:
        return self._settings.generate_content_url()

    def build_payload(self, question: str, context: str | None = None) -> dict[str, Any]:
        parts: list[dict[str, str]] = []
        if context:
            parts.append({"text": context})
        parts.append({"text": question})
        return {
            "contents": [{"role": "user", "parts": parts}],
            "tools": [
                {
                    "googleSearchRetrieval": {
                        "dynamicRetrievalConfig": {
                            "mode": self._settings.retrieval_mode,
                            "dynamicThreshold": self._settings.dynamic_threshold,
                        }
                    }
                }
            ],
        }

    async def ask(
        self, access_token: str, question: str, context: str | None = None
    ) -> AskResult:
        """Relay a question to the model endpoint using ``access_token``."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    self.url, headers=headers, json=self.build_payload(question, context)
                )
        except httpx.HTTPError as exc:
            logger.warning("Inference endpoint unreachable: %s", exc)
            raise UpstreamError(f"Inference endpoint unreachable: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "Inference endpoint returned status %s: %s",
                response.status_code,
                truncate(response.text),
            )
            raise UpstreamError(
                f"Inference endpoint returned status {response.status_code}.",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Inference endpoint returned non-JSON content.") from exc

        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not isinstance(candidates, list) or not candidates:
            raise MalformedResponseError("Inference response contained no candidates.")

        answer = _candidate_text(candidates[0])
        if not answer:
            logger.info("Inference candidate carried no text; using placeholder answer.")
            return AskResult(answer=self._settings.placeholder_answer)
        return AskResult(answer=answer)


def _candidate_text(candidate: Any) -> str:
    """Concatenate the text parts of a candidate, tolerating missing fields."""
    if not isinstance(candidate, dict):
        return ""
    content = candidate.get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list):
        return ""
    texts = [
        part["text"]
        for part in parts
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    ]
    return "".join(texts)


__all__ = ["InferenceGateway"]
