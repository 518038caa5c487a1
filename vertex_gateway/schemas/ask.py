"""Schemas for the question answering endpoint."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class AskRequest(BaseModel):
    """Question relayed to the grounded model."""

    question: str = Field(..., min_length=1, description="User question.")
    context: Optional[str] = Field(
        None, description="Optional supporting text sent ahead of the question."
    )


class AskResult(BaseModel):
    """Normalized answer returned by the inference gateway."""

    answer: str


class ErrorResponse(BaseModel):
    """Structured error body returned at the request boundary."""

    error: str


__all__ = ["AskRequest", "AskResult", "ErrorResponse"]
