"""
FastAPI application entrypoint for the grounded question gateway.
"""

from __future__ import annotations

from fastapi import FastAPI

from vertex_gateway.api.routes import router as api_router
from vertex_gateway.core.config import get_settings
from vertex_gateway.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Vertex Grounded Gateway",
        version="0.1.0",
        description=(
            "Holds a delegated Google OAuth grant and relays questions to a "
            "search-grounded Vertex AI model."
        ),
    )
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
