"""Run the gateway with uvicorn: ``python -m vertex_gateway``."""

import uvicorn

from vertex_gateway.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "vertex_gateway.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
