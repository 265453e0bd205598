"""Uvicorn entry point."""

import uvicorn

from steward.config import get_settings


def main() -> None:
    """Serve the API with the configured bind address and workers."""
    settings = get_settings()
    uvicorn.run(
        "steward.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers,
        log_config=None,
    )


if __name__ == "__main__":
    main()
