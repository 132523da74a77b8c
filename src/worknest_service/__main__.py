"""Run the service with uvicorn: ``python -m worknest_service``."""

from __future__ import annotations

import uvicorn

from worknest_service.config import get_settings


def main() -> None:
    """Start the HTTP server using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "worknest_service.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
    )


if __name__ == "__main__":
    main()
