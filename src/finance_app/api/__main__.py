"""
finance_app.api.__main__

Entrypoint for running the FastAPI application via `python -m finance_app.api`.
"""

from __future__ import annotations

import uvicorn

from finance_app.api.app import create_app
from finance_app.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
