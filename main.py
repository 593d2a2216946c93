from __future__ import annotations

import os

import uvicorn

from trading_journal.utils.config import get_settings
from trading_journal.utils.logger import setup_logging


def main() -> None:
    setup_logging()
    settings = get_settings()

    port = int(os.environ.get("PORT", settings.port))

    uvicorn.run(
        "trading_journal.api.webapp:create_app",
        factory=True,
        host=settings.host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
