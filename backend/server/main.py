"""
Phone process entry point.

Responsibilities:
- Load .env and configuration
- Run the app factory under uvicorn on PHONE_HOST:PHONE_PORT

Usage:
    python -m server.main
"""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from config import AppConfig


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    # factory=True: each (re)loaded worker builds its own controller
    uvicorn.run(
        "server.app:create_app",
        factory=True,
        host=config.phone_host,
        port=config.phone_port,
        log_level=config.log_level.lower(),
        reload=config.env == "dev",
    )


if __name__ == "__main__":
    main()
