"""
Runtime configuration, read from the environment or a ``.env`` file.
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    log_level: str = Field("INFO", alias="ZATCA_SCAN_LOG_LEVEL")

    # Records service the scanner front end persists to (optional)
    records_api_url: str | None = Field(default=None, alias="ZATCA_SCAN_RECORDS_API_URL")
    records_api_token: str | None = Field(default=None, alias="ZATCA_SCAN_RECORDS_API_TOKEN")
    http_timeout: float = Field(30.0, alias="ZATCA_SCAN_HTTP_TIMEOUT")

    # Seconds during which a repeated scan of the same payload is ignored
    scan_cooldown: float = Field(3.0, alias="ZATCA_SCAN_SCAN_COOLDOWN")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def configure_logging(level: str = "INFO") -> None:
    """Send ``zatca_scan`` logs to stderr with a consistent format."""
    log = logging.getLogger("zatca_scan")
    log.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        log.addHandler(handler)


settings = Settings()
