"""
Runtime configuration read from the environment.

Values come from process environment variables, optionally seeded from a
.env file in the working directory.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


DEFAULT_CACHE_PATH = Path("~/.sahayak/translation-cache.json")


def _env_int(name: str, default: int) -> int:
    raw: str | None = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    """All knobs the scanner, API and CLI read."""

    ocr_engine: str = "tesseract"
    translator: str = "google"
    explain_provider: str = "huggingface"
    cache_path: Path = field(default_factory=lambda: DEFAULT_CACHE_PATH.expanduser())
    rate_limit: int = 10
    rate_window: int = 60
    rate_max_clients: int = 500
    log_level: str = "INFO"

    tesseract_cmd: str | None = None
    mistral_api_key: str | None = None
    huggingface_api_key: str | None = None
    google_client_email: str | None = None
    google_private_key: str | None = None
    google_project_id: str | None = None

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            dotenv: Load a .env file first if one exists (default: True)

        Returns:
            Populated Settings instance
        """
        if dotenv:
            load_dotenv()

        cache_path: str | None = os.getenv("SAHAYAK_CACHE_PATH")

        return cls(
            ocr_engine=os.getenv("SAHAYAK_OCR_ENGINE", "tesseract").lower(),
            translator=os.getenv("SAHAYAK_TRANSLATOR", "google").lower(),
            explain_provider=os.getenv("SAHAYAK_EXPLAIN_PROVIDER", "huggingface").lower(),
            cache_path=Path(cache_path).expanduser() if cache_path else DEFAULT_CACHE_PATH.expanduser(),
            rate_limit=_env_int("SAHAYAK_RATE_LIMIT", 10),
            rate_window=_env_int("SAHAYAK_RATE_WINDOW", 60),
            rate_max_clients=_env_int("SAHAYAK_RATE_MAX_CLIENTS", 500),
            log_level=os.getenv("SAHAYAK_LOG_LEVEL", "INFO").upper(),
            tesseract_cmd=os.getenv("TESSERACT_CMD") or None,
            mistral_api_key=os.getenv("MISTRAL_API_KEY") or None,
            huggingface_api_key=os.getenv("HUGGINGFACE_API_KEY") or None,
            google_client_email=os.getenv("GOOGLE_CLIENT_EMAIL") or None,
            google_private_key=os.getenv("GOOGLE_PRIVATE_KEY") or None,
            google_project_id=os.getenv("GOOGLE_PROJECT_ID") or None,
        )


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging once for an entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
