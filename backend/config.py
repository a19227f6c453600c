"""Environment-driven settings and logging setup."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from services.ocr_providers import DEFAULT_TIMEOUT, GOOGLE_VISION_ENDPOINT


@dataclass
class Settings:
    log_level: str = "INFO"
    ocr_provider: str = "google"
    google_vision_api_key: str = ""
    google_vision_endpoint: str = GOOGLE_VISION_ENDPOINT
    ocr_timeout_seconds: float = DEFAULT_TIMEOUT


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment (or the given mapping).

    Unset variables fall back to the defaults on ``Settings``.
    """
    if env is None:
        env = os.environ

    raw_timeout = env.get("OCR_TIMEOUT_SECONDS", "").strip()
    try:
        timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT
    except ValueError:
        raise ValueError(f"OCR_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}")
    if timeout <= 0:
        raise ValueError(f"OCR_TIMEOUT_SECONDS must be positive, got {timeout}")

    return Settings(
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        ocr_provider=env.get("OCR_PROVIDER", "google").strip().lower(),
        google_vision_api_key=env.get("GOOGLE_VISION_API_KEY", ""),
        google_vision_endpoint=env.get("GOOGLE_VISION_ENDPOINT", "") or GOOGLE_VISION_ENDPOINT,
        ocr_timeout_seconds=timeout,
    )


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet noisy libraries unless we're in DEBUG
    if settings.log_level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pocketpilot").info(
        "Logging configured  LOG_LEVEL=%s  OCR_PROVIDER=%s",
        settings.log_level, settings.ocr_provider,
    )
