from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
DEFAULT_REMEMBER_PATH = Path.home() / ".worklog" / "remember.json"


@dataclass(frozen=True)
class Settings:
    store_url: str = ""
    store_timeout: float = 10.0
    timezone: Optional[str] = None
    remember_path: Path = DEFAULT_REMEMBER_PATH
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"


def _as_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value else default
    except ValueError:
        return default


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file)
    origins = [o.strip() for o in os.getenv("WORKLOG_CORS_ORIGINS", "").split(",") if o.strip()]
    remember = os.getenv("WORKLOG_REMEMBER_PATH", "").strip()
    return Settings(
        store_url=os.getenv("WORKLOG_STORE_URL", "").strip(),
        store_timeout=_as_float(os.getenv("WORKLOG_STORE_TIMEOUT"), 10.0),
        timezone=os.getenv("WORKLOG_TIMEZONE", "").strip() or None,
        remember_path=Path(remember).expanduser() if remember else DEFAULT_REMEMBER_PATH,
        cors_origins=origins or list(DEFAULT_CORS_ORIGINS),
        log_level=os.getenv("WORKLOG_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
