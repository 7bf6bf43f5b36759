"""Environment-driven settings for the Room of Requirements backend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[2]

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_REFERER = "https://github.com/villagaiaimpacthub/room-of-requirements"


@dataclass(frozen=True)
class Settings:
    openrouter_api_key: Optional[str]
    openrouter_base_url: str
    referer: str
    cors_origin: str
    port: int
    tasks_file: Path
    upload_dir: Path
    connect_timeout: float
    read_timeout: float


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def load_settings() -> Settings:
    port_raw = (os.getenv("PORT") or "").strip()
    return Settings(
        openrouter_api_key=(os.getenv("OPENROUTER_API_KEY") or "").strip() or None,
        openrouter_base_url=(os.getenv("OPENROUTER_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        referer=os.getenv("GITHUB_REPO") or DEFAULT_REFERER,
        cors_origin=os.getenv("CORS_ORIGIN") or "http://localhost:3000",
        port=int(port_raw) if port_raw.isdigit() else 3001,
        tasks_file=Path(os.getenv("ROR_TASKS_FILE") or ROOT / "data" / "taskmaster.json"),
        upload_dir=Path(os.getenv("ROR_UPLOAD_DIR") or ROOT / "uploads"),
        connect_timeout=_float_env("ROR_LLM_CONNECT_TIMEOUT", 5.0),
        read_timeout=_float_env("ROR_LLM_READ_TIMEOUT", 120.0),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
