from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def _optional_float(raw: str | None) -> float | None:
    return float(raw) if raw else None


@dataclass(frozen=True)
class CoordinatorConfig:
    base_url: str = os.getenv("RESTAURANTS_BASE_URL", "http://localhost:1337")
    # None means no deadline on the dataset request
    request_timeout: float | None = _optional_float(os.getenv("RESTAURANTS_REQUEST_TIMEOUT"))
    probe_timeout: float = 1.0
    force_offline: bool = os.getenv("RESTAURANTS_OFFLINE", "").lower() in {"1", "true", "yes"}

    @property
    def restaurants_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/restaurants"


DEFAULT_COORDINATOR_CONFIG = CoordinatorConfig()
