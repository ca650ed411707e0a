from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

CACHE_FIRST = "cache_first"
NETWORK_FIRST = "network_first"

DEFAULT_MANIFEST: tuple[str, ...] = (
    "/",
    "index.html",
    "restaurant.html",
    "css/styles.css",
    "data/restaurants.json",
    "js/dbhelper.js",
    "js/main.js",
    "js/restaurant_info.js",
    *(f"img/{n}.jpg" for n in range(1, 11)),
)


@dataclass(frozen=True)
class AssetConfig:
    """
    Configuration for the static asset cache.

    Manifest entries are resolved against ``origin``.
    """

    cache_name: str = "restaurant-cache"
    origin: str = os.getenv("ASSET_ORIGIN", "http://localhost:8000")
    manifest: tuple[str, ...] = DEFAULT_MANIFEST
    strategy: str = os.getenv("ASSET_STRATEGY", CACHE_FIRST)
    ignore_search: bool = True
    data_dir: Path = Path(os.getenv("RESTAURANT_DATA_DIR", "data"))

    def __post_init__(self) -> None:
        if self.strategy not in (CACHE_FIRST, NETWORK_FIRST):
            raise ValueError(f"Unknown asset strategy {self.strategy!r}")

    @property
    def db_path(self) -> Path:
        return self.data_dir / "AssetCache.sqlite3"


DEFAULT_ASSET_CONFIG = AssetConfig()
