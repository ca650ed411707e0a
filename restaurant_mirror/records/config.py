from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class StoreConfig:
    """
    Configuration for the local restaurant mirror database.
    """

    db_name: str = "RestaurantDB"
    store_name: str = "RestaurantStore"
    index_name: str = "by-id"
    version: int = 1
    data_dir: Path = Path(os.getenv("RESTAURANT_DATA_DIR", "data"))

    @property
    def db_path(self) -> Path:
        return self.data_dir / f"{self.db_name}.sqlite3"


DEFAULT_STORE_CONFIG = StoreConfig()
