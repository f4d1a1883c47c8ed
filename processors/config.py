"""Runtime configuration handed to the daemon at construction."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from processors.storage import DEFAULT_DATABASE_URL


@dataclass(frozen=True)
class WatcherConfig:
    input_dir: str
    output_dir: str
    history_dir: str
    database_url: str = DEFAULT_DATABASE_URL
    patterns: Tuple[str, ...] = field(default=("*.csv",))
    # Seconds between file-size checks, and how many checks before giving up
    settle_seconds: float = 0.5
    max_tries: int = 10
    # How often the main loop looks at the stop signal
    poll_interval: float = 1.0
    max_workers: int = 4
    scan_existing: bool = True
