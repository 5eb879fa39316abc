"""Configuration utilities shared by the sticker pack fetcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_INPUT_FILE = Path("stickers.yml")
DEFAULT_OUTPUT_FILE = Path("sticker-packs.json")
CACHE_DIR_NAME = ".sticker-pack-cache"

DEFAULT_USER_AGENT = "sticker-pack-data/1.0"
DEFAULT_CONCURRENCY = 6


@dataclass(slots=True)
class RateLimitConfig:
    max_workers: int = DEFAULT_CONCURRENCY


@dataclass(slots=True)
class RetryConfig:
    max_attempts: int = 3
    backoff_factor: float = 2.0
    base_delay: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""

        if self.base_delay <= 0:
            return 0.0
        return self.base_delay * (max(1.0, self.backoff_factor) ** (attempt - 1))


@dataclass(slots=True)
class TimeoutConfig:
    request_timeout: float = 10.0


@dataclass(slots=True)
class FetchConfig:
    input_file: Path = DEFAULT_INPUT_FILE
    output_file: Path = DEFAULT_OUTPUT_FILE
    cache_dir: Optional[Path] = None
    manifest_url: Optional[str] = None
    user_agent: str = DEFAULT_USER_AGENT
    show_progress: bool = True
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)

    def ensure_directories(self) -> None:
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.output_file.parent.mkdir(parents=True, exist_ok=True)
