"""Command-line entrypoint for building the sticker pack data file."""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Sequence

from tqdm import tqdm

from .cache import DiskCacheStore
from .config import (
    DEFAULT_INPUT_FILE,
    DEFAULT_OUTPUT_FILE,
    DEFAULT_USER_AGENT,
    FetchConfig,
    RateLimitConfig,
    RetryConfig,
    TimeoutConfig,
)
from .http_client import HttpManifestFetcher
from .inputs import InputFileError, MissingPrerequisite, default_cache_dir, load_sticker_pack_yaml
from .output import write_results
from .retry import TaskFailed
from .sticker_packs import fetch_all_sticker_packs

LOGGER = logging.getLogger(__name__)

_MANIFEST_URL_ENV = "STICKER_MANIFEST_URL"
_CACHE_DIR_ENV = "STICKER_CACHE_DIR"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch sticker pack manifests and write a JSON data file")
    parser.add_argument(
        "--input-file",
        type=Path,
        default=DEFAULT_INPUT_FILE,
        help="YAML file mapping sticker pack ids to their metadata (default: stickers.yml)",
    )
    parser.add_argument(
        "--output-file",
        type=Path,
        default=DEFAULT_OUTPUT_FILE,
        help="Path of the JSON document to write (default: sticker-packs.json)",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help=f"Directory for cached pack data (defaults to ${_CACHE_DIR_ENV} or <repo>/.sticker-pack-cache)",
    )
    parser.add_argument(
        "--manifest-url",
        type=str,
        default=None,
        help=f"Manifest URL template with {{pack_id}} and {{pack_key}} placeholders (defaults to ${_MANIFEST_URL_ENV})",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=RateLimitConfig().max_workers,
        help="Maximum number of manifests fetched at once (default: 6)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=RetryConfig().max_attempts,
        help="Attempts per manifest before the run fails (default: 3)",
    )
    parser.add_argument(
        "--retry-wait",
        type=float,
        default=RetryConfig().base_delay,
        help="Initial delay before retrying a failed request in seconds (default: 1.0)",
    )
    parser.add_argument(
        "--retry-backoff",
        type=float,
        default=RetryConfig().backoff_factor,
        help="Multiplicative backoff factor applied to the retry wait (default: 2.0)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=TimeoutConfig().request_timeout,
        help="Per-request timeout in seconds (default: 10)",
    )
    parser.add_argument("--user-agent", type=str, default=DEFAULT_USER_AGENT, help="User-Agent header to send")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_config(args: argparse.Namespace) -> FetchConfig:
    manifest_url = args.manifest_url or os.getenv(_MANIFEST_URL_ENV)
    if not manifest_url or not manifest_url.strip():
        raise ValueError(f"--manifest-url or ${_MANIFEST_URL_ENV} is required")

    if args.concurrency < 1:
        raise ValueError("--concurrency must be at least 1")
    if args.max_attempts < 1:
        raise ValueError("--max-attempts must be at least 1")

    cache_dir = args.cache_dir
    if cache_dir is None:
        env_cache_dir = os.getenv(_CACHE_DIR_ENV)
        if env_cache_dir and env_cache_dir.strip():
            cache_dir = Path(env_cache_dir.strip()).expanduser()

    return FetchConfig(
        input_file=args.input_file,
        output_file=args.output_file,
        cache_dir=cache_dir,
        manifest_url=manifest_url.strip(),
        user_agent=args.user_agent,
        show_progress=not args.no_progress,
        rate_limit=RateLimitConfig(max_workers=args.concurrency),
        retry=RetryConfig(
            max_attempts=args.max_attempts,
            backoff_factor=max(1.0, args.retry_backoff),
            base_delay=max(0.0, args.retry_wait),
        ),
        timeout=TimeoutConfig(request_timeout=max(1.0, args.timeout)),
    )


def run(config: FetchConfig) -> int:
    records = load_sticker_pack_yaml(config.input_file)
    if config.cache_dir is None:
        config.cache_dir = default_cache_dir(Path.cwd())
    config.ensure_directories()
    cache = DiskCacheStore(config.cache_dir)

    with HttpManifestFetcher(config) as fetcher, tqdm(
        total=len(records),
        desc="Sticker packs",
        unit="pack",
        disable=not config.show_progress,
        leave=False,
    ) as bar:
        results = fetch_all_sticker_packs(
            records,
            fetcher,
            cache,
            concurrency=config.rate_limit.max_workers,
            retry=config.retry,
            on_progress=lambda _partial: bar.update(1),
        )

    write_results(config.output_file, results.packs)
    return len(results.packs)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        run(config)
    except (MissingPrerequisite, InputFileError, FileNotFoundError) as exc:
        LOGGER.error("Cannot start sticker pack fetch: %s", exc)
        return 1
    except (TaskFailed, OSError, ValueError) as exc:
        LOGGER.error("Sticker pack fetch failed: %s", exc)
        return 1
    return 0


__all__ = ["build_arg_parser", "build_config", "configure_logging", "main", "run"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
