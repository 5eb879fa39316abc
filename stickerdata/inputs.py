"""Input file loading and repository layout helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from .config import CACHE_DIR_NAME
from .records import InputRecord, json_safe, validate_pack_id

LOGGER = logging.getLogger(__name__)


class InputFileError(ValueError):
    """Raised when the sticker pack input file is malformed."""


class MissingPrerequisite(RuntimeError):
    """Raised when the environment lacks something required before a run."""


def load_sticker_pack_yaml(path: Path) -> list[InputRecord]:
    """Read ``pack_id -> {key, ...}`` entries from a YAML document, preserving order."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file '{path}' does not exist")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise InputFileError(f"Invalid YAML in {path}: {exc}") from exc

    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise InputFileError(f"Invalid {path.name}: expected a top-level mapping of pack ids.")

    records: list[InputRecord] = []
    for pack_id, meta in raw.items():
        try:
            pack_id = validate_pack_id(str(pack_id))
        except ValueError as exc:
            raise InputFileError(f"Invalid {path.name}: {exc}") from exc
        if not isinstance(meta, dict):
            raise InputFileError(f"Invalid {path.name}: entry for pack {pack_id} must be a mapping")
        key = meta.get("key")
        if not isinstance(key, str) or not key.strip():
            raise InputFileError(f"Invalid {path.name}: pack {pack_id} is missing 'key'")
        records.append(InputRecord(pack_id=pack_id, meta=json_safe(meta)))

    LOGGER.debug("Loaded %d sticker packs from %s", len(records), path)
    return records


def find_repository_root(start: Path) -> Path:
    """Return the nearest directory at or above ``start`` that contains ``.git``."""

    current = Path(start).resolve()
    if current.is_file():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / ".git").is_dir():
            return candidate
    raise MissingPrerequisite(f"Not in a git repository (searched upwards from {current}).")


def default_cache_dir(start: Path) -> Path:
    return find_repository_root(start) / CACHE_DIR_NAME
