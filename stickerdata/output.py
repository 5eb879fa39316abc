"""Serialization of the assembled sticker pack list."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from .records import PartialRecord, json_default, record_to_payload

LOGGER = logging.getLogger(__name__)


def serialize_results(packs: Sequence[PartialRecord]) -> str:
    payload = [record_to_payload(pack) for pack in packs]
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=json_default)


def write_results(path: Path, packs: Sequence[PartialRecord]) -> int:
    """Write the pack list to ``path`` and return the number of bytes written."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = serialize_results(packs).encode("utf-8")
    tmp_path = path.with_name(f"{path.name}.tmp")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)
    LOGGER.info("Wrote %d sticker packs to %s (%d bytes)", len(packs), path, len(data))
    return len(data)
