"""Data models shared by the cache, the fetcher and the result assembler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping

Manifest = Mapping[str, Any]

# Only these manifest properties are needed to render a list of search
# results; everything else the remote service returns is dropped.
MANIFEST_FIELDS = ("title", "author", "cover")


@dataclass(frozen=True, slots=True)
class InputRecord:
    pack_id: str
    meta: Mapping[str, Any]

    @property
    def pack_key(self) -> str:
        return str(self.meta["key"])


@dataclass(frozen=True, slots=True)
class PartialRecord:
    meta: Mapping[str, Any]
    manifest: Mapping[str, Any]

    @property
    def pack_id(self) -> str:
        return str(self.meta["id"])


def project_manifest(record: InputRecord, manifest: Manifest) -> PartialRecord:
    """Reduce a freshly fetched manifest to the fields kept in the cache."""

    meta = {**record.meta, "id": record.pack_id}
    picked = {name: manifest[name] for name in MANIFEST_FIELDS if name in manifest}
    return PartialRecord(meta=meta, manifest=picked)


def record_to_payload(record: PartialRecord) -> dict[str, dict[str, Any]]:
    """Serialize a partial record into a JSON-ready mapping."""

    return {"meta": dict(record.meta), "manifest": dict(record.manifest)}


def record_from_payload(payload: object) -> PartialRecord:
    """Reconstruct a partial record from a serialized payload.

    Raises ``ValueError`` when the payload does not have the expected shape.
    """

    if not isinstance(payload, dict):
        raise ValueError("Partial record payload must be an object")
    meta = payload.get("meta")
    manifest = payload.get("manifest")
    if not isinstance(meta, dict) or not isinstance(manifest, dict):
        raise ValueError("Partial record payload requires 'meta' and 'manifest' objects")
    if not isinstance(meta.get("id"), str) or not meta["id"]:
        raise ValueError("Partial record payload is missing 'meta.id'")
    return PartialRecord(meta=dict(meta), manifest=dict(manifest))


def validate_pack_id(pack_id: str) -> str:
    """Return ``pack_id`` stripped, rejecting values that cannot name a cache file."""

    cleaned = pack_id.strip()
    if not cleaned or cleaned in {".", ".."} or "/" in cleaned or "\\" in cleaned:
        raise ValueError(f"Invalid pack id: {pack_id!r}")
    return cleaned


def json_default(value: object) -> object:
    """``json.dumps`` hook rendering YAML dates and times as ISO strings."""

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_safe(value: Any) -> Any:
    """Recursively convert YAML scalars JSON cannot represent into JSON-ready values."""

    if isinstance(value, dict):
        return {str(key): json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value
