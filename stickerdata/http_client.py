"""HTTP utilities for fetching sticker pack manifests."""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import quote

import httpx

from .config import FetchConfig
from .records import Manifest

LOGGER = logging.getLogger(__name__)

_THROTTLE_STATUS_CODES = {
    httpx.codes.TOO_MANY_REQUESTS,
    httpx.codes.SERVICE_UNAVAILABLE,
}


class ManifestFetchError(RuntimeError):
    """Raised when a manifest cannot be fetched from the remote service."""


class ManifestFetcher(Protocol):
    def fetch(self, pack_id: str, pack_key: str) -> Manifest:
        ...


class HttpManifestFetcher:
    """Fetch pack manifests from an HTTP endpoint.

    ``config.manifest_url`` is a template with ``{pack_id}`` and ``{pack_key}``
    placeholders, for example ``https://stickers.example.com/{pack_id}?key={pack_key}``.
    """

    def __init__(
        self,
        config: FetchConfig,
        *,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not config.manifest_url:
            raise ValueError("A manifest URL template is required to fetch sticker packs")
        self._config = config
        self._url_template = config.manifest_url
        self._transport = transport
        self._client = client or self._build_client()
        self._owns_client = client is None

    def _build_client(self) -> httpx.Client:
        kwargs: dict[str, object] = {
            "timeout": self._config.timeout.request_timeout,
            "headers": {"User-Agent": self._config.user_agent, "Accept": "application/json"},
            "follow_redirects": True,
        }
        if self._transport:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def manifest_url(self, pack_id: str, pack_key: str) -> str:
        try:
            return self._url_template.format(
                pack_id=quote(pack_id, safe=""),
                pack_key=quote(pack_key, safe=""),
            )
        except (KeyError, IndexError) as exc:
            raise ValueError(f"Invalid manifest URL template {self._url_template!r}") from exc

    def fetch(self, pack_id: str, pack_key: str) -> Manifest:
        url = self.manifest_url(pack_id, pack_key)
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise ManifestFetchError(f"Request for pack {pack_id} failed: {exc}") from exc

        if response.status_code in _THROTTLE_STATUS_CODES:
            raise ManifestFetchError(f"Throttled with status {response.status_code} for pack {pack_id}")
        if response.status_code != httpx.codes.OK:
            raise ManifestFetchError(f"Unexpected status {response.status_code} for pack {pack_id}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ManifestFetchError(f"Manifest for pack {pack_id} is not valid JSON") from exc

        if not isinstance(payload, dict):
            raise ManifestFetchError(f"Manifest for pack {pack_id} is not a JSON object")

        LOGGER.debug("Fetched manifest for pack %s", pack_id)
        return payload

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpManifestFetcher":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.close()
