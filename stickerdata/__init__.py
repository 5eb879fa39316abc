"""Sticker pack manifest fetching with a durable on-disk cache."""

from .sticker_packs import StickerPackResults, fetch_all_sticker_packs

__all__ = ["StickerPackResults", "fetch_all_sticker_packs"]
