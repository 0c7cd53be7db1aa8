# Overview: Local JSON mirror of the last good catalog snapshot.

"""
Local Cache Mirror

Write-through, last write wins. The file holds {"saved_at", "categories",
"products"} and is replaced atomically (temp file + rename) so a reader never
sees a half-written snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any

from flask import current_app, has_app_context

from ..time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = "instance/catalog_cache.json"


class CatalogCache:
    def __init__(self, path: str):
        self.path = path

    def load(self) -> dict | None:
        """Return the cached snapshot, or None when missing or unreadable."""
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable catalog cache %s: %s", self.path, exc)
            return None
        if not isinstance(data, dict):
            return None
        return data

    def save(self, categories: list[dict], products: list[dict]) -> dict:
        snapshot = {
            "saved_at": to_utc_z(utcnow()),
            "categories": categories,
            "products": products,
        }
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix=".catalog_cache.", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        return snapshot

    def has_products(self) -> bool:
        snapshot = self.load()
        return bool(snapshot and snapshot.get("products"))

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)


def get_cache(path: Any = None) -> CatalogCache:
    """Cache bound to LOCAL_CACHE_PATH (resolved against the instance folder when relative)."""
    if path is None and has_app_context():
        path = current_app.config.get("LOCAL_CACHE_PATH", DEFAULT_CACHE_PATH)
        if not os.path.isabs(path):
            path = os.path.join(current_app.root_path, "..", path)
    return CatalogCache(str(path or DEFAULT_CACHE_PATH))
