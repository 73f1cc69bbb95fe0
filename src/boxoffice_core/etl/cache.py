"""Parsed-document cache.

Parsing a season of weekly spreadsheets is the slow part of a re-run, and the
documents themselves never change once delivered. The batch driver keeps one
JSON file per parsed document under ``_cache/``, keyed by a hash of the
document bytes, the parser version and the parse context (snapshot date,
fiscal year). Editing a document, changing the parser or the context produces
a new key; stale entries can be dropped with ``invalidate``/``invalidate_all``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Bump when extraction/normalization output changes shape or meaning
PARSER_VERSION = "snapshot_parser_v1"


@dataclass
class CacheEntry:
    """One cached parse result.

    Attributes:
        key: Cache key (hex digest).
        document: Document name, for humans browsing the cache.
        parser_version: Parser version that produced the payload.
        created_at: ISO timestamp of when the entry was written.
        payload: JSON-safe parse result.

    """

    key: str
    document: str
    parser_version: str
    created_at: str
    payload: dict[str, Any]

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> CacheEntry:
        return cls(**data)


class ParseCache:
    """File-backed cache of parse results, owned by the batch driver.

    Args:
        cache_dir: Directory holding one ``<key>.json`` per entry.
        version: Parser version mixed into every key.
        max_age: Entries older than this are treated as missing (None = no expiry).

    Examples:
        >>> cache = ParseCache(Path("data/_cache"))
        >>> cache.get("0" * 64) is None
        True

    """

    def __init__(
        self,
        cache_dir: Path,
        version: str = PARSER_VERSION,
        max_age: timedelta | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.version = version
        self.max_age = max_age

    def key_for(self, document: Path, *context: str) -> str:
        """Key for a document's bytes plus the parse context."""
        h = hashlib.sha256()
        h.update(Path(document).read_bytes())
        h.update(self.version.encode("utf-8"))
        for part in context:
            h.update(b"\x00")
            h.update(part.encode("utf-8"))
        return h.hexdigest()

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        """Cached payload for ``key``, or None if missing, expired or corrupt."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                entry = CacheEntry.from_dict(json.load(f))
        except (OSError, KeyError, ValueError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry %s: %s", path.name, e)
            self.invalidate(key)
            return None

        if entry.parser_version != self.version:
            return None
        if self.max_age is not None:
            age = datetime.now() - datetime.fromisoformat(entry.created_at)
            if age > self.max_age:
                logger.debug("Cache entry %s expired (%s old)", key[:12], age)
                self.invalidate(key)
                return None
        logger.debug("Cache hit for %s", entry.document)
        return entry.payload

    def put(self, key: str, payload: dict[str, Any], document: str = "") -> None:
        """Store ``payload`` under ``key`` (atomic replace)."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        entry = CacheEntry(
            key=key,
            document=document,
            parser_version=self.version,
            created_at=datetime.now().isoformat(timespec="seconds"),
            payload=payload,
        )
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(entry.to_dict(), f, indent=2, ensure_ascii=False)
        tmp.replace(path)

    def invalidate(self, key: str) -> bool:
        """Remove one entry; True if it existed."""
        path = self._path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def invalidate_all(self) -> int:
        """Remove every entry; return how many were removed."""
        if not self.cache_dir.exists():
            return 0
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            path.unlink()
            removed += 1
        logger.info("Cleared %d cached parse result(s)", removed)
        return removed
