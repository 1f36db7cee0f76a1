"""
Translation memo persisted to a local JSON file.

Maps "<source text>-<target language>" to the translated text. Persistence is
best effort: a corrupt or unwritable file is logged and otherwise ignored so
that scanning keeps working without history.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


def key_for(text: str, lang: str) -> str:
    """Cache key for a (text, target language) pair."""
    return f"{text}-{lang}"


def split_key(key: str) -> tuple[str, str]:
    """Inverse of key_for. Language codes never contain "-" here."""
    text, sep, lang = key.rpartition("-")
    if not sep:
        return key, ""
    return text, lang


class TranslationCache:
    """In-memory dict mirrored to a JSON file on every change."""

    def __init__(self, path: str | Path | None = None):
        """
        Args:
            path: JSON file backing the cache. None keeps it in memory only.
        """
        self.path: Path | None = Path(path).expanduser() if path else None
        self._entries: dict[str, str] = {}
        # API requests translate in worker threads; re-entrant so put() can save()
        self._lock = threading.RLock()
        self.load()

    def load(self) -> None:
        """(Re)load entries from disk, starting empty on any problem."""
        self._entries = {}
        if self.path is None or not self.path.exists():
            return

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to load translation cache %s: %s", self.path, e)
            return

        if not isinstance(data, dict):
            logger.error("Ignoring translation cache %s: not a JSON object", self.path)
            return

        self._entries = {str(k): str(v) for k, v in data.items() if isinstance(v, str)}
        logger.debug("Loaded %d cached translations", len(self._entries))

    def save(self) -> bool:
        """
        Write entries to disk atomically.

        Returns:
            True if the file was written, False otherwise
        """
        if self.path is None:
            return False

        with self._lock:
            snapshot = dict(self._entries)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".cache-", suffix=".json")
                try:
                    with os.fdopen(fd, 'w', encoding='utf-8') as f:
                        json.dump(snapshot, f, ensure_ascii=False)
                    os.replace(tmp_name, self.path)
                except OSError:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
                    raise
            except OSError as e:
                logger.error("Failed to save translation cache %s: %s", self.path, e)
                return False
        return True

    def get(self, text: str, lang: str) -> str | None:
        with self._lock:
            return self._entries.get(key_for(text, lang))

    def put(self, text: str, lang: str, translation: str) -> None:
        """Remember a translation. Empty translations are not stored."""
        if not translation:
            return
        key = key_for(text, lang)
        with self._lock:
            # Re-inserting moves the entry to the newest position
            self._entries.pop(key, None)
            self._entries[key] = translation
            self.save()

    def delete(self, key: str) -> bool:
        """Drop one entry by key. Returns whether it existed."""
        with self._lock:
            if key not in self._entries:
                return False
            del self._entries[key]
            self.save()
        return True

    def clear(self) -> None:
        with self._lock:
            self._entries = {}
            self.save()

    def entries(self) -> list[tuple[str, str]]:
        """(key, translation) pairs, newest first."""
        with self._lock:
            return list(reversed(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._entries))
