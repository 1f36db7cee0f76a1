"""Tests for the JSON-backed translation cache."""

import json
import threading
from pathlib import Path

from sahayak.cache import TranslationCache, key_for, split_key


def test_key_format():
    assert key_for("Hello", "hi") == "Hello-hi"
    assert split_key("Hello-hi") == ("Hello", "hi")
    # Text may itself contain dashes; the language never does
    assert split_key("well-known fact-ta") == ("well-known fact", "ta")
    assert split_key("nolang") == ("nolang", "")


def test_put_and_get(cache: TranslationCache):
    cache.put("Hello", "hi", "नमस्ते")

    assert cache.get("Hello", "hi") == "नमस्ते"
    assert cache.get("Hello", "ta") is None
    assert "Hello-hi" in cache
    assert len(cache) == 1


def test_persists_across_instances(tmp_path: Path):
    path = tmp_path / "cache.json"
    TranslationCache(path).put("Hello", "hi", "नमस्ते")

    reloaded = TranslationCache(path)
    assert reloaded.get("Hello", "hi") == "नमस्ते"

    # Stored as plain UTF-8 JSON, not escaped
    assert "नमस्ते" in path.read_text(encoding="utf-8")


def test_empty_translation_not_stored(cache: TranslationCache):
    cache.put("Hello", "hi", "")
    assert len(cache) == 0
    assert cache.path is not None and not cache.path.exists()


def test_entries_newest_first(cache: TranslationCache):
    cache.put("one", "hi", "1")
    cache.put("two", "hi", "2")
    cache.put("three", "hi", "3")
    assert [k for k, _ in cache.entries()] == ["three-hi", "two-hi", "one-hi"]

    # Re-saving moves an entry back to the front
    cache.put("one", "hi", "1!")
    assert cache.entries()[0] == ("one-hi", "1!")


def test_delete(cache: TranslationCache, tmp_path: Path):
    cache.put("one", "hi", "1")
    cache.put("two", "hi", "2")

    assert cache.delete("one-hi") is True
    assert cache.delete("one-hi") is False
    assert list(cache) == ["two-hi"]

    assert TranslationCache(cache.path).get("one", "hi") is None


def test_clear(cache: TranslationCache):
    cache.put("one", "hi", "1")
    cache.clear()
    assert len(cache) == 0
    assert json.loads(cache.path.read_text(encoding="utf-8")) == {}


def test_memory_only_cache():
    cache = TranslationCache()
    cache.put("Hello", "hi", "नमस्ते")
    assert cache.get("Hello", "hi") == "नमस्ते"
    assert cache.save() is False


def test_corrupt_file_starts_empty(tmp_path: Path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")

    cache = TranslationCache(path)
    assert len(cache) == 0

    # Next write replaces the broken file
    cache.put("Hello", "hi", "नमस्ते")
    assert json.loads(path.read_text(encoding="utf-8")) == {"Hello-hi": "नमस्ते"}


def test_non_object_file_ignored(tmp_path: Path):
    path = tmp_path / "cache.json"
    path.write_text('["a", "b"]', encoding="utf-8")
    assert len(TranslationCache(path)) == 0


def test_unwritable_path_is_best_effort(tmp_path: Path):
    # A directory where the file should be: load and save both fail quietly
    blocked = tmp_path / "blocked"
    blocked.mkdir()

    cache = TranslationCache(blocked)
    cache.put("Hello", "hi", "नमस्ते")

    assert cache.get("Hello", "hi") == "नमस्ते"
    assert cache.save() is False
    assert [p.name for p in tmp_path.iterdir()] == ["blocked"]


def test_concurrent_puts_are_all_saved(tmp_path: Path):
    path = tmp_path / "cache.json"
    cache = TranslationCache(path)
    errors: list[Exception] = []

    def worker(n: int) -> None:
        try:
            for i in range(50):
                cache.put(f"text {n} {i}", "hi", f"अनुवाद {n} {i}")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(cache) == 400
    assert len(json.loads(path.read_text(encoding="utf-8"))) == 400
