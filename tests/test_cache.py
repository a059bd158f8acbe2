import asyncio
import json
import logging
import threading
import time

import pytest

from tuga_meta.cache import (
    CacheLookup,
    CacheNamespace,
    JsonCacheFile,
    ResolutionCache,
)
from tuga_meta.common.errors import CacheIOError


class RecordingPersistence:
    def __init__(self, snapshot=None, failures: int = 0) -> None:
        self.snapshot = snapshot or {}
        self.saves: list[dict] = []
        self.failures = failures

    def load(self):
        return self.snapshot

    def save(self, snapshot) -> None:
        if self.failures:
            self.failures -= 1
            raise CacheIOError("disk full")
        self.saves.append(snapshot)


def test_get_distinguishes_missing_from_negative_entries():
    cache = ResolutionCache()
    cache.put(CacheNamespace.POSTER, "tabu", None)
    cache.put(CacheNamespace.POSTER, "aniki-bóbó", "https://img.test/a.jpg")

    assert cache.get(CacheNamespace.POSTER, "unknown") == CacheLookup(None, False)
    assert cache.get(CacheNamespace.POSTER, "tabu") == CacheLookup(None, True)
    assert cache.get(CacheNamespace.POSTER, "aniki-bóbó") == CacheLookup(
        "https://img.test/a.jpg", True
    )
    assert cache.get(CacheNamespace.RESOLVE, "tabu").hit is False
    assert len(cache) == 2


def test_put_without_running_loop_flushes_immediately():
    persistence = RecordingPersistence()
    cache = ResolutionCache(persistence)

    cache.put(CacheNamespace.POSTER, "tabu", "https://img.test/t.jpg")

    assert persistence.saves == [
        {"posterCache": {"tabu": "https://img.test/t.jpg"}, "imdbFindCache": {}}
    ]
    assert not cache.dirty


def test_burst_of_puts_coalesces_into_one_write():
    persistence = RecordingPersistence()
    cache = ResolutionCache(persistence, flush_delay=0.01)

    async def scenario():
        for index in range(5):
            cache.put(CacheNamespace.POSTER, f"title {index}", f"https://img.test/{index}.jpg")
        assert cache.flush_pending
        assert persistence.saves == []
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert len(persistence.saves) == 1
    assert len(persistence.saves[0]["posterCache"]) == 5
    assert not cache.dirty
    assert not cache.flush_pending


def test_pending_flush_is_not_postponed_by_later_puts():
    persistence = RecordingPersistence()
    cache = ResolutionCache(persistence, flush_delay=0.05)
    observed: list[int] = []

    async def scenario():
        cache.put(CacheNamespace.POSTER, "first", None)
        await asyncio.sleep(0.03)
        cache.put(CacheNamespace.POSTER, "second", None)
        await asyncio.sleep(0.04)
        observed.append(len(persistence.saves))
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert observed == [1]
    assert persistence.saves[0]["posterCache"] == {"first": None, "second": None}


def test_shutdown_writes_pending_changes_without_waiting_for_debounce(caplog):
    persistence = RecordingPersistence()
    cache = ResolutionCache(persistence, flush_delay=60)

    async def scenario():
        cache.put(CacheNamespace.RESOLVE, "tabu", "https://www.imdb.com/title/tt2004304/")
        assert cache.flush_pending
        return await cache.shutdown(grace=1.0)

    with caplog.at_level(logging.INFO, logger="tuga_meta.cache"):
        written = asyncio.run(scenario())

    assert written is True
    assert persistence.saves == [
        {
            "posterCache": {},
            "imdbFindCache": {"tabu": "https://www.imdb.com/title/tt2004304/"},
        }
    ]
    assert not cache.flush_pending
    assert "CACHE flushed on shutdown (1 entries)" in caplog.text


def test_shutdown_is_a_noop_when_clean():
    persistence = RecordingPersistence()
    cache = ResolutionCache(persistence)

    assert asyncio.run(cache.shutdown()) is False
    assert persistence.saves == []


class GatedCacheFile(JsonCacheFile):
    """Cache file whose writes block until the test releases them."""

    def __init__(self, path) -> None:
        super().__init__(path)
        self.release = threading.Event()
        self.finished = threading.Event()
        self.writers: list[threading.Thread] = []

    def save(self, snapshot) -> None:
        self.writers.append(threading.current_thread())
        self.release.wait(5)
        super().save(snapshot)
        self.finished.set()


def test_shutdown_returns_within_grace_when_save_is_slow(tmp_path, caplog):
    path = tmp_path / "cache.json"
    cache_file = GatedCacheFile(path)
    cache = ResolutionCache(cache_file, flush_delay=60)

    async def scenario():
        cache.put(CacheNamespace.POSTER, "tabu", "https://img.test/t.jpg")
        return await cache.shutdown(grace=0.05)

    started = time.monotonic()
    with caplog.at_level(logging.WARNING, logger="tuga_meta.cache"):
        written = asyncio.run(scenario())
    elapsed = time.monotonic() - started

    assert written is False
    assert elapsed < 1.0
    assert not path.exists()
    assert "shutdown grace period" in caplog.text

    cache_file.release.set()
    assert cache_file.finished.wait(5)
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored["posterCache"] == {"tabu": "https://img.test/t.jpg"}


def test_shutdown_waits_for_debounced_save_already_writing(tmp_path):
    path = tmp_path / "cache.json"
    cache_file = GatedCacheFile(path)
    cache = ResolutionCache(cache_file, flush_delay=0)

    async def scenario():
        cache.put(CacheNamespace.POSTER, "tabu", None)
        await asyncio.sleep(0.02)
        assert cache.save_in_progress
        asyncio.get_running_loop().call_later(0.05, cache_file.release.set)
        return await cache.shutdown(grace=2.0)

    written = asyncio.run(scenario())

    assert written is False
    assert not cache.dirty
    assert len(cache_file.writers) == 1
    assert json.loads(path.read_text(encoding="utf-8"))["posterCache"] == {"tabu": None}


def test_debounced_flush_writes_off_the_event_loop_thread(tmp_path):
    cache_file = GatedCacheFile(tmp_path / "cache.json")
    cache_file.release.set()
    cache = ResolutionCache(cache_file, flush_delay=0.01)

    async def scenario():
        cache.put(CacheNamespace.POSTER, "tabu", None)
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    assert len(cache_file.writers) == 1
    assert cache_file.writers[0] is not threading.main_thread()
    assert not cache.dirty


def test_puts_during_background_save_are_written_afterwards(tmp_path):
    path = tmp_path / "cache.json"
    cache_file = GatedCacheFile(path)
    cache = ResolutionCache(cache_file, flush_delay=0)

    async def scenario():
        cache.put(CacheNamespace.POSTER, "first", None)
        await asyncio.sleep(0.02)
        cache.put(CacheNamespace.POSTER, "second", None)
        cache_file.release.set()
        await asyncio.sleep(0.2)

    asyncio.run(scenario())

    assert len(cache_file.writers) == 2
    assert json.loads(path.read_text(encoding="utf-8"))["posterCache"] == {
        "first": None,
        "second": None,
    }
    assert not cache.dirty



def test_failed_save_keeps_entries_dirty_until_next_flush(caplog):
    persistence = RecordingPersistence(failures=1)
    cache = ResolutionCache(persistence)

    with caplog.at_level(logging.WARNING, logger="tuga_meta.cache"):
        cache.put(CacheNamespace.POSTER, "tabu", "https://img.test/t.jpg")

    assert cache.dirty
    assert persistence.saves == []
    assert "CACHE save error" in caplog.text
    assert cache.get(CacheNamespace.POSTER, "tabu").value == "https://img.test/t.jpg"

    assert cache.flush() is True
    assert len(persistence.saves) == 1
    assert not cache.dirty


def test_json_cache_file_round_trip_preserves_negative_entries(tmp_path):
    path = tmp_path / "cache-posters.json"
    cache = ResolutionCache.load(JsonCacheFile(path))
    cache.put(CacheNamespace.POSTER, "o dia seguinte", "https://img.test/dia.jpg")
    cache.put(CacheNamespace.POSTER, "sem poster", None)
    cache.put(CacheNamespace.RESOLVE, "sem poster", None)

    stored = json.loads(path.read_text(encoding="utf-8"))
    assert stored == {
        "posterCache": {"o dia seguinte": "https://img.test/dia.jpg", "sem poster": None},
        "imdbFindCache": {"sem poster": None},
    }

    reloaded = ResolutionCache.load(JsonCacheFile(path))
    assert reloaded.get(CacheNamespace.POSTER, "o dia seguinte").value == (
        "https://img.test/dia.jpg"
    )
    assert reloaded.get(CacheNamespace.POSTER, "sem poster") == CacheLookup(None, True)
    assert reloaded.get(CacheNamespace.RESOLVE, "sem poster") == CacheLookup(None, True)
    assert not reloaded.dirty


def test_json_cache_file_writes_non_ascii_verbatim(tmp_path):
    path = tmp_path / "cache.json"
    JsonCacheFile(path).save({"posterCache": {"aniki-bóbó": None}, "imdbFindCache": {}})

    assert "aniki-bóbó" in path.read_text(encoding="utf-8")
    assert not path.with_name("cache.json.tmp").exists()


def test_missing_cache_file_loads_empty_without_warning(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="tuga_meta.cache"):
        cache = ResolutionCache.load(JsonCacheFile(tmp_path / "absent.json"))

    assert len(cache) == 0
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


@pytest.mark.parametrize("contents", ["{not json", "[1, 2, 3]"])
def test_malformed_cache_file_starts_cold_with_warning(tmp_path, caplog, contents):
    path = tmp_path / "cache.json"
    path.write_text(contents, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="tuga_meta.cache"):
        cache = ResolutionCache.load(JsonCacheFile(path))

    assert len(cache) == 0
    assert "Failed to load resolution cache; starting with empty cache." in caplog.text


def test_cache_file_skips_invalid_sections_and_values(tmp_path, caplog):
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                "posterCache": {"tabu": "https://img.test/t.jpg", "broken": 42},
                "imdbFindCache": ["not", "an", "object"],
            }
        ),
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="tuga_meta.cache"):
        snapshot = JsonCacheFile(path).load()

    assert snapshot == {"posterCache": {"tabu": "https://img.test/t.jpg"}}
    assert "imdbFindCache" in caplog.text


def test_cache_file_save_failure_raises_cache_io_error(tmp_path):
    target = tmp_path / "occupied"
    target.mkdir()

    with pytest.raises(CacheIOError):
        JsonCacheFile(target).save({"posterCache": {}, "imdbFindCache": {}})


def test_negative_flush_delay_is_rejected():
    with pytest.raises(ValueError):
        ResolutionCache(flush_delay=-1)
