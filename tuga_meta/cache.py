"""Persistent resolution cache with debounced write-back."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Protocol, TypeAlias

from .common.errors import CacheIOError

LOGGER = logging.getLogger("tuga_meta.cache")

DEFAULT_FLUSH_DELAY = 0.4
DEFAULT_SHUTDOWN_GRACE = 1.0

CacheValue: TypeAlias = str | None
CacheSnapshot: TypeAlias = dict[str, dict[str, CacheValue]]


class CacheNamespace(str, Enum):
    """Disjoint key spaces; the values double as the persisted field names."""

    POSTER = "posterCache"
    RESOLVE = "imdbFindCache"


class CacheLookup(NamedTuple):
    """Result of :meth:`ResolutionCache.get`.

    ``hit`` is ``True`` for negative entries too, in which case ``value`` is
    ``None``.
    """

    value: CacheValue
    hit: bool


class CachePersistence(Protocol):
    def load(self) -> CacheSnapshot:
        ...

    def save(self, snapshot: CacheSnapshot) -> None:
        ...


class JsonCacheFile:
    """Store cache snapshots as a pretty-printed JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> CacheSnapshot:
        """Return the persisted snapshot, or an empty one if the file is absent."""

        if not self.path.exists():
            return {}
        try:
            raw_contents = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            raise CacheIOError(f"Failed to read cache file {self.path}") from exc
        try:
            loaded = json.loads(raw_contents)
        except json.JSONDecodeError as exc:
            raise CacheIOError(f"Failed to decode cache JSON from {self.path}") from exc
        if not isinstance(loaded, dict):
            raise CacheIOError(f"Cache file {self.path} did not contain an object")

        snapshot: CacheSnapshot = {}
        for namespace in CacheNamespace:
            section = loaded.get(namespace.value) or {}
            if not isinstance(section, dict):
                LOGGER.warning(
                    "Cache section %s in %s is not an object; ignoring it.",
                    namespace.value,
                    self.path,
                )
                continue
            entries: dict[str, CacheValue] = {}
            for key, value in section.items():
                if value is None or isinstance(value, str):
                    entries[str(key)] = value
                else:
                    LOGGER.debug(
                        "Skipping non-string cache value for %r in %s", key, namespace.value
                    )
            snapshot[namespace.value] = entries
        return snapshot

    def save(self, snapshot: CacheSnapshot) -> None:
        """Atomically replace the cache file with *snapshot*."""

        payload = json.dumps(snapshot, indent=2, ensure_ascii=False)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise CacheIOError(f"Failed to write cache file {self.path}") from exc


class ResolutionCache:
    """Process-wide title cache for best posters and resolved title pages.

    Writes are kept in memory immediately and persisted by a single delayed
    flush task.  Puts arriving while a flush is pending join that flush
    instead of postponing it, so a write reaches disk at most
    ``flush_delay`` seconds after the first unsaved change.
    """

    def __init__(
        self,
        persistence: CachePersistence | None = None,
        *,
        flush_delay: float = DEFAULT_FLUSH_DELAY,
    ) -> None:
        if flush_delay < 0:
            raise ValueError("flush_delay must be non-negative")
        self._persistence = persistence
        self._flush_delay = float(flush_delay)
        self._entries: dict[CacheNamespace, dict[str, CacheValue]] = {
            namespace: {} for namespace in CacheNamespace
        }
        self._dirty = False
        self._flush_task: asyncio.Task[None] | None = None
        self._inflight: asyncio.Future[bool] | None = None

    @classmethod
    def load(
        cls,
        persistence: CachePersistence,
        *,
        flush_delay: float = DEFAULT_FLUSH_DELAY,
    ) -> "ResolutionCache":
        """Build a cache hydrated from *persistence*; load failures start cold."""

        cache = cls(persistence, flush_delay=flush_delay)
        try:
            snapshot = persistence.load()
        except CacheIOError as exc:
            LOGGER.warning(
                "Failed to load resolution cache; starting with empty cache.",
                exc_info=exc,
            )
            return cache
        for namespace in CacheNamespace:
            cache._entries[namespace].update(snapshot.get(namespace.value, {}))
        LOGGER.info(
            "CACHE loaded posters=%d finds=%d",
            cache.size(CacheNamespace.POSTER),
            cache.size(CacheNamespace.RESOLVE),
        )
        return cache

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def flush_pending(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def size(self, namespace: CacheNamespace) -> int:
        return len(self._entries[namespace])

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def get(self, namespace: CacheNamespace, key: str) -> CacheLookup:
        """Return the cached value for *key* and whether it was present."""

        entries = self._entries[namespace]
        if key in entries:
            return CacheLookup(entries[key], True)
        return CacheLookup(None, False)

    def put(self, namespace: CacheNamespace, key: str, value: CacheValue) -> None:
        """Store *value* (``None`` records a negative result) and schedule a flush."""

        self._entries[namespace][key] = value
        self._dirty = True
        self._schedule_flush()

    def snapshot(self) -> CacheSnapshot:
        """Return a serialisable copy of both namespaces."""

        return {
            namespace.value: dict(entries)
            for namespace, entries in self._entries.items()
        }

    @property
    def save_in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def flush(self) -> bool:
        """Synchronously persist pending changes; return ``True`` when written.

        Does nothing while a background save is still writing the file.
        """

        if not self._dirty or self._persistence is None or self.save_in_progress:
            return False
        snapshot = self._take_snapshot()
        try:
            self._persistence.save(snapshot)
        except CacheIOError as exc:
            return self._record_save(snapshot, exc)
        return self._record_save(snapshot, None)

    async def shutdown(self, grace: float = DEFAULT_SHUTDOWN_GRACE) -> bool:
        """Cancel any pending flush and write outstanding changes within *grace*.

        The write runs on a daemon thread, so an expired grace period never
        holds up interpreter exit.  The file is replaced atomically: it holds
        either the previous contents or the new snapshot.  Returns ``True``
        when this call wrote the file.
        """

        loop = asyncio.get_running_loop()
        deadline = loop.time() + grace
        task, self._flush_task = self._flush_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        if self._persistence is None:
            return False

        inflight = self._inflight
        if inflight is not None and not inflight.done():
            if not await self._wait_for_save(inflight, deadline - loop.time(), grace):
                return False
        if not self._dirty:
            return False

        outcome = self._save_in_background(self._take_snapshot())
        if not await self._wait_for_save(outcome, deadline - loop.time(), grace):
            return False
        if not outcome.result():
            return False
        LOGGER.info("CACHE flushed on shutdown (%d entries)", len(self))
        return True

    async def _wait_for_save(
        self, outcome: asyncio.Future[bool], timeout: float, grace: float
    ) -> bool:
        done, _ = await asyncio.wait([outcome], timeout=max(timeout, 0.0))
        if done:
            return True
        LOGGER.warning(
            "CACHE flush did not complete within %.2fs shutdown grace period; "
            "the write continues in the background and is lost if the process exits first.",
            grace,
        )
        return False

    def _take_snapshot(self) -> CacheSnapshot:
        snapshot = self.snapshot()
        self._dirty = False
        return snapshot

    def _record_save(self, snapshot: CacheSnapshot, error: Exception | None) -> bool:
        if error is not None:
            self._dirty = True
            LOGGER.warning(
                "CACHE save error; keeping in-memory entries until the next flush.",
                exc_info=error,
            )
            return False
        LOGGER.info(
            "CACHE saved posters=%d finds=%d",
            len(snapshot[CacheNamespace.POSTER.value]),
            len(snapshot[CacheNamespace.RESOLVE.value]),
        )
        return True

    def _save_in_background(self, snapshot: CacheSnapshot) -> asyncio.Future[bool]:
        """Write *snapshot* on a daemon thread; the future resolves on the loop."""

        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[bool] = loop.create_future()
        persistence = self._persistence
        self._inflight = outcome

        def settle(error: Exception | None) -> None:
            if self._inflight is outcome:
                self._inflight = None
            if error is None or isinstance(error, CacheIOError):
                outcome.set_result(self._record_save(snapshot, error))
            else:
                self._dirty = True
                outcome.set_exception(error)

        def write() -> None:
            error: Exception | None = None
            try:
                persistence.save(snapshot)
            except Exception as exc:
                error = exc
            try:
                loop.call_soon_threadsafe(settle, error)
            except RuntimeError:
                LOGGER.debug("Event loop closed before the cache save completed.")

        threading.Thread(target=write, name="tuga-meta-cache-save", daemon=True).start()
        return outcome

    def _schedule_flush(self) -> None:
        if self._persistence is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        task = self._flush_task
        if task is not None and not task.done() and task.get_loop() is loop:
            return
        self._flush_task = loop.create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self._flush_delay)
        try:
            inflight = self._inflight
            if inflight is not None and not inflight.done():
                await asyncio.shield(inflight)
            if not self._dirty or self._persistence is None:
                return
            written = await asyncio.shield(
                self._save_in_background(self._take_snapshot())
            )
        finally:
            self._flush_task = None
        if written and self._dirty:
            self._schedule_flush()


__all__ = [
    "CacheLookup",
    "CacheNamespace",
    "CachePersistence",
    "CacheSnapshot",
    "CacheValue",
    "DEFAULT_FLUSH_DELAY",
    "DEFAULT_SHUTDOWN_GRACE",
    "JsonCacheFile",
    "ResolutionCache",
]
