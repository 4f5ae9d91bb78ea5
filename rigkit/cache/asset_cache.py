"""
Path-keyed cache of imported models.

Imports run on a thread pool. Concurrent requests for the same uncached path
share one in-flight import: the registry of pending imports is the only
state guarded by the lock, and the lock is never held while a loader runs.
A model is published to the cache only after its import fully succeeded and
only if the entry was not invalidated or cancelled in the meantime.

Every request resolves to either ModelData or an ImportFailure value.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..assets.model_data import ModelData
from ..core.exceptions import ImportCancelled, ImportFailure
from ..core.types import PathLike
from ..utils.config import CacheConfig


logger = logging.getLogger(__name__)

ImportResult = Union[ModelData, ImportFailure]
Loader = Callable[[Path, threading.Event], ModelData]


@dataclass
class CacheStats:
    """Counters since the cache was created."""
    hits: int = 0
    misses: int = 0
    imports: int = 0
    failures: int = 0


@dataclass(frozen=True, eq=False)
class _CacheEntry:
    model: ModelData
    mtime: Optional[float]


@dataclass(frozen=True, eq=False)
class _PendingImport:
    future: Future
    cancel_event: threading.Event
    token: tuple
    mtime: Optional[float]


def _resolve_key(path: PathLike) -> str:
    return str(Path(path).expanduser().resolve())


def _mtime(key: str) -> Optional[float]:
    try:
        return os.stat(key).st_mtime
    except OSError:
        return None


class AssetCache:
    """
    Deduplicating cache in front of a model loader.

    Example:
        >>> with AssetCache() as cache:
        ...     result = cache.get_or_import('character.fbx')
        ...     if isinstance(result, ImportFailure):
        ...         print(result.reason)
    """

    def __init__(self, loader: Optional[Loader] = None, config: Optional[CacheConfig] = None):
        """
        Args:
            loader: Callable `(path, cancel_event) -> ModelData`; defaults to a
                ModelImporter with default settings
            config: Cache settings
        """
        if loader is None:
            from ..importer.model_importer import ModelImporter
            loader = ModelImporter()

        self.config = config or CacheConfig()
        self._loader = loader
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix=self.config.thread_name_prefix,
        )

        self._lock = threading.Lock()
        self._entries: Dict[str, _CacheEntry] = {}
        self._pending: Dict[str, _PendingImport] = {}
        self._epoch = 0
        self._generations: Dict[str, int] = {}
        self._stats = CacheStats()
        self._closed = False

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def _token(self, key: str) -> tuple:
        return (self._epoch, self._generations.get(key, 0))

    def _lookup(self, key: str) -> Optional[ModelData]:
        """Cached model for `key`, dropping it if its file changed. Lock held."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.config.validate_mtime and _mtime(key) != entry.mtime:
            logger.info(f"Cache entry for '{key}' is stale; reimporting")
            del self._entries[key]
            return None
        return entry.model

    def submit(self, path: PathLike) -> Future:
        """
        Request a model without blocking.

        Returns:
            Future resolving to ModelData or ImportFailure. The future never
            raises and cannot be cancelled by the caller; use `cancel`.
        """
        key = _resolve_key(path)

        with self._lock:
            if self._closed:
                raise RuntimeError("AssetCache has been shut down")

            model = self._lookup(key)
            if model is not None:
                self._stats.hits += 1
                logger.debug(f"Cache hit: {key}")
                return _completed(model)

            pending = self._pending.get(key)
            if pending is not None:
                self._stats.hits += 1
                logger.debug(f"Joining in-flight import: {key}")
                return pending.future

            self._stats.misses += 1
            mtime = _mtime(key)
            if mtime is None:
                self._stats.failures += 1
                failure = ImportFailure(key, f"File not found: {key}", FileNotFoundError.__name__)
                logger.warning(str(failure))
                return _completed(failure)

            outer = Future()
            outer.set_running_or_notify_cancel()
            pending = _PendingImport(
                future=outer,
                cancel_event=threading.Event(),
                token=self._token(key),
                mtime=mtime,
            )
            self._pending[key] = pending
            self._stats.imports += 1

        logger.info(f"Cache miss, importing: {key}")
        try:
            inner = self._executor.submit(self._loader, Path(key), pending.cancel_event)
        except Exception as e:
            # e.g. shutdown() raced this request; waiters must not hang on it
            with self._lock:
                if self._pending.get(key) is pending:
                    del self._pending[key]
                self._stats.failures += 1
            failure = ImportFailure.from_exception(key, e)
            logger.warning(str(failure))
            outer.set_result(failure)
            return outer
        inner.add_done_callback(lambda f: self._complete(key, pending, f))
        return outer

    def get_or_import(self, path: PathLike, timeout: Optional[float] = None) -> ImportResult:
        """
        Blocking form of `submit`.

        Raises:
            concurrent.futures.TimeoutError: If `timeout` elapses first
        """
        return self.submit(path).result(timeout=timeout)

    def get(self, path: PathLike) -> Optional[ModelData]:
        """Cached model without importing, or None."""
        key = _resolve_key(path)
        with self._lock:
            return self._lookup(key)

    def _complete(self, key: str, pending: _PendingImport, inner: Future) -> None:
        if inner.cancelled() or pending.cancel_event.is_set():
            result = ImportFailure(key, "cancelled", ImportCancelled.__name__)
        elif inner.exception() is not None:
            result = ImportFailure.from_exception(key, inner.exception())
        else:
            result = inner.result()
            if not isinstance(result, (ModelData, ImportFailure)):
                result = ImportFailure(
                    key, f"Loader returned {type(result).__name__}, expected ModelData", TypeError.__name__
                )

        with self._lock:
            if self._pending.get(key) is pending:
                del self._pending[key]
            if isinstance(result, ModelData):
                if pending.token == self._token(key):
                    self._entries[key] = _CacheEntry(result, pending.mtime)
                else:
                    logger.info(f"Import of '{key}' finished after invalidation; not caching it")
            else:
                self._stats.failures += 1

        if isinstance(result, ImportFailure):
            logger.warning(str(result))
        pending.future.set_result(result)

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def cancel(self, path: PathLike) -> bool:
        """
        Cancel the in-flight import of `path`.

        The loader observes the cancel event between stages. Every waiter
        receives an ImportFailure and nothing is cached.

        Returns:
            True if an import was in flight
        """
        key = _resolve_key(path)
        with self._lock:
            pending = self._pending.pop(key, None)
            if pending is None:
                return False
            pending.cancel_event.set()
        logger.info(f"Cancelled import: {key}")
        return True

    def invalidate(self, path: Optional[PathLike] = None) -> None:
        """
        Drop one entry, or every entry when `path` is None.

        Imports in flight at this point still answer their waiters but are
        not published; later requests start a fresh import.
        """
        with self._lock:
            if path is None:
                self._entries.clear()
                self._pending.clear()
                self._epoch += 1
                logger.info("Cache cleared")
                return
            key = _resolve_key(path)
            self._entries.pop(key, None)
            self._pending.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1
        logger.info(f"Cache entry invalidated: {key}")

    def contains(self, path: PathLike) -> bool:
        """True if a valid model for `path` is cached."""
        return self.get(path) is not None

    def __contains__(self, path: PathLike) -> bool:
        return self.contains(path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        """Snapshot of the counters."""
        with self._lock:
            return CacheStats(**vars(self._stats))

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting requests and release the worker threads."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'AssetCache':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)


def _completed(result: ImportResult) -> Future:
    future = Future()
    future.set_running_or_notify_cancel()
    future.set_result(result)
    return future
