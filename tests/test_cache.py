"""
Tests for the asset cache and its in-flight import deduplication.
"""

import os
import threading

import pytest

from rigkit.assets import ModelData
from rigkit.cache import AssetCache
from rigkit.core import ImportCancelled, ImportFailure
from rigkit.utils import CacheConfig

WAIT = 5.0


class CountingLoader:
    """Loader that records calls and can be held open."""

    def __init__(self, block=False, error=None):
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()
        self.block = block
        self.error = error
        self._lock = threading.Lock()

    def __call__(self, path, cancel_event):
        with self._lock:
            self.calls += 1
        self.started.set()
        if self.block:
            while not self.release.wait(0.01):
                if cancel_event.is_set():
                    raise ImportCancelled(f"cancelled: {path}")
        if self.error is not None:
            raise self.error
        return ModelData(name=path.stem, source_path=str(path))


@pytest.fixture
def model_file(tmp_path):
    """An existing file for the fake loader."""
    path = tmp_path / 'character.fbx'
    path.write_bytes(b'fake')
    return path


class TestAssetCache:
    """Tests for get-or-import semantics."""

    def test_concurrent_requests_share_one_import(self, model_file):
        """Two overlapping requests for one path run the loader once."""
        loader = CountingLoader(block=True)
        with AssetCache(loader) as cache:
            first = cache.submit(model_file)
            assert loader.started.wait(WAIT)
            second = cache.submit(model_file)
            loader.release.set()

            a = first.result(WAIT)
            b = second.result(WAIT)

        assert loader.calls == 1
        assert isinstance(a, ModelData)
        assert a is b

    def test_threads_share_one_import(self, model_file):
        """Many threads calling get_or_import see the same model."""
        loader = CountingLoader(block=True)
        results = []
        with AssetCache(loader, CacheConfig(max_workers=4)) as cache:
            threads = [
                threading.Thread(target=lambda: results.append(cache.get_or_import(model_file, timeout=WAIT)))
                for _ in range(6)
            ]
            for t in threads:
                t.start()
            assert loader.started.wait(WAIT)
            loader.release.set()
            for t in threads:
                t.join(WAIT)

        assert loader.calls == 1
        assert len(results) == 6
        assert all(r is results[0] for r in results)

    def test_cache_hit(self, model_file):
        """A second request for an unchanged file does not reimport."""
        loader = CountingLoader()
        with AssetCache(loader) as cache:
            a = cache.get_or_import(model_file, timeout=WAIT)
            b = cache.get_or_import(str(model_file), timeout=WAIT)
            stats = cache.stats

        assert a is b
        assert loader.calls == 1
        assert stats.imports == 1
        assert stats.hits == 1
        assert stats.misses == 1

    def test_failure_reaches_every_waiter(self, model_file):
        """Loader exceptions become one ImportFailure shared by all waiters."""
        loader = CountingLoader(block=True, error=ValueError("corrupt file"))
        with AssetCache(loader) as cache:
            first = cache.submit(model_file)
            assert loader.started.wait(WAIT)
            second = cache.submit(model_file)
            loader.release.set()

            a = first.result(WAIT)
            b = second.result(WAIT)
            assert not cache.contains(model_file)
            assert cache.stats.failures == 1

        assert isinstance(a, ImportFailure)
        assert a is b
        assert a.error_type == 'ValueError'
        assert 'corrupt file' in a.reason

    def test_failure_not_cached(self, model_file):
        """A failed path is retried on the next request."""
        loader = CountingLoader(error=RuntimeError("boom"))
        with AssetCache(loader) as cache:
            cache.get_or_import(model_file, timeout=WAIT)
            cache.get_or_import(model_file, timeout=WAIT)
        assert loader.calls == 2

    def test_missing_file(self, tmp_path):
        """Missing files fail immediately without calling the loader."""
        loader = CountingLoader()
        with AssetCache(loader) as cache:
            result = cache.get_or_import(tmp_path / 'nope.fbx', timeout=WAIT)
        assert isinstance(result, ImportFailure)
        assert result.error_type == 'FileNotFoundError'
        assert loader.calls == 0

    def test_cancel(self, model_file):
        """Cancelling delivers a failure to waiters and caches nothing."""
        loader = CountingLoader(block=True)
        with AssetCache(loader) as cache:
            future = cache.submit(model_file)
            assert loader.started.wait(WAIT)
            assert cache.cancel(model_file)

            result = future.result(WAIT)
            assert isinstance(result, ImportFailure)
            assert result.cancelled
            assert len(cache) == 0

            loader.block = False
            assert isinstance(cache.get_or_import(model_file, timeout=WAIT), ModelData)
        assert loader.calls == 2

    def test_cancel_without_import(self, model_file):
        """Cancelling an idle path reports False."""
        with AssetCache(CountingLoader()) as cache:
            assert not cache.cancel(model_file)

    def test_result_of_ignored_cancel_discarded(self, model_file):
        """A loader that ignores cancellation still does not publish."""
        release = threading.Event()
        started = threading.Event()

        def stubborn(path, cancel_event):
            started.set()
            release.wait(WAIT)
            return ModelData(name='late')

        with AssetCache(stubborn) as cache:
            future = cache.submit(model_file)
            assert started.wait(WAIT)
            cache.cancel(model_file)
            release.set()
            assert isinstance(future.result(WAIT), ImportFailure)
            assert len(cache) == 0

    def test_invalidate_path(self, model_file):
        """Invalidating forces a reimport."""
        loader = CountingLoader()
        with AssetCache(loader) as cache:
            a = cache.get_or_import(model_file, timeout=WAIT)
            cache.invalidate(model_file)
            assert len(cache) == 0
            b = cache.get_or_import(model_file, timeout=WAIT)
        assert a is not b
        assert loader.calls == 2

    def test_invalidate_all(self, tmp_path):
        """invalidate() without a path clears everything."""
        paths = []
        for name in ('a.fbx', 'b.fbx'):
            path = tmp_path / name
            path.write_bytes(b'x')
            paths.append(path)

        with AssetCache(CountingLoader()) as cache:
            for path in paths:
                cache.get_or_import(path, timeout=WAIT)
            assert len(cache) == 2
            cache.invalidate()
            assert len(cache) == 0

    def test_invalidate_during_import(self, model_file):
        """An import in flight at invalidation answers but is not cached."""
        loader = CountingLoader(block=True)
        with AssetCache(loader) as cache:
            future = cache.submit(model_file)
            assert loader.started.wait(WAIT)
            cache.invalidate(model_file)
            loader.release.set()

            assert isinstance(future.result(WAIT), ModelData)
            assert not cache.contains(model_file)

    def test_modified_file_reimported(self, model_file):
        """A changed modification time invalidates the entry."""
        loader = CountingLoader()
        with AssetCache(loader) as cache:
            cache.get_or_import(model_file, timeout=WAIT)
            stat = os.stat(model_file)
            os.utime(model_file, (stat.st_atime, stat.st_mtime + 10))
            cache.get_or_import(model_file, timeout=WAIT)
        assert loader.calls == 2

    def test_mtime_validation_disabled(self, model_file):
        """With validate_mtime off, changed files are served from cache."""
        loader = CountingLoader()
        with AssetCache(loader, CacheConfig(validate_mtime=False)) as cache:
            cache.get_or_import(model_file, timeout=WAIT)
            stat = os.stat(model_file)
            os.utime(model_file, (stat.st_atime, stat.st_mtime + 10))
            cache.get_or_import(model_file, timeout=WAIT)
        assert loader.calls == 1

    def test_different_paths_import_independently(self, tmp_path):
        """Each path gets its own import."""
        loader = CountingLoader()
        a_path, b_path = tmp_path / 'a.fbx', tmp_path / 'b.fbx'
        a_path.write_bytes(b'a')
        b_path.write_bytes(b'b')
        with AssetCache(loader) as cache:
            a = cache.get_or_import(a_path, timeout=WAIT)
            b = cache.get_or_import(b_path, timeout=WAIT)
        assert a.name == 'a' and b.name == 'b'
        assert loader.calls == 2

    def test_wrong_loader_result(self, model_file):
        """Loaders must return ModelData."""
        with AssetCache(lambda path, event: {'not': 'a model'}) as cache:
            result = cache.get_or_import(model_file, timeout=WAIT)
        assert isinstance(result, ImportFailure)
        assert result.error_type == 'TypeError'

    def test_future_cannot_be_cancelled(self, model_file):
        """Callers cancel through the cache, not the future."""
        loader = CountingLoader(block=True)
        with AssetCache(loader) as cache:
            future = cache.submit(model_file)
            assert not future.cancel()
            loader.release.set()
            future.result(WAIT)

    def test_rejected_submission_does_not_block_later_requests(self, model_file, monkeypatch):
        """A pool that refuses the job yields a failure and leaves no pending import."""
        loader = CountingLoader()
        with AssetCache(loader) as cache:
            real_submit = cache._executor.submit

            def refuse(*args, **kwargs):
                raise RuntimeError("cannot schedule new futures after shutdown")

            monkeypatch.setattr(cache._executor, 'submit', refuse)
            result = cache.submit(model_file).result(WAIT)
            assert isinstance(result, ImportFailure)
            assert result.error_type == 'RuntimeError'
            assert cache.stats.failures == 1

            monkeypatch.setattr(cache._executor, 'submit', real_submit)
            assert isinstance(cache.submit(model_file).result(WAIT), ModelData)
        assert loader.calls == 1

    def test_shutdown(self, model_file):
        """No requests are accepted after shutdown."""
        cache = AssetCache(CountingLoader())
        cache.shutdown()
        with pytest.raises(RuntimeError):
            cache.submit(model_file)

    def test_default_loader_failure(self, tmp_path):
        """The default importer turns a bad file into an ImportFailure."""
        path = tmp_path / 'broken.fbx'
        path.write_bytes(b'not a model')
        with AssetCache() as cache:
            result = cache.get_or_import(path, timeout=30)
        assert isinstance(result, ImportFailure)
