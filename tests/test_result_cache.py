"""Tests for the result cache."""

import json
import threading

import pytest

from engine.cache import ResultCache
from engine.errors import BuildError, CacheConflictError, ConfigError, DependencyFailed
from engine.models import BuildResult, CacheKey, ModuleRef
from libforge import outcome_label

KEY = CacheKey(ModuleRef("acme/x", "1.0"), "amd64-linux")


class TestResultCache:
    """First-writer-wins storage."""

    def test_miss_then_hit(self):
        cache = ResultCache()
        assert cache.get(KEY) is None
        result = BuildResult(output_dir="/out", metadata="-lx")
        cache.put(KEY, result)
        assert cache.get(KEY) is result
        assert KEY in cache
        assert len(cache) == 1
        assert cache.keys() == [KEY]

    def test_second_put_rejected(self):
        cache = ResultCache()
        first = BuildResult(output_dir="/first")
        cache.put(KEY, first)
        with pytest.raises(CacheConflictError):
            cache.put(KEY, BuildResult(output_dir="/second"))
        assert cache.get(KEY) is first

    def test_variants_are_distinct_keys(self):
        cache = ResultCache()
        cache.put(KEY, BuildResult())
        other = CacheKey(KEY.ref, "arm64-darwin")
        assert cache.get(other) is None
        cache.put(other, BuildResult())
        assert len(cache) == 2

    def test_concurrent_puts_single_winner(self):
        cache = ResultCache()
        barrier = threading.Barrier(8)
        outcomes = []

        def writer(n):
            barrier.wait()
            try:
                cache.put(KEY, BuildResult(output_dir=f"/out/{n}"))
                outcomes.append("stored")
            except CacheConflictError:
                outcomes.append("rejected")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert outcomes.count("stored") == 1
        assert outcomes.count("rejected") == 7

    def test_contains_non_key(self):
        assert "acme/x" not in ResultCache()


class TestReservations:
    """One builder per key across every scheduler sharing the cache."""

    def test_reserve_is_exclusive_until_released(self):
        cache = ResultCache()
        assert cache.try_reserve(KEY)
        assert cache.is_reserved(KEY)
        assert not cache.try_reserve(KEY)
        cache.release(KEY)
        assert not cache.is_reserved(KEY)
        assert cache.try_reserve(KEY)

    def test_put_ends_reservation(self):
        cache = ResultCache()
        assert cache.try_reserve(KEY)
        cache.put(KEY, BuildResult())
        assert not cache.is_reserved(KEY)
        assert not cache.try_reserve(KEY)
        cache.release(KEY)
        assert KEY in cache

    def test_concurrent_reservations_single_winner(self):
        cache = ResultCache()
        barrier = threading.Barrier(8)
        won = []

        def builder():
            barrier.wait()
            if cache.try_reserve(KEY):
                won.append(True)

        threads = [threading.Thread(target=builder) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(won) == 1

    def test_lookups_leave_no_locks_behind(self):
        cache = ResultCache()
        others = [CacheKey(ModuleRef(f"acme/m{i}", "1"), "a") for i in range(50)]
        for key in others:
            assert cache.get(key) is None
            assert key not in cache
        assert not cache._locks  # pylint: disable=protected-access
        cache.put(KEY, BuildResult())
        assert cache.try_reserve(others[0])
        cache.put(others[0], BuildResult())
        assert not cache._locks  # pylint: disable=protected-access


class TestPersistence:
    """save/load across invocations."""

    def test_round_trip_keeps_successes_only(self, tmp_path):
        cache = ResultCache()
        cache.put(KEY, BuildResult(output_dir="/out/x", metadata="-lx"))
        failed_key = CacheKey(ModuleRef("acme/y", "2"), "amd64-linux")
        cache.put(failed_key, BuildResult(errs=[BuildError("nope")]))

        path = tmp_path / "state" / "results.json"
        assert cache.save(str(path)) == 1

        loaded = ResultCache.load(str(path))
        assert loaded.keys() == [KEY]
        restored = loaded.get(KEY)
        assert restored.output_dir == "/out/x"
        assert restored.metadata == "-lx"
        assert restored.ok

    def test_save_all_includes_failures(self, tmp_path):
        cache = ResultCache()
        cache.put(KEY, BuildResult(errs=[BuildError("nope")]))
        path = tmp_path / "results.json"
        cache.save(str(path), successful_only=False)
        data = json.loads(path.read_text())
        assert data["entries"][0]["result"]["errors"] == [{"type": "BuildError", "message": "nope"}]
        loaded = ResultCache.load(str(path))
        assert not loaded.get(KEY).ok

    def test_dependency_failure_type_survives_reload(self, tmp_path):
        dep = CacheKey(ModuleRef("acme/y", "1"), "amd64-linux")
        cache = ResultCache()
        cache.put(KEY, BuildResult(errs=[DependencyFailed([dep])]))
        path = tmp_path / "results.json"
        cache.save(str(path), successful_only=False)
        restored = ResultCache.load(str(path)).get(KEY)
        assert restored.dependency_failed
        assert restored.errs[0].failed == (str(dep),)
        assert str(restored.errs[0]) == "dependency failed: acme/y@1 [amd64-linux]"
        assert outcome_label(restored) == "DEP-FAILED"

    def test_missing_file_is_empty(self, tmp_path):
        assert len(ResultCache.load(str(tmp_path / "absent.json"))) == 0

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "results.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            ResultCache.load(str(path))

    def test_unknown_format_ignored(self, tmp_path):
        path = tmp_path / "results.json"
        path.write_text(json.dumps({"version": 99, "entries": [{"bogus": True}]}))
        assert len(ResultCache.load(str(path))) == 0
