"""
Cache store tests

运行测试：
    pytest backend/tests/test_cache_store.py -v
"""

import asyncio
import os

import pytest

from image_cdn.errors import AccessDenied, StorageFailure


class TestReadWrite:
    """exists / read / write"""

    @pytest.mark.asyncio
    async def test_missing_key_is_a_miss(self, cache_store):
        assert await cache_store.exists("missing.jpg") is False
        assert await cache_store.read("missing.jpg") is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, cache_store):
        await cache_store.write("k1.jpg", b"rendered-bytes")

        assert await cache_store.exists("k1.jpg") is True
        assert await cache_store.read("k1.jpg") == b"rendered-bytes"

    @pytest.mark.asyncio
    async def test_repeated_reads_are_identical(self, cache_store):
        await cache_store.write("k1.jpg", b"\xff\xd8data")
        first = await cache_store.read("k1.jpg")
        second = await cache_store.read("k1.jpg")
        assert first == second == b"\xff\xd8data"

    @pytest.mark.asyncio
    async def test_rewrite_same_key_is_idempotent(self, cache_store):
        await cache_store.write("k1.jpg", b"same")
        await cache_store.write("k1.jpg", b"same")
        assert await cache_store.read("k1.jpg") == b"same"
        assert len(await cache_store.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_writes_to_distinct_keys(self, cache_store):
        await asyncio.gather(*[
            cache_store.write(f"k{i}.jpg", f"data-{i}".encode()) for i in range(10)
        ])
        for i in range(10):
            assert await cache_store.read(f"k{i}.jpg") == f"data-{i}".encode()

    @pytest.mark.asyncio
    async def test_traversal_key_rejected(self, cache_store):
        with pytest.raises(AccessDenied):
            await cache_store.read("../outside.jpg")
        with pytest.raises(AccessDenied):
            await cache_store.write("../outside.jpg", b"x")

    @pytest.mark.asyncio
    async def test_nested_key_rejected(self, cache_store):
        with pytest.raises(AccessDenied):
            await cache_store.write("sub/k.jpg", b"x")
        assert os.listdir(cache_store.cache_dir) == []

    @pytest.mark.asyncio
    async def test_delete(self, cache_store):
        await cache_store.write("k1.jpg", b"x")
        assert await cache_store.delete("k1.jpg") is True
        assert await cache_store.delete("k1.jpg") is False
        assert await cache_store.read("k1.jpg") is None


class TestAtomicWrite:
    """A failed write never leaves a visible or partial entry"""

    @pytest.mark.asyncio
    async def test_failed_write_leaves_nothing(self, cache_store, monkeypatch):
        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("image_cdn.cache_store.os.replace", broken_replace)

        with pytest.raises(StorageFailure):
            await cache_store.write("k1.jpg", b"data")

        assert await cache_store.exists("k1.jpg") is False
        assert os.listdir(cache_store.cache_dir) == []

    @pytest.mark.asyncio
    async def test_partial_files_hidden_from_listing(self, cache_store):
        await cache_store.write("k1.jpg", b"data")
        (cache_store.cache_dir / ".k2.jpg.tmp.abc").write_bytes(b"partial")

        keys = [e.key for e in await cache_store.list_entries()]
        assert keys == ["k1.jpg"]

        all_keys = sorted(e.key for e in await cache_store.list_entries(include_partial=True))
        assert all_keys == [".k2.jpg.tmp.abc", "k1.jpg"]

        assert await cache_store.read(".k2.jpg.tmp.abc") is None


class TestStats:
    """Cache statistics"""

    @pytest.mark.asyncio
    async def test_stats(self, cache_store):
        await cache_store.write("a.jpg", b"12345")
        await cache_store.write("b.jpg", b"123")

        stats = await cache_store.stats()
        assert stats["total_entries"] == 2
        assert stats["total_size_bytes"] == 8
        assert stats["oldest_entry_age_hours"] is not None

    @pytest.mark.asyncio
    async def test_empty_stats(self, cache_store):
        stats = await cache_store.stats()
        assert stats["total_entries"] == 0
        assert stats["oldest_entry_age_hours"] is None
