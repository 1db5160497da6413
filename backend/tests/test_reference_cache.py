import asyncio

import pytest

from ekskul_recommender.recommender.models import ActivityRecord, QuestionRecord
from ekskul_recommender.recommender.reference_cache import ReferenceDataCache


class CountingLoader:
    def __init__(self):
        self.calls = 0
        self.fail = False

    async def __call__(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("database down")
        return (
            [ActivityRecord(id=f"a{self.calls}", name="Basket")],
            [QuestionRecord(id="1", category="Olahraga")],
        )


def test_loads_once_within_ttl(clock):
    cache = ReferenceDataCache(ttl_seconds=300, clock=clock)
    loader = CountingLoader()

    first = asyncio.run(cache.get(loader))
    clock.advance(299)
    second = asyncio.run(cache.get(loader))

    assert loader.calls == 1
    assert first is second
    assert first.activities[0].id == "a1"


def test_reloads_after_ttl(clock):
    cache = ReferenceDataCache(ttl_seconds=300, clock=clock)
    loader = CountingLoader()

    first = asyncio.run(cache.get(loader))
    clock.advance(300)
    second = asyncio.run(cache.get(loader))

    assert loader.calls == 2
    assert second is not first
    # Snapshot cũ không bị mutate
    assert first.activities[0].id == "a1"
    assert second.activities[0].id == "a2"


def test_invalidate_forces_reload(clock):
    cache = ReferenceDataCache(ttl_seconds=300, clock=clock)
    loader = CountingLoader()

    asyncio.run(cache.get(loader))
    cache.invalidate()
    assert cache.peek() is None
    asyncio.run(cache.get(loader))

    assert loader.calls == 2


def test_concurrent_reads_share_one_load(clock):
    cache = ReferenceDataCache(ttl_seconds=300, clock=clock)
    loader = CountingLoader()

    async def read_many():
        return await asyncio.gather(*[cache.get(loader) for _ in range(5)])

    snapshots = asyncio.run(read_many())

    assert loader.calls == 1
    assert all(s is snapshots[0] for s in snapshots)


def test_failed_refresh_keeps_previous_snapshot(clock):
    cache = ReferenceDataCache(ttl_seconds=10, clock=clock)
    loader = CountingLoader()

    original = asyncio.run(cache.get(loader))
    clock.advance(11)
    loader.fail = True

    with pytest.raises(RuntimeError):
        asyncio.run(cache.get(loader))

    assert cache.peek() is original
    assert not cache.is_fresh()


def test_negative_ttl_rejected():
    with pytest.raises(ValueError):
        ReferenceDataCache(ttl_seconds=-1)
