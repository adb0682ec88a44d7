import threading
import time
from datetime import date

import fakeredis
import pytest

from barbershop.cache import ScheduleCache, cache_key
from barbershop.config import Settings
from barbershop.engine.events import EventSink
from barbershop.engine.locks import KeyedLocks
from barbershop.engine.repository import load_schedule
from barbershop.engine.resolver import ScheduleSnapshot, resolve_day
from barbershop.models import ScheduleException

from conftest import MONDAY


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def cache(redis_client):
    return ScheduleCache(ttl_seconds=60, client=redis_client)


def test_cached_snapshot_resolves_like_the_stored_one(cache, session, salon) -> None:
    session.add(ScheduleException(
        salon_id=salon.id, name="Inventory", exception_type="special_hours",
        start_date=MONDAY, end_date=MONDAY, special_start_time="10:00", special_end_time="14:00",
    ))
    session.commit()
    loads = []

    def loader():
        loads.append(1)
        return load_schedule(session, salon.id)

    original = cache.get_or_load(salon.id, loader)
    restored = cache.get_or_load(salon.id, loader)

    assert len(loads) == 1
    assert restored.exceptions[0].start_date == MONDAY
    assert restored.breaks[0].specific_days == original.breaks[0].specific_days
    for day in (MONDAY, date(2026, 3, 3), date(2026, 3, 7)):
        assert resolve_day(restored, day) == resolve_day(original, day)


def test_snapshot_is_stored_with_a_ttl(cache, redis_client) -> None:
    cache.get_or_load(7, lambda: ScheduleSnapshot(salon_id=7))
    assert 0 < redis_client.ttl(cache_key(7)) <= 60


def test_cache_invalidation_is_per_salon(cache) -> None:
    cache.get_or_load(1, lambda: ScheduleSnapshot(salon_id=1))
    cache.get_or_load(2, lambda: ScheduleSnapshot(salon_id=2))

    cache.invalidate(1)
    assert cache.get(1) is None
    assert cache.get(2) is not None


def test_write_during_load_is_not_hidden(cache) -> None:
    def loader():
        # a schedule write commits while this read is still loading
        cache.invalidate(1)
        return ScheduleSnapshot(salon_id=1)

    cache.get_or_load(1, loader)
    assert cache.get(1) is None

    cache.get_or_load(1, lambda: ScheduleSnapshot(salon_id=1))
    assert cache.get(1) is not None


def test_unreachable_redis_reads_through() -> None:
    server = fakeredis.FakeServer()
    server.connected = False
    cache = ScheduleCache(ttl_seconds=60, client=fakeredis.FakeRedis(server=server, decode_responses=True))
    loads = []

    def loader():
        loads.append(1)
        return ScheduleSnapshot(salon_id=3)

    assert cache.get_or_load(3, loader).salon_id == 3
    cache.get_or_load(3, loader)
    assert len(loads) == 2
    assert cache.invalidate(3) is False


def test_cache_without_redis_url_loads_every_time() -> None:
    cache = ScheduleCache(ttl_seconds=60)
    loads = []
    cache.get_or_load(1, lambda: loads.append(1) or ScheduleSnapshot(salon_id=1))
    cache.get_or_load(1, lambda: loads.append(1) or ScheduleSnapshot(salon_id=1))
    assert len(loads) == 2


def test_zero_ttl_disables_the_cache(redis_client) -> None:
    cache = ScheduleCache(ttl_seconds=0, client=redis_client)
    cache.get_or_load(1, lambda: ScheduleSnapshot(salon_id=1))
    assert redis_client.get(cache_key(1)) is None


def test_locks_serialize_the_same_key() -> None:
    locks = KeyedLocks()
    inside = []
    overlap = []

    def worker():
        with locks.acquire(("salon", 1)):
            inside.append(1)
            if len(inside) > 1:
                overlap.append(1)
            time.sleep(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlap == []
    assert len(locks) == 0


def test_overlapping_key_sets_do_not_deadlock() -> None:
    locks = KeyedLocks()
    done = []

    def worker(keys):
        for _ in range(50):
            with locks.acquire(*keys):
                pass
        done.append(keys)

    a = threading.Thread(target=worker, args=([(1, 1), (1, 2)],))
    b = threading.Thread(target=worker, args=([(1, 2), (1, 1)],))
    a.start()
    b.start()
    a.join(timeout=5)
    b.join(timeout=5)

    assert len(done) == 2


def test_lock_is_released_on_error() -> None:
    locks = KeyedLocks()
    with pytest.raises(RuntimeError):
        with locks.acquire("k"):
            raise RuntimeError("boom")
    assert len(locks) == 0
    with locks.acquire("k"):
        pass


def test_failing_handler_does_not_stop_delivery() -> None:
    sink = EventSink()
    got = []

    def broken(event):
        raise ValueError("mail server down")

    sink.subscribe(broken)
    sink.subscribe(got.append)
    sink.emit("appointment.created", {"salon_id": 1})

    assert got[0]["type"] == "appointment.created"
    assert got[0]["salon_id"] == 1
    assert "ts" in got[0]

    sink.unsubscribe(got.append)
    sink.emit("appointment.created", {"salon_id": 1})
    assert len(got) == 1


@pytest.mark.parametrize("field,value", [
    ("slot_minutes", 7),
    ("slot_minutes", 0),
    ("booking_buffer_minutes", -1),
    ("default_hold_minutes", 0),
])
def test_settings_reject_bad_values(field, value) -> None:
    with pytest.raises(ValueError):
        Settings(**{field: value})
