"""
End-to-end tests of the seat cache facade: observers, fan-out, scenarios.
"""
import pytest

from seatsync.cache import (
    SeatCacheManager,
    SubscriptionOptions,
    EntryState,
    create_seat_cache_manager,
)
from config.settings import Settings

from tests.helpers import FakeOrigin, make_seats, settle


@pytest.mark.asyncio
async def test_observers_share_fetch_and_late_observer_refreshes_when_stale(clock):
    """
    Observer A activates at t=0 and starts a fetch; B joins at t=2000
    without a new call; the fetch lands at t=3000 with 40 seats for both.
    C activating at t=16001 is still inside the 15s TTL (13001ms old) and
    fetches nothing; D activating at t=18001 finds the entry stale and
    fetches again.
    """
    origin = FakeOrigin(seats=make_seats(40), hold=True)
    manager = SeatCacheManager(origin, clock=clock)
    options = SubscriptionOptions(cache_duration_ms=15000)
    seen_by = {"A": [], "B": []}

    sub_a = manager.subscribe("evt-1", lambda: seen_by["A"].append(manager.read("evt-1")), options)
    await settle()
    assert origin.calls == ["evt-1"]
    assert sub_a.read().loading is True
    assert sub_a.read().seats == ()

    clock.now = 2000
    sub_b = manager.subscribe("evt-1", lambda: seen_by["B"].append(manager.read("evt-1")), options)
    await settle()
    assert origin.calls == ["evt-1"]

    clock.now = 3000
    origin.release()
    await settle()

    for name in ("A", "B"):
        last = seen_by[name][-1]
        assert last.loading is False
        assert len(last.seats) == 40
        assert last.updated_at == 3000

    clock.now = 16001
    sub_c = manager.subscribe("evt-1", lambda: None, options)
    await settle()
    assert len(origin.calls) == 1

    clock.now = 18001
    sub_d = manager.subscribe("evt-1", lambda: None, options)
    await settle()
    assert len(origin.calls) == 2

    for sub in (sub_a, sub_b, sub_c, sub_d):
        sub.close()


@pytest.mark.asyncio
async def test_fan_out_one_notification_per_transition(clock):
    origin = FakeOrigin()
    manager = SeatCacheManager(origin, clock=clock)
    passive = SubscriptionOptions(enabled=False)
    counts = [0] * 5
    subs = []
    for i in range(5):
        def listener(i=i):
            counts[i] += 1
        subs.append(manager.subscribe("evt-1", listener, passive))

    await manager.refresh("evt-1")
    assert counts == [2] * 5  # loading, then fresh

    subs[2]()
    await manager.refresh("evt-1")
    assert counts == [4, 4, 2, 4, 4]
    assert manager.hub.listener_count("evt-1") == 4

    for sub in subs:
        sub()
    assert manager.hub.listener_count("evt-1") == 0


@pytest.mark.asyncio
async def test_failure_notifies_observers(clock):
    origin = FakeOrigin()
    origin.error = RuntimeError("unreachable")
    manager = SeatCacheManager(origin, clock=clock)
    states = []

    with manager.subscribe("evt-1", lambda: states.append(manager.read("evt-1").state)):
        await settle()

    assert states == [EntryState.LOADING, EntryState.ERRORED]


@pytest.mark.asyncio
async def test_unsubscribe_does_not_cancel_shared_fetch(clock):
    origin = FakeOrigin(hold=True)
    manager = SeatCacheManager(origin, clock=clock)

    sub = manager.subscribe("evt-1", lambda: None)
    await settle()
    sub.close()
    assert manager.hub.listener_count("evt-1") == 0

    origin.release()
    await settle()

    snapshot = manager.read("evt-1")
    assert len(snapshot.seats) == 3
    assert snapshot.loading is False


def test_read_before_first_fetch_returns_idle_defaults(clock):
    manager = SeatCacheManager(FakeOrigin(), clock=clock)

    snapshot = manager.read("evt-9")

    assert snapshot.seats == ()
    assert snapshot.loading is False
    assert snapshot.error is None
    assert snapshot.updated_at is None
    assert snapshot.rate_limited_until is None
    assert snapshot.state == EntryState.IDLE


def test_failed_activation_releases_listener(clock):
    """Activation needs a running loop to start a fetch; without one the listener is rolled back."""
    manager = SeatCacheManager(FakeOrigin(), clock=clock)

    with pytest.raises(RuntimeError):
        manager.subscribe("evt-1", lambda: None)

    assert manager.hub.listener_count("evt-1") == 0
    assert manager.store.get("evt-1").in_flight is None


def test_disabled_observer_needs_no_event_loop(clock):
    manager = SeatCacheManager(FakeOrigin(), clock=clock)

    sub = manager.subscribe("evt-1", lambda: None, SubscriptionOptions(enabled=False))
    assert manager.hub.listener_count("evt-1") == 1
    sub.close()
    sub.close()
    assert sub.closed
    assert manager.hub.listener_count("evt-1") == 0


def test_subscribe_requires_key(clock):
    manager = SeatCacheManager(FakeOrigin(), clock=clock)

    with pytest.raises(ValueError):
        manager.subscribe("", lambda: None)


@pytest.mark.asyncio
async def test_refresh_without_key_is_noop(clock):
    origin = FakeOrigin()
    manager = SeatCacheManager(origin, clock=clock)

    assert await manager.refresh("") == ()
    assert origin.calls == []


@pytest.mark.asyncio
async def test_subscription_refresh_and_stats(clock):
    origin = FakeOrigin()
    manager = SeatCacheManager(origin, clock=clock)
    sub = manager.subscribe("evt-1", lambda: None, SubscriptionOptions(enabled=False))

    seats = await sub.refresh()
    await sub.refresh()

    stats = manager.get_stats()
    assert len(seats) == 3
    assert stats["entries"] == 1
    assert stats["listeners"] == 1
    assert stats["active_observers"] == 0
    assert stats["coordinator"]["fetches"] == 2
    assert stats["coordinator"]["active_requests"] == 0
    sub.close()


@pytest.mark.asyncio
async def test_factory_uses_configured_ttl(clock):
    origin = FakeOrigin()
    manager = create_seat_cache_manager(
        Settings(seat_cache_ttl_ms=1000), fetch_fn=origin, clock=clock
    )
    await manager.refresh("evt-1")

    clock.advance(1001)
    assert manager.refresh_if_stale("evt-1") is True
    await settle()
    assert len(origin.calls) == 2
