from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from tests.conftest import NOW
from worldpulse.services.dedup_guard import SignalDedupGuard


class FakeClock:
    def __init__(self, start=NOW):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def test_marked_key_is_duplicate_within_ttl():
    clock = FakeClock()
    guard = SignalDedupGuard(ttl=timedelta(minutes=30), clock=clock)

    assert guard.is_recent_duplicate("velocity_spike:iran:12.0") is False
    guard.mark_signal_seen("velocity_spike:iran:12.0")
    clock.advance(minutes=29)
    assert guard.is_recent_duplicate("velocity_spike:iran:12.0") is True


def test_expired_key_is_forgotten():
    clock = FakeClock()
    guard = SignalDedupGuard(ttl=timedelta(minutes=30), clock=clock)
    guard.mark_signal_seen("flow_drop:evt-1:3")

    clock.advance(minutes=31)
    assert guard.is_recent_duplicate("flow_drop:evt-1:3") is False
    assert len(guard) == 0


def test_check_and_mark():
    clock = FakeClock()
    guard = SignalDedupGuard(clock=clock)
    assert guard.check_and_mark("k") is True
    assert guard.check_and_mark("k") is False
    clock.advance(hours=1)
    assert guard.check_and_mark("k") is True


def test_oldest_key_evicted_when_full():
    clock = FakeClock()
    guard = SignalDedupGuard(max_size=2, clock=clock)
    guard.mark_signal_seen("a")
    clock.advance(seconds=1)
    guard.mark_signal_seen("b")
    clock.advance(seconds=1)
    guard.mark_signal_seen("c")

    assert len(guard) == 2
    assert guard.is_recent_duplicate("a") is False
    assert guard.is_recent_duplicate("c") is True
    assert guard.get_stats().evictions == 1


def test_cleanup_expired_and_clear():
    clock = FakeClock()
    guard = SignalDedupGuard(ttl=timedelta(minutes=10), clock=clock)
    guard.mark_signal_seen("old")
    clock.advance(minutes=11)
    guard.mark_signal_seen("new")

    assert guard.cleanup_expired() == 1
    assert len(guard) == 1

    guard.clear()
    assert len(guard) == 0


def test_stats():
    guard = SignalDedupGuard(max_size=10, clock=FakeClock())
    guard.is_recent_duplicate("x")
    guard.mark_signal_seen("x")
    guard.is_recent_duplicate("x")

    stats = guard.get_stats().to_dict()
    assert stats["marked"] == 1
    assert stats["suppressed"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert stats["max_size"] == 10
    assert stats["suppression_rate"] == "50.00%"


def test_check_and_mark_is_safe_across_threads():
    guard = SignalDedupGuard(clock=FakeClock())
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(guard.check_and_mark, ["velocity_spike:iran:12.0"] * 64))
    assert results.count(True) == 1


def test_stats_are_a_point_in_time_copy():
    guard = SignalDedupGuard(clock=FakeClock())
    guard.mark_signal_seen("a")
    before = guard.get_stats()

    guard.mark_signal_seen("b")
    assert before.size == 1
    assert before.marked == 1
    assert guard.get_stats().size == 2
    assert len(guard) == 2
