"""Tests for EventStore: dedup, readiness, claiming, ignore, GC and uncordon."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from nodeterm.models.events import CompleteLifecycleAction, EventKind, InterruptionEvent, MonitorKind
from nodeterm.store.event_store import EventStore

_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
_GRACE = 60


class _Clock:
    """Mutable clock for driving readiness."""

    def __init__(self, now: datetime = _NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _make_event(
    event_id: str = "asg-termination-event-1",
    node_name: str = "ip-10-0-0-1.ec2.internal",
    start_time: datetime | None = None,
) -> InterruptionEvent:
    return InterruptionEvent(
        event_id=event_id,
        kind=EventKind.ASG_TERMINATION,
        monitor=MonitorKind.SQS_MONITOR,
        start_time=start_time or _NOW,
        node_name=node_name,
        instance_id="i-1",
        private_ip_address="10.0.0.1",
    )


def _make_store(clock: _Clock | None = None, **kwargs) -> EventStore:
    return EventStore(grace_period_seconds=_GRACE, clock=clock or _Clock(), **kwargs)


# ---------------------------------------------------------------------------
# Insertion
# ---------------------------------------------------------------------------


class TestAddInterruptionEvent:
    def test_insert_returns_true(self) -> None:
        store = _make_store()
        assert store.add_interruption_event(_make_event()) is True
        assert len(store) == 1

    def test_duplicate_id_is_noop(self) -> None:
        store = _make_store()
        first = _make_event(node_name="first")
        store.add_interruption_event(first)
        assert store.add_interruption_event(_make_event(node_name="second")) is False
        assert len(store) == 1
        tracked = store.get(first.event_id)
        assert tracked is not None
        assert tracked.node_name == "first"

    def test_sets_at_least_one_event(self) -> None:
        store = _make_store()
        assert store.at_least_one_event is False
        store.add_interruption_event(_make_event())
        assert store.at_least_one_event is True

    def test_ignored_id_does_not_set_at_least_one_event(self) -> None:
        store = _make_store()
        store.ignore_event("asg-termination-event-1")
        store.add_interruption_event(_make_event())
        assert len(store) == 1
        assert store.at_least_one_event is False


class TestCancelAndIgnore:
    def test_cancel_removes_event(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event())
        store.cancel_interruption_event("asg-termination-event-1")
        assert len(store) == 0

    def test_cancel_unknown_id_is_noop(self) -> None:
        store = _make_store()
        store.cancel_interruption_event("missing")
        assert len(store) == 0

    def test_ignore_empty_id_is_noop(self) -> None:
        store = _make_store()
        store.ignore_event("")
        store.add_interruption_event(_make_event(event_id=""))
        assert store.at_least_one_event is True


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


class TestReadiness:
    def test_not_ready_before_grace_window(self) -> None:
        clock = _Clock()
        store = _make_store(clock)
        store.add_interruption_event(_make_event(start_time=_NOW + timedelta(seconds=_GRACE + 1)))
        assert store.should_drain_node() is False

    def test_becomes_ready_once_window_reached(self) -> None:
        clock = _Clock()
        store = _make_store(clock)
        store.add_interruption_event(_make_event(start_time=_NOW + timedelta(seconds=_GRACE + 1)))
        clock.advance(1)
        assert store.should_drain_node() is True
        clock.advance(30)
        assert store.should_drain_node() is True

    def test_should_drain_node_does_not_claim(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event())
        assert store.should_drain_node() is True
        assert store.should_drain_node() is True
        tracked = store.get("asg-termination-event-1")
        assert tracked is not None
        assert tracked.in_progress is False

    def test_time_until_drain(self) -> None:
        store = _make_store()
        event = _make_event(start_time=_NOW + timedelta(minutes=3))
        assert store.time_until_drain(event) == timedelta(minutes=2)

    def test_ignored_event_never_ready(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event())
        store.ignore_event("asg-termination-event-1")
        assert store.should_drain_node() is False
        assert store.get_active_event() is None

    @settings(max_examples=50, deadline=None)
    @given(offset=st.integers(min_value=-3600, max_value=3600))
    def test_readiness_matches_grace_window(self, offset: int) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event(start_time=_NOW + timedelta(seconds=offset)))
        assert store.should_drain_node() is (offset <= _GRACE)


# ---------------------------------------------------------------------------
# Claiming
# ---------------------------------------------------------------------------


class TestGetActiveEvent:
    def test_returns_none_when_empty(self) -> None:
        assert _make_store().get_active_event() is None

    def test_claims_event(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event())
        event = store.get_active_event()
        assert event is not None
        assert event.in_progress is True
        assert store.get_active_event() is None
        assert store.should_drain_node() is False

    def test_processed_event_not_returned(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event())
        store.mark_processed("asg-termination-event-1")
        assert store.get_active_event() is None

    def test_returned_event_is_snapshot(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event())
        event = store.get_active_event()
        assert event is not None
        event.node_processed = True
        tracked = store.get("asg-termination-event-1")
        assert tracked is not None
        assert tracked.node_processed is False

    def test_concurrent_callers_claim_each_event_once(self) -> None:
        store = _make_store()
        for i in range(50):
            store.add_interruption_event(_make_event(event_id=f"evt-{i}"))

        claimed: list[str] = []
        claimed_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def _worker() -> None:
            barrier.wait()
            while True:
                event = store.get_active_event()
                if event is None:
                    return
                with claimed_lock:
                    claimed.append(event.event_id)

        threads = [threading.Thread(target=_worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(claimed) == sorted(f"evt-{i}" for i in range(50))
        assert len(set(claimed)) == len(claimed)


# ---------------------------------------------------------------------------
# Processed marking and garbage collection
# ---------------------------------------------------------------------------


class TestGarbageCollection:
    def test_gc_removes_only_processed_events(self) -> None:
        store = _make_store(cleaning_period=3)
        store.add_interruption_event(_make_event(event_id="done"))
        store.add_interruption_event(_make_event(event_id="old", start_time=_NOW - timedelta(days=30)))
        store.add_interruption_event(_make_event(event_id="future", start_time=_NOW + timedelta(days=1)))
        store.ignore_event("old")
        store.mark_processed("done")

        store.get_active_event()
        store.get_active_event()
        assert store.get("done") is not None

        store.get_active_event()
        assert store.get("done") is None
        assert store.get("old") is not None
        assert store.get("future") is not None

    def test_in_progress_event_survives_gc(self) -> None:
        store = _make_store(cleaning_period=1)
        store.add_interruption_event(_make_event())
        claimed = store.get_active_event()
        assert claimed is not None
        store.get_active_event()
        assert store.get(claimed.event_id) is not None

    def test_mark_all_as_processed_for_node(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event(event_id="a", node_name="n1"))
        store.add_interruption_event(_make_event(event_id="b", node_name="n1"))
        store.add_interruption_event(_make_event(event_id="c", node_name="n2"))
        store.mark_all_as_processed("n1")
        event = store.get_active_event()
        assert event is not None
        assert event.event_id == "c"

    def test_statistics_logging_does_not_mutate(self) -> None:
        store = _make_store(logging_period=1)
        store.add_interruption_event(_make_event(start_time=_NOW + timedelta(days=1)))
        assert store.get_active_event() is None
        assert len(store) == 1


# ---------------------------------------------------------------------------
# Uncordon decision
# ---------------------------------------------------------------------------


class TestShouldUncordonNode:
    def test_false_before_any_event(self) -> None:
        assert _make_store().should_uncordon_node("n") is False

    def test_true_when_store_empties(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event(node_name="n"))
        assert store.should_uncordon_node("n") is False
        store.cancel_interruption_event("asg-termination-event-1")
        assert store.should_uncordon_node("n") is True

    def test_true_when_no_event_targets_node(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event(node_name="other"))
        assert store.should_uncordon_node("n") is True

    def test_ignored_events_do_not_block_uncordon(self) -> None:
        store = _make_store()
        store.add_interruption_event(_make_event(event_id="live", node_name="other"))
        store.add_interruption_event(_make_event(event_id="ignored", node_name="n"))
        store.ignore_event("ignored")
        assert store.should_uncordon_node("n") is True


# ---------------------------------------------------------------------------
# Redelivered notifications
# ---------------------------------------------------------------------------


def _with_hook(event: InterruptionEvent, receipt_handle: str = "rh-1") -> InterruptionEvent:
    event.post_drain_task = CompleteLifecycleAction(
        auto_scaling_group_name="nomad-clients",
        lifecycle_hook_name="nomad-drain",
        lifecycle_action_token="token-123",
        instance_id=event.instance_id,
        receipt_handle=receipt_handle,
    )
    return event


class TestRecordRedelivery:
    def test_pending_event_gets_newest_receipt(self) -> None:
        store = _make_store()
        store.add_interruption_event(_with_hook(_make_event(start_time=_NOW + timedelta(days=1))))

        assert store.record_redelivery("asg-termination-event-1", "rh-2") is False

        tracked = store.get("asg-termination-event-1")
        assert tracked is not None
        assert tracked.post_drain_task is not None
        assert tracked.post_drain_task.receipt_handle == "rh-2"

    def test_claimed_event_keeps_its_receipt(self) -> None:
        store = _make_store()
        store.add_interruption_event(_with_hook(_make_event()))
        claimed = store.get_active_event()
        assert claimed is not None

        assert store.record_redelivery("asg-termination-event-1", "rh-2") is False
        tracked = store.get("asg-termination-event-1")
        assert tracked is not None
        assert tracked.post_drain_task is not None
        assert tracked.post_drain_task.receipt_handle == "rh-1"

    def test_processed_event_can_be_deleted(self) -> None:
        store = _make_store()
        store.add_interruption_event(_with_hook(_make_event()))
        store.mark_processed("asg-termination-event-1")
        assert store.record_redelivery("asg-termination-event-1", "rh-2") is True

    def test_collected_event_is_still_a_duplicate(self) -> None:
        store = _make_store(cleaning_period=1)
        store.add_interruption_event(_with_hook(_make_event()))
        store.mark_processed("asg-termination-event-1")
        store.get_active_event()
        assert store.get("asg-termination-event-1") is None

        assert store.add_interruption_event(_with_hook(_make_event(), "rh-3")) is False
        assert store.record_redelivery("asg-termination-event-1", "rh-3") is True
        assert store.get_active_event() is None

    def test_collected_ids_expire_after_retention(self) -> None:
        clock = _Clock()
        store = _make_store(clock, cleaning_period=1, retention=timedelta(hours=1))
        store.add_interruption_event(_make_event())
        store.mark_processed("asg-termination-event-1")
        store.get_active_event()

        clock.advance(3601)
        store.get_active_event()

        assert store.add_interruption_event(_make_event()) is True
