from __future__ import annotations

from branch_time_tracker.timers import CancellableTimer


def test_rearming_replaces_previous_deadline(scheduler) -> None:
    fired = []
    timer = CancellableTimer("test", scheduler, lambda: fired.append(scheduler.now_ms))

    timer.arm(5)
    scheduler.advance(3)
    timer.arm(5)
    scheduler.advance(4)
    assert fired == []
    scheduler.advance(1)

    assert fired == [8000]
    assert not timer.armed
    assert scheduler.pending == 0


def test_cancel_prevents_firing(scheduler) -> None:
    fired = []
    timer = CancellableTimer("test", scheduler, lambda: fired.append(True))

    timer.arm(1)
    assert timer.armed
    timer.cancel()
    timer.cancel()
    scheduler.advance(5)

    assert fired == []
    assert not timer.armed
