"""Tests for transient toasts."""
from pizza_timer.services.toasts import ToastQueue


def test_success_toasts_last_two_seconds(toasts, clock):
    toasts.success("Pizza started!")

    clock.advance(seconds=1)
    assert [t.message for t in toasts.visible()] == ["Pizza started!"]

    clock.advance(seconds=1)
    assert toasts.visible() == []


def test_info_and_error_toasts_last_four_seconds(toasts, clock):
    toasts.info("In 15 min: Shape", icon="⏰")
    toasts.error("Backend did not respond within 30 seconds")

    clock.advance(seconds=3)
    visible = toasts.visible()
    assert [t.level for t in visible] == ["error", "info"]
    assert visible[1].icon == "⏰"

    clock.advance(seconds=1)
    assert toasts.visible() == []
    assert len(toasts.history()) == 2


def test_history_is_bounded(clock):
    toasts = ToastQueue(history_size=3, clock=clock)
    for i in range(5):
        toasts.success(f"toast {i}")

    assert [t.message for t in toasts.history()] == ["toast 4", "toast 3", "toast 2"]
