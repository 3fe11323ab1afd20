import pytest

from swapwatch.core.backoff import ExponentialBackoff


def test_delay_doubles_up_to_maximum(clock):
    backoff = ExponentialBackoff(initial=5, maximum=300, clock=clock)

    delays = [backoff.failure() for _ in range(8)]

    assert delays == [5, 10, 20, 40, 80, 160, 300, 300]


def test_ready_after_delay(clock):
    backoff = ExponentialBackoff(initial=1, maximum=60, clock=clock)
    assert backoff.ready()

    backoff.failure()
    assert not backoff.ready()

    clock.advance(1)
    assert backoff.ready()


def test_success_resets(clock):
    backoff = ExponentialBackoff(initial=1, maximum=60, clock=clock)
    backoff.failure()
    backoff.failure()
    assert backoff.delay == 2

    backoff.success()

    assert backoff.delay == 0
    assert backoff.ready()
    assert backoff.failure() == 1


def test_invalid_parameters():
    with pytest.raises(ValueError):
        ExponentialBackoff(initial=10, maximum=5)
