from __future__ import annotations

import pytest

from cvreview.errors import RunCancelled
from cvreview.retry import call_with_retry, fixed_backoff, linear_backoff
from cvreview.runtime import CancellationToken


class Flaky:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self._failures = list(failures)
        self._result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return self._result


def test_succeeds_after_retryable_failures():
    func = Flaky([RuntimeError("429"), RuntimeError("429")])
    hooks: list[int] = []

    result = call_with_retry(
        func,
        attempts=3,
        wait=fixed_backoff(0),
        token=CancellationToken(),
        on_retry=lambda attempt, exc, delay: hooks.append(attempt),
    )

    assert result == "ok"
    assert func.calls == 3
    assert hooks == [1, 2]


def test_gives_up_after_attempts_and_reraises_last_error():
    func = Flaky([RuntimeError("first"), RuntimeError("second"), RuntimeError("third")])

    with pytest.raises(RuntimeError, match="third"):
        call_with_retry(func, attempts=3, wait=fixed_backoff(0), token=CancellationToken())

    assert func.calls == 3


def test_non_retryable_error_fails_immediately():
    func = Flaky([ValueError("bad")])

    with pytest.raises(ValueError):
        call_with_retry(
            func,
            attempts=3,
            wait=fixed_backoff(0),
            token=CancellationToken(),
            should_retry=lambda exc: isinstance(exc, RuntimeError),
        )

    assert func.calls == 1


def test_cancellation_during_backoff_stops_retrying():
    token = CancellationToken()
    func = Flaky([RuntimeError("429")] * 3)

    def _cancel(attempt: int, exc: BaseException, delay: float) -> None:
        token.cancel()

    with pytest.raises(RunCancelled):
        call_with_retry(func, attempts=3, wait=fixed_backoff(30), token=token, on_retry=_cancel)

    assert func.calls == 1


def test_cancelled_token_prevents_first_attempt():
    token = CancellationToken()
    token.cancel()
    func = Flaky([])

    with pytest.raises(RunCancelled):
        call_with_retry(func, attempts=3, wait=fixed_backoff(0), token=token)

    assert func.calls == 0


def test_linear_backoff_delays_reported_to_hook():
    delays: list[float] = []
    func = Flaky([RuntimeError("x"), RuntimeError("y")])

    call_with_retry(
        func,
        attempts=3,
        wait=linear_backoff(0.001),
        token=CancellationToken(),
        on_retry=lambda attempt, exc, delay: delays.append(delay),
    )

    assert delays == pytest.approx([0.001, 0.002])
