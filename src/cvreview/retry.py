"""Generic retry helper with classification, backoff and cancellation."""

from __future__ import annotations

from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
    wait_incrementing,
)
from tenacity.wait import wait_base

from .errors import RunCancelled
from .runtime import CancellationToken

T = TypeVar("T")

RetryHook = Callable[[int, BaseException, float], None]


def linear_backoff(unit: float) -> wait_base:
    """Wait ``attempt * unit`` seconds after the n-th failed attempt."""
    return wait_incrementing(start=unit, increment=unit)


def fixed_backoff(seconds: float) -> wait_base:
    return wait_fixed(seconds)


def retry_always(_: BaseException) -> bool:
    return True


def call_with_retry(
    func: Callable[[], T],
    *,
    attempts: int,
    wait: wait_base,
    token: CancellationToken,
    should_retry: Callable[[BaseException], bool] = retry_always,
    on_retry: RetryHook | None = None,
) -> T:
    """Call ``func`` until it succeeds, is not retryable, or attempts run out.

    The last exception is re-raised unchanged. ``RunCancelled`` is never
    retried and backoff waits end early when ``token`` is cancelled.
    """

    def _retryable(exc: BaseException) -> bool:
        if isinstance(exc, RunCancelled):
            return False
        return should_retry(exc)

    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        if on_retry is not None and exc is not None:
            on_retry(state.attempt_number, exc, delay)

    def _before(state: RetryCallState) -> None:
        token.raise_if_cancelled()

    retrying = Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait,
        retry=retry_if_exception(_retryable),
        sleep=token.sleep,
        before=_before,
        before_sleep=_before_sleep,
        reraise=True,
    )
    return retrying(func)


__all__ = ["call_with_retry", "linear_backoff", "fixed_backoff", "retry_always"]
