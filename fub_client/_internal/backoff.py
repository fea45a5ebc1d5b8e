"""
Reconnect backoff policy.

This module provides BackoffPolicy, which turns a reconnect attempt number
into a delay using tenacity's incrementing wait strategy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenacity import RetryCallState
from tenacity.wait import wait_incrementing

from ..config import DEFAULT_BACKOFF_STEP, DEFAULT_MAX_BACKOFF

if TYPE_CHECKING:
    from ..config import ReconnectConfig


class BackoffPolicy:
    """
    Linear, capped backoff: ``delay(k) = min(max_backoff, k * step)``.

    ``k`` is the 1-based attempt number. There is no jitter; the same
    attempt always yields the same delay.

    Parameters
    ----------
    step : float, optional
        Delay increment per attempt in seconds (default 1.0).
    max_backoff : float, optional
        Cap on a single delay in seconds (default 30.0).

    Usage
    -----
    ```python
    policy = BackoffPolicy()
    policy(1)   # 1.0
    policy(5)   # 5.0
    policy(45)  # 30.0
    ```
    """

    def __init__(
        self,
        step: float = DEFAULT_BACKOFF_STEP,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
    ) -> None:
        self._step = step
        self._max_backoff = max_backoff
        # tenacity computes start + increment * (attempt_number - 1), capped at max
        self._wait = wait_incrementing(start=step, increment=step, max=max_backoff)

    @classmethod
    def from_config(cls, config: ReconnectConfig) -> BackoffPolicy:
        return cls(step=config.backoff_step, max_backoff=config.max_backoff)

    @property
    def step(self) -> float:
        return self._step

    @property
    def max_backoff(self) -> float:
        return self._max_backoff

    def delay(self, attempt: int) -> float:
        """
        Delay in seconds before reconnect attempt ``attempt``.

        Raises
        ------
        ValueError
            If attempt is less than 1.
        """
        if attempt < 1:
            raise ValueError(f"attempt must be at least 1, got {attempt}")
        retry_state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})  # type: ignore[arg-type]
        retry_state.attempt_number = attempt
        return float(self._wait(retry_state))

    def __call__(self, attempt: int) -> float:
        return self.delay(attempt)
