# /*
# Copyright 2026 The DPF Installer Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Fixed-delay bounded retry built on tenacity."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    stop_after_attempt,
    wait_fixed,
)

from dpf_installer import logger
from dpf_installer.errors import RetryExhaustedError, TerminalStateError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Constant-delay retry budget.

    Attributes:
        max_attempts: Total number of attempts, at least 1.
        delay_seconds: Sleep between failed attempts, never negative.
    """

    max_attempts: int
    delay_seconds: float = 0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")

    @classmethod
    def of(cls, budget: tuple[int, float]) -> RetryPolicy:
        """Build a policy from an ``(attempts, delay)`` tuple."""
        return cls(*budget)

    @property
    def timeout_seconds(self) -> float:
        """Total time spent sleeping when every attempt fails."""
        return (self.max_attempts - 1) * self.delay_seconds


def _should_retry(state: RetryCallState) -> bool:
    if state.outcome.failed:
        return not isinstance(state.outcome.exception(), TerminalStateError)
    return state.outcome.result() is False


def _log_attempt(description: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        reason = state.outcome.exception() if state.outcome.failed else "not ready"
        logger.info(
            "%s: attempt %d/%d failed (%s), retrying in %ss",
            description, state.attempt_number, policy.max_attempts, reason, policy.delay_seconds,
        )
    return before_sleep


def retry_call(
    policy: RetryPolicy,
    operation: Callable[[], T],
    *,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Invoke *operation* until it succeeds or the policy is exhausted.

    An attempt fails when the operation raises or returns ``False``. Exactly
    ``k - 1`` sleeps happen for ``k`` attempts; none after a success.
    :class:`TerminalStateError` propagates immediately without further attempts.

    Args:
        policy: Attempt budget and delay.
        operation: Zero-argument callable.
        description: Human-readable name used in logs and errors.
        sleep: Sleep function, injectable for tests.

    Returns:
        The first successful result.

    Raises:
        RetryExhaustedError: After the last failed attempt, chained from its error.
        TerminalStateError: As soon as the operation raises it.
    """
    started = time.monotonic()
    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.delay_seconds),
        retry=_should_retry,
        before_sleep=_log_attempt(description, policy),
        sleep=sleep,
    )
    try:
        return retrying(operation)
    except RetryError as err:
        last = err.last_attempt
        cause = last.exception() if last.failed else None
        raise RetryExhaustedError(
            description, last.attempt_number, time.monotonic() - started,
        ) from cause
