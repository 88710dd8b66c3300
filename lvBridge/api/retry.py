"""
Bounded exponential-backoff retry with explicit outcomes
"""

import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    value: Any = None


@dataclass(frozen=True)
class Retryable:
    reason: BaseException


@dataclass(frozen=True)
class Fatal:
    reason: BaseException


Outcome = Union[Success, Retryable, Fatal]


def classify(error: BaseException) -> Outcome:
    """
    Decide whether a failure is worth another attempt

    Transport errors (connection failures, timeouts) and errors flagged
    ``retryable`` are Retryable; everything else is Fatal.
    """
    if getattr(error, 'retryable', False) or isinstance(error, requests.RequestException):
        return Retryable(error)
    return Fatal(error)


def attempt(fn: Callable[..., Any], *args, **kwargs) -> Outcome:
    """Run fn once and wrap its result or exception as an Outcome"""
    try:
        return Success(fn(*args, **kwargs))
    except Exception as e:
        return classify(e)


class RetryPolicy:
    """
    Re-run a unit of work until it succeeds, fails fatally, or runs out of attempts

    The delay before attempt n+1 is ``min_delay * backoff_factor ** (n - 1)``.
    """

    def __init__(self,
                 min_delay: float = 3.0,
                 max_attempts: int = 3,
                 backoff_factor: float = 1.5,
                 sleep: Callable[[float], None] = time.sleep,
                 name: str = 'retry'):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.min_delay = min_delay
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.sleep = sleep
        self.name = name

    def delay_for(self, attempt_number: int) -> float:
        return self.min_delay * self.backoff_factor ** (attempt_number - 1)

    def run(self, work: Callable[[int], Outcome]) -> Any:
        """
        Execute work(attempt_number) under this policy

        Args:
            work: Called with the 1-based attempt number; returns an Outcome

        Returns:
            The value of the first Success

        Raises:
            The reason of a Fatal outcome, or of the last Retryable outcome
            once all attempts are spent
        """
        last_reason = None
        for n in range(1, self.max_attempts + 1):
            outcome = work(n)

            if isinstance(outcome, Success):
                return outcome.value
            if isinstance(outcome, Fatal):
                raise outcome.reason
            if not isinstance(outcome, Retryable):
                raise TypeError(f"{self.name}: work returned {outcome!r}, expected an Outcome")

            last_reason = outcome.reason
            if n < self.max_attempts:
                delay = self.delay_for(n)
                logger.warning(f"{self.name}: attempt {n}/{self.max_attempts} failed ({last_reason}), "
                               f"retrying in {delay:.1f}s")
                self.sleep(delay)

        logger.debug(f"{self.name}: giving up after {self.max_attempts} attempts")
        raise last_reason

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run fn under this policy, classifying its exceptions with classify()"""
        return self.run(lambda n: attempt(fn, *args, **kwargs))
