from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class BackoffDecision:
    retry: bool
    delay_seconds: float


class RetryPolicy(ABC):
    @abstractmethod
    def after_failure(self, attempt: int) -> BackoffDecision:
        """Decision after the given 1-based attempt failed."""


class ExponentialBackoff(RetryPolicy):
    """base, 2*base, 4*base ... until ``max_attempts`` attempts have been made."""

    def __init__(self, *, base_seconds: float = 1.0, max_attempts: int = 5, max_delay_seconds: float | None = None) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.base_seconds = base_seconds
        self.max_attempts = max_attempts
        self.max_delay_seconds = max_delay_seconds

    def delay_for(self, attempt: int) -> float:
        delay = self.base_seconds * (2 ** max(0, attempt - 1))
        if self.max_delay_seconds is not None:
            delay = min(delay, self.max_delay_seconds)
        return float(delay)

    def after_failure(self, attempt: int) -> BackoffDecision:
        if attempt >= self.max_attempts:
            return BackoffDecision(retry=False, delay_seconds=0.0)
        return BackoffDecision(retry=True, delay_seconds=self.delay_for(attempt))
