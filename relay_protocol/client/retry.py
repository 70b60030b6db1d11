"""Bounded reconnect policy for the initial connection"""

from typing import Optional


class ReconnectPolicy:
    """Linear-backoff retry state machine

    Attempt ``n`` (1-based) that fails is followed by a delay of
    ``n * base_delay`` seconds, as long as fewer than ``max_attempts``
    attempts have failed. After that the policy is exhausted.
    """

    def __init__(self, max_attempts: int = 5, base_delay: float = 0.05):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0:
            raise ValueError("base_delay must not be negative")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.attempts = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def record_failure(self) -> Optional[float]:
        """Count a failed attempt

        Returns:
            seconds to wait before the next attempt, or None when no attempt
            is left
        """
        self.attempts += 1
        if self.exhausted:
            return None
        return self.attempts * self.base_delay

    def reset(self) -> None:
        self.attempts = 0

    def __repr__(self) -> str:
        return (
            f"<ReconnectPolicy {self.attempts}/{self.max_attempts} "
            f"base={self.base_delay}s>"
        )
