from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from restaurant_api.core.timeutils import utcnow
from restaurant_api.models.password_reset import PasswordResetAttempt


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimitExceeded(Exception):
    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__("Too many requests")
        self.decision = decision


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, identifier: str) -> RateLimitDecision:
        """Decide whether another request for ``identifier`` may proceed."""

    @abstractmethod
    def record(self, identifier: str) -> None:
        """Count one request for ``identifier``."""


class DatabaseRateLimiterService(RateLimiterService):
    """Sliding-window limiter whose counters live in ``password_reset_attempts``.

    Every instance of the API sees the same counts.
    """

    def __init__(self, db: Session, *, limit: int, window_seconds: int) -> None:
        self.db = db
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)

    def _cutoff(self, now: datetime) -> datetime:
        return now - self.window

    def check(self, identifier: str, *, now: Optional[datetime] = None) -> RateLimitDecision:
        now = now or utcnow()
        cutoff = self._cutoff(now)
        count, oldest = (
            self.db.query(func.count(PasswordResetAttempt.id), func.min(PasswordResetAttempt.requested_at))
            .filter(PasswordResetAttempt.identifier == identifier, PasswordResetAttempt.requested_at > cutoff)
            .one()
        )
        count = int(count or 0)
        if count >= self.limit:
            retry_after = max(1, int((oldest + self.window - now).total_seconds())) if oldest else 1
            return RateLimitDecision(allowed=False, limit=self.limit, remaining=0, retry_after_seconds=retry_after)
        return RateLimitDecision(
            allowed=True,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            retry_after_seconds=0,
        )

    def record(self, identifier: str, *, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.db.query(PasswordResetAttempt).filter(
            PasswordResetAttempt.identifier == identifier,
            PasswordResetAttempt.requested_at <= self._cutoff(now),
        ).delete(synchronize_session=False)
        self.db.add(PasswordResetAttempt(identifier=identifier, requested_at=now))
