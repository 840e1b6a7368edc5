"""
Membership tiers: weekly quota, queue privilege and subscription state.
"""

import logging
from datetime import date, datetime, timedelta

from app.clock import Clock
from app.config import config
from app.models import MembershipLevel, User

logger = logging.getLogger(__name__)

PRIVILEGED_PRIORITY = 1


def week_bounds(day: date, week_start_day: int | None = None) -> tuple[date, date]:
    """First and last calendar day of the week containing `day`."""
    if week_start_day is None:
        week_start_day = config.WEEK_START_DAY
    start = day - timedelta(days=(day.weekday() - week_start_day) % 7)
    return start, start + timedelta(days=6)


class MembershipPolicy:
    """Booking privileges of one member, resolved from their level and subscription."""

    def __init__(self, level: MembershipLevel | None, subscription_expires_at: datetime | None, clock: Clock):
        self.level = level
        self.subscription_expires_at = subscription_expires_at
        self.clock = clock

    @classmethod
    def for_user(cls, user: User, clock: Clock) -> "MembershipPolicy":
        return cls(user.membership_level, user.subscription_expires_at, clock)

    @property
    def has_level(self) -> bool:
        return self.level is not None

    def weekly_limit(self) -> int | None:
        return self.level.weekly_limit if self.level else None

    def is_unlimited(self) -> bool:
        return self.weekly_limit() is None

    def is_privileged(self) -> bool:
        return self.level is not None and self.level.priority == PRIVILEGED_PRIORITY

    def is_subscription_active(self) -> bool:
        if self.subscription_expires_at is None:
            return True
        return self.subscription_expires_at > self.clock.now()

    def days_until_expiry(self) -> int | None:
        if self.subscription_expires_at is None:
            return None
        remaining = self.subscription_expires_at - self.clock.now()
        if remaining <= timedelta(0):
            return 0
        return remaining.days

    def is_expiring_soon(self) -> bool:
        days = self.days_until_expiry()
        return days is not None and 0 < days <= config.EXPIRY_WARNING_DAYS

    def summary(self) -> dict:
        return {
            "level": self.level.name if self.level else None,
            "weekly_limit": self.weekly_limit(),
            "privileged": self.is_privileged(),
            "subscription_status": "active" if self.is_subscription_active() else "expired",
            "subscription_expires_at": self.subscription_expires_at,
            "days_until_expiry": self.days_until_expiry(),
            "expiring_soon": self.is_expiring_soon(),
        }


def assign_membership(user: User, level: MembershipLevel | None, clock: Clock, expires_at: datetime | None = None):
    """
    Move a member to `level`.

    Without an explicit expiry the subscription runs for the level's
    default_duration_days from now; levels without a duration never expire.
    The caller commits.
    """
    user.membership_level = level
    if expires_at is not None:
        user.subscription_expires_at = expires_at
    elif level is not None and level.default_duration_days:
        user.subscription_expires_at = clock.now() + timedelta(days=level.default_duration_days)
    else:
        user.subscription_expires_at = None
    logger.info(
        "User %s assigned membership %s (expires %s)",
        user.id, level.name if level else None, user.subscription_expires_at,
    )
    return user
