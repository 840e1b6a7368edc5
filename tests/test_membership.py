from datetime import date, datetime, timedelta

from app.clock import FrozenClock
from app.membership import MembershipPolicy, assign_membership, week_bounds
from app.models import MembershipLevel

from conftest import NOW


def test_week_bounds_is_monday_to_sunday():
    assert week_bounds(date(2025, 6, 4)) == (date(2025, 6, 2), date(2025, 6, 8))
    assert week_bounds(date(2025, 6, 2)) == (date(2025, 6, 2), date(2025, 6, 8))
    assert week_bounds(date(2025, 6, 8)) == (date(2025, 6, 2), date(2025, 6, 8))


def test_week_bounds_with_sunday_start():
    assert week_bounds(date(2025, 6, 4), week_start_day=6) == (date(2025, 6, 1), date(2025, 6, 7))


def test_limits_and_privilege():
    clock = FrozenClock(NOW)
    basic = MembershipPolicy(MembershipLevel(name="Basic", weekly_limit=3, priority=0), None, clock)
    platinum = MembershipPolicy(MembershipLevel(name="Platinum", weekly_limit=None, priority=1), None, clock)

    assert basic.weekly_limit() == 3
    assert not basic.is_unlimited()
    assert not basic.is_privileged()
    assert platinum.is_unlimited()
    assert platinum.is_privileged()


def test_no_level():
    policy = MembershipPolicy(None, None, FrozenClock(NOW))
    assert not policy.has_level
    assert not policy.is_privileged()


def test_subscription_state():
    clock = FrozenClock(NOW)
    level = MembershipLevel(name="Basic", weekly_limit=3, priority=0)

    assert MembershipPolicy(level, None, clock).is_subscription_active()
    assert MembershipPolicy(level, None, clock).days_until_expiry() is None

    expired = MembershipPolicy(level, NOW - timedelta(minutes=1), clock)
    assert not expired.is_subscription_active()
    assert expired.days_until_expiry() == 0
    assert not expired.is_expiring_soon()

    soon = MembershipPolicy(level, NOW + timedelta(days=3, hours=5), clock)
    assert soon.is_subscription_active()
    assert soon.days_until_expiry() == 3
    assert soon.is_expiring_soon()

    later = MembershipPolicy(level, NOW + timedelta(days=30), clock)
    assert not later.is_expiring_soon()


def test_assign_membership_uses_default_duration(test_db_session, make_level, make_user, clock):
    monthly = make_level(name="Monthly", weekly_limit=3, default_duration_days=30)
    user = make_user()

    assign_membership(user, monthly, clock)
    test_db_session.commit()

    assert user.membership_level_id == monthly.id
    assert user.subscription_expires_at == NOW + timedelta(days=30)


def test_assign_membership_explicit_expiry_and_no_duration(test_db_session, make_level, make_user, clock):
    free = make_level(name="Free", weekly_limit=1)
    user = make_user(expires_at=NOW + timedelta(days=5))

    assign_membership(user, free, clock)
    assert user.subscription_expires_at is None

    expiry = datetime(2025, 12, 31, 23, 59)
    assign_membership(user, free, clock, expires_at=expiry)
    assert user.subscription_expires_at == expiry
