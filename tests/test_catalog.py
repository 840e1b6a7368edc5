from datetime import date, time
from types import SimpleNamespace

import pytest

from app.catalog import overlaps
from app.errors import BookingRejected, RejectionReason, SessionValidationError
from app.models import Booking, GymSession


def window(day, start, end):
    return SimpleNamespace(date=date.fromisoformat(day), start_time=time.fromisoformat(start), end_time=time.fromisoformat(end))


def test_overlapping_windows():
    assert overlaps(window("2025-06-01", "09:00", "10:00"), window("2025-06-01", "09:30", "10:30"))
    assert overlaps(window("2025-06-01", "09:00", "12:00"), window("2025-06-01", "10:00", "11:00"))


def test_touching_windows_do_not_overlap():
    assert not overlaps(window("2025-06-01", "09:00", "10:00"), window("2025-06-01", "10:00", "11:00"))
    assert not overlaps(window("2025-06-01", "10:00", "11:00"), window("2025-06-01", "09:00", "10:00"))


def test_different_days_never_overlap():
    assert not overlaps(window("2025-06-01", "09:00", "10:00"), window("2025-06-02", "09:00", "10:00"))


def test_list_sessions_ordered_with_confirmed_only_availability(catalog, engine, staff, make_level, make_user, make_session):
    level = make_level()
    late = make_session(name="Late", day="2025-06-04", start="18:00", end="19:00", capacity=2)
    early = make_session(name="Early", day="2025-06-04", start="07:00", end="08:00", capacity=2)
    first = make_session(name="First", day="2025-06-03", start="20:00", end="21:00", capacity=2)

    engine.admin_create_booking(staff, make_user(level).id, late.id, "confirmed")
    engine.admin_create_booking(staff, make_user(level).id, late.id, "pending")

    sessions = catalog.list_sessions()
    assert [s["id"] for s in sessions] == [first.id, early.id, late.id]

    late_view = sessions[2]
    # pending bookings hold a spot for admission but do not show as taken here
    assert late_view["confirmed_count"] == 1
    assert late_view["available_spots"] == 1
    assert late_view["is_full"] is False
    assert late_view["pending_count"] == 1
    assert late_view["occupancy"] == 2
    assert engine.list_occupancy(late.id)["available"] == 0


def test_list_sessions_filters(catalog, clock, make_session):
    make_session(name="Gone", day="2025-06-02", start="07:00", end="07:45")
    today_later = make_session(name="Later", day="2025-06-02", start="12:00", end="13:00")
    tomorrow = make_session(name="Tomorrow", day="2025-06-03", start="07:00", end="08:00")

    assert {s["id"] for s in catalog.list_sessions(future_only=True)} == {today_later.id, tomorrow.id}
    assert [s["id"] for s in catalog.list_sessions(on_date=date(2025, 6, 3))] == [tomorrow.id]


def test_get_session_not_found(catalog):
    with pytest.raises(BookingRejected) as exc:
        catalog.get_session(999)
    assert exc.value.reason == RejectionReason.SESSION_NOT_FOUND


def session_data(**overrides):
    data = {
        "name": "Boxing",
        "date": date(2025, 6, 5),
        "start_time": time(9, 0),
        "end_time": time(10, 0),
        "capacity": 8,
        "image": None,
    }
    data.update(overrides)
    return data


def test_create_session(catalog):
    created = catalog.create_session(session_data())
    assert created["id"] is not None
    assert created["available_spots"] == 8


def test_create_rejects_end_before_start(catalog):
    with pytest.raises(SessionValidationError) as exc:
        catalog.create_session(session_data(start_time=time(10, 0), end_time=time(10, 0)))
    assert "end_time" in exc.value.errors


def test_create_rejects_past(catalog):
    with pytest.raises(SessionValidationError) as exc:
        catalog.create_session(session_data(date=date(2025, 6, 2), start_time=time(7, 0), end_time=time(7, 30)))
    assert "date" in exc.value.errors


def test_create_rejects_same_name_overlap(catalog):
    catalog.create_session(session_data())

    with pytest.raises(SessionValidationError) as exc:
        catalog.create_session(session_data(start_time=time(9, 30), end_time=time(10, 30)))
    assert "name" in exc.value.errors

    # back to back, or a different name, is fine
    catalog.create_session(session_data(start_time=time(10, 0), end_time=time(11, 0)))
    catalog.create_session(session_data(name="Pilates", start_time=time(9, 30), end_time=time(10, 30)))


def test_update_cannot_drop_capacity_below_occupancy(catalog, engine, staff, make_level, make_user, make_session):
    level = make_level()
    s = make_session(capacity=2)
    engine.admin_create_booking(staff, make_user(level).id, s.id, "confirmed")
    engine.admin_create_booking(staff, make_user(level).id, s.id, "pending")
    engine.admin_create_booking(staff, make_user(level).id, s.id, "queued")

    with pytest.raises(SessionValidationError) as exc:
        catalog.update_session(s.id, {"capacity": 1})
    assert "capacity" in exc.value.errors

    updated = catalog.update_session(s.id, {"capacity": 2, "name": "Spin Plus"})
    assert updated["capacity"] == 2
    assert updated["occupancy"] == 2


def test_update_rejects_null_required_fields(catalog, make_session, test_db_session):
    s = make_session(name="Boxing", day="2025-06-05")

    with pytest.raises(SessionValidationError) as exc:
        catalog.update_session(s.id, {"start_time": None, "name": None})
    assert set(exc.value.errors) == {"start_time", "name"}

    test_db_session.expire_all()
    assert test_db_session.get(GymSession, s.id).name == "Boxing"


def test_update_can_clear_image(catalog, make_session):
    s = make_session()
    catalog.update_session(s.id, {"image": "spin.jpg"})
    assert catalog.update_session(s.id, {"image": None})["image"] is None


def test_update_does_not_conflict_with_itself(catalog, make_session):
    s = make_session(name="Boxing", day="2025-06-05")
    updated = catalog.update_session(s.id, {"end_time": time(10, 30)})
    assert updated["end_time"] == time(10, 30)


def test_delete_refused_while_bookings_exist(catalog, engine, staff, make_level, make_user, make_session, test_db_session):
    level = make_level()
    s = make_session(capacity=1)
    engine.admin_create_booking(staff, make_user(level).id, s.id, "confirmed")
    engine.admin_create_booking(staff, make_user(level).id, s.id, "queued")

    with pytest.raises(BookingRejected) as exc:
        catalog.delete_session(s.id)
    assert exc.value.reason == RejectionReason.SESSION_HAS_BOOKINGS
    assert exc.value.details["bookings_count"] == 2
    assert exc.value.details["queued_count"] == 1

    result = catalog.delete_session(s.id, force=True)
    assert result["deleted_bookings"] == 2
    assert test_db_session.get(GymSession, s.id) is None
    assert test_db_session.query(Booking).count() == 0
