import logging

import pytest
from sqlalchemy.exc import OperationalError

from app.errors import LedgerUnavailable
from app.ledger import BookingLedger
from app.models import Booking

from conftest import headers


def disk_error(*args, **kwargs):
    raise OperationalError("INSERT INTO bookings", {}, Exception("disk I/O error"))


@pytest.fixture
def broken_insert(monkeypatch):
    def add(self, user_id, session_id, status):
        # the row reaches the transaction before storage gives out
        self.db.add(Booking(user_id=user_id, gym_session_id=session_id, status=status))
        self.db.flush()
        disk_error()

    monkeypatch.setattr(BookingLedger, "add", add)


def test_failed_insert_leaves_no_booking(engine, broken_insert, make_level, make_user, make_session, test_db_session, caplog):
    user = make_user(make_level())
    s = make_session()

    with caplog.at_level(logging.ERROR, logger="app.transactions"):
        with pytest.raises(LedgerUnavailable):
            engine.request_booking(user.id, s.id)

    assert "Ledger write failed" in caplog.text
    assert test_db_session.query(Booking).count() == 0
    assert engine.list_occupancy(s.id)["occupancy"] == 0


def test_failed_insert_over_http(client, broken_insert, make_level, make_user, make_session, test_db_session):
    user = make_user(make_level())
    s = make_session()

    r = client.post("/bookings", json={"gym_session_id": s.id}, headers=headers(user))
    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Internal error"}
    assert test_db_session.query(Booking).count() == 0


def test_failed_cancellation_keeps_booking(engine, staff, monkeypatch, make_level, make_user, make_session, test_db_session):
    s = make_session()
    booking = engine.admin_create_booking(staff, make_user(make_level()).id, s.id)
    monkeypatch.setattr(BookingLedger, "remove", disk_error)

    with pytest.raises(LedgerUnavailable):
        engine.cancel_booking(staff, booking.booking_id)

    assert test_db_session.get(Booking, booking.booking_id).status == "confirmed"


def test_failed_read_is_reported(engine, monkeypatch, make_session):
    s = make_session()
    monkeypatch.setattr(BookingLedger, "status_counts", disk_error)

    with pytest.raises(LedgerUnavailable):
        engine.list_occupancy(s.id)
