"""
Booking records per session and user.

The ledger only reads and stages writes on the caller's DB session; the
admission engine owns locking and the commit/rollback boundary.
"""

from datetime import date
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models import Booking, BookingStatus, GymSession


class BookingLedger:
    def __init__(self, db: Session):
        self.db = db

    # -- lookups --

    def get(self, booking_id: int, for_update: bool = False) -> Booking | None:
        q = self.db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            # re-read current status even if the row is already in the identity map
            q = q.with_for_update().populate_existing()
        return q.one_or_none()

    def find(self, user_id: int, session_id: int) -> Booking | None:
        return (
            self.db.query(Booking)
            .filter(Booking.user_id == user_id, Booking.gym_session_id == session_id)
            .first()
        )

    def user_bookings_on(self, user_id: int, day: date, exclude_session_id: int | None = None) -> list[Booking]:
        """The user's live bookings for sessions held on `day`."""
        q = (
            self.db.query(Booking)
            .join(GymSession, Booking.gym_session_id == GymSession.id)
            .options(joinedload(Booking.gym_session))
            .filter(Booking.user_id == user_id, GymSession.date == day)
        )
        if exclude_session_id is not None:
            q = q.filter(Booking.gym_session_id != exclude_session_id)
        return q.all()

    def earliest_queued(self, session_id: int) -> Booking | None:
        return (
            self.db.query(Booking)
            .filter(Booking.gym_session_id == session_id, Booking.status == BookingStatus.QUEUED)
            .order_by(Booking.created_at.asc(), Booking.id.asc())
            .with_for_update()
            .first()
        )

    # -- counts --

    def status_counts(self, session_id: int) -> dict:
        rows = (
            self.db.query(Booking.status, func.count(Booking.id))
            .filter(Booking.gym_session_id == session_id)
            .group_by(Booking.status)
            .all()
        )
        counts = {status: 0 for status in BookingStatus.STORED}
        counts.update({status: n for status, n in rows})
        return counts

    def occupancy(self, session_id: int, exclude_booking_id: int | None = None) -> int:
        """Bookings holding a spot: confirmed + pending."""
        q = self.db.query(func.count(Booking.id)).filter(
            Booking.gym_session_id == session_id,
            Booking.status.in_(BookingStatus.OCCUPYING),
        )
        if exclude_booking_id is not None:
            q = q.filter(Booking.id != exclude_booking_id)
        return q.scalar() or 0

    def confirmed_in_week(self, user_id: int, week_start: date, week_end: date) -> int:
        # only confirmed bookings count toward the weekly limit
        return (
            self.db.query(func.count(Booking.id))
            .join(GymSession, Booking.gym_session_id == GymSession.id)
            .filter(
                Booking.user_id == user_id,
                Booking.status == BookingStatus.CONFIRMED,
                GymSession.date >= week_start,
                GymSession.date <= week_end,
            )
            .scalar()
            or 0
        )

    def dashboard_counts(self) -> dict:
        rows = self.db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
        by_status = dict(rows)
        return {
            "total_bookings": sum(by_status.values()),
            "confirmed_bookings": by_status.get(BookingStatus.CONFIRMED, 0),
            "pending_bookings": by_status.get(BookingStatus.PENDING, 0),
            "queued_bookings": by_status.get(BookingStatus.QUEUED, 0),
            "total_sessions": self.db.query(func.count(GymSession.id)).scalar() or 0,
        }

    # -- listings --

    def bookings_for_user(self, user_id: int) -> list[Booking]:
        return (
            self.db.query(Booking)
            .options(joinedload(Booking.gym_session))
            .filter(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    def all_bookings(self, status: str | None = None) -> list[Booking]:
        q = self.db.query(Booking).options(joinedload(Booking.gym_session), joinedload(Booking.user))
        if status:
            q = q.filter(Booking.status == status)
        return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    # -- staged writes --

    def add(self, user_id: int, session_id: int, status: str) -> Booking:
        booking = Booking(user_id=user_id, gym_session_id=session_id, status=status)
        self.db.add(booking)
        self.db.flush()
        return booking

    def set_status(self, booking: Booking, status: str) -> Booking:
        booking.status = status
        self.db.flush()
        return booking

    def remove(self, booking: Booking):
        # cancelled bookings are deleted, not kept with a terminal status
        self.db.delete(booking)
        self.db.flush()


def booking_to_dict(booking: Booking, include_user: bool = False) -> dict:
    s = booking.gym_session
    data = {
        "id": booking.id,
        "status": booking.status,
        "user_id": booking.user_id,
        "gym_session": {
            "id": s.id,
            "name": s.name,
            "date": s.date,
            "start_time": s.start_time,
            "end_time": s.end_time,
            "capacity": s.capacity,
            "image": s.image,
        } if s is not None else None,
        "created_at": booking.created_at,
    }
    if include_user and booking.user is not None:
        data["user"] = {"id": booking.user.id, "name": booking.user.name, "email": booking.user.email}
    return data
