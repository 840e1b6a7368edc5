"""
Gym session catalog: listing with live availability, overlap detection and
the create/update/delete invariants.
"""

import logging
from datetime import date, datetime

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from app.clock import Clock
from app.errors import BookingRejected, RejectionReason, SessionValidationError
from app.ledger import BookingLedger
from app.models import Booking, BookingStatus, GymSession
from app.transactions import atomic, surfaces_ledger_errors

logger = logging.getLogger(__name__)

SESSION_FIELDS = ("name", "date", "start_time", "end_time", "capacity", "image")
REQUIRED_FIELDS = ("name", "date", "start_time", "end_time", "capacity")


def overlaps(a, b) -> bool:
    """Same calendar day and the [start, end) windows intersect; touching ends do not count."""
    if a.date != b.date:
        return False
    return a.start_time < b.end_time and a.end_time > b.start_time


def session_to_dict(gym_session: GymSession, confirmed_count: int, pending_count: int = 0) -> dict:
    # display availability counts confirmed bookings only; occupancy is the admission view
    return {
        "id": gym_session.id,
        "name": gym_session.name,
        "date": gym_session.date,
        "start_time": gym_session.start_time,
        "end_time": gym_session.end_time,
        "capacity": gym_session.capacity,
        "image": gym_session.image,
        "confirmed_count": confirmed_count,
        "available_spots": max(0, gym_session.capacity - confirmed_count),
        "is_full": confirmed_count >= gym_session.capacity,
        "pending_count": pending_count,
        "occupancy": confirmed_count + pending_count,
        "created_at": gym_session.created_at,
    }


class SessionCatalog:
    def __init__(self, db: Session, clock: Clock, locks=None):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.ledger = BookingLedger(db)

    def _count(self, status: str):
        return (
            select(func.count(Booking.id))
            .where(Booking.gym_session_id == GymSession.id, Booking.status == status)
            .correlate(GymSession)
            .scalar_subquery()
        )

    def _annotated(self):
        return select(
            GymSession,
            self._count(BookingStatus.CONFIRMED).label("confirmed_count"),
            self._count(BookingStatus.PENDING).label("pending_count"),
        )

    @surfaces_ledger_errors
    def list_sessions(self, on_date: date | None = None, future_only: bool = False) -> list[dict]:
        """
        Sessions ordered by date then start time, each with:
          - confirmed_count: confirmed bookings
          - available_spots: capacity - confirmed_count, never below 0
          - is_full: confirmed_count >= capacity
          - pending_count / occupancy: pending, and confirmed + pending
        """
        stmt = self._annotated()
        if on_date is not None:
            stmt = stmt.where(GymSession.date == on_date)
        if future_only:
            now = self.clock.now()
            stmt = stmt.where(or_(
                GymSession.date > now.date(),
                and_(GymSession.date == now.date(), GymSession.start_time > now.time()),
            ))
        stmt = stmt.order_by(GymSession.date.asc(), GymSession.start_time.asc())
        rows = self.db.execute(stmt).all()
        return [session_to_dict(s, confirmed or 0, pending or 0) for s, confirmed, pending in rows]

    @surfaces_ledger_errors
    def get_session(self, session_id: int) -> dict:
        row = self.db.execute(self._annotated().where(GymSession.id == session_id)).first()
        if row is None:
            raise BookingRejected(RejectionReason.SESSION_NOT_FOUND, "Session not found")
        return session_to_dict(row[0], row[1] or 0, row[2] or 0)

    def _find(self, session_id: int, for_update: bool = False) -> GymSession:
        q = self.db.query(GymSession).filter(GymSession.id == session_id)
        if for_update:
            q = q.with_for_update().populate_existing()
        gym_session = q.one_or_none()
        if gym_session is None:
            raise BookingRejected(RejectionReason.SESSION_NOT_FOUND, "Session not found")
        return gym_session

    def validate(self, data: dict, existing: GymSession | None = None) -> dict:
        """
        Check the merged session data; raises SessionValidationError with one
        message per offending field.
        """
        errors = {
            field: f"The {field.replace('_', ' ')} field is required."
            for field in REQUIRED_FIELDS
            if data.get(field) is None
        }
        if errors:
            raise SessionValidationError(errors)

        candidate = GymSession(**{k: data.get(k) for k in SESSION_FIELDS})

        if candidate.end_time <= candidate.start_time:
            errors["end_time"] = "The end time must be after the start time."

        if datetime.combine(candidate.date, candidate.start_time) < self.clock.now():
            errors["date"] = "Cannot schedule a session with a past date and time."

        if candidate.capacity is None or candidate.capacity < 1:
            errors["capacity"] = "Capacity must be a positive integer."
        elif existing is not None:
            taken = self.ledger.occupancy(existing.id)
            if candidate.capacity < taken:
                errors["capacity"] = (
                    f"Capacity cannot be lower than the {taken} confirmed and pending bookings."
                )

        same_name = self.db.query(GymSession).filter(
            GymSession.name == candidate.name, GymSession.date == candidate.date
        )
        if existing is not None:
            same_name = same_name.filter(GymSession.id != existing.id)
        if "end_time" not in errors and any(overlaps(candidate, other) for other in same_name):
            errors["name"] = "A session with this name and date already exists at an overlapping time."

        if errors:
            raise SessionValidationError(errors)
        return data

    @surfaces_ledger_errors
    def create_session(self, data: dict) -> dict:
        self.validate(data)
        gym_session = GymSession(**{k: data.get(k) for k in SESSION_FIELDS})
        self.db.add(gym_session)
        self.db.commit()
        logger.info("Session %s created: %s on %s", gym_session.id, gym_session.name, gym_session.date)
        return session_to_dict(gym_session, 0)

    @surfaces_ledger_errors
    def update_session(self, session_id: int, changes: dict) -> dict:
        with atomic(self.db, session_id, self.locks):
            gym_session = self._find(session_id, for_update=True)
            merged = {k: getattr(gym_session, k) for k in SESSION_FIELDS}
            merged.update({k: v for k, v in changes.items() if k in SESSION_FIELDS})
            self.validate(merged, existing=gym_session)
            for field, value in merged.items():
                setattr(gym_session, field, value)
        logger.info("Session %s updated: %s", session_id, sorted(changes))
        return self.get_session(session_id)

    @surfaces_ledger_errors
    def delete_session(self, session_id: int, force: bool = False) -> dict:
        """
        Delete a session. While bookings exist this is refused unless `force`,
        in which case its bookings go with it.
        """
        with atomic(self.db, session_id, self.locks):
            gym_session = self._find(session_id, for_update=True)
            counts = self.ledger.status_counts(session_id)
            total = sum(counts.values())
            if total and not force:
                details = ", ".join(f"{n} {status}" for status, n in counts.items() if n)
                raise BookingRejected(
                    RejectionReason.SESSION_HAS_BOOKINGS,
                    f"Cannot delete session. It has {total} booking(s) ({details}). "
                    "Please cancel or delete all bookings first.",
                    bookings_count=total,
                    **{f"{status}_count": n for status, n in counts.items()},
                )
            self.db.delete(gym_session)
        logger.info("Session %s deleted (%s bookings removed)", session_id, total)
        return {"id": session_id, "deleted_bookings": total}
