"""
Booking admission.

Decides whether a booking may take a spot in a gym session:

  - member requests run every precondition, then admit as `pending` while
    confirmed + pending < capacity; when full, privileged members are `queued`
    and everyone else is rejected with SessionFull
  - staff/admin bookings skip the weekly-limit and overlap rules, default to
    `confirmed` and never fall back to the queue
    (an explicit `queued` booking is only taken while the session is full)
  - confirming an existing booking re-checks capacity without counting itself
  - removing a confirmed booking promotes the earliest queued one

The capacity decision for a session always runs inside `atomic()`, i.e. under
that session's lock, and is written in the same transaction.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.auth import Actor
from app.catalog import overlaps
from app.clock import Clock
from app.errors import BookingRejected, RejectionReason
from app.ledger import BookingLedger
from app.membership import MembershipPolicy, week_bounds
from app.models import Booking, BookingStatus, GymSession, User
from app.promotion import PromotionScheduler
from app.transactions import atomic, surfaces_ledger_errors

logger = logging.getLogger(__name__)

# status changes staff may apply; cancellation is handled as a removal
ALLOWED_TRANSITIONS = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED),
    (BookingStatus.QUEUED, BookingStatus.CONFIRMED),
}


@dataclass
class BookingOutcome:
    booking_id: int
    status: str
    session_id: int

    @property
    def queued(self) -> bool:
        return self.status == BookingStatus.QUEUED


@dataclass
class CancellationOutcome:
    booking_id: int
    removed_status: str
    session_id: int
    promoted_booking_id: int | None = None


class AdmissionEngine:
    def __init__(self, db: Session, clock: Clock, locks=None):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.ledger = BookingLedger(db)
        self.promotion = PromotionScheduler(self.ledger)

    # -- shared checks --

    def _session(self, session_id: int, for_update: bool = False) -> GymSession:
        q = self.db.query(GymSession).filter(GymSession.id == session_id)
        if for_update:
            q = q.with_for_update().populate_existing()
        gym_session = q.one_or_none()
        if gym_session is None:
            raise BookingRejected(RejectionReason.SESSION_NOT_FOUND, "Session not found")
        return gym_session

    def _user(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise BookingRejected(RejectionReason.USER_NOT_FOUND, "User not found")
        return user

    def _booking(self, booking_id: int) -> Booking:
        booking = self.ledger.get(booking_id)
        if booking is None:
            raise BookingRejected(RejectionReason.BOOKING_NOT_FOUND, "Booking not found")
        return booking

    def _ensure_not_past(self, gym_session: GymSession, message: str = "Cannot book a session that has already passed"):
        if gym_session.starts_at < self.clock.now():
            raise BookingRejected(RejectionReason.SESSION_IN_PAST, message)

    def _ensure_not_booked(self, user_id: int, session_id: int):
        if self.ledger.find(user_id, session_id) is not None:
            raise BookingRejected(RejectionReason.ALREADY_BOOKED, "This session is already booked for this user")

    def _has_room(self, gym_session: GymSession, exclude_booking_id: int | None = None) -> bool:
        return self.ledger.occupancy(gym_session.id, exclude_booking_id) < gym_session.capacity

    def _insert(self, user_id: int, session_id: int, status: str) -> Booking:
        try:
            return self.ledger.add(user_id, session_id, status)
        except IntegrityError:
            # lost a race against a concurrent request for the same (user, session)
            raise BookingRejected(RejectionReason.ALREADY_BOOKED, "This session is already booked for this user")

    # -- member entry point --

    @surfaces_ledger_errors
    def request_booking(self, user_id: int, session_id: int) -> BookingOutcome:
        gym_session = self._session(session_id)
        self._ensure_not_past(gym_session)

        user = self._user(user_id)
        policy = MembershipPolicy.for_user(user, self.clock)
        if not policy.has_level:
            raise BookingRejected(RejectionReason.NO_MEMBERSHIP, "You must have a membership level to book sessions")
        if not policy.is_subscription_active():
            raise BookingRejected(
                RejectionReason.SUBSCRIPTION_INACTIVE,
                "Your subscription has expired. Please renew your membership to book sessions.",
            )

        self._ensure_not_booked(user.id, gym_session.id)

        for other in self.ledger.user_bookings_on(user.id, gym_session.date, exclude_session_id=gym_session.id):
            if overlaps(gym_session, other.gym_session):
                raise BookingRejected(
                    RejectionReason.OVERLAPPING_BOOKING,
                    "You have an overlapping booking at this time",
                    booking_id=other.id,
                )

        if not policy.is_unlimited():
            week_start, week_end = week_bounds(gym_session.date)
            used = self.ledger.confirmed_in_week(user.id, week_start, week_end)
            limit = policy.weekly_limit()
            if used >= limit:
                raise BookingRejected(
                    RejectionReason.WEEKLY_LIMIT_REACHED,
                    f"You have reached your weekly booking limit ({limit} bookings per week)",
                    used=used,
                    limit=limit,
                )

        with atomic(self.db, gym_session.id, self.locks):
            locked = self._session(gym_session.id, for_update=True)
            if self._has_room(locked):
                status = BookingStatus.PENDING
            elif policy.is_privileged():
                status = BookingStatus.QUEUED
            else:
                logger.info("Booking rejected: session %s full for user %s", locked.id, user.id)
                raise BookingRejected(RejectionReason.SESSION_FULL, "This session is full")
            booking_id = self._insert(user.id, locked.id, status).id

        logger.info("Booking %s for user %s on session %s: %s", booking_id, user_id, session_id, status)
        return BookingOutcome(booking_id=booking_id, status=status, session_id=session_id)

    # -- staff / admin entry points --

    @surfaces_ledger_errors
    def admin_create_booking(self, actor: Actor, user_id: int, session_id: int,
                             status: str | None = None) -> BookingOutcome:
        actor.require(actor.can_manage_bookings, "create bookings for other users")
        status = status or BookingStatus.CONFIRMED
        if status not in BookingStatus.STORED:
            raise BookingRejected(RejectionReason.INVALID_TRANSITION, f"Cannot create a booking as '{status}'")

        user = self._user(user_id)
        gym_session = self._session(session_id)
        self._ensure_not_booked(user.id, gym_session.id)
        self._ensure_not_past(gym_session)

        with atomic(self.db, gym_session.id, self.locks):
            locked = self._session(gym_session.id, for_update=True)
            has_room = self._has_room(locked)
            if status in BookingStatus.OCCUPYING and not has_room:
                raise BookingRejected(RejectionReason.SESSION_FULL, "This session is full")
            if status == BookingStatus.QUEUED and has_room:
                # promotion only runs when a confirmed spot frees up
                raise BookingRejected(
                    RejectionReason.INVALID_TRANSITION,
                    "Cannot queue a booking while the session has free spots",
                )
            booking_id = self._insert(user.id, locked.id, status).id

        logger.info(
            "Booking %s created by %s %s for user %s on session %s: %s",
            booking_id, actor.role, actor.user_id, user_id, session_id, status,
        )
        return BookingOutcome(booking_id=booking_id, status=status, session_id=session_id)

    @surfaces_ledger_errors
    def set_booking_status(self, actor: Actor, booking_id: int, new_status: str) -> BookingOutcome:
        actor.require(actor.can_manage_bookings, "change booking status")
        if new_status == BookingStatus.CANCELLED:
            cancelled = self.cancel_booking(actor, booking_id)
            return BookingOutcome(booking_id=booking_id, status=BookingStatus.CANCELLED, session_id=cancelled.session_id)

        booking = self._booking(booking_id)
        session_id = booking.gym_session_id

        with atomic(self.db, session_id, self.locks):
            locked_session = self._session(session_id, for_update=True)
            booking = self.ledger.get(booking_id, for_update=True)
            if booking is None:
                raise BookingRejected(RejectionReason.BOOKING_NOT_FOUND, "Booking not found")
            current = booking.status
            if current != new_status:
                if (current, new_status) not in ALLOWED_TRANSITIONS:
                    raise BookingRejected(
                        RejectionReason.INVALID_TRANSITION,
                        f"Cannot change a {current} booking to {new_status}",
                    )
                if new_status == BookingStatus.CONFIRMED and not self._has_room(locked_session, booking.id):
                    raise BookingRejected(
                        RejectionReason.SESSION_FULL, "Cannot confirm booking. Session is already full."
                    )
                self.ledger.set_status(booking, new_status)

        if current != new_status:
            logger.info("Booking %s: %s -> %s by %s %s", booking_id, current, new_status, actor.role, actor.user_id)
        return BookingOutcome(booking_id=booking_id, status=new_status, session_id=session_id)

    # -- cancellation --

    @surfaces_ledger_errors
    def cancel_booking(self, actor: Actor, booking_id: int) -> CancellationOutcome:
        """
        Remove a booking. Members may only cancel their own bookings before
        the session starts; staff may cancel any booking at any time.
        """
        booking = self._booking(booking_id)
        session_id = booking.gym_session_id

        if not actor.can_manage_bookings:
            if booking.user_id != actor.user_id:
                raise BookingRejected(RejectionReason.BOOKING_NOT_FOUND, "Booking not found")
            self._ensure_not_past(
                booking.gym_session, "Cannot cancel a booking for a session that has already passed"
            )

        with atomic(self.db, session_id, self.locks):
            self._session(session_id, for_update=True)
            booking = self.ledger.get(booking_id, for_update=True)
            if booking is None:
                raise BookingRejected(RejectionReason.BOOKING_NOT_FOUND, "Booking not found")
            removed_status = booking.status
            self.ledger.remove(booking)
            promoted = self.promotion.on_removed(session_id, removed_status)
            promoted_id = promoted.id if promoted is not None else None

        logger.info(
            "Booking %s (%s) on session %s cancelled by %s %s",
            booking_id, removed_status, session_id, actor.role, actor.user_id,
        )
        return CancellationOutcome(
            booking_id=booking_id,
            removed_status=removed_status,
            session_id=session_id,
            promoted_booking_id=promoted_id,
        )

    # -- read side --

    @surfaces_ledger_errors
    def list_occupancy(self, session_id: int) -> dict:
        gym_session = self._session(session_id)
        counts = self.ledger.status_counts(session_id)
        occupancy = counts[BookingStatus.CONFIRMED] + counts[BookingStatus.PENDING]
        return {
            "session_id": session_id,
            "capacity": gym_session.capacity,
            "confirmed_count": counts[BookingStatus.CONFIRMED],
            "pending_count": counts[BookingStatus.PENDING],
            "queued_count": counts[BookingStatus.QUEUED],
            "occupancy": occupancy,
            "available": max(0, gym_session.capacity - occupancy),
        }
