from datetime import datetime
from typing import Literal
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.admission import AdmissionEngine
from app.auth import Actor, get_current_actor
from app.clock import Clock, get_clock
from app.db import get_db
from app.deps import get_engine
from app.errors import BookingRejected, RejectionReason
from app.ledger import booking_to_dict
from app.membership import MembershipPolicy, assign_membership
from app.models import MembershipLevel, User

router = APIRouter()

StoredStatus = Literal["pending", "confirmed", "queued"]


class AdminCreateBookingBody(BaseModel):
    user_id: int
    gym_session_id: int
    status: StoredStatus | None = None


class UpdateBookingBody(BaseModel):
    status: Literal["pending", "confirmed", "queued", "cancelled"]


class MembershipBody(BaseModel):
    membership_level_id: int | None = None
    subscription_expires_at: datetime | None = None


def _managed_user(db: Session, actor: Actor, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise BookingRejected(RejectionReason.USER_NOT_FOUND, "User not found")
    actor.require(actor.can_manage_users(user.role), f"manage {user.role} accounts")
    return user


@router.get("/bookings")
def list_bookings(
    status: StoredStatus | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    engine: AdmissionEngine = Depends(get_engine),
):
    actor.require(actor.can_manage_bookings, "list all bookings")
    bookings = engine.ledger.all_bookings(status)
    return {"success": True, "data": [booking_to_dict(b, include_user=True) for b in bookings]}


@router.post("/bookings", status_code=201)
def create_booking(
    body: AdminCreateBookingBody,
    actor: Actor = Depends(get_current_actor),
    engine: AdmissionEngine = Depends(get_engine),
):
    outcome = engine.admin_create_booking(actor, body.user_id, body.gym_session_id, body.status)
    return {
        "success": True,
        "message": "Booking created successfully",
        "data": {"booking_id": outcome.booking_id, "status": outcome.status, "gym_session_id": outcome.session_id},
    }


@router.patch("/bookings/{booking_id}")
def update_booking(
    booking_id: int,
    body: UpdateBookingBody,
    actor: Actor = Depends(get_current_actor),
    engine: AdmissionEngine = Depends(get_engine),
):
    outcome = engine.set_booking_status(actor, booking_id, body.status)
    return {
        "success": True,
        "message": "Booking updated successfully",
        "data": {"booking_id": outcome.booking_id, "status": outcome.status},
    }


@router.delete("/bookings/{booking_id}")
def delete_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: AdmissionEngine = Depends(get_engine),
):
    actor.require(actor.can_manage_bookings, "delete bookings")
    outcome = engine.cancel_booking(actor, booking_id)
    return {
        "success": True,
        "message": "Booking deleted successfully",
        "data": {"booking_id": outcome.booking_id, "promoted_booking_id": outcome.promoted_booking_id},
    }


@router.get("/users/{user_id}/membership")
def get_membership(
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    user = _managed_user(db, actor, user_id)
    return {"success": True, "data": MembershipPolicy.for_user(user, clock).summary()}


@router.put("/users/{user_id}/membership")
def update_membership(
    user_id: int,
    body: MembershipBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Change a member's level and/or subscription expiry.
    Without an expiry, one is derived from the level's default_duration_days.
    """
    user = _managed_user(db, actor, user_id)
    level = None
    if body.membership_level_id is not None:
        level = db.get(MembershipLevel, body.membership_level_id)
        if level is None:
            raise BookingRejected(RejectionReason.LEVEL_NOT_FOUND, "Membership level not found")
    assign_membership(user, level, clock, expires_at=body.subscription_expires_at)
    db.commit()
    return {
        "success": True,
        "message": "Subscription updated successfully",
        "data": MembershipPolicy.for_user(user, clock).summary(),
    }


@router.get("/stats")
def dashboard_stats(actor: Actor = Depends(get_current_actor), engine: AdmissionEngine = Depends(get_engine)):
    actor.require(actor.can_manage_bookings, "view booking statistics")
    return {"success": True, "data": engine.ledger.dashboard_counts()}
