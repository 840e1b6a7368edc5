from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.admission import AdmissionEngine
from app.auth import Actor, get_current_actor
from app.deps import get_engine
from app.ledger import booking_to_dict

router = APIRouter()

QUEUED_MESSAGE = "You have been added to the queue. You will be automatically confirmed if a spot becomes available."
PENDING_MESSAGE = "Booking created successfully. Waiting for admin confirmation."


class CreateBookingBody(BaseModel):
    gym_session_id: int


@router.post("", status_code=201)
def create_booking(
    body: CreateBookingBody,
    actor: Actor = Depends(get_current_actor),
    engine: AdmissionEngine = Depends(get_engine),
):
    """
    Book a session for the calling member.
      - pending: a spot is held, awaiting staff confirmation
      - queued: session full, member is privileged; promoted automatically when a confirmed spot frees up
    Every refusal comes back with a named `reason`.
    """
    outcome = engine.request_booking(actor.user_id, body.gym_session_id)
    return {
        "success": True,
        "message": QUEUED_MESSAGE if outcome.queued else PENDING_MESSAGE,
        "data": {"booking_id": outcome.booking_id, "status": outcome.status, "gym_session_id": outcome.session_id},
    }


@router.get("/mine")
def my_bookings(actor: Actor = Depends(get_current_actor), engine: AdmissionEngine = Depends(get_engine)):
    bookings = engine.ledger.bookings_for_user(actor.user_id)
    return {"success": True, "data": [booking_to_dict(b) for b in bookings if b.gym_session is not None]}


@router.delete("/{booking_id}")
def cancel_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: AdmissionEngine = Depends(get_engine),
):
    outcome = engine.cancel_booking(actor, booking_id)
    return {
        "success": True,
        "message": "Booking cancelled successfully",
        "data": {"booking_id": outcome.booking_id, "promoted_booking_id": outcome.promoted_booking_id},
    }
