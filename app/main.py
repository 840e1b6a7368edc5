import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import config
from app.db import init_db
from app.errors import BookingRejected, LedgerUnavailable, PermissionDenied, RejectionReason, SessionValidationError
from routers import admin, bookings, levels, sessions

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Gym Session Booking API", version="0.1.0")

app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
app.include_router(levels.router, prefix="/membership-levels", tags=["membership levels"])

REJECTION_STATUS = {
    RejectionReason.SESSION_NOT_FOUND: 404,
    RejectionReason.BOOKING_NOT_FOUND: 404,
    RejectionReason.USER_NOT_FOUND: 404,
    RejectionReason.LEVEL_NOT_FOUND: 404,
    RejectionReason.ALREADY_BOOKED: 409,
    RejectionReason.SESSION_FULL: 409,
    RejectionReason.SESSION_HAS_BOOKINGS: 409,
    RejectionReason.LEVEL_NAME_TAKEN: 409,
    RejectionReason.NO_MEMBERSHIP: 403,
    RejectionReason.SUBSCRIPTION_INACTIVE: 403,
}


@app.exception_handler(BookingRejected)
def booking_rejected_handler(request: Request, exc: BookingRejected):
    body = {"success": False, "reason": exc.reason.value, "message": exc.message}
    body.update(exc.details)
    return JSONResponse(status_code=REJECTION_STATUS.get(exc.reason, 400), content=body)


@app.exception_handler(SessionValidationError)
def session_validation_handler(request: Request, exc: SessionValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Validation failed", "errors": exc.errors},
    )


@app.exception_handler(PermissionDenied)
def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=403, content={"success": False, "message": str(exc)})


@app.exception_handler(LedgerUnavailable)
def ledger_unavailable_handler(request: Request, exc: LedgerUnavailable):
    # already logged with traceback where it was raised
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal error"})


@app.on_event("startup")
def on_startup():
    if config.SKIP_DB_INIT:
        return
    init_db()


@app.get("/")
def root():
    return {"ok": True, "service": "gym-booking-api"}
