import logging

from app.ledger import BookingLedger
from app.models import Booking, BookingStatus

logger = logging.getLogger(__name__)


class PromotionScheduler:
    """
    Hands a vacated confirmed spot to the longest-waiting queued booking.

    Runs inside the caller's transaction, under the same session lock as the
    removal that triggered it, so no admission can take the spot first.
    """

    def __init__(self, ledger: BookingLedger):
        self.ledger = ledger

    def on_removed(self, session_id: int, removed_status: str) -> Booking | None:
        # only a confirmed spot is handed on; pending/queued removals free nothing for the queue
        if removed_status != BookingStatus.CONFIRMED:
            return None

        queued = self.ledger.earliest_queued(session_id)
        if queued is None:
            logger.info("Session %s: confirmed spot freed, queue empty", session_id)
            return None

        self.ledger.set_status(queued, BookingStatus.CONFIRMED)
        logger.info("Session %s: promoted queued booking %s to confirmed", session_id, queued.id)
        return queued
