"""
Membership level catalog: the tiers members are assigned to.

A level's weekly_limit and priority drive admission, so edits take effect on
the next booking request of every member holding it.
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import BookingRejected, RejectionReason
from app.models import MembershipLevel, User
from app.transactions import surfaces_ledger_errors

logger = logging.getLogger(__name__)

LEVEL_FIELDS = ("name", "weekly_limit", "priority", "default_duration_days")


def level_to_dict(level: MembershipLevel) -> dict:
    return {
        "id": level.id,
        "name": level.name,
        "weekly_limit": level.weekly_limit,
        "priority": level.priority,
        "default_duration_days": level.default_duration_days,
        "created_at": level.created_at,
    }


class LevelCatalog:
    def __init__(self, db: Session):
        self.db = db

    def _find(self, level_id: int) -> MembershipLevel:
        level = self.db.get(MembershipLevel, level_id)
        if level is None:
            raise BookingRejected(RejectionReason.LEVEL_NOT_FOUND, "Membership level not found")
        return level

    def _ensure_name_free(self, name: str, level_id: int | None = None):
        q = self.db.query(MembershipLevel).filter(MembershipLevel.name == name)
        if level_id is not None:
            q = q.filter(MembershipLevel.id != level_id)
        if q.first() is not None:
            raise BookingRejected(RejectionReason.LEVEL_NAME_TAKEN, "The name has already been taken.", name=name)

    def _commit(self, name: str):
        try:
            self.db.commit()
        except IntegrityError:
            # a concurrent write took the name between the check and the commit
            self.db.rollback()
            raise BookingRejected(RejectionReason.LEVEL_NAME_TAKEN, "The name has already been taken.", name=name)

    @surfaces_ledger_errors
    def list_levels(self) -> list[dict]:
        """Privileged tiers first, then by weekly limit with unlimited tiers last."""
        levels = (
            self.db.query(MembershipLevel)
            .order_by(
                MembershipLevel.priority.desc(),
                MembershipLevel.weekly_limit.asc().nulls_last(),
                MembershipLevel.name.asc(),
            )
            .all()
        )
        return [level_to_dict(level) for level in levels]

    @surfaces_ledger_errors
    def get_level(self, level_id: int) -> dict:
        return level_to_dict(self._find(level_id))

    @surfaces_ledger_errors
    def create_level(self, data: dict) -> dict:
        self._ensure_name_free(data["name"])
        level = MembershipLevel(**{k: data.get(k) for k in LEVEL_FIELDS})
        if level.priority is None:
            level.priority = 0
        self.db.add(level)
        self._commit(level.name)
        logger.info("Membership level %s created: %s", level.id, level.name)
        return level_to_dict(level)

    @surfaces_ledger_errors
    def update_level(self, level_id: int, changes: dict) -> dict:
        level = self._find(level_id)
        changes = {k: v for k, v in changes.items() if k in LEVEL_FIELDS}
        if "name" in changes:
            self._ensure_name_free(changes["name"], level_id)
        for field, value in changes.items():
            setattr(level, field, value)
        self._commit(level.name)
        logger.info("Membership level %s updated: %s", level_id, sorted(changes))
        return level_to_dict(level)

    @surfaces_ledger_errors
    def delete_level(self, level_id: int) -> dict:
        """
        Delete a level. Members holding it are left without a level, which
        stops them booking until one is assigned again.
        """
        level = self._find(level_id)
        released = self.db.query(func.count(User.id)).filter(User.membership_level_id == level_id).scalar()
        self.db.delete(level)
        self.db.commit()
        logger.info("Membership level %s deleted (%s members released)", level_id, released)
        return {"id": level_id, "released_members": released}
