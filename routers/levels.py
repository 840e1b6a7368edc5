from typing import Literal
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from app.auth import Actor, get_current_actor
from app.deps import get_levels
from app.levels import LevelCatalog

router = APIRouter()


class LevelBody(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    weekly_limit: int | None = Field(default=None, ge=0)
    priority: Literal[0, 1]
    default_duration_days: int | None = Field(default=None, ge=1)


class LevelUpdateBody(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    weekly_limit: int | None = Field(default=None, ge=0)
    priority: Literal[0, 1] | None = None
    default_duration_days: int | None = Field(default=None, ge=1)

    @field_validator("name", "priority")
    @classmethod
    def not_null(cls, value):
        # only sent fields are validated; weekly_limit and duration may be cleared
        if value is None:
            raise ValueError("may not be null")
        return value


@router.get("")
def list_levels(levels: LevelCatalog = Depends(get_levels)):
    """
    Public list of membership levels:
      - priority 1 (may be queued when a session is full) first
      - then by weekly_limit ascending, unlimited (null) last
    """
    return {"success": True, "data": levels.list_levels()}


@router.get("/{level_id}")
def get_level(level_id: int, levels: LevelCatalog = Depends(get_levels)):
    return {"success": True, "data": levels.get_level(level_id)}


@router.post("", status_code=201)
def create_level(
    body: LevelBody,
    actor: Actor = Depends(get_current_actor),
    levels: LevelCatalog = Depends(get_levels),
):
    actor.require(actor.can_manage_levels, "create membership levels")
    level = levels.create_level(body.model_dump())
    return {"success": True, "message": "Membership level created successfully", "data": level}


@router.put("/{level_id}")
def update_level(
    level_id: int,
    body: LevelUpdateBody,
    actor: Actor = Depends(get_current_actor),
    levels: LevelCatalog = Depends(get_levels),
):
    actor.require(actor.can_manage_levels, "update membership levels")
    level = levels.update_level(level_id, body.model_dump(exclude_unset=True))
    return {"success": True, "message": "Membership level updated successfully", "data": level}


@router.delete("/{level_id}")
def delete_level(
    level_id: int,
    actor: Actor = Depends(get_current_actor),
    levels: LevelCatalog = Depends(get_levels),
):
    actor.require(actor.can_manage_levels, "delete membership levels")
    result = levels.delete_level(level_id)
    return {"success": True, "message": "Membership level deleted successfully", "data": result}
