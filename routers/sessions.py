import datetime as dt
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.admission import AdmissionEngine
from app.auth import Actor, get_current_actor
from app.catalog import SessionCatalog
from app.deps import get_catalog, get_engine

router = APIRouter()


class SessionBody(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    capacity: int = Field(ge=1)
    image: str | None = None


class SessionUpdateBody(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    capacity: int | None = Field(default=None, ge=1)
    image: str | None = None


@router.get("")
def list_sessions(
    date: dt.date | None = Query(default=None),
    future_only: bool = Query(default=False),
    catalog: SessionCatalog = Depends(get_catalog),
):
    """
    List sessions ordered by date and start time, with availability:
      - confirmed_count / available_spots / is_full count confirmed bookings only
      - use /sessions/{id}/occupancy for the admission view (confirmed + pending)
    """
    return {"success": True, "data": catalog.list_sessions(on_date=date, future_only=future_only)}


@router.get("/{session_id}")
def get_session(session_id: int, catalog: SessionCatalog = Depends(get_catalog)):
    return {"success": True, "data": catalog.get_session(session_id)}


@router.get("/{session_id}/occupancy")
def get_occupancy(session_id: int, engine: AdmissionEngine = Depends(get_engine)):
    return {"success": True, "data": engine.list_occupancy(session_id)}


@router.post("", status_code=201)
def create_session(
    body: SessionBody,
    actor: Actor = Depends(get_current_actor),
    catalog: SessionCatalog = Depends(get_catalog),
):
    actor.require(actor.can_manage_sessions, "create sessions")
    session = catalog.create_session(body.model_dump())
    return {"success": True, "message": "Gym session created successfully", "data": session}


@router.put("/{session_id}")
def update_session(
    session_id: int,
    body: SessionUpdateBody,
    actor: Actor = Depends(get_current_actor),
    catalog: SessionCatalog = Depends(get_catalog),
):
    actor.require(actor.can_manage_sessions, "update sessions")
    session = catalog.update_session(session_id, body.model_dump(exclude_unset=True))
    return {"success": True, "message": "Gym session updated successfully", "data": session}


@router.delete("/{session_id}")
def delete_session(
    session_id: int,
    force: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    catalog: SessionCatalog = Depends(get_catalog),
):
    actor.require(actor.can_manage_sessions, "delete sessions")
    result = catalog.delete_session(session_id, force=force)
    return {"success": True, "message": "Gym session deleted successfully", "data": result}
