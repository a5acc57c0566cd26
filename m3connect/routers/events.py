# m3connect/routers/events.py
import uuid
from typing import Literal

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlmodel import Session

from m3connect.core.auth import get_viewer_profile
from m3connect.database import get_session
from m3connect.models.profile import Profile
from m3connect.repositories.event_repo import EventRepository
from m3connect.schemas.content import EventRead
from m3connect.services.event_service import (
    EventService,
    build_ics,
    ics_content_disposition,
)

router = APIRouter(prefix="/events", tags=["Events"])

repo = EventRepository()
service = EventService(repo)


@router.get("", response_model=list[EventRead])
def list_events(
    session: Session = Depends(get_session),
    profile: Profile | None = Depends(get_viewer_profile),
    when: Literal["upcoming", "past"] = "upcoming",
    skip: int = 0,
    limit: int = 50,
):
    """
    List events.

    - `when=upcoming` (default): soonest first.
    - `when=past`: most recent first; replays are withheld from viewers
      without access.
    """
    return service.list_for_viewer(session, profile, when=when, skip=skip, limit=limit)


@router.get("/{event_id}", response_model=EventRead)
def get_event(
    event_id: uuid.UUID,
    session: Session = Depends(get_session),
    profile: Profile | None = Depends(get_viewer_profile),
):
    return service.get_for_viewer(session, event_id, profile)


@router.get("/{event_id}/ics")
def download_event_ics(
    event_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """Add-to-calendar file for an event (public)."""
    event = service.get_event(session, event_id)
    return Response(
        content=build_ics(event),
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": ics_content_disposition(event)},
    )
