# m3connect/services/event_service.py
import unicodedata
import uuid
from datetime import datetime, timedelta, timezone
from typing import Literal
from urllib.parse import quote

from fastapi import HTTPException, status
from sqlmodel import Session

from m3connect.models.event import Event
from m3connect.models.profile import Profile
from m3connect.repositories.event_repo import EventRepository
from m3connect.schemas.content import EventCreate, EventRead

# Calendar entries get a fixed length; events have no end time
EVENT_DURATION = timedelta(hours=2)

ICS_PRODID = "-//M3 Connect//Events//EN"
ICS_UID_DOMAIN = "m3connect.com"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ics_datetime(value: datetime) -> str:
    return _as_utc(value).strftime("%Y%m%dT%H%M%SZ")


def _ics_text(value: str) -> str:
    """Escape a TEXT value (RFC 5545 section 3.3.11)."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def build_ics(event: Event, now: datetime | None = None) -> str:
    """
    Render a single-event iCalendar document.

    Events without a venue are located "Online".
    """
    start = _as_utc(event.date_time)
    stamp = now or datetime.now(timezone.utc)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{ICS_PRODID}",
        "BEGIN:VEVENT",
        f"UID:{event.id}@{ICS_UID_DOMAIN}",
        f"DTSTAMP:{_ics_datetime(stamp)}",
        f"DTSTART:{_ics_datetime(start)}",
        f"DTEND:{_ics_datetime(start + EVENT_DURATION)}",
        f"SUMMARY:{_ics_text(event.title)}",
        f"DESCRIPTION:{_ics_text(event.description)}",
        f"LOCATION:{_ics_text(event.location or 'Online')}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"


def ics_filename(event: Event, ascii_only: bool = False) -> str:
    title = event.title.replace('"', "").replace("\\", " ").replace("/", " ")
    if ascii_only:
        title = (
            unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
        )
    return "_".join(title.split() or ["event"]) + ".ics"


def ics_content_disposition(event: Event) -> str:
    """
    Attachment header for the calendar file.

    Header values are latin-1 on the wire, so non-ASCII titles get an ASCII
    `filename` plus the UTF-8 `filename*` form (RFC 6266).
    """
    name = ics_filename(event)
    fallback = ics_filename(event, ascii_only=True)
    header = f'attachment; filename="{fallback}"'
    if name != fallback:
        header += f"; filename*=UTF-8''{quote(name)}"
    return header


class EventService:
    """
    Business logic for events.

    Responsibilities:
      - upcoming / past listing
      - per-viewer gating of replay links
      - calendar export
      - admin create / delete
    """

    def __init__(self, repo: EventRepository):
        self.repo = repo

    def list_for_viewer(
        self,
        session: Session,
        profile: Profile | None,
        when: Literal["upcoming", "past"] = "upcoming",
        skip: int = 0,
        limit: int = 50,
    ) -> list[EventRead]:
        now = datetime.now(timezone.utc)
        if when == "past":
            rows = self.repo.list_past(session, now, skip=skip, limit=limit)
        else:
            rows = self.repo.list_upcoming(session, now, skip=skip, limit=limit)
        return [EventRead.for_viewer(e, profile) for e in rows]

    def get_event(self, session: Session, event_id: uuid.UUID) -> Event:
        event = self.repo.get_by_id(session, event_id)
        if not event:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Event not found",
            )
        return event

    def get_for_viewer(
        self,
        session: Session,
        event_id: uuid.UUID,
        profile: Profile | None,
    ) -> EventRead:
        return EventRead.for_viewer(self.get_event(session, event_id), profile)

    def create_event(self, session: Session, payload: EventCreate) -> Event:
        data = payload.model_dump()
        data["date_time"] = _as_utc(payload.date_time)
        return self.repo.create(session, Event(**data))

    def delete_event(self, session: Session, event_id: uuid.UUID) -> None:
        self.repo.delete(session, self.get_event(session, event_id))
