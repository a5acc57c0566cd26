# m3connect/repositories/event_repo.py
import uuid
from datetime import datetime

from sqlmodel import Session, select

from m3connect.models.event import Event


class EventRepository:
    """
    Data access layer for Event.

    Upcoming events are listed soonest first, past events most recent first.
    """

    def get_by_id(self, session: Session, event_id: uuid.UUID) -> Event | None:
        return session.get(Event, event_id)

    def list_upcoming(
        self,
        session: Session,
        now: datetime,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Event]:
        stmt = (
            select(Event)
            .where(Event.date_time >= now)
            .order_by(Event.date_time.asc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def list_past(
        self,
        session: Session,
        now: datetime,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Event]:
        stmt = (
            select(Event)
            .where(Event.date_time < now)
            .order_by(Event.date_time.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create(self, session: Session, event: Event) -> Event:
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    def delete(self, session: Session, event: Event) -> None:
        session.delete(event)
        session.commit()
