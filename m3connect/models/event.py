# m3connect/models/event.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class Event(SQLModel, table=True):
    """
    Network event (webinar, roundtable, conference).

    Same access levels as resources; the replay link is only shown to
    viewers who may access the event.
    """

    __tablename__ = "events"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    title: str = Field(max_length=200)

    description: str

    date_time: datetime = Field(
        index=True,
        sa_type=DateTime(timezone=True),
        description="Start time (UTC)",
    )

    location: str | None = Field(
        default=None,
        description="Venue; None means online",
    )

    language: str = Field(default="EN", max_length=5)

    access_level: str = Field(default="public", index=True)

    replay_url: str | None = None

    partner_id: uuid.UUID | None = Field(default=None, foreign_key="partners.id")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
