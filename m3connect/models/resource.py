# m3connect/models/resource.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Resource(SQLModel, table=True):
    """
    Knowledge-base entry (article, whitepaper, guide, replay, case study).

    access_level decides who may open it:
      - "public" | "members" | "marina"
    The value is compared against the viewer's profile on every request;
    it is never copied onto users.
    """

    __tablename__ = "resources"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    title: str = Field(max_length=200, index=True)

    summary: str = Field(description="Short teaser shown on cards")

    content: str | None = Field(
        default=None,
        description="Full body; hidden when the viewer has no access",
    )

    # article | whitepaper | guide | replay | case_study
    type: str = Field(index=True)

    topic: str = Field(max_length=100)

    language: str = Field(default="EN", max_length=5, index=True)

    access_level: str = Field(default="public", index=True)

    thumbnail_url: str | None = None

    file_url: str | None = Field(
        default=None,
        description="Download / replay link; hidden when locked",
    )

    partner_id: uuid.UUID | None = Field(default=None, foreign_key="partners.id")

    published: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
