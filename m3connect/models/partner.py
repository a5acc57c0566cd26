# m3connect/models/partner.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Partner(SQLModel, table=True):
    """Company listed in the public partner directory."""

    __tablename__ = "partners"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=200, index=True)

    description: str

    logo_url: str | None = None

    website: str | None = None

    sector: str = Field(max_length=100, index=True)

    country: str = Field(max_length=100)

    is_featured: bool = Field(default=False, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
