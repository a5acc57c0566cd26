# m3connect/models/lead.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class MarinaProject(SQLModel, table=True):
    """
    Project brief submitted by a verified marina operator.

    user_id is the Supabase auth user id of the submitter.
    """

    __tablename__ = "marina_projects"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: str = Field(index=True, description="Supabase auth.users.id")

    # energy | digital | infrastructure | services | other
    project_type: str

    # under_10k | 10k_50k | 50k_100k | 100k_500k | over_500k
    budget_range: str

    # 0_12_months | 12_24_months | 24_plus
    timeline: str

    description: str

    # new | in_progress | completed
    status: str = Field(default="new", index=True)

    admin_notes: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )


class PartnerLead(SQLModel, table=True):
    """Inquiry from the "become a partner" form (no account required)."""

    __tablename__ = "partner_leads"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    first_name: str
    last_name: str
    email: str = Field(index=True)
    phone: str | None = None
    company: str
    website: str | None = None
    country: str

    # energy | equipment | digital | environment | services | institution
    actor_type: str

    solutions: str | None = None
    goals: str | None = None

    # info | call | partnership
    engagement_level: str = Field(default="info")

    # new | qualified | in_discussion | signed | rejected
    status: str = Field(default="new", index=True)

    admin_notes: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
