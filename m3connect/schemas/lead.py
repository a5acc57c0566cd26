# m3connect/schemas/lead.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

ActorType = Literal[
    "energy", "equipment", "digital", "environment", "services", "institution"
]
EngagementLevel = Literal["info", "call", "partnership"]
LeadStatus = Literal["new", "qualified", "in_discussion", "signed", "rejected"]

ProjectType = Literal["energy", "digital", "infrastructure", "services", "other"]
BudgetRange = Literal["under_10k", "10k_50k", "50k_100k", "100k_500k", "over_500k"]
Timeline = Literal["0_12_months", "12_24_months", "24_plus"]
ProjectStatus = Literal["new", "in_progress", "completed"]


# -------- Partner leads --------


class PartnerLeadCreate(SQLModel):
    """
    "Become a partner" form.

    `consent` must be checked; it is not stored.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = None
    company: str = Field(min_length=1, max_length=200)
    website: str | None = None
    country: str = Field(min_length=1, max_length=100)
    actor_type: ActorType
    solutions: str | None = None
    goals: str | None = None
    engagement_level: EngagementLevel = "info"
    consent: bool

    @field_validator("consent")
    @classmethod
    def consent_given(cls, v: bool) -> bool:
        if not v:
            raise ValueError("consent is required")
        return v


class PartnerLeadRead(SQLModel):
    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    company: str
    website: str | None = None
    country: str
    actor_type: str
    solutions: str | None = None
    goals: str | None = None
    engagement_level: str
    status: str
    admin_notes: str | None = None
    created_at: datetime


class PartnerLeadUpdate(SQLModel):
    """Admin triage of a lead."""

    model_config = ConfigDict(extra="forbid")

    status: LeadStatus | None = None
    admin_notes: str | None = None


# -------- Marina projects --------


class MarinaProjectCreate(SQLModel):
    """Project brief from a verified marina; `consent` must be checked."""

    model_config = ConfigDict(extra="forbid")

    project_type: ProjectType
    budget_range: BudgetRange
    timeline: Timeline
    description: str = Field(min_length=10, max_length=5000)
    consent: bool

    @field_validator("consent")
    @classmethod
    def consent_given(cls, v: bool) -> bool:
        if not v:
            raise ValueError("consent is required")
        return v


class MarinaProjectRead(SQLModel):
    id: uuid.UUID
    user_id: str
    project_type: str
    budget_range: str
    timeline: str
    description: str
    status: str
    admin_notes: str | None = None
    created_at: datetime


class MarinaProjectUpdate(SQLModel):
    """Admin follow-up of a project."""

    model_config = ConfigDict(extra="forbid")

    status: ProjectStatus | None = None
    admin_notes: str | None = None
