# m3connect/schemas/content.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from m3connect.core.access import lock_reason
from m3connect.models.event import Event
from m3connect.models.profile import Profile
from m3connect.models.resource import Resource

ResourceType = Literal["article", "whitepaper", "guide", "replay", "case_study"]
AccessLevelValue = Literal["public", "members", "marina"]
Language = Literal["EN", "FR"]


# -------- Resources --------


class ResourceCreate(SQLModel):
    """Payload for creating a resource (admin only)."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(max_length=200)
    summary: str
    content: str | None = None
    type: ResourceType
    topic: str = Field(max_length=100)
    language: Language = "EN"
    access_level: AccessLevelValue = "public"
    thumbnail_url: str | None = None
    file_url: str | None = None
    partner_id: uuid.UUID | None = None
    published: bool = True

    @field_validator("title", "summary", "topic")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class ResourceRead(SQLModel):
    """
    Resource as shown to one viewer.

    When `locked` is True the body and download link are withheld and
    `lock_reason` tells the client which call to action to show.
    """

    id: uuid.UUID
    title: str
    summary: str
    content: str | None = None
    type: str
    topic: str
    language: str
    access_level: str
    thumbnail_url: str | None = None
    file_url: str | None = None
    partner_id: uuid.UUID | None = None
    created_at: datetime
    locked: bool = False
    lock_reason: str | None = None

    @classmethod
    def for_viewer(cls, resource: Resource, profile: Profile | None) -> "ResourceRead":
        reason = lock_reason(profile, resource.access_level)
        data = resource.model_dump(exclude={"published"})
        if reason is not None:
            data["content"] = None
            data["file_url"] = None
        return cls(**data, locked=reason is not None, lock_reason=reason)


# -------- Events --------


class EventCreate(SQLModel):
    """Payload for creating an event (admin only)."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(max_length=200)
    description: str
    date_time: datetime
    location: str | None = None
    language: Language = "EN"
    access_level: AccessLevelValue = "public"
    replay_url: str | None = None
    partner_id: uuid.UUID | None = None


class EventRead(SQLModel):
    """Event as shown to one viewer; `replay_url` is withheld when locked."""

    id: uuid.UUID
    title: str
    description: str
    date_time: datetime
    location: str | None = None
    language: str
    access_level: str
    replay_url: str | None = None
    partner_id: uuid.UUID | None = None
    created_at: datetime
    locked: bool = False
    lock_reason: str | None = None

    @classmethod
    def for_viewer(cls, event: Event, profile: Profile | None) -> "EventRead":
        reason = lock_reason(profile, event.access_level)
        data = event.model_dump()
        if reason is not None:
            data["replay_url"] = None
        return cls(**data, locked=reason is not None, lock_reason=reason)


# -------- Partners --------


class PartnerRead(SQLModel):
    id: uuid.UUID
    name: str
    description: str
    logo_url: str | None = None
    website: str | None = None
    sector: str
    country: str
    is_featured: bool
