# m3connect/models/profile.py
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel, Field


class Profile(SQLModel):
    """
    Application-level identity record, one row per Supabase auth user.

    Identity:
      - user_id: MUST match Supabase auth.users.id. The portal always
        looks a profile up by user_id, never by its own id.

    Authorization axes:
      - role:   "user" | "marina" | "partner" | "admin"
      - status: "pending" | "verified" | "rejected"

    Both are kept as raw strings here; m3connect.core.access parses them
    and denies anything it does not recognize.

    The `profiles` table lives in Supabase (RLS protected) and is accessed
    through PostgREST, so this is not a SQLModel table.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    user_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    job_title: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    bio: str | None = None
    avatar_url: str | None = None

    organization_type: str = "Other"
    organization_name: str = ""
    country: str = ""
    website: str | None = None
    capacity: str | None = None

    role: str = "user"
    status: str = "pending"

    # Partnership / directory fields, managed from the back office
    partnership_tier: str | None = None
    partnership_starts_at: datetime | None = None
    partnership_expires_at: datetime | None = None
    solution_categories: list[str] = Field(default_factory=list)
    company_logo: str | None = None
    company_description: str | None = None
    is_public: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
