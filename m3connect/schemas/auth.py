# m3connect/schemas/auth.py
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

from m3connect.core.access import can_submit_project, is_admin
from m3connect.core.auth_controller import AuthSnapshot
from m3connect.models.profile import Profile


class ProfileFields(SQLModel):
    """
    Profile data collected by the sign-up form.

    Unknown keys (including any role / status a client might send) are
    dropped; role and status are always decided server-side.
    """

    model_config = ConfigDict(extra="ignore")

    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    job_title: str | None = Field(default=None, max_length=200)
    organization_type: str = Field(default="Other", max_length=100)
    organization_name: str = Field(default="", max_length=200)
    country: str = Field(default="", max_length=100)
    website: str | None = Field(default=None, max_length=500)
    capacity: str | None = Field(default=None, max_length=100)

    @field_validator("first_name", "last_name", "organization_name", "country")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class SignUpRequest(SQLModel):
    """
    Payload for creating an account.

    confirm_password is checked here, before anything reaches Supabase.
    """

    model_config = ConfigDict(extra="ignore")

    email: EmailStr
    password: str = Field(min_length=1)
    confirm_password: str | None = None
    profile: ProfileFields = Field(default_factory=ProfileFields)

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str | None, info) -> str | None:
        if v is not None and v != info.data.get("password"):
            raise ValueError("Passwords do not match")
        return v


class SignInRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1)


class ProfileUpdate(SQLModel):
    """
    Partial self-service profile update.

    Role, status, email and partnership fields are not editable here.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    job_title: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=50)
    linkedin_url: str | None = Field(default=None, max_length=500)
    bio: str | None = None
    avatar_url: str | None = None
    organization_type: str | None = Field(default=None, max_length=100)
    organization_name: str | None = Field(default=None, max_length=200)
    country: str | None = Field(default=None, max_length=100)
    website: str | None = Field(default=None, max_length=500)
    capacity: str | None = Field(default=None, max_length=100)

    @field_validator("first_name", "last_name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class PasswordResetRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class RecoveryDetectRequest(SQLModel):
    """Full browser URL, fragment included, as seen by the front-end."""

    model_config = ConfigDict(extra="forbid")

    url: str


class RecoveryDetectRead(BaseModel):
    redirect_to: str | None = None


class AuthStateRead(BaseModel):
    """
    What the front-end needs to render identity-dependent UI.

    Clients should not paint signed-in / signed-out UI until auth_ready.
    """

    auth_ready: bool
    profile_loading: bool
    signed_in: bool
    user_id: str | None = None
    email: str | None = None
    profile: Profile | None = None
    profile_missing: bool = False
    is_admin: bool = False
    can_submit_project: bool = False
    redirect_to: str | None = None

    @classmethod
    def from_snapshot(
        cls, snapshot: AuthSnapshot, redirect_to: str | None = None
    ) -> "AuthStateRead":
        credential = snapshot.credential
        return cls(
            auth_ready=snapshot.auth_ready,
            profile_loading=snapshot.profile_loading,
            signed_in=snapshot.signed_in,
            user_id=credential.id if credential else None,
            email=credential.email if credential else None,
            profile=snapshot.profile,
            profile_missing=snapshot.profile_missing,
            is_admin=is_admin(snapshot.profile),
            can_submit_project=can_submit_project(snapshot.profile),
            redirect_to=redirect_to,
        )
