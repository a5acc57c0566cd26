# m3connect/schemas/admin.py
from pydantic import ConfigDict
from sqlmodel import SQLModel

from m3connect.core.access import Role, Status


class ProfileRoleUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    role: Role


class ProfileStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: Status
