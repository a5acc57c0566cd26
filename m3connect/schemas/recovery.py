# m3connect/schemas/recovery.py
from pydantic import BaseModel, ConfigDict
from sqlmodel import SQLModel, Field

from m3connect.services.recovery_service import PasswordRecoveryFlow, RecoveryState


class RecoverySubmit(SQLModel):
    """New password for a verified recovery link."""

    model_config = ConfigDict(extra="forbid")

    token_hash: str = Field(min_length=1)
    password: str
    confirm_password: str


class RecoveryPageRead(BaseModel):
    """
    State of the recovery page.

    invalid_link is terminal: the user has to request a new link.
    On succeeded, the client goes to `redirect_to` after
    `redirect_after_seconds`.
    """

    state: RecoveryState
    error: str | None = None
    message: str | None = None
    redirect_to: str | None = None
    redirect_after_seconds: int | None = None

    @classmethod
    def from_flow(cls, flow: PasswordRecoveryFlow) -> "RecoveryPageRead":
        succeeded = flow.state is RecoveryState.SUCCEEDED
        return cls(
            state=flow.state,
            error=flow.error,
            message=flow.message,
            redirect_to=flow.redirect_to,
            redirect_after_seconds=flow.redirect_delay_seconds if succeeded else None,
        )
