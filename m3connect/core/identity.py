# m3connect/core/identity.py
"""
Identity provider client.

The portal consumes Supabase Auth through a narrow protocol so that the
auth controller and the recovery flow never touch supabase-py objects
directly. `SupabaseIdentityProvider` is the production adapter; tests use
an in-memory fake with the same surface.

Adapter rules:
  - every call is bounded by the configured request timeout
  - supabase / httpx failures are re-raised as IdentityError
  - supabase Session / User objects are converted to Credential / SessionInfo
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict
from supabase import AsyncClient, AuthError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Auth-state-changed event kinds emitted by Supabase Auth
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"
PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


class Credential(BaseModel):
    """Identity as seen by the portal: opaque user id plus email."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None


class SessionInfo(BaseModel):
    """Opaque session token; expiry is managed by Supabase."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None
    user: Credential


class IdentityError(Exception):
    """Failure reported by (or while reaching) the identity provider."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


AuthEventHandler = Callable[[str, SessionInfo | None], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class IdentityProvider(Protocol):
    """Operations the portal needs from the identity provider."""

    async def sign_up(self, email: str, password: str) -> Credential: ...

    async def sign_in_with_password(self, email: str, password: str) -> SessionInfo: ...

    async def get_session(self) -> SessionInfo | None: ...

    def on_auth_state_change(self, handler: AuthEventHandler) -> Subscription: ...

    async def verify_recovery_token(self, token_hash: str) -> SessionInfo: ...

    async def update_password(self, password: str) -> None: ...

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None: ...

    async def sign_out(self) -> None: ...

    async def aclose(self) -> None: ...


def to_credential(user: Any) -> Credential:
    return Credential(id=str(user.id), email=getattr(user, "email", None))


def to_session_info(session: Any) -> SessionInfo | None:
    """Convert a supabase-py Session (or None) into SessionInfo."""
    if session is None or getattr(session, "user", None) is None:
        return None
    return SessionInfo(
        access_token=session.access_token,
        refresh_token=getattr(session, "refresh_token", None),
        expires_at=getattr(session, "expires_at", None),
        user=to_credential(session.user),
    )


class SupabaseIdentityProvider:
    """
    IdentityProvider backed by a supabase-py AsyncClient.

    One instance per browser session: the client keeps the signed-in
    session in its own in-memory storage.
    """

    def __init__(self, client: AsyncClient, timeout: float | None = None):
        self.client = client
        self.timeout = timeout

    async def _call(self, action: str, awaitable: Awaitable[T]) -> T:
        try:
            if self.timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, self.timeout)
        except AuthError as e:
            raise IdentityError(
                getattr(e, "message", str(e)), getattr(e, "code", None)
            ) from e
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning("Identity provider %s failed: %r", action, e)
            raise IdentityError(
                "Authentication service is unreachable", "network"
            ) from e

    async def sign_up(self, email: str, password: str) -> Credential:
        res = await self._call(
            "sign_up",
            self.client.auth.sign_up({"email": email, "password": password}),
        )
        if res.user is None:
            raise IdentityError("Sign-up did not return a user")
        return to_credential(res.user)

    async def sign_in_with_password(self, email: str, password: str) -> SessionInfo:
        res = await self._call(
            "sign_in",
            self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            ),
        )
        session = to_session_info(res.session)
        if session is None:
            raise IdentityError("Sign-in did not return a session")
        return session

    async def get_session(self) -> SessionInfo | None:
        session = await self._call("get_session", self.client.auth.get_session())
        return to_session_info(session)

    def on_auth_state_change(self, handler: AuthEventHandler) -> Subscription:
        def _forward(event: str, session: Any) -> None:
            handler(str(event), to_session_info(session))

        return self.client.auth.on_auth_state_change(_forward)

    async def verify_recovery_token(self, token_hash: str) -> SessionInfo:
        res = await self._call(
            "verify_otp",
            self.client.auth.verify_otp({"token_hash": token_hash, "type": "recovery"}),
        )
        session = to_session_info(res.session)
        if session is None:
            raise IdentityError("Recovery token did not yield a session")
        return session

    async def update_password(self, password: str) -> None:
        await self._call(
            "update_user", self.client.auth.update_user({"password": password})
        )

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        await self._call(
            "reset_password_for_email",
            self.client.auth.reset_password_for_email(
                email, {"redirect_to": redirect_to}
            ),
        )

    async def sign_out(self) -> None:
        await self._call("sign_out", self.client.auth.sign_out())

    async def aclose(self) -> None:
        """Close the auth HTTP connection pool of the client."""
        await self.client.auth.close()
