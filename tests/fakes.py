"""In-memory stand-ins for Supabase Auth and the profiles table."""
import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

from m3connect.core.identity import (
    PASSWORD_RECOVERY,
    SIGNED_IN,
    SIGNED_OUT,
    AuthEventHandler,
    Credential,
    IdentityError,
    SessionInfo,
)
from m3connect.core.supabase_client import PortalBackend
from m3connect.models.profile import Profile
from m3connect.repositories.profile_repo import SEARCH_COLUMNS, ProfileStoreError


class FakeAuthServer:
    """Accounts and recovery tokens shared by every fake client."""

    def __init__(self, auto_confirm: bool = True):
        self.auto_confirm = auto_confirm
        self.users: dict[str, dict[str, str]] = {}
        self.recovery_tokens: dict[str, str] = {}
        self.spent_tokens: set[str] = set()
        self.reset_requests: list[tuple[str, str]] = []

    def add_user(self, email: str, password: str, user_id: str | None = None) -> Credential:
        user_id = user_id or str(uuid.uuid4())
        self.users[email] = {"id": user_id, "password": password}
        return Credential(id=user_id, email=email)

    def issue_recovery_token(self, email: str) -> str:
        token = uuid.uuid4().hex
        self.recovery_tokens[token] = email
        return token

    def session_for(self, email: str) -> SessionInfo:
        user = self.users[email]
        return SessionInfo(
            access_token=f"access-{uuid.uuid4().hex}",
            refresh_token="refresh",
            user=Credential(id=user["id"], email=email),
        )


class FakeSubscription:
    def __init__(self, handlers: list[AuthEventHandler], handler: AuthEventHandler):
        self.handlers = handlers
        self.handler = handler

    def unsubscribe(self) -> None:
        if self.handler in self.handlers:
            self.handlers.remove(self.handler)


class FakeIdentityProvider:
    """
    One client's view of the fake auth server.

    Events are delivered synchronously from inside the call that causes
    them, as supabase-py does.
    """

    def __init__(self, server: FakeAuthServer, session: SessionInfo | None = None):
        self.server = server
        self.session = session
        self.handlers: list[AuthEventHandler] = []
        self.calls: list[str] = []

        self.unreachable = False
        self.fail_sign_out = False
        self.fail_update_password: str | None = None
        self.session_gate: asyncio.Event | None = None
        self.closed = False

    def _check(self, action: str) -> None:
        self.calls.append(action)
        if self.unreachable:
            raise IdentityError("Authentication service is unreachable", "network")

    def emit(self, event: str, session: SessionInfo | None) -> None:
        for handler in list(self.handlers):
            handler(event, session)

    async def sign_up(self, email: str, password: str) -> Credential:
        self._check("sign_up")
        if email in self.server.users:
            raise IdentityError("User already registered", "user_already_exists")
        credential = self.server.add_user(email, password)
        if self.server.auto_confirm:
            self.session = self.server.session_for(email)
            self.emit(SIGNED_IN, self.session)
        return credential

    async def sign_in_with_password(self, email: str, password: str) -> SessionInfo:
        self._check("sign_in_with_password")
        user = self.server.users.get(email)
        if user is None or user["password"] != password:
            raise IdentityError("Invalid login credentials", "invalid_credentials")
        self.session = self.server.session_for(email)
        self.emit(SIGNED_IN, self.session)
        return self.session

    async def get_session(self) -> SessionInfo | None:
        self._check("get_session")
        if self.session_gate is not None:
            await self.session_gate.wait()
        return self.session

    def on_auth_state_change(self, handler: AuthEventHandler) -> FakeSubscription:
        self.handlers.append(handler)
        return FakeSubscription(self.handlers, handler)

    async def verify_recovery_token(self, token_hash: str) -> SessionInfo:
        self._check("verify_recovery_token")
        email = self.server.recovery_tokens.get(token_hash)
        if email is None or token_hash in self.server.spent_tokens:
            raise IdentityError("Token has expired or is invalid", "otp_expired")
        self.server.spent_tokens.add(token_hash)
        self.session = self.server.session_for(email)
        self.emit(PASSWORD_RECOVERY, self.session)
        return self.session

    async def update_password(self, password: str) -> None:
        self._check("update_password")
        if self.fail_update_password:
            raise IdentityError(self.fail_update_password)
        if self.session is None:
            raise IdentityError("Auth session missing!")
        self.server.users[self.session.user.email]["password"] = password

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        self._check("reset_password_for_email")
        self.server.reset_requests.append((email, redirect_to))

    async def sign_out(self) -> None:
        self._check("sign_out")
        if self.fail_sign_out:
            raise IdentityError("Failed to fetch", "network")
        self.session = None
        self.emit(SIGNED_OUT, None)

    async def aclose(self) -> None:
        self.closed = True


class FakeProfileStore:
    """
    Profiles keyed by user_id.

    `gates[user_id]` holds get_by_user_id for that user until the event is
    set, to simulate slow fetches.
    """

    def __init__(self):
        self.rows: dict[str, dict[str, Any]] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.get_calls: list[str] = []
        self.fail_create = False
        self.fail_get = False
        self.fail_update = False
        self.list_calls: list[tuple[int, int]] = []

    def put(self, user_id: str, **fields: Any) -> Profile:
        now = datetime.now(timezone.utc)
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        }
        row.update(fields)
        self.rows[user_id] = row
        return Profile.model_validate(row)

    async def get_by_user_id(self, user_id: str) -> Profile | None:
        self.get_calls.append(user_id)
        gate = self.gates.get(user_id)
        if gate is not None:
            await gate.wait()
        if self.fail_get:
            raise ProfileStoreError("connection reset", "network")
        row = self.rows.get(user_id)
        return Profile.model_validate(row) if row else None

    async def create(self, row: dict[str, Any]) -> Profile:
        if self.fail_create:
            raise ProfileStoreError(
                'new row violates row-level security policy for table "profiles"',
                "42501",
            )
        return self.put(row["user_id"], **{k: v for k, v in row.items() if k != "user_id"})

    async def aclose(self) -> None:
        # Shared by every fake backend; nothing to release
        pass

    async def update_by_user_id(self, user_id: str, fields: dict[str, Any]) -> None:
        if self.fail_update:
            raise ProfileStoreError("connection reset", "network")
        if user_id in self.rows:
            self.rows[user_id].update(fields)
            self.rows[user_id]["updated_at"] = datetime.now(timezone.utc)

    async def list(
        self,
        role: str | None = None,
        status: str | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 200,
    ) -> list[Profile]:
        self.list_calls.append((skip, limit))
        rows = sorted(self.rows.values(), key=lambda r: r["created_at"], reverse=True)
        if search and search.strip():
            needle = search.strip().lower()
            rows = [
                r
                for r in rows
                if any(needle in (r.get(c) or "").lower() for c in SEARCH_COLUMNS)
            ]
        if role is not None:
            rows = [r for r in rows if r.get("role") == role]
        if status is not None:
            rows = [r for r in rows if r.get("status") == status]
        return [Profile.model_validate(r) for r in rows[skip : skip + limit]]


class FakeNavigator:
    def __init__(self, path: str = "/"):
        self.path = path
        self.redirects: list[str] = []

    def current_path(self) -> str:
        return self.path

    def redirect(self, location: str) -> None:
        self.redirects.append(location)


class FakeBackendFactory:
    """`connect` callable for SessionRegistry; records every client it hands out."""

    def __init__(self, server: FakeAuthServer, store: FakeProfileStore):
        self.server = server
        self.store = store
        self.clients: list[FakeIdentityProvider] = []

    async def __call__(self) -> PortalBackend:
        identity = FakeIdentityProvider(self.server)
        self.clients.append(identity)
        return PortalBackend(identity=identity, profiles=self.store)


class FakeRecoveryConnector:
    def __init__(self, server: FakeAuthServer):
        self.server = server
        self.clients: list[FakeIdentityProvider] = []

    async def __call__(self) -> FakeIdentityProvider:
        identity = FakeIdentityProvider(self.server)
        self.clients.append(identity)
        return identity
