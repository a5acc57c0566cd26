# m3connect/core/auth_controller.py
"""
Session / auth controller.

Single source of truth for "who is signed in and what is their profile"
within one browser session. The state is only mutated here, in response to
the controller's own operations or to the identity provider's event stream.
Everyone else reads an immutable AuthSnapshot or registers a listener.

Public operations never raise: failures come back as
AuthResult(error=AuthFailure(...)) so callers can branch on `kind`.
Sign-out is the one operation that always succeeds locally.

Ordering:
  - the event subscription is taken before the initial get_session() so no
    event can slip between the two
  - every profile fetch is tagged with an epoch and the user id it was
    issued for; a result whose tag is no longer current is dropped
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Protocol

from pydantic import BaseModel, ConfigDict

from m3connect.core.access import Role, Status, role_for_organization
from m3connect.core.identity import (
    PASSWORD_RECOVERY,
    SIGNED_OUT,
    Credential,
    IdentityError,
    IdentityProvider,
    SessionInfo,
    Subscription,
)
from m3connect.models.profile import Profile
from m3connect.repositories.profile_repo import ProfileStoreError

logger = logging.getLogger(__name__)


# Keys a user may never change on their own profile
PROTECTED_PROFILE_FIELDS = frozenset(
    {
        "id",
        "user_id",
        "email",
        "role",
        "status",
        "partnership_tier",
        "partnership_starts_at",
        "partnership_expires_at",
        "created_at",
        "updated_at",
    }
)


class ProfileStore(Protocol):
    async def get_by_user_id(self, user_id: str) -> Profile | None: ...

    async def create(self, row: dict[str, Any]) -> Profile: ...

    async def update_by_user_id(self, user_id: str, fields: dict[str, Any]) -> None: ...


class Navigator(Protocol):
    """Where the browser currently is, and how to send it elsewhere."""

    def current_path(self) -> str: ...

    def redirect(self, location: str) -> None: ...


class FailureKind(str, Enum):
    CREDENTIAL = "credential"
    PROFILE_INSERT = "profile_insert"
    PROFILE_STORE = "profile_store"
    NOT_AUTHENTICATED = "not_authenticated"


class AuthFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str
    code: str | None = None


class AuthResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    error: AuthFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthSnapshot(BaseModel):
    """Read-only view of the controller state."""

    model_config = ConfigDict(frozen=True)

    credential: Credential | None = None
    profile: Profile | None = None
    session: SessionInfo | None = None
    auth_ready: bool = False
    profile_loading: bool = False

    @property
    def signed_in(self) -> bool:
        return self.credential is not None

    @property
    def profile_missing(self) -> bool:
        """Signed in, settled, and still no profile row (see partial sign-up)."""
        return (
            self.credential is not None
            and self.profile is None
            and self.auth_ready
            and not self.profile_loading
        )


class AuthController:
    """
    Owns the auth state of one browser session.

    Usage:

        async with AuthController(identity, profiles, navigator) as auth:
            result = await auth.sign_in(email, password)
            snapshot = auth.snapshot
    """

    def __init__(
        self,
        identity: IdentityProvider,
        profiles: ProfileStore,
        navigator: Navigator,
        recovery_path: str = "/reset-password",
        home_path: str = "/",
    ):
        self.identity = identity
        self.profiles = profiles
        self.navigator = navigator
        self.recovery_path = recovery_path
        self.home_path = home_path

        self._state = AuthSnapshot()
        self._listeners: list[Callable[[AuthSnapshot], None]] = []
        self._subscription: Subscription | None = None
        self._tasks: set[asyncio.Task] = set()
        self._session_epoch = 0
        self._profile_epoch = 0
        self._closed = False

    # ----- Lifecycle -----

    async def __aenter__(self) -> "AuthController":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: Callable[[AuthSnapshot], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _on_recovery_page(self) -> bool:
        return self.navigator.current_path() == self.recovery_path

    def _set(self, **changes: Any) -> None:
        if self._closed:
            return
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self._state)

    async def initialize(self) -> None:
        """
        Resolve the initial session.

        Always ends with auth_ready=True, even if the identity provider is
        unreachable. On the recovery page the session bootstrap is skipped
        entirely so the recovery token is not consumed as a normal sign-in.
        """
        if self._subscription is None:
            self._subscription = self.identity.on_auth_state_change(self._on_auth_event)

        if self._on_recovery_page():
            self._set(auth_ready=True)
            return

        epoch = self._session_epoch
        try:
            try:
                session = await self.identity.get_session()
            except IdentityError as e:
                logger.warning("Initial session lookup failed: %s", e.message)
                session = None

            if epoch != self._session_epoch:
                # An auth event arrived while get_session() was in flight
                # and already set newer state.
                return
            self._apply_session(session)
            if session is not None:
                await self._load_profile(session.user.id, self._next_profile_epoch())
        finally:
            self._set(auth_ready=True)

    async def close(self) -> None:
        """Unsubscribe and drop in-flight work. No state changes after this."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            try:
                self._subscription.unsubscribe()
            finally:
                self._subscription = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._listeners.clear()

    # ----- Event stream -----

    def _on_auth_event(self, event: str, session: SessionInfo | None) -> None:
        if self._closed or self._on_recovery_page():
            return
        if event == PASSWORD_RECOVERY:
            # The recovery watcher redirects; do not treat this as a sign-in.
            return

        self._session_epoch += 1
        if event == SIGNED_OUT:
            session = None
        previous = self._state.credential
        self._apply_session(session)

        if session is None:
            self._next_profile_epoch()
            self._set(profile=None, profile_loading=False, auth_ready=True)
            return

        if previous is None or previous.id != session.user.id:
            # Never show one user's profile next to another user's credential
            self._set(profile=None, auth_ready=True)
        else:
            self._set(auth_ready=True)
        epoch = self._next_profile_epoch()
        task = asyncio.get_running_loop().create_task(
            self._load_profile(session.user.id, epoch)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _apply_session(self, session: SessionInfo | None) -> None:
        self._set(
            session=session,
            credential=session.user if session is not None else None,
        )

    # ----- Profile fetching -----

    def _next_profile_epoch(self) -> int:
        self._profile_epoch += 1
        return self._profile_epoch

    async def _fetch_profile(self, user_id: str) -> Profile | None:
        try:
            return await self.profiles.get_by_user_id(user_id)
        except ProfileStoreError as e:
            logger.error("Error fetching profile for %s: %s", user_id, e.message)
            return None

    async def _load_profile(self, user_id: str, epoch: int) -> None:
        self._set(profile_loading=True)
        profile = await self._fetch_profile(user_id)

        credential = self._state.credential
        if (
            epoch != self._profile_epoch
            or credential is None
            or credential.id != user_id
        ):
            logger.debug("Discarding stale profile fetch for %s", user_id)
            return
        self._set(profile=profile, profile_loading=False)

    async def wait_for_profile(self) -> None:
        """Wait until event-driven profile fetches issued so far have settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ----- Operations -----

    async def sign_up(
        self,
        email: str,
        password: str,
        fields: dict[str, Any],
    ) -> AuthResult:
        """
        Create the credential, then the profile row.

        role is derived from organization_type and status is forced to
        "pending"; whatever the caller passed for either is ignored. The two
        writes are not atomic: a profile insert failure is reported with
        kind=profile_insert so the UI can offer a profile refresh.
        """
        try:
            credential = await self.identity.sign_up(email, password)
        except IdentityError as e:
            return AuthResult(
                error=AuthFailure(
                    kind=FailureKind.CREDENTIAL, message=e.message, code=e.code
                )
            )

        organization_type = fields.get("organization_type") or "Other"
        role = role_for_organization(organization_type)
        is_marina = role is Role.MARINA

        row = {
            "user_id": credential.id,
            "email": email,
            "first_name": fields.get("first_name") or "",
            "last_name": fields.get("last_name") or "",
            "job_title": fields.get("job_title") or None,
            "organization_type": organization_type,
            "organization_name": fields.get("organization_name") or "",
            "country": fields.get("country") or "",
            "website": (fields.get("website") or None) if is_marina else None,
            "capacity": (fields.get("capacity") or None) if is_marina else None,
            "role": role.value,
            "status": Status.PENDING.value,
            "is_public": False,
            "solution_categories": [],
        }

        try:
            await self.profiles.create(row)
        except ProfileStoreError as e:
            logger.error(
                "Credential %s created but profile insert failed: %s",
                credential.id,
                e.message,
            )
            return AuthResult(
                error=AuthFailure(
                    kind=FailureKind.PROFILE_INSERT, message=e.message, code=e.code
                )
            )

        logger.info("Signed up %s as %s (pending)", credential.id, role.value)

        # The SIGNED_IN event may have fetched before the row existed
        current = self._state.credential
        if current is not None and current.id == credential.id:
            await self.refresh_profile()
        return AuthResult()

    async def sign_in(self, email: str, password: str) -> AuthResult:
        """
        Delegate to the identity provider.

        The SIGNED_IN event, not this call, populates credential and profile.
        """
        try:
            await self.identity.sign_in_with_password(email, password)
        except IdentityError as e:
            return AuthResult(
                error=AuthFailure(
                    kind=FailureKind.CREDENTIAL, message=e.message, code=e.code
                )
            )
        return AuthResult()

    async def sign_out(self) -> None:
        """
        Sign out remotely, then clear local state and go home.

        The local part runs whatever the remote call does.
        """
        try:
            await self.identity.sign_out()
        except IdentityError as e:
            logger.error("SignOut error: %s", e.message)
        except Exception:
            logger.exception("SignOut exception")
        finally:
            self._session_epoch += 1
            self._next_profile_epoch()
            self._set(
                credential=None,
                profile=None,
                session=None,
                profile_loading=False,
                auth_ready=True,
            )
            self.navigator.redirect(self.home_path)

    async def update_profile(self, fields: dict[str, Any]) -> AuthResult:
        """
        Partial self-service update keyed by user_id.

        Protected keys (role, status, ids, partnership) are dropped. On
        success the profile is re-read from the store to pick up server-side
        defaults and triggers.
        """
        credential = self._state.credential
        if credential is None:
            return AuthResult(
                error=AuthFailure(
                    kind=FailureKind.NOT_AUTHENTICATED, message="No user logged in"
                )
            )

        changes = {
            key: value
            for key, value in fields.items()
            if key not in PROTECTED_PROFILE_FIELDS
        }
        if changes:
            try:
                await self.profiles.update_by_user_id(credential.id, changes)
            except ProfileStoreError as e:
                logger.error("Profile update failed for %s: %s", credential.id, e.message)
                return AuthResult(
                    error=AuthFailure(
                        kind=FailureKind.PROFILE_STORE, message=e.message, code=e.code
                    )
                )

        await self.refresh_profile()
        return AuthResult()

    async def refresh_profile(self) -> None:
        """Re-fetch the current user's profile; no-op when signed out."""
        credential = self._state.credential
        if credential is None:
            return
        await self._load_profile(credential.id, self._next_profile_epoch())
