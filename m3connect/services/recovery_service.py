# m3connect/services/recovery_service.py
import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable

from m3connect.core.identity import IdentityError, IdentityProvider
from m3connect.core.recovery import RecoveryLink

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = (
    "Invalid or missing reset link. Please request a new password reset."
)
EXPIRED_LINK_MESSAGE = (
    "This reset link has expired or is invalid. Please request a new one."
)
NOT_VERIFIED_MESSAGE = "This reset link has not been verified."
MISMATCH_MESSAGE = "Passwords do not match"
SUCCESS_MESSAGE = "Password updated! Redirecting to homepage..."

# Flows kept in memory before the oldest ones are forgotten
MAX_TRACKED_FLOWS = 1000

# Recovery links are valid for an hour; older flows are closed and forgotten
FLOW_TTL_SECONDS = 60 * 60


class RecoveryState(str, Enum):
    VERIFYING = "verifying"
    VERIFIED = "verified"
    INVALID_LINK = "invalid_link"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"


class PasswordRecoveryFlow:
    """
    State machine behind the recovery page.

      verifying -> invalid_link                      (missing / bad / spent token)
      verifying -> verified -> submitting -> succeeded
                   verified <- submitting            (update failed, retryable)

    The identity provider passed in is dedicated to this flow: the session
    obtained from the token is only used to change the password and is
    signed out right after.
    """

    def __init__(
        self,
        identity: IdentityProvider | None,
        link: RecoveryLink,
        attempted_tokens: set[str],
        min_password_length: int = 6,
        home_path: str = "/",
        redirect_delay_seconds: int = 2,
    ):
        self.identity = identity
        self.link = link
        self.attempted_tokens = attempted_tokens
        self.min_password_length = min_password_length
        self.home_path = home_path
        self.redirect_delay_seconds = redirect_delay_seconds

        self.state = RecoveryState.VERIFYING
        self.error: str | None = None
        self.message: str | None = None
        self.started_at = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def redirect_to(self) -> str | None:
        if self.state is RecoveryState.SUCCEEDED:
            return self.home_path
        return None

    async def release(self) -> None:
        """Close the flow's connection; it is not used again afterwards."""
        identity, self.identity = self.identity, None
        if identity is not None:
            await identity.aclose()

    def _fail_link(self, message: str) -> RecoveryState:
        self.state = RecoveryState.INVALID_LINK
        self.error = message
        return self.state

    async def verify(self) -> RecoveryState:
        """
        Exchange the token for a recovery session, at most once.

        Calling this again (or for the same token from another flow) never
        repeats the exchange: a one-time token is rejected the second time.
        """
        async with self._lock:
            if self.state is not RecoveryState.VERIFYING:
                return self.state

            if not self.link.usable:
                return self._fail_link(INVALID_LINK_MESSAGE)
            if self.identity is None:
                # Forgotten by the service before the exchange
                return self._fail_link(EXPIRED_LINK_MESSAGE)

            token_hash = self.link.token_hash
            if token_hash in self.attempted_tokens:
                await self.release()
                return self._fail_link(EXPIRED_LINK_MESSAGE)
            self.attempted_tokens.add(token_hash)

            try:
                await self.identity.verify_recovery_token(token_hash)
            except IdentityError as e:
                logger.info("Recovery token rejected: %s", e.message)
                await self.release()
                return self._fail_link(EXPIRED_LINK_MESSAGE)

            self.state = RecoveryState.VERIFIED
            self.error = None
            return self.state

    def validate(self, password: str, confirm_password: str) -> str | None:
        """Local checks run before anything is sent to the identity provider."""
        if password != confirm_password:
            return MISMATCH_MESSAGE
        if len(password) < self.min_password_length:
            return f"Password must be at least {self.min_password_length} characters"
        return None

    async def submit(self, password: str, confirm_password: str) -> RecoveryState:
        """Set the new password using the recovery session."""
        async with self._lock:
            if self.state is not RecoveryState.VERIFIED:
                if self.state is RecoveryState.VERIFYING:
                    self.error = NOT_VERIFIED_MESSAGE
                return self.state
            if self.identity is None:
                return self._fail_link(EXPIRED_LINK_MESSAGE)

            problem = self.validate(password, confirm_password)
            if problem is not None:
                self.error = problem
                return self.state

            self.state = RecoveryState.SUBMITTING
            self.error = None
            try:
                await self.identity.update_password(password)
            except IdentityError as e:
                self.state = RecoveryState.VERIFIED
                self.error = e.message
                return self.state

            try:
                await self.identity.sign_out()
            except IdentityError as e:
                logger.warning("Recovery session sign-out failed: %s", e.message)
            await self.release()

            self.state = RecoveryState.SUCCEEDED
            self.message = SUCCESS_MESSAGE
            return self.state


class RecoveryService:
    """
    Tracks recovery flows by token.

    A page load for a token that already has a flow gets that flow back,
    which makes the token exchange idempotent across duplicate requests.
    """

    def __init__(
        self,
        connect: Callable[[], Awaitable[IdentityProvider]],
        min_password_length: int = 6,
        home_path: str = "/",
        redirect_delay_seconds: int = 2,
        max_flows: int = MAX_TRACKED_FLOWS,
        flow_ttl_seconds: int = FLOW_TTL_SECONDS,
    ):
        self.connect = connect
        self.max_flows = max_flows
        self.flow_ttl_seconds = flow_ttl_seconds
        self.min_password_length = min_password_length
        self.home_path = home_path
        self.redirect_delay_seconds = redirect_delay_seconds

        self.attempted_tokens: set[str] = set()
        self.flows: dict[str, PasswordRecoveryFlow] = {}
        self._lock = asyncio.Lock()

    async def _new_flow(self, link: RecoveryLink) -> PasswordRecoveryFlow:
        identity = await self.connect()
        return PasswordRecoveryFlow(
            identity,
            link,
            self.attempted_tokens,
            min_password_length=self.min_password_length,
            home_path=self.home_path,
            redirect_delay_seconds=self.redirect_delay_seconds,
        )

    async def _forget(self, token_hash: str) -> None:
        flow = self.flows.pop(token_hash, None)
        if flow is not None:
            await flow.release()

    async def _forget_stale(self) -> None:
        cutoff = time.monotonic() - self.flow_ttl_seconds
        for token_hash in [t for t, f in self.flows.items() if f.started_at < cutoff]:
            await self._forget(token_hash)
        while len(self.flows) > self.max_flows:
            await self._forget(next(iter(self.flows)))

    async def open(self, link: RecoveryLink) -> PasswordRecoveryFlow:
        """Return the flow for `link`, verifying its token on first sight."""
        if not link.usable:
            # Rejected before any network call; no connection needed.
            flow = PasswordRecoveryFlow(None, link, self.attempted_tokens)
            await flow.verify()
            return flow

        async with self._lock:
            flow = self.flows.get(link.token_hash)
            if flow is None:
                flow = await self._new_flow(link)
                self.flows[link.token_hash] = flow
            await self._forget_stale()

        await flow.verify()
        return flow

    async def close_all(self) -> None:
        async with self._lock:
            for token_hash in list(self.flows):
                await self._forget(token_hash)

    def get(self, token_hash: str) -> PasswordRecoveryFlow | None:
        return self.flows.get(token_hash)
