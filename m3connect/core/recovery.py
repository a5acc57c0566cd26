# m3connect/core/recovery.py
"""
Password-recovery routing.

Supabase sends recovery links back to the site carrying
`type=recovery&token_hash=...`, either in the URL fragment or in the query
string. Such a page load must end up on the recovery page before the normal
session bootstrap runs, otherwise the one-time token would be spent as an
ordinary sign-in.
"""
import logging
from urllib.parse import parse_qsl, urlencode, urlsplit

from pydantic import BaseModel, ConfigDict
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from m3connect.core.identity import (
    PASSWORD_RECOVERY,
    IdentityProvider,
    SessionInfo,
    Subscription,
)

logger = logging.getLogger(__name__)

RECOVERY_TYPE = "recovery"


class RecoveryLink(BaseModel):
    """Parameters of a recovery link as found in the URL."""

    model_config = ConfigDict(frozen=True)

    type: str | None = None
    token_hash: str | None = None

    @property
    def usable(self) -> bool:
        return self.type == RECOVERY_TYPE and bool(self.token_hash)

    def query_string(self) -> str:
        params = {"type": self.type, "token_hash": self.token_hash}
        return urlencode({k: v for k, v in params.items() if v})


def _params(raw: str) -> dict[str, str]:
    return dict(parse_qsl(raw, keep_blank_values=True))


class RecoveryRouter:
    """
    Detects recovery links and computes where to send them.

    The fragment is inspected before the query string: Supabase's client
    clears the fragment once it initializes, so it is the first thing that
    can be lost.
    """

    def __init__(self, recovery_path: str = "/reset-password"):
        self.recovery_path = recovery_path

    def detect(self, url: str) -> RecoveryLink | None:
        """Return the recovery parameters carried by `url`, if any."""
        parts = urlsplit(url)
        for raw in (parts.fragment, parts.query):
            params = _params(raw.lstrip("#?"))
            if params.get("type") == RECOVERY_TYPE:
                return RecoveryLink(
                    type=params.get("type"),
                    token_hash=params.get("token_hash"),
                )
        return None

    def is_recovery_page(self, url: str) -> bool:
        return urlsplit(url).path == self.recovery_path

    def redirect_target(self, url: str) -> str | None:
        """
        Recovery page URL preserving the token, or None.

        None is returned when `url` carries no recovery marker or already
        points at the recovery page, so repeated detection never loops.
        """
        if self.is_recovery_page(url):
            return None
        link = self.detect(url)
        if link is None:
            return None
        query = link.query_string()
        return f"{self.recovery_path}?{query}" if query else self.recovery_path

    def watch(self, identity: IdentityProvider, navigator) -> Subscription:
        """
        Follow live PASSWORD_RECOVERY events.

        Covers tokens exchanged after the session was already booted. The
        caller owns the returned subscription and must unsubscribe it.
        """

        def _on_event(event: str, session: SessionInfo | None) -> None:
            if event != PASSWORD_RECOVERY:
                return
            if navigator.current_path() == self.recovery_path:
                return
            logger.info("Password recovery event, redirecting to %s", self.recovery_path)
            navigator.redirect(self.recovery_path)

        return identity.on_auth_state_change(_on_event)


class RecoveryRedirectMiddleware(BaseHTTPMiddleware):
    """
    Send recovery links to the recovery page before routing.

    Runs ahead of every route and dependency, so the auth controller for a
    recovery page load is only ever created on the recovery page itself.
    Only page loads (GET/HEAD) are redirected; API writes pass through.
    """

    methods = frozenset({"GET", "HEAD"})

    def __init__(self, app, router: RecoveryRouter):
        super().__init__(app)
        self.router = router

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method not in self.methods:
            return await call_next(request)
        target = self.router.redirect_target(str(request.url))
        if target is not None:
            return RedirectResponse(target, status_code=307)
        return await call_next(request)
