# m3connect/core/browser_sessions.py
"""
Per-browser auth contexts.

The portal keeps one AuthController per visitor, keyed by the id carried in
the signed session cookie. Each BrowserSession owns its Supabase connection
and its event subscriptions through an AsyncExitStack, so every way out
(sign-out, idle eviction, shutdown, a failed bootstrap) releases them.
"""
import logging
import time
import uuid
from collections import OrderedDict
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Awaitable, Callable

from m3connect.core.auth_controller import AuthController
from m3connect.core.recovery import RecoveryRouter

if TYPE_CHECKING:
    from m3connect.core.supabase_client import PortalBackend

logger = logging.getLogger(__name__)


class BrowserNavigator:
    """
    Navigation state of one browser, as seen by the server.

    The current path is updated on every request; a redirect requested by
    the controller (sign-out, recovery event) is held until the HTTP layer
    turns it into a redirect response.
    """

    def __init__(self, path: str = "/"):
        self.path = path
        self.pending_redirect: str | None = None

    def current_path(self) -> str:
        return self.path

    def redirect(self, location: str) -> None:
        self.pending_redirect = location

    def visit(self, path: str) -> None:
        self.path = path

    def take_redirect(self) -> str | None:
        location, self.pending_redirect = self.pending_redirect, None
        return location


class BrowserSession:
    def __init__(
        self,
        sid: str,
        controller: AuthController,
        navigator: BrowserNavigator,
        stack: AsyncExitStack,
    ):
        self.sid = sid
        self.controller = controller
        self.navigator = navigator
        self.last_seen = time.monotonic()
        self._stack = stack

    def touch(self, path: str) -> None:
        self.navigator.visit(path)
        self.last_seen = time.monotonic()

    async def close(self) -> None:
        await self._stack.aclose()


class SessionRegistry:
    """
    Registry of live browser sessions.

    `connect` builds a fresh PortalBackend (identity provider + profile
    store on their own Supabase client) for each new browser. At most
    `max_sessions` stay live; opening one more closes the least recently
    used.
    """

    def __init__(
        self,
        connect: Callable[[], Awaitable["PortalBackend"]],
        recovery_router: RecoveryRouter,
        home_path: str = "/",
        idle_seconds: int = 60 * 60 * 12,
        max_sessions: int = 1000,
    ):
        self.connect = connect
        self.recovery_router = recovery_router
        self.home_path = home_path
        self.idle_seconds = idle_seconds
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, BrowserSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, sid: str) -> BrowserSession | None:
        return self._sessions.get(sid)

    async def _start(self, sid: str, path: str) -> BrowserSession:
        backend = await self.connect()
        navigator = BrowserNavigator(path)
        stack = AsyncExitStack()
        try:
            stack.push_async_callback(backend.aclose)
            watcher = self.recovery_router.watch(backend.identity, navigator)
            stack.callback(watcher.unsubscribe)
            controller = AuthController(
                backend.identity,
                backend.profiles,
                navigator,
                recovery_path=self.recovery_router.recovery_path,
                home_path=self.home_path,
            )
            await stack.enter_async_context(controller)
        except BaseException:
            await stack.aclose()
            raise
        return BrowserSession(sid, controller, navigator, stack)

    async def resume(self, sid: str | None, path: str) -> BrowserSession | None:
        """Return the live session for `sid`, or None; never creates one."""
        await self.evict_idle()
        browser = self._sessions.get(sid) if sid else None
        if browser is not None:
            self._sessions.move_to_end(sid)
            browser.touch(path)
        return browser

    async def open(self, sid: str | None, path: str) -> BrowserSession:
        """
        Return the live session for `sid`, creating one if needed.

        A new session bootstraps its controller immediately, with the
        requested path as the current navigation target.
        """
        browser = await self.resume(sid, path)
        if browser is not None:
            return browser

        sid = sid or uuid.uuid4().hex
        created = await self._start(sid, path)
        browser = self._sessions.setdefault(sid, created)
        if browser is not created:
            # A concurrent request for the same cookie won the race.
            await created.close()
        else:
            logger.debug("Opened browser session %s", sid)
            await self._evict_overflow()

        browser.touch(path)
        return browser

    async def _evict_overflow(self) -> None:
        while len(self._sessions) > self.max_sessions:
            sid = next(iter(self._sessions))
            logger.info("Session limit reached, closing browser session %s", sid)
            await self.discard(sid)

    async def discard(self, sid: str) -> None:
        browser = self._sessions.pop(sid, None)
        if browser is not None:
            await browser.close()
            logger.debug("Closed browser session %s", sid)

    async def evict_idle(self) -> None:
        cutoff = time.monotonic() - self.idle_seconds
        stale = [sid for sid, b in self._sessions.items() if b.last_seen < cutoff]
        for sid in stale:
            await self.discard(sid)

    async def close_all(self) -> None:
        for sid in list(self._sessions):
            await self.discard(sid)
