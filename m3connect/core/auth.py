# m3connect/core/auth.py
import time
from typing import Any

from fastapi import Depends, HTTPException, Request, Response, status
from jose import jwt, JWTError

from m3connect.core.access import can_submit_project, is_admin
from m3connect.core.auth_controller import AuthController, AuthSnapshot
from m3connect.core.browser_sessions import BrowserSession, SessionRegistry
from m3connect.core.config import get_settings
from m3connect.models.profile import Profile

settings = get_settings()

GUEST_SNAPSHOT = AuthSnapshot(auth_ready=True)


def encode_session_cookie(sid: str) -> str:
    """
    Sign the browser session id into the cookie value.

    The cookie carries nothing but the id; all auth state stays server-side
    in the SessionRegistry.
    """
    now = int(time.time())
    claims = {
        "sid": sid,
        "iat": now,
        "exp": now + settings.PORTAL_SESSION_IDLE_SECONDS,
    }
    return jwt.encode(
        claims, settings.PORTAL_SESSION_SECRET, algorithm=settings.PORTAL_SESSION_ALG
    )


def decode_session_cookie(token: str | None) -> str | None:
    """
    Verify the cookie signature and expiry and return the session id.

    Invalid, tampered or expired cookies are treated as absent: the visitor
    simply gets a fresh (signed-out) browser session.
    """
    if not token:
        return None
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            settings.PORTAL_SESSION_SECRET,
            algorithms=[settings.PORTAL_SESSION_ALG],
        )
    except JWTError:
        return None
    sid = claims.get("sid")
    return sid if isinstance(sid, str) and sid else None


def set_session_cookie(response: Response, sid: str) -> None:
    response.set_cookie(
        settings.PORTAL_COOKIE_NAME,
        encode_session_cookie(sid),
        max_age=settings.PORTAL_SESSION_IDLE_SECONDS,
        httponly=True,
        secure=settings.PORTAL_COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.PORTAL_COOKIE_NAME)


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def get_browser_session(
    request: Request,
    response: Response,
    registry: SessionRegistry = Depends(get_registry),
) -> BrowserSession:
    """
    Resolve (or start) the visitor's browser session.

    Flow:
      1. Read and verify the session cookie.
      2. Reuse the live session, or bootstrap a new controller for this path.
      3. (Re)issue the cookie when the session id changed.
    """
    cookie = request.cookies.get(settings.PORTAL_COOKIE_NAME)
    sid = decode_session_cookie(cookie)
    browser = await registry.open(sid, request.url.path)
    if browser.sid != sid:
        set_session_cookie(response, browser.sid)
    return browser


async def get_live_browser_session(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
) -> BrowserSession | None:
    """
    The visitor's live browser session, or None; never starts one.

    Anything that only reads auth state goes through here, so anonymous
    traffic (health checks, crawlers, guests browsing content) does not
    open a Supabase client per request.
    """
    sid = decode_session_cookie(request.cookies.get(settings.PORTAL_COOKIE_NAME))
    return await registry.resume(sid, request.url.path)


async def get_auth_controller(
    browser: BrowserSession = Depends(get_browser_session),
) -> AuthController:
    return browser.controller


async def get_snapshot(
    browser: BrowserSession | None = Depends(get_live_browser_session),
) -> AuthSnapshot:
    """
    Settled, read-only auth state for this request.

    Visitors without a live session are guests. Otherwise waits for
    event-driven profile fetches still in flight so a response never mixes
    a signed-in credential with a stale profile.
    """
    if browser is None:
        return GUEST_SNAPSHOT
    await browser.controller.wait_for_profile()
    return browser.controller.snapshot


def get_viewer_profile(snapshot: AuthSnapshot = Depends(get_snapshot)) -> Profile | None:
    """Profile of the visitor, or None for guests (and for missing rows)."""
    return snapshot.profile


def require_auth(snapshot: AuthSnapshot = Depends(get_snapshot)) -> AuthSnapshot:
    """
    Enforce authentication.

    Raises:
        HTTPException(401): if nobody is signed in.
    """
    if not snapshot.signed_in:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return snapshot


def require_profile(snapshot: AuthSnapshot = Depends(require_auth)) -> Profile:
    """
    Enforce a loaded profile row.

    Raises:
        HTTPException(409): signed in but no profile (e.g. partial sign-up);
        the client should offer POST /auth/me/refresh.
    """
    if snapshot.profile is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Profile not found, please refresh your profile",
                "action": "/auth/me/refresh",
            },
        )
    return snapshot.profile


def require_admin(profile: Profile = Depends(require_profile)) -> Profile:
    """
    Enforce admin role.

    Raises:
        HTTPException(403): if role is not admin.
    """
    if not is_admin(profile):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return profile


def require_verified_marina(profile: Profile = Depends(require_profile)) -> Profile:
    """
    Enforce a verified marina operator (project submission).

    Raises:
        HTTPException(403): with a pointer to the account page where the
        marina profile is completed / verification is awaited.
    """
    if not can_submit_project(profile):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Verified marina account required",
                "redirect_to": settings.ACCOUNT_PATH,
            },
        )
    return profile
