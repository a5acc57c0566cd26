# m3connect/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from m3connect.core.auth import (
    clear_session_cookie,
    get_auth_controller,
    get_browser_session,
    get_live_browser_session,
    get_registry,
    get_snapshot,
    set_session_cookie,
)
from m3connect.core.auth_controller import (
    AuthController,
    AuthFailure,
    AuthResult,
    AuthSnapshot,
    FailureKind,
)
from m3connect.core.browser_sessions import BrowserSession, SessionRegistry
from m3connect.core.config import get_settings
from m3connect.core.identity import IdentityError
from m3connect.schemas.auth import (
    AuthStateRead,
    PasswordResetRequest,
    ProfileUpdate,
    RecoveryDetectRead,
    RecoveryDetectRequest,
    SignInRequest,
    SignUpRequest,
)

router = APIRouter(prefix="/auth", tags=["Auth"])

settings = get_settings()
logger = logging.getLogger(__name__)

FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.CREDENTIAL: status.HTTP_400_BAD_REQUEST,
    FailureKind.PROFILE_INSERT: status.HTTP_409_CONFLICT,
    FailureKind.PROFILE_STORE: status.HTTP_502_BAD_GATEWAY,
    FailureKind.NOT_AUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
}


def failure_detail(error: AuthFailure) -> dict[str, str | None]:
    """
    Error body for a controller failure.

    A profile_insert failure means the account exists without a profile:
    the client is pointed at the refresh action instead of a dead end.
    """
    detail: dict[str, str | None] = {
        "kind": error.kind.value,
        "message": error.message,
    }
    if error.kind is FailureKind.PROFILE_INSERT:
        detail["action"] = "/auth/me/refresh"
    return detail


def raise_for_result(result: AuthResult) -> None:
    """Map a controller failure to an HTTP error."""
    if result.ok:
        return
    raise HTTPException(
        status_code=FAILURE_STATUS[result.error.kind],
        detail=failure_detail(result.error),
    )


async def settled_state(controller: AuthController) -> AuthStateRead:
    await controller.wait_for_profile()
    return AuthStateRead.from_snapshot(controller.snapshot)


# -------- Session state --------


@router.get("/me", response_model=AuthStateRead)
async def read_me(
    snapshot: AuthSnapshot = Depends(get_snapshot),
    browser: BrowserSession | None = Depends(get_live_browser_session),
):
    """
    Return the visitor's auth state (guest, signed in, profile).

    `redirect_to` is set when the session was asked to navigate elsewhere,
    e.g. a live password-recovery event.
    """
    return AuthStateRead.from_snapshot(
        snapshot,
        redirect_to=browser.navigator.take_redirect() if browser else None,
    )


@router.post(
    "/signup",
    response_model=AuthStateRead,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    payload: SignUpRequest,
    browser: BrowserSession = Depends(get_browser_session),
):
    """
    Create an account and its pending profile.

    Role is derived from organization_type ("Marina / Port" => marina);
    status always starts as pending until an administrator reviews it.
    """
    controller = browser.controller
    result = await controller.sign_up(
        payload.email, payload.password, payload.profile.model_dump()
    )
    if not result.ok and result.error.kind is FailureKind.PROFILE_INSERT:
        # The account exists and is signed in; keep the session cookie so
        # the refresh action reaches the same session.
        response = JSONResponse(
            status_code=FAILURE_STATUS[result.error.kind],
            content={"detail": failure_detail(result.error)},
        )
        set_session_cookie(response, browser.sid)
        return response
    raise_for_result(result)
    return await settled_state(controller)


@router.post("/signin", response_model=AuthStateRead)
async def sign_in(
    payload: SignInRequest,
    controller: AuthController = Depends(get_auth_controller),
):
    """Sign in with email and password."""
    result = await controller.sign_in(payload.email, payload.password)
    raise_for_result(result)
    return await settled_state(controller)


@router.post("/signout")
async def sign_out(
    browser: BrowserSession | None = Depends(get_live_browser_session),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Sign out and go home.

    Always clears the server-side session and the cookie, even when
    Supabase could not be reached.
    """
    location = settings.HOME_PATH
    if browser is not None:
        await browser.controller.sign_out()
        location = browser.navigator.take_redirect() or location
        await registry.discard(browser.sid)

    response = RedirectResponse(location, status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookie(response)
    return response


# -------- Self profile --------


@router.patch("/me", response_model=AuthStateRead)
async def update_me(
    payload: ProfileUpdate,
    controller: AuthController = Depends(get_auth_controller),
):
    """Update the signed-in user's own profile (partial update)."""
    result = await controller.update_profile(payload.model_dump(exclude_unset=True))
    raise_for_result(result)
    return AuthStateRead.from_snapshot(controller.snapshot)


@router.post("/me/refresh", response_model=AuthStateRead)
async def refresh_me(controller: AuthController = Depends(get_auth_controller)):
    """
    Re-read the profile from the store.

    Recovery action when the profile is missing or believed stale, e.g.
    after a partial sign-up or an administrator's review.
    """
    await controller.refresh_profile()
    return AuthStateRead.from_snapshot(controller.snapshot)


# -------- Password recovery --------


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(
    payload: PasswordResetRequest,
    controller: AuthController = Depends(get_auth_controller),
) -> dict[str, str]:
    """
    Ask Supabase to email a recovery link.

    The answer is the same whether or not the address has an account.
    """
    redirect_to = settings.PUBLIC_SITE_URL.rstrip("/") + settings.RECOVERY_PATH
    try:
        await controller.identity.reset_password_for_email(payload.email, redirect_to)
    except IdentityError as e:
        logger.warning("Password reset request failed: %s", e.message)
    return {"message": "If an account exists for this email, a reset link is on its way."}


@router.post("/recovery/detect", response_model=RecoveryDetectRead)
def detect_recovery(payload: RecoveryDetectRequest, request: Request):
    """
    Fragment-aware recovery detection.

    Browsers never send the URL fragment to the server, so the front-end
    bootstrap posts its full location here before starting anything else.
    """
    recovery_router = request.app.state.recovery_router
    return RecoveryDetectRead(redirect_to=recovery_router.redirect_target(payload.url))
