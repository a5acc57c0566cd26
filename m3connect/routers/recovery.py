# m3connect/routers/recovery.py
from fastapi import APIRouter, Depends, Request, Response

from m3connect.core.config import get_settings
from m3connect.core.recovery import RECOVERY_TYPE, RecoveryLink
from m3connect.schemas.recovery import RecoveryPageRead, RecoverySubmit
from m3connect.services.recovery_service import RecoveryService, RecoveryState

settings = get_settings()

router = APIRouter(prefix=settings.RECOVERY_PATH, tags=["Password recovery"])


def get_recovery_service(request: Request) -> RecoveryService:
    return request.app.state.recovery_service


@router.get("", response_model=RecoveryPageRead)
async def open_recovery_page(
    token_hash: str | None = None,
    type: str | None = None,
    service: RecoveryService = Depends(get_recovery_service),
):
    """
    Landing page of a password-reset link.

    - Missing token or a type other than "recovery": invalid_link, no
      call to Supabase.
    - Otherwise the token is exchanged once; reloading the page returns
      the same flow instead of spending the token again.
    """
    flow = await service.open(RecoveryLink(type=type, token_hash=token_hash))
    return RecoveryPageRead.from_flow(flow)


@router.post("", response_model=RecoveryPageRead)
async def submit_new_password(
    payload: RecoverySubmit,
    response: Response,
    service: RecoveryService = Depends(get_recovery_service),
):
    """
    Set the new password.

    Mismatched or too-short passwords are rejected locally and the page
    stays verified. On success the recovery session is signed out and the
    client is sent home after a short delay (`Refresh` header).
    """
    flow = service.get(payload.token_hash)
    if flow is None:
        flow = await service.open(
            RecoveryLink(type=RECOVERY_TYPE, token_hash=payload.token_hash)
        )

    state = await flow.submit(payload.password, payload.confirm_password)
    if state is RecoveryState.SUCCEEDED:
        response.headers["Refresh"] = (
            f"{flow.redirect_delay_seconds}; url={flow.redirect_to}"
        )
    return RecoveryPageRead.from_flow(flow)
