# m3connect/routers/partners.py
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session

from m3connect.core.email_client import notify_team
from m3connect.database import get_session
from m3connect.repositories.lead_repo import LeadRepository
from m3connect.repositories.partner_repo import PartnerRepository
from m3connect.schemas.content import PartnerRead
from m3connect.schemas.lead import PartnerLeadCreate, PartnerLeadRead
from m3connect.services.lead_service import LeadService
from m3connect.services.partner_service import PartnerService

router = APIRouter(tags=["Partners"])

partner_service = PartnerService(PartnerRepository())
lead_service = LeadService(LeadRepository())


@router.get("/partners", response_model=list[PartnerRead])
def list_partners(
    session: Session = Depends(get_session),
    sector: str | None = None,
    skip: int = 0,
    limit: int = 100,
):
    """Partner directory (public), featured partners first."""
    return partner_service.list_partners(session, sector=sector, skip=skip, limit=limit)


@router.post(
    "/partner-leads",
    response_model=PartnerLeadRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_partner_lead(
    payload: PartnerLeadCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
):
    """
    "Become a partner" inquiry.

    - No account required; `consent` must be true.
    - The team is notified by email after the response is sent.
    """
    lead = lead_service.create_lead(session, payload)
    subject, body = lead_service.lead_notification(lead)
    background_tasks.add_task(notify_team, subject, body)
    return lead
