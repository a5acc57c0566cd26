# m3connect/routers/projects.py
from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlmodel import Session

from m3connect.core.auth import require_profile, require_verified_marina
from m3connect.core.email_client import notify_team
from m3connect.database import get_session
from m3connect.models.profile import Profile
from m3connect.repositories.lead_repo import LeadRepository
from m3connect.schemas.lead import MarinaProjectCreate, MarinaProjectRead
from m3connect.services.lead_service import LeadService

router = APIRouter(prefix="/projects", tags=["Marina projects"])

repo = LeadRepository()
service = LeadService(repo)


@router.post(
    "",
    response_model=MarinaProjectRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_project(
    payload: MarinaProjectCreate,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_verified_marina),
):
    """
    Submit a project brief.

    Auth:
      - Verified marina operators only; others get 403 with a pointer to
        the account page.
    """
    project = service.create_project(session, profile, payload)
    subject, body = service.project_notification(project, profile)
    background_tasks.add_task(notify_team, subject, body)
    return project


@router.get("/me", response_model=list[MarinaProjectRead])
def list_my_projects(
    session: Session = Depends(get_session),
    profile: Profile = Depends(require_profile),
):
    """Projects submitted by the signed-in member."""
    return service.list_user_projects(session, profile.user_id)
