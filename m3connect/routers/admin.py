# m3connect/routers/admin.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from sqlmodel import Session

from m3connect.core.access import Role, Status
from m3connect.core.auth import require_admin
from m3connect.database import get_session
from m3connect.models.profile import Profile
from m3connect.repositories.event_repo import EventRepository
from m3connect.repositories.lead_repo import LeadRepository
from m3connect.repositories.resource_repo import ResourceRepository
from m3connect.schemas.admin import ProfileRoleUpdate, ProfileStatusUpdate
from m3connect.schemas.content import (
    EventCreate,
    EventRead,
    ResourceCreate,
    ResourceRead,
)
from m3connect.schemas.lead import (
    LeadStatus,
    MarinaProjectRead,
    MarinaProjectUpdate,
    PartnerLeadRead,
    PartnerLeadUpdate,
    ProjectStatus,
)
from m3connect.services.event_service import EventService
from m3connect.services.lead_service import LeadService
from m3connect.services.resource_service import ResourceService
from m3connect.services.user_admin_service import UserAdminService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

lead_service = LeadService(LeadRepository())
resource_service = ResourceService(ResourceRepository())
event_service = EventService(EventRepository())


def get_user_admin_service(request: Request) -> UserAdminService:
    """
    Back-office service on the service-role profile store.

    Raises:
        HTTPException(503): if no service-role key was configured.
    """
    store = getattr(request.app.state, "admin_store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Back office is not configured",
        )
    return UserAdminService(store)


# -------- Users --------


@router.get("/users", response_model=list[Profile])
async def list_users(
    search: str | None = None,
    role: Role | None = None,
    status: Status | None = None,
    skip: int = 0,
    limit: int = 200,
    service: UserAdminService = Depends(get_user_admin_service),
):
    """
    List member profiles, newest first.

    - `role` / `status`: exact filters.
    - `search`: matches first/last name, email or organization.
    """
    return await service.list_profiles(
        search=search, role=role, status=status, skip=skip, limit=limit
    )


@router.get("/users/export")
async def export_users_csv(
    search: str | None = None,
    role: Role | None = None,
    status: Status | None = None,
    service: UserAdminService = Depends(get_user_admin_service),
):
    """CSV export of the filtered user list."""
    content = await service.export_csv(search=search, role=role, status=status)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="users.csv"'},
    )


@router.patch("/users/{user_id}/role", response_model=Profile)
async def update_user_role(
    user_id: str,
    payload: ProfileRoleUpdate,
    service: UserAdminService = Depends(get_user_admin_service),
):
    """Change a member's role; they see it on their next profile refresh."""
    return await service.set_role(user_id, payload.role)


@router.patch("/users/{user_id}/status", response_model=Profile)
async def update_user_status(
    user_id: str,
    payload: ProfileStatusUpdate,
    service: UserAdminService = Depends(get_user_admin_service),
):
    """Verify or reject a member (e.g. a marina operator)."""
    return await service.set_status(user_id, payload.status)


# -------- Partner leads --------


@router.get("/leads", response_model=list[PartnerLeadRead])
def list_leads(
    session: Session = Depends(get_session),
    status: LeadStatus | None = None,
    skip: int = 0,
    limit: int = 50,
):
    return lead_service.list_leads(session, status=status, skip=skip, limit=limit)


@router.patch("/leads/{lead_id}", response_model=PartnerLeadRead)
def update_lead(
    lead_id: uuid.UUID,
    payload: PartnerLeadUpdate,
    session: Session = Depends(get_session),
):
    return lead_service.update_lead(session, lead_id, payload)


# -------- Marina projects --------


@router.get("/projects", response_model=list[MarinaProjectRead])
def list_projects(
    session: Session = Depends(get_session),
    status: ProjectStatus | None = None,
    skip: int = 0,
    limit: int = 50,
):
    return lead_service.list_projects(session, status=status, skip=skip, limit=limit)


@router.patch("/projects/{project_id}", response_model=MarinaProjectRead)
def update_project(
    project_id: uuid.UUID,
    payload: MarinaProjectUpdate,
    session: Session = Depends(get_session),
):
    return lead_service.update_project(session, project_id, payload)


# -------- Content --------


@router.post(
    "/resources",
    response_model=ResourceRead,
    status_code=status.HTTP_201_CREATED,
)
def create_resource(
    payload: ResourceCreate,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    resource = resource_service.create_resource(session, payload)
    return ResourceRead.for_viewer(resource, admin)


@router.delete("/resources/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    resource_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    resource_service.delete_resource(session, resource_id)
    return None


@router.post(
    "/events",
    response_model=EventRead,
    status_code=status.HTTP_201_CREATED,
)
def create_event(
    payload: EventCreate,
    session: Session = Depends(get_session),
    admin: Profile = Depends(require_admin),
):
    event = event_service.create_event(session, payload)
    return EventRead.for_viewer(event, admin)


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    event_service.delete_event(session, event_id)
    return None
