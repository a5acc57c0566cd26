# m3connect/routers/resources.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from m3connect.core.auth import get_viewer_profile
from m3connect.database import get_session
from m3connect.models.profile import Profile
from m3connect.repositories.resource_repo import ResourceRepository
from m3connect.schemas.content import AccessLevelValue, ResourceRead, ResourceType
from m3connect.services.resource_service import ResourceService

router = APIRouter(prefix="/resources", tags=["Resources"])

repo = ResourceRepository()
service = ResourceService(repo)


@router.get("", response_model=list[ResourceRead])
def list_resources(
    session: Session = Depends(get_session),
    profile: Profile | None = Depends(get_viewer_profile),
    search: str | None = None,
    type: ResourceType | None = None,
    language: str | None = None,
    access_level: AccessLevelValue | None = None,
    skip: int = 0,
    limit: int = 50,
):
    """
    List published resources for the current visitor.

    - Public endpoint; gated items come back with `locked=true` and no
      `content` / `file_url`.
    """
    return service.list_for_viewer(
        session,
        profile,
        search=search,
        type=type,
        language=language,
        access_level=access_level,
        skip=skip,
        limit=limit,
    )


@router.get("/{resource_id}", response_model=ResourceRead)
def get_resource(
    resource_id: uuid.UUID,
    session: Session = Depends(get_session),
    profile: Profile | None = Depends(get_viewer_profile),
):
    return service.get_for_viewer(session, resource_id, profile)
