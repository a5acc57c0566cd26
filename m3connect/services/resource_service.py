# m3connect/services/resource_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from m3connect.models.profile import Profile
from m3connect.models.resource import Resource
from m3connect.repositories.resource_repo import ResourceRepository
from m3connect.schemas.content import ResourceCreate, ResourceRead


class ResourceService:
    """
    Business logic for the resource library.

    Responsibilities:
      - filtered listing
      - per-viewer gating (locked flag, withheld body and file link)
      - admin create / delete (enforced at router via require_admin)
    """

    def __init__(self, repo: ResourceRepository):
        self.repo = repo

    def list_for_viewer(
        self,
        session: Session,
        profile: Profile | None,
        search: str | None = None,
        type: str | None = None,
        language: str | None = None,
        access_level: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[ResourceRead]:
        """
        List published resources.

        Locked resources are still listed (with their teaser) so that the
        client can show the call to action.
        """
        rows = self.repo.list(
            session,
            search=search.strip() if search else None,
            type=type,
            language=language,
            access_level=access_level,
            skip=skip,
            limit=limit,
        )
        return [ResourceRead.for_viewer(r, profile) for r in rows]

    def get_resource(self, session: Session, resource_id: uuid.UUID) -> Resource:
        resource = self.repo.get_by_id(session, resource_id)
        if not resource or not resource.published:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Resource not found",
            )
        return resource

    def get_for_viewer(
        self,
        session: Session,
        resource_id: uuid.UUID,
        profile: Profile | None,
    ) -> ResourceRead:
        return ResourceRead.for_viewer(self.get_resource(session, resource_id), profile)

    def create_resource(self, session: Session, payload: ResourceCreate) -> Resource:
        return self.repo.create(session, Resource(**payload.model_dump()))

    def delete_resource(self, session: Session, resource_id: uuid.UUID) -> None:
        resource = self.repo.get_by_id(session, resource_id)
        if not resource:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Resource not found",
            )
        self.repo.delete(session, resource)
