# m3connect/repositories/resource_repo.py
import uuid

from sqlalchemy import or_
from sqlmodel import Session, select

from m3connect.models.resource import Resource


class ResourceRepository:
    """
    Data access layer for Resource.

    - Pure DB operations (CRUD + filtered listing).
    - No access decisions: every row is returned, gating happens in the service.
    """

    def get_by_id(self, session: Session, resource_id: uuid.UUID) -> Resource | None:
        return session.get(Resource, resource_id)

    def list(
        self,
        session: Session,
        search: str | None = None,
        type: str | None = None,
        language: str | None = None,
        access_level: str | None = None,
        only_published: bool = True,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Resource]:
        stmt = select(Resource)
        if only_published:
            stmt = stmt.where(Resource.published == True)  # noqa: E712
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Resource.title.ilike(pattern),
                    Resource.summary.ilike(pattern),
                    Resource.topic.ilike(pattern),
                )
            )
        if type:
            stmt = stmt.where(Resource.type == type)
        if language:
            stmt = stmt.where(Resource.language == language)
        if access_level:
            stmt = stmt.where(Resource.access_level == access_level)
        stmt = stmt.order_by(Resource.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, resource: Resource) -> Resource:
        session.add(resource)
        session.commit()
        session.refresh(resource)
        return resource

    def delete(self, session: Session, resource: Resource) -> None:
        session.delete(resource)
        session.commit()
