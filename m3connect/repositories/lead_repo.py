# m3connect/repositories/lead_repo.py
import uuid

from sqlmodel import Session, select

from m3connect.models.lead import MarinaProject, PartnerLead


class LeadRepository:
    """
    Data access layer for inbound requests.

    Covers:
      - PartnerLead   ("become a partner" inquiries)
      - MarinaProject (project briefs from marina operators)
    """

    # ----- Partner leads -----

    def get_lead(self, session: Session, lead_id: uuid.UUID) -> PartnerLead | None:
        return session.get(PartnerLead, lead_id)

    def list_leads(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[PartnerLead]:
        stmt = select(PartnerLead)
        if status:
            stmt = stmt.where(PartnerLead.status == status)
        stmt = stmt.order_by(PartnerLead.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    # ----- Marina projects -----

    def get_project(
        self,
        session: Session,
        project_id: uuid.UUID,
    ) -> MarinaProject | None:
        return session.get(MarinaProject, project_id)

    def list_projects(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[MarinaProject]:
        stmt = select(MarinaProject)
        if status:
            stmt = stmt.where(MarinaProject.status == status)
        stmt = stmt.order_by(MarinaProject.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def list_projects_for_user(
        self,
        session: Session,
        user_id: str,
    ) -> list[MarinaProject]:
        stmt = (
            select(MarinaProject)
            .where(MarinaProject.user_id == user_id)
            .order_by(MarinaProject.created_at.desc())
        )
        return session.exec(stmt).all()

    # ----- Writes (both tables) -----

    def save(self, session: Session, row: PartnerLead | MarinaProject):
        session.add(row)
        session.commit()
        session.refresh(row)
        return row
