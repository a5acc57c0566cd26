# m3connect/services/lead_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from m3connect.models.lead import MarinaProject, PartnerLead
from m3connect.models.profile import Profile
from m3connect.repositories.lead_repo import LeadRepository
from m3connect.schemas.lead import (
    MarinaProjectCreate,
    MarinaProjectUpdate,
    PartnerLeadCreate,
    PartnerLeadUpdate,
)


class LeadService:
    """
    Business logic for inbound requests.

    Responsibilities:
      - store partner leads and marina project briefs
      - compose the team notification for each new submission
      - admin triage (status + notes)

    Eligibility for project submission (verified marina) is enforced at the
    router via require_verified_marina.
    """

    def __init__(self, repo: LeadRepository):
        self.repo = repo

    # -------- Partner leads --------

    def create_lead(self, session: Session, payload: PartnerLeadCreate) -> PartnerLead:
        lead = PartnerLead(**payload.model_dump(exclude={"consent"}))
        return self.repo.save(session, lead)

    @staticmethod
    def lead_notification(lead: PartnerLead) -> tuple[str, str]:
        subject = f"[M3 Connect] New partner lead: {lead.company}"
        body = "\n".join(
            [
                f"Name: {lead.first_name} {lead.last_name}",
                f"Email: {lead.email}",
                f"Phone: {lead.phone or '-'}",
                f"Company: {lead.company}",
                f"Website: {lead.website or '-'}",
                f"Country: {lead.country}",
                f"Actor type: {lead.actor_type}",
                f"Engagement: {lead.engagement_level}",
                "",
                f"Solutions: {lead.solutions or '-'}",
                f"Goals: {lead.goals or '-'}",
            ]
        )
        return subject, body

    def list_leads(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[PartnerLead]:
        return self.repo.list_leads(session, status=status, skip=skip, limit=limit)

    def update_lead(
        self,
        session: Session,
        lead_id: uuid.UUID,
        payload: PartnerLeadUpdate,
    ) -> PartnerLead:
        lead = self.repo.get_lead(session, lead_id)
        if not lead:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Lead not found",
            )
        if payload.status is not None:
            lead.status = payload.status
        if payload.admin_notes is not None:
            lead.admin_notes = payload.admin_notes
        return self.repo.save(session, lead)

    # -------- Marina projects --------

    def create_project(
        self,
        session: Session,
        profile: Profile,
        payload: MarinaProjectCreate,
    ) -> MarinaProject:
        project = MarinaProject(
            user_id=profile.user_id,
            **payload.model_dump(exclude={"consent"}),
        )
        return self.repo.save(session, project)

    @staticmethod
    def project_notification(
        project: MarinaProject,
        profile: Profile,
    ) -> tuple[str, str]:
        subject = f"[M3 Connect] New marina project: {profile.organization_name}"
        body = "\n".join(
            [
                f"Marina: {profile.organization_name} ({profile.country})",
                f"Contact: {profile.full_name} <{profile.email}>",
                f"Type: {project.project_type}",
                f"Budget: {project.budget_range}",
                f"Timeline: {project.timeline}",
                "",
                project.description,
            ]
        )
        return subject, body

    def list_user_projects(self, session: Session, user_id: str) -> list[MarinaProject]:
        return self.repo.list_projects_for_user(session, user_id)

    def list_projects(
        self,
        session: Session,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[MarinaProject]:
        return self.repo.list_projects(session, status=status, skip=skip, limit=limit)

    def update_project(
        self,
        session: Session,
        project_id: uuid.UUID,
        payload: MarinaProjectUpdate,
    ) -> MarinaProject:
        project = self.repo.get_project(session, project_id)
        if not project:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Project not found",
            )
        if payload.status is not None:
            project.status = payload.status
        if payload.admin_notes is not None:
            project.admin_notes = payload.admin_notes
        return self.repo.save(session, project)
