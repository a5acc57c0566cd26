# m3connect/services/partner_service.py
from sqlmodel import Session

from m3connect.models.partner import Partner
from m3connect.repositories.partner_repo import PartnerRepository


class PartnerService:
    """Public partner directory, featured partners first."""

    def __init__(self, repo: PartnerRepository):
        self.repo = repo

    def list_partners(
        self,
        session: Session,
        sector: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Partner]:
        return self.repo.list(session, sector=sector, skip=skip, limit=limit)
