# m3connect/repositories/partner_repo.py
from sqlmodel import Session, select

from m3connect.models.partner import Partner


class PartnerRepository:
    """Read access to the partner directory."""

    def list(
        self,
        session: Session,
        sector: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Partner]:
        stmt = select(Partner)
        if sector:
            stmt = stmt.where(Partner.sector == sector)
        stmt = (
            stmt.order_by(Partner.is_featured.desc(), Partner.name.asc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def create(self, session: Session, partner: Partner) -> Partner:
        session.add(partner)
        session.commit()
        session.refresh(partner)
        return partner
