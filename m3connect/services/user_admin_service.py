# m3connect/services/user_admin_service.py
import csv
import io
import logging

from fastapi import HTTPException, status

from m3connect.core.access import Role, Status
from m3connect.models.profile import Profile
from m3connect.repositories.profile_repo import ProfileRepository, ProfileStoreError

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Name",
    "Email",
    "Organization",
    "Type",
    "Country",
    "Role",
    "Status",
    "Created",
]

# Rows fetched per store round-trip while exporting
EXPORT_PAGE_SIZE = 500


def profiles_to_csv(profiles: list[Profile]) -> str:
    """Render the back-office user export (one row per profile)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for p in profiles:
        writer.writerow(
            [
                p.full_name,
                p.email,
                p.organization_name,
                p.organization_type,
                p.country,
                p.role,
                p.status,
                p.created_at.date().isoformat() if p.created_at else "",
            ]
        )
    return buffer.getvalue()


class UserAdminService:
    """
    Back-office moderation of member profiles.

    Responsibilities:
      - list / filter / search profiles
      - change role and verification status
      - CSV export

    Runs on the service-role Profile Store, bypassing row-level security;
    callers are gated by require_admin. A member sees a change on their
    next profile refresh.
    """

    def __init__(self, store: ProfileRepository):
        self.store = store

    async def _guard(self, awaitable):
        try:
            return await awaitable
        except ProfileStoreError as e:
            logger.error("Back-office profile store call failed: %s", e.message)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Profile store unavailable",
            ) from e

    async def list_profiles(
        self,
        search: str | None = None,
        role: Role | None = None,
        status: Status | None = None,
        skip: int = 0,
        limit: int = 200,
    ) -> list[Profile]:
        return await self._guard(
            self.store.list(
                role=role.value if role else None,
                status=status.value if status else None,
                search=search,
                skip=skip,
                limit=limit,
            )
        )

    async def _get(self, user_id: str) -> Profile:
        profile = await self._guard(self.store.get_by_user_id(user_id))
        if profile is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profile not found",
            )
        return profile

    async def set_role(self, user_id: str, role: Role) -> Profile:
        await self._get(user_id)
        await self._guard(self.store.update_by_user_id(user_id, {"role": role.value}))
        logger.info("Role of %s set to %s", user_id, role.value)
        return await self._get(user_id)

    async def set_status(self, user_id: str, new_status: Status) -> Profile:
        await self._get(user_id)
        await self._guard(
            self.store.update_by_user_id(user_id, {"status": new_status.value})
        )
        logger.info("Status of %s set to %s", user_id, new_status.value)
        return await self._get(user_id)

    async def export_csv(
        self,
        search: str | None = None,
        role: Role | None = None,
        status: Status | None = None,
    ) -> str:
        """Every matching profile, fetched page by page."""
        profiles: list[Profile] = []
        while True:
            page = await self.list_profiles(
                search=search,
                role=role,
                status=status,
                skip=len(profiles),
                limit=EXPORT_PAGE_SIZE,
            )
            profiles.extend(page)
            if len(page) < EXPORT_PAGE_SIZE:
                break
        return profiles_to_csv(profiles)
