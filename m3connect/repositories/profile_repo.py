# m3connect/repositories/profile_repo.py
import asyncio
import logging
from typing import Any, Awaitable, TypeVar

import httpx
from postgrest import APIError
from supabase import AsyncClient

from m3connect.models.profile import Profile

logger = logging.getLogger(__name__)

T = TypeVar("T")

TABLE = "profiles"

SEARCH_COLUMNS = ("first_name", "last_name", "email", "organization_name")

# Reserved in PostgREST logic trees and ilike patterns
_SEARCH_RESERVED = str.maketrans("", "", ",()*%\\\"")


def _search_term(search: str | None) -> str:
    return (search or "").translate(_SEARCH_RESERVED).strip()


class ProfileStoreError(Exception):
    """Failure while reading or writing the profiles table."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ProfileRepository:
    """
    Data access layer for Profile (Supabase `profiles` table).

    Responsibilities:
      - Pure PostgREST operations keyed by user_id
      - No FastAPI, no HTTP, no business logic

    Row-level security applies with the anon client; the back office uses an
    instance built on the service-role client.
    """

    def __init__(self, client: AsyncClient, timeout: float | None = None):
        self.client = client
        self.timeout = timeout

    async def _execute(self, action: str, awaitable: Awaitable[T]) -> T:
        try:
            if self.timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, self.timeout)
        except APIError as e:
            raise ProfileStoreError(e.message or str(e), e.code) from e
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.warning("Profile store %s failed: %r", action, e)
            raise ProfileStoreError("Profile store is unreachable", "network") from e

    async def aclose(self) -> None:
        """Close the PostgREST HTTP connection pool of the client."""
        await self.client.postgrest.aclose()

    # ----- Basic CRUD -----

    async def get_by_user_id(self, user_id: str) -> Profile | None:
        """Return the profile owned by `user_id`, or None if no row exists."""
        query = (
            self.client.table(TABLE).select("*").eq("user_id", user_id).maybe_single()
        )
        try:
            res = await self._execute("select", query.execute())
        except ProfileStoreError as e:
            # Older postgrest-py reports "no rows" for maybe_single() as 204
            if e.code == "204":
                return None
            raise
        if res is None or not res.data:
            return None
        return Profile.model_validate(res.data)

    async def create(self, row: dict[str, Any]) -> Profile:
        """Insert a new profile row and return the persisted record."""
        res = await self._execute("insert", self.client.table(TABLE).insert(row).execute())
        if not res.data:
            raise ProfileStoreError("Profile insert returned no row")
        return Profile.model_validate(res.data[0])

    async def update_by_user_id(self, user_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to the profile owned by `user_id`."""
        query = self.client.table(TABLE).update(fields).eq("user_id", user_id)
        await self._execute("update", query.execute())

    async def list(
        self,
        role: str | None = None,
        status: str | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 200,
    ) -> list[Profile]:
        """
        Newest-first profile listing (back office).

        Args:
            role / status: exact-match filters, ignored when None
            search: case-insensitive substring of name, email or organization
            skip / limit: paging window, applied after the filters
        """
        query = self.client.table(TABLE).select("*")
        term = _search_term(search)
        if term:
            query = query.or_(
                ",".join(f"{column}.ilike.*{term}*" for column in SEARCH_COLUMNS)
            )
        if role is not None:
            query = query.eq("role", role)
        if status is not None:
            query = query.eq("status", status)
        query = query.order("created_at", desc=True).range(skip, skip + limit - 1)
        res = await self._execute("list", query.execute())
        return [Profile.model_validate(row) for row in res.data or []]
