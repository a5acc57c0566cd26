# m3connect/core/supabase_client.py
from dataclasses import dataclass

from supabase import AsyncClient, acreate_client

from m3connect.core.config import get_settings
from m3connect.core.identity import SupabaseIdentityProvider
from m3connect.repositories.profile_repo import ProfileRepository

settings = get_settings()


@dataclass
class PortalBackend:
    """Identity provider and profile store sharing one Supabase client."""

    identity: SupabaseIdentityProvider
    profiles: ProfileRepository

    async def aclose(self) -> None:
        """Release the HTTP connections of the shared client."""
        try:
            await self.identity.aclose()
        finally:
            await self.profiles.aclose()


async def supabase_public() -> AsyncClient:
    """
    Create a Supabase client with the anon/public key.

    Use cases:
      - one client per browser session (it stores that visitor's auth session)
      - one client per password-recovery flow

    Note: This client respects RLS. It is intentionally not cached.
    """
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


async def supabase_admin() -> AsyncClient:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - back office profile moderation (role / status changes)
      - any operation that needs to bypass RLS

    WARNING:
      - Never expose service role key to the browser.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return await acreate_client(
        settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
    )


async def connect_portal_backend() -> PortalBackend:
    """Fresh identity provider + profile store for one browser session."""
    client = await supabase_public()
    timeout = settings.SUPABASE_REQUEST_TIMEOUT_SECONDS
    return PortalBackend(
        identity=SupabaseIdentityProvider(client, timeout=timeout),
        profiles=ProfileRepository(client, timeout=timeout),
    )


async def connect_recovery_identity() -> SupabaseIdentityProvider:
    """Isolated identity provider holding only a recovery-scoped session."""
    client = await supabase_public()
    return SupabaseIdentityProvider(
        client, timeout=settings.SUPABASE_REQUEST_TIMEOUT_SECONDS
    )


async def connect_admin_profiles() -> ProfileRepository:
    """Profile repository on the service-role client (bypasses RLS)."""
    client = await supabase_admin()
    return ProfileRepository(
        client, timeout=settings.SUPABASE_REQUEST_TIMEOUT_SECONDS
    )
