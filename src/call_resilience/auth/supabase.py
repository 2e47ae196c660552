"""
Supabase adapters for the auth gate.

One class implements all three gate collaborators on a service-role client:

- IdentityVerifier: ``auth.get_user(token)``
- RoleStore: ``user_roles`` table (one row per user/role)
- UsageLogStore: ``api_usage_logs`` table (count for rate limiting, insert for audit)

supabase-py's client is blocking; each call runs in a worker thread so the
event loop is never blocked.
"""

import asyncio
import json
from collections.abc import Mapping
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

import structlog
from supabase import AuthError, Client, create_client

from call_resilience.auth.exceptions import InvalidTokenError
from call_resilience.auth.models import AuthenticatedUser
from call_resilience.config import Settings

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=1)
def get_supabase(url: str, service_role_key: str) -> Client:
    """
    Cached service-role Supabase client.

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        return create_client(url, service_role_key)
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


class SupabaseAuthBackend:
    """
    Identity, role and usage-log access backed by Supabase.

    Attributes:
        client: Service-role Supabase client
        roles_table: Table holding ``user_id`` / ``role`` rows
        usage_table: Table holding API usage rows
    """

    def __init__(
        self,
        client: Client,
        roles_table: str = "user_roles",
        usage_table: str = "api_usage_logs",
    ):
        self.client = client
        self.roles_table = roles_table
        self.usage_table = usage_table

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseAuthBackend":
        return cls(
            get_supabase(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY),
            roles_table=settings.SUPABASE_USER_ROLES_TABLE,
            usage_table=settings.SUPABASE_USAGE_LOG_TABLE,
        )

    async def get_user(self, token: str) -> AuthenticatedUser:
        """
        Verify a JWT with Supabase Auth.

        Raises:
            InvalidTokenError: Token rejected or no user attached
        """
        try:
            response = await asyncio.to_thread(self.client.auth.get_user, token)
        except AuthError as e:
            raise InvalidTokenError(str(e) or "Invalid token") from e

        if not response or not response.user:
            raise InvalidTokenError("User not found")

        user = response.user
        return AuthenticatedUser(id=str(user.id), email=user.email, raw=user.model_dump(mode="json"))

    async def get_roles(self, user_id: str) -> list[str]:
        def _query() -> list[dict[str, Any]]:
            return (
                self.client.table(self.roles_table)
                .select("role")
                .eq("user_id", user_id)
                .execute()
                .data
            )

        rows = await asyncio.to_thread(_query)
        return [row["role"] for row in rows or [] if row.get("role")]

    async def count_requests_since(self, user_id: str, since: datetime) -> int:
        def _query() -> Optional[int]:
            return (
                self.client.table(self.usage_table)
                .select("id", count="exact")
                .eq("user_id", user_id)
                .gte("created_at", since.isoformat())
                .execute()
                .count
            )

        return (await asyncio.to_thread(_query)) or 0

    async def record_usage(
        self,
        user_id: str,
        function_name: str,
        request_data: Optional[Mapping[str, Any]] = None,
        response_time_ms: Optional[int] = None,
    ) -> None:
        row = {
            "user_id": user_id,
            "function_name": function_name,
            "request_data": json.dumps(dict(request_data), default=str) if request_data else None,
            "response_time": response_time_ms,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await asyncio.to_thread(lambda: self.client.table(self.usage_table).insert(row).execute())
        logger.debug("Recorded API usage", user_id=user_id, function=function_name)
