"""
Pre-flight authorization gate.

Runs before any protected operation reaches the retry/breaker layers:

1. ``require_auth`` disabled -> allow without touching the verifier
2. Bearer header present and verified by the identity provider
3. Optional role membership (any of ``allowed_roles``)
4. Optional rate limit: requests in the trailing window from the usage log

Rejections come back as AuthResult failures, never as exceptions. They are
not retry-relevant: the ErrorClassifier never sees them.
"""

import os
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import structlog

from call_resilience.auth.exceptions import InvalidTokenError
from call_resilience.auth.models import (
    ApiKeyValidation,
    AuthConfig,
    AuthenticatedUser,
    AuthResult,
    RequestValidation,
)
from call_resilience.monitoring.metrics import auth_rejections_total

logger = structlog.get_logger(__name__)

RATE_LIMIT_MAX_REQUESTS = 100
RATE_LIMIT_WINDOW = timedelta(minutes=5)

MISSING_HEADER = "Authorization header missing"
AUTH_FAILED = "Authentication failed"
INSUFFICIENT_ROLE = "Insufficient role for this operation"
RATE_LIMITED = "Rate limit exceeded, please wait before retrying"
VALIDATION_ERROR = "Authentication validation error"


class IdentityVerifier(Protocol):
    """Verifies a bearer token against the identity provider."""

    async def get_user(self, token: str) -> AuthenticatedUser:
        """Return the token's user or raise InvalidTokenError."""
        ...


class RoleStore(Protocol):
    async def get_roles(self, user_id: str) -> list[str]:
        ...


class UsageLogStore(Protocol):
    """Append/query access to the API usage audit log."""

    async def count_requests_since(self, user_id: str, since: datetime) -> int:
        ...

    async def record_usage(
        self,
        user_id: str,
        function_name: str,
        request_data: Optional[Mapping[str, Any]] = None,
        response_time_ms: Optional[int] = None,
    ) -> None:
        ...


def extract_bearer_token(auth_header: str) -> Optional[str]:
    """Token from a ``Bearer <token>`` header, or None if malformed."""
    scheme, _, token = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthValidationGate:
    """
    Bearer / role / rate-limit gate in front of protected operations.

    Attributes:
        verifier: Identity provider adapter
        role_store: Role lookup (required only when roles are checked)
        usage_log: Audit log (required only when the rate limit is checked)
        max_requests: Requests allowed per window
        window: Trailing window for the rate limit
    """

    def __init__(
        self,
        verifier: IdentityVerifier,
        role_store: Optional[RoleStore] = None,
        usage_log: Optional[UsageLogStore] = None,
        max_requests: int = RATE_LIMIT_MAX_REQUESTS,
        window: timedelta = RATE_LIMIT_WINDOW,
    ):
        self.verifier = verifier
        self.role_store = role_store
        self.usage_log = usage_log
        self.max_requests = max_requests
        self.window = window

    async def validate_auth(
        self,
        auth_header: Optional[str],
        config: AuthConfig = AuthConfig(),
    ) -> AuthResult:
        """
        Validate the request's credentials against ``config``.

        Args:
            auth_header: Raw Authorization header value (may be None)
            config: Requirements for this operation

        Returns:
            AuthResult (success with user, or failure with reason)
        """
        if not config.require_auth:
            return AuthResult(success=True)

        if not auth_header:
            return self._reject("missing_header", MISSING_HEADER)

        token = extract_bearer_token(auth_header)
        if token is None:
            return self._reject("invalid_token", AUTH_FAILED, "Malformed bearer header")

        try:
            user = await self.verifier.get_user(token)
        except InvalidTokenError as e:
            return self._reject("invalid_token", AUTH_FAILED, e.message)
        except Exception as e:
            logger.error("Identity verification error", error=str(e), exc_info=e)
            return self._reject("verifier_error", VALIDATION_ERROR, str(e))

        if config.allowed_roles and not await self.check_user_roles(user.id, config.allowed_roles):
            return self._reject("insufficient_role", INSUFFICIENT_ROLE, user_id=user.id)

        if config.check_rate_limit and not await self.check_rate_limit(user.id):
            return self._reject("rate_limited", RATE_LIMITED, user_id=user.id)

        return AuthResult(success=True, user=user, user_id=user.id)

    async def check_user_roles(self, user_id: str, allowed_roles: Iterable[str]) -> bool:
        """True if the user holds any of ``allowed_roles``; lookup errors deny."""
        if self.role_store is None:
            logger.warning("Role check requested without a role store", user_id=user_id)
            return False
        try:
            user_roles = set(await self.role_store.get_roles(user_id))
        except Exception as e:
            logger.error("Error checking user roles", user_id=user_id, error=str(e))
            return False
        return any(role in user_roles for role in allowed_roles)

    async def check_rate_limit(self, user_id: str) -> bool:
        """True if the user is under the limit; lookup errors allow the request."""
        if self.usage_log is None:
            return True
        since = datetime.now(timezone.utc) - self.window
        try:
            count = await self.usage_log.count_requests_since(user_id, since)
        except Exception as e:
            logger.warning("Rate limit check failed, allowing request", user_id=user_id, error=str(e))
            return True
        return (count or 0) < self.max_requests

    async def log_api_usage(
        self,
        user_id: str,
        function_name: str,
        request_data: Optional[Mapping[str, Any]] = None,
        response_time_ms: Optional[int] = None,
    ) -> None:
        """Append to the usage log; a logging failure never fails the request."""
        if self.usage_log is None:
            return
        try:
            await self.usage_log.record_usage(user_id, function_name, request_data, response_time_ms)
        except Exception as e:
            logger.warning("Failed to log API usage", user_id=user_id, function=function_name, error=str(e))

    @staticmethod
    def validate_request_params(
        request_data: Any,
        required_params: Sequence[str],
        optional_params: Sequence[str] = (),
    ) -> RequestValidation:
        """
        Check required parameters and whitelist the payload.

        Required parameters must be present and not None. The cleaned copy
        contains only required and optional keys that are present.
        """
        if not isinstance(request_data, Mapping):
            return RequestValidation(is_valid=False, error="Invalid request data")

        missing = [p for p in required_params if request_data.get(p) is None]
        if missing:
            return RequestValidation(is_valid=False, error=f"Missing parameters: {', '.join(missing)}")

        cleaned = {
            param: request_data[param]
            for param in (*required_params, *optional_params)
            if param in request_data
        }
        return RequestValidation(is_valid=True, cleaned_data=cleaned)

    @staticmethod
    def validate_required_api_keys(
        keys: Iterable[str],
        environ: Optional[Mapping[str, str]] = None,
    ) -> ApiKeyValidation:
        """Report configuration keys that are unset or empty."""
        env = os.environ if environ is None else environ
        missing = [key for key in keys if not env.get(key)]
        return ApiKeyValidation(is_valid=not missing, missing_keys=missing)

    def _reject(
        self,
        reason: str,
        message: str,
        details: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> AuthResult:
        auth_rejections_total.labels(reason=reason).inc()
        logger.info("Auth gate rejected request", reason=reason, user_id=user_id, details=details)
        return AuthResult(success=False, error=message, details=details, reason=reason, user_id=user_id)
