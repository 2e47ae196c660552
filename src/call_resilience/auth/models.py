"""
Auth gate data models.

All results are short-lived: created and consumed within one request.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class AuthConfig:
    """
    Per-operation authorization requirements.

    Attributes:
        require_auth: False skips every check
        allowed_roles: Any-of role membership (empty = no role check)
        check_rate_limit: Enforce the trailing-window request limit
    """

    require_auth: bool = True
    allowed_roles: tuple[str, ...] = ()
    check_rate_limit: bool = False


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity returned by an IdentityVerifier (opaque beyond ``id``)."""

    id: str
    email: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthResult:
    """
    Outcome of ``AuthValidationGate.validate_auth``.

    Attributes:
        success: True if the request may proceed
        user: Verified identity (None when auth is not required or on failure)
        user_id: Shortcut to ``user.id``
        error: Human-readable rejection reason
        details: Diagnostic text for logs, not for end users
        reason: Machine-readable rejection code (missing_header, invalid_token,
            insufficient_role, rate_limited, verifier_error)
    """

    success: bool
    user: Optional[AuthenticatedUser] = None
    user_id: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class RequestValidation:
    """Outcome of ``validate_request_params``."""

    is_valid: bool
    error: Optional[str] = None
    cleaned_data: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class ApiKeyValidation:
    """Outcome of ``validate_required_api_keys``."""

    is_valid: bool
    missing_keys: list[str] = field(default_factory=list)
