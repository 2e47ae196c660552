"""
Authorization gate run before protected operations.

- gate.py: AuthValidationGate plus IdentityVerifier / RoleStore / UsageLogStore protocols
- supabase.py: Supabase-backed implementation of those protocols
- models.py: AuthConfig, AuthResult and validator results
- exceptions.py: InvalidTokenError
"""

from call_resilience.auth.exceptions import InvalidTokenError
from call_resilience.auth.gate import (
    AuthValidationGate,
    IdentityVerifier,
    RoleStore,
    UsageLogStore,
    extract_bearer_token,
)
from call_resilience.auth.models import (
    ApiKeyValidation,
    AuthConfig,
    AuthenticatedUser,
    AuthResult,
    RequestValidation,
)

__all__ = [
    "AuthValidationGate",
    "IdentityVerifier",
    "RoleStore",
    "UsageLogStore",
    "extract_bearer_token",
    "AuthConfig",
    "AuthResult",
    "AuthenticatedUser",
    "RequestValidation",
    "ApiKeyValidation",
    "InvalidTokenError",
]
