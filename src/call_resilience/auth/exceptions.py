"""
Auth gate exceptions.

Raised by identity verifiers; the gate converts them into AuthResult
failures and never lets them escape.
"""

from call_resilience.models.enums import ErrorKind


class InvalidTokenError(Exception):
    """
    Raised when a bearer token is invalid, expired or matches no user.

    Attributes:
        message: Reason reported by the identity provider
    """

    error_kind = ErrorKind.PERMANENT

    def __init__(self, message: str = "User not found"):
        super().__init__(message)
        self.message = message
