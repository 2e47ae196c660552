"""
Circuit breaker exceptions.
"""

from call_resilience.models.enums import ErrorKind


class CircuitOpenError(Exception):
    """
    Raised when an OPEN circuit rejects a call and no fallback was supplied.

    The underlying operation was not attempted. Tagged TEMPORARY so an
    outer retry loop treats the denial like any other transient outage.

    Attributes:
        circuit_name: Name of the rejecting circuit
        next_attempt_time_ms: Epoch ms at which a trial call will be allowed
    """

    error_kind = ErrorKind.TEMPORARY

    def __init__(self, circuit_name: str, next_attempt_time_ms: int = 0) -> None:
        self.circuit_name = circuit_name
        self.next_attempt_time_ms = next_attempt_time_ms
        super().__init__(f"Circuit breaker is OPEN for {circuit_name}")
