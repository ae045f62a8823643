"""
Custom Exception Hierarchy

Provides specific exception types for the diagnosis pipeline
with structured error information.
"""
from typing import Optional, Dict, Any, List, Tuple


class PragnaError(Exception):
    """Base exception for all consensus engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class UninitializedError(PragnaError):
    """A scoring unit (or the orchestrator) was used before initialize()."""

    def __init__(
        self,
        message: str,
        unit: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="UNINITIALIZED",
            details={"unit": unit, **(details or {})}
        )
        self.unit = unit


class UnitFailure(PragnaError):
    """A scoring unit's analyze() raised; captured per unit by the task runner."""

    def __init__(
        self,
        unit: str,
        cause: BaseException,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"{unit} failed: {cause}",
            code="UNIT_FAILURE",
            details={
                "unit": unit,
                "cause": type(cause).__name__,
                **(details or {})
            }
        )
        self.unit = unit
        self.cause = cause


class ConsensusUnavailable(PragnaError):
    """No voting unit produced an opinion, so no consensus can be formed."""

    def __init__(
        self,
        message: str = "No analysis unit produced a usable opinion",
        failures: Optional[List[Tuple[str, UnitFailure]]] = None
    ):
        failures = failures or []
        super().__init__(
            message=message,
            code="CONSENSUS_UNAVAILABLE",
            details={"failures": {name: err.message for name, err in failures}}
        )
        self.failures = failures


class InvalidObservationError(PragnaError):
    """Inbound observation payload failed schema validation."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(
            message=message,
            code="INVALID_OBSERVATION",
            details={"errors": errors or []}
        )
        self.errors = errors or []
