"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    PragnaError,
    UninitializedError,
    UnitFailure,
    ConsensusUnavailable,
    InvalidObservationError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "PragnaError",
    "UninitializedError",
    "UnitFailure",
    "ConsensusUnavailable",
    "InvalidObservationError",
]
