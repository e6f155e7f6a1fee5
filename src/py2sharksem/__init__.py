# py2sharksem package
"""Python client for TESCAN microscopes speaking the SharkSEM remote protocol."""

__version__ = "0.1.0"

from .controller import TescanSemController
from .core.cancellation import CancellationToken
from .core.errors import (
    SemError,
    ConnectionError,
    ConnectionLostError,
    ProtocolError,
    CommandError,
    OperationCancelledError,
    ConfigurationError,
    ValidationError,
    TimeoutError,
    ErrorCodes,
)
from .core.logging_setup import setup_logging
from .models.connection import SemConnectionSettings
from .models.stage import StagePosition
from .models.image import ScanSettings, SemImage

__all__ = [
    "TescanSemController",
    "CancellationToken",
    "SemError",
    "ConnectionError",
    "ConnectionLostError",
    "ProtocolError",
    "CommandError",
    "OperationCancelledError",
    "ConfigurationError",
    "ValidationError",
    "TimeoutError",
    "ErrorCodes",
    "setup_logging",
    "SemConnectionSettings",
    "StagePosition",
    "ScanSettings",
    "SemImage",
]
