"""
Data models for py2sharksem.

Connection settings and status, device state enums, stage coordinates,
image containers and enumeration records.
"""

from .connection import (
    SemConnectionSettings,
    ConnectionState,
    ConnectionStatus,
    ConnectionModel,
)
from .enums import VacuumStatus, VacuumMode, VacuumGauge, BeamState, BlankerMode
from .stage import StagePosition, StageLimits
from .image import SemImage, ScanSettings
from .microscope import (
    ScanningMode,
    ImageGeometry,
    Centering,
    Detector,
    ScanSpeed,
    MicroscopeInfo,
)

__all__ = [
    'SemConnectionSettings',
    'ConnectionState',
    'ConnectionStatus',
    'ConnectionModel',
    'VacuumStatus',
    'VacuumMode',
    'VacuumGauge',
    'BeamState',
    'BlankerMode',
    'StagePosition',
    'StageLimits',
    'SemImage',
    'ScanSettings',
    'ScanningMode',
    'ImageGeometry',
    'Centering',
    'Detector',
    'ScanSpeed',
    'MicroscopeInfo',
]
