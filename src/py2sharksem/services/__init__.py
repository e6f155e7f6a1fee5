"""
Command group services.

Each service wraps one SharkSEM command group on top of a shared
ControlConnection.
"""

from .microscope_command_service import MicroscopeCommandService
from .vacuum_service import VacuumService
from .high_voltage_service import HighVoltageService
from .stage_service import StageService
from .optics_service import OpticsService
from .detector_service import DetectorService
from .image_geometry_service import ImageGeometryService
from .scanning_service import ScanningService
from .misc_service import MiscService
from .configuration_manager import ConfigurationManager, MicroscopeConfiguration

__all__ = [
    'MicroscopeCommandService',
    'VacuumService',
    'HighVoltageService',
    'StageService',
    'OpticsService',
    'DetectorService',
    'ImageGeometryService',
    'ScanningService',
    'MiscService',
    'ConfigurationManager',
    'MicroscopeConfiguration',
]
