# ============================================================================
# src/py2sharksem/controller.py
"""
Controller composing the SharkSEM command groups around one connection.

TescanSemController owns the control connection, the lazily opened data
connection, and one instance of each subsystem service. Each
request/response pair is serialized by the control connection's lock, so
the controller may be shared between threads (for example a GUI thread
polling the stage while a worker acquires an image).
"""

import logging
from typing import List, Optional, Tuple

from .core.cancellation import CancellationToken
from .core.data_channel import DataConnection
from .core.errors import ValidationError
from .core.tcp_connection import ControlConnection
from .core.version_gate import ProtocolVersion
from .models.connection import ConnectionStatus, SemConnectionSettings
from .models.enums import BeamState, BlankerMode, VacuumGauge, VacuumMode, VacuumStatus
from .models.image import ScanSettings, SemImage
from .models.microscope import (
    Centering, Detector, ImageGeometry, MicroscopeInfo, ScanningMode, ScanSpeed
)
from .models.stage import StageLimits, StagePosition
from .services.detector_service import DetectorService
from .services.high_voltage_service import HighVoltageService
from .services.image_geometry_service import ImageGeometryService
from .services.misc_service import MiscService
from .services.optics_service import OpticsService
from .services.scanning_service import ScanningService
from .services.stage_service import StageService
from .services.vacuum_service import VacuumService


class TescanSemController:
    """
    High-level client for one TESCAN SEM.

    Subsystems are reachable as attributes (``sem.stage``, ``sem.optics``
    ...) and through the flat convenience methods below.

    Example:
        >>> settings = SemConnectionSettings("192.168.1.50")
        >>> with TescanSemController(settings) as sem:
        ...     sem.move_stage(StagePosition(x=10.0, y=5.0))
        ...     image = sem.acquire_single_image(channel=0, width=512, height=512)
    """

    def __init__(self, settings: Optional[SemConnectionSettings] = None, **kwargs):
        """
        Args:
            settings: Connection settings; keyword arguments (host, port,
                timeout, data_port) build one when omitted

        Raises:
            ValidationError: If the settings are invalid
        """
        if settings is None:
            settings = SemConnectionSettings(**kwargs)
        elif kwargs:
            raise ValidationError("Pass either settings or keyword arguments, not both")
        valid, errors = settings.validate()
        if not valid:
            raise ValidationError(f"Invalid connection settings: {'; '.join(errors)}")

        self.settings = settings
        self.logger = logging.getLogger(__name__)

        self.connection = ControlConnection(timeout=settings.timeout)
        self.data_connection = DataConnection(self.connection, data_port=settings.data_port)

        self.vacuum = VacuumService(self.connection)
        self.high_voltage = HighVoltageService(self.connection)
        self.stage = StageService(self.connection)
        self.optics = OpticsService(self.connection)
        self.detectors = DetectorService(self.connection)
        self.geometry = ImageGeometryService(self.connection)
        self.scanning = ScanningService(
            self.connection, self.data_connection, settings.acquisition_timeout
        )
        self.misc = MiscService(self.connection)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def connect(self, cancel: Optional[CancellationToken] = None) -> Optional[ProtocolVersion]:
        """Open the control channel; the data channel opens on first acquisition."""
        return self.connection.connect(
            self.settings.host, self.settings.port, self.settings.timeout, cancel
        )

    def disconnect(self) -> None:
        self.data_connection.close()
        self.connection.disconnect()
        self.scanning.clear_speed_cache()
        self.logger.info("Disconnected from microscope")

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    @property
    def status(self) -> ConnectionStatus:
        return self.connection.status

    @property
    def protocol_version(self) -> Optional[ProtocolVersion]:
        return self.connection.protocol_version

    def __enter__(self) -> 'TescanSemController':
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # Vacuum
    # ------------------------------------------------------------------

    def get_vacuum_status(self, cancel: Optional[CancellationToken] = None) -> VacuumStatus:
        return self.vacuum.get_status(cancel)

    def get_pressure(self, gauge: VacuumGauge = VacuumGauge.CHAMBER,
                     cancel: Optional[CancellationToken] = None) -> float:
        return self.vacuum.get_pressure(gauge, cancel)

    def get_vacuum_mode(self, cancel: Optional[CancellationToken] = None) -> VacuumMode:
        return self.vacuum.get_mode(cancel)

    def pump(self, cancel: Optional[CancellationToken] = None) -> None:
        self.vacuum.pump(cancel)

    def vent(self, cancel: Optional[CancellationToken] = None) -> None:
        self.vacuum.vent(cancel)

    # ------------------------------------------------------------------
    # Beam / high voltage
    # ------------------------------------------------------------------

    def get_beam_state(self, cancel: Optional[CancellationToken] = None) -> BeamState:
        return self.high_voltage.get_beam_state(cancel)

    def beam_on(self, cancel: Optional[CancellationToken] = None) -> None:
        self.high_voltage.beam_on(cancel)

    def beam_off(self, cancel: Optional[CancellationToken] = None) -> None:
        self.high_voltage.beam_off(cancel)

    def get_voltage(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.high_voltage.get_voltage(cancel)

    def set_voltage(self, voltage: float, wait: bool = True,
                    cancel: Optional[CancellationToken] = None) -> None:
        self.high_voltage.set_voltage(voltage, wait, cancel)

    def get_emission_current(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.high_voltage.get_emission_current(cancel)

    # ------------------------------------------------------------------
    # Stage
    # ------------------------------------------------------------------

    def get_stage_position(self, cancel: Optional[CancellationToken] = None) -> StagePosition:
        return self.stage.get_position(cancel)

    def move_stage(self, position: StagePosition, wait: bool = True,
                   cancel: Optional[CancellationToken] = None) -> None:
        self.stage.move_to(position, wait, cancel)

    def move_stage_relative(self, delta: StagePosition, wait: bool = True,
                            cancel: Optional[CancellationToken] = None) -> None:
        self.stage.move_relative(delta, wait, cancel)

    def is_stage_moving(self, cancel: Optional[CancellationToken] = None) -> bool:
        return self.stage.is_moving(cancel)

    def stop_stage(self, cancel: Optional[CancellationToken] = None) -> None:
        self.stage.stop(cancel)

    def get_stage_limits(self, cancel: Optional[CancellationToken] = None) -> StageLimits:
        return self.stage.get_limits(cancel)

    def calibrate_stage(self, cancel: Optional[CancellationToken] = None) -> None:
        self.stage.calibrate(cancel)

    def is_stage_calibrated(self, cancel: Optional[CancellationToken] = None) -> bool:
        return self.stage.is_calibrated(cancel)

    # ------------------------------------------------------------------
    # Optics
    # ------------------------------------------------------------------

    def get_view_field(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.optics.get_view_field(cancel)

    def set_view_field(self, view_field_um: float,
                       cancel: Optional[CancellationToken] = None) -> None:
        self.optics.set_view_field(view_field_um, cancel)

    def get_working_distance(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.optics.get_working_distance(cancel)

    def set_working_distance(self, working_distance_mm: float,
                             cancel: Optional[CancellationToken] = None) -> None:
        self.optics.set_working_distance(working_distance_mm, cancel)

    def get_focus(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.optics.get_focus(cancel)

    def set_focus(self, focus_mm: float, cancel: Optional[CancellationToken] = None) -> None:
        self.optics.set_focus(focus_mm, cancel)

    def auto_focus(self, cancel: Optional[CancellationToken] = None) -> None:
        self.optics.auto_focus(cancel)

    def get_spot_size(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.optics.get_spot_size(cancel)

    def get_beam_current(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.optics.get_beam_current(cancel)

    def set_beam_current(self, current_pa: float,
                         cancel: Optional[CancellationToken] = None) -> None:
        self.optics.set_beam_current(current_pa, cancel)

    def enum_scanning_modes(self, cancel: Optional[CancellationToken] = None) -> List[ScanningMode]:
        return self.optics.enum_scanning_modes(cancel)

    def get_scanning_mode(self, cancel: Optional[CancellationToken] = None) -> int:
        return self.optics.get_scanning_mode(cancel)

    def set_scanning_mode(self, mode: int, cancel: Optional[CancellationToken] = None) -> None:
        self.optics.set_scanning_mode(mode, cancel)

    def get_pivot_position(self, cancel: Optional[CancellationToken] = None) -> Tuple[int, float]:
        return self.optics.get_pivot_position(cancel)

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------

    def list_detectors(self, cancel: Optional[CancellationToken] = None) -> List[Detector]:
        return self.detectors.list_detectors(cancel)

    def get_channel_count(self, cancel: Optional[CancellationToken] = None) -> int:
        return self.detectors.get_channel_count(cancel)

    def get_selected_detector(self, channel: int,
                              cancel: Optional[CancellationToken] = None) -> int:
        return self.detectors.get_selected(channel, cancel)

    def select_detector(self, channel: int, detector: int,
                        cancel: Optional[CancellationToken] = None) -> None:
        self.detectors.select(channel, detector, cancel)

    def enable_channel(self, channel: int, enabled: bool = True, bits_per_pixel: int = 8,
                       cancel: Optional[CancellationToken] = None) -> None:
        self.detectors.enable(channel, enabled, bits_per_pixel, cancel)

    # ------------------------------------------------------------------
    # Image geometry
    # ------------------------------------------------------------------

    def enum_geometries(self, cancel: Optional[CancellationToken] = None) -> List[ImageGeometry]:
        return self.geometry.enum_geometries(cancel)

    def get_geometry(self, index: int,
                     cancel: Optional[CancellationToken] = None) -> Tuple[float, float]:
        return self.geometry.get_geometry(index, cancel)

    def set_geometry(self, index: int, x: float, y: float,
                     cancel: Optional[CancellationToken] = None) -> None:
        self.geometry.set_geometry(index, x, y, cancel)

    def enum_centerings(self, cancel: Optional[CancellationToken] = None) -> List[Centering]:
        return self.geometry.enum_centerings(cancel)

    def get_centering(self, index: int,
                      cancel: Optional[CancellationToken] = None) -> Tuple[float, float]:
        return self.geometry.get_centering(index, cancel)

    def set_centering(self, index: int, x: float, y: float,
                      cancel: Optional[CancellationToken] = None) -> None:
        self.geometry.set_centering(index, x, y, cancel)

    # ------------------------------------------------------------------
    # Scanning / acquisition
    # ------------------------------------------------------------------

    def enum_scan_speeds(self, force_refresh: bool = False,
                         cancel: Optional[CancellationToken] = None) -> List[ScanSpeed]:
        return self.scanning.enum_speeds(force_refresh, cancel)

    def get_scan_speed(self, cancel: Optional[CancellationToken] = None) -> int:
        return self.scanning.get_speed(cancel)

    def set_scan_speed(self, index: int, cancel: Optional[CancellationToken] = None) -> None:
        self.scanning.set_speed(index, cancel)

    def set_scan_speed_by_dwell_time(self, dwell_time_us: float,
                                     cancel: Optional[CancellationToken] = None) -> bool:
        return self.scanning.set_speed_by_dwell_time(dwell_time_us, cancel)

    def get_blanker(self, cancel: Optional[CancellationToken] = None) -> BlankerMode:
        return self.scanning.get_blanker(cancel)

    def set_blanker(self, mode: BlankerMode, cancel: Optional[CancellationToken] = None) -> None:
        self.scanning.set_blanker(mode, cancel)

    def acquire_images(self, settings: ScanSettings,
                       cancel: Optional[CancellationToken] = None) -> List[SemImage]:
        return self.scanning.acquire_images(settings, cancel)

    def acquire_single_image(self, channel: int = 0, width: int = 1024, height: int = 768,
                             cancel: Optional[CancellationToken] = None) -> SemImage:
        return self.scanning.acquire_single_image(channel, width, height, cancel)

    # ------------------------------------------------------------------
    # Identification
    # ------------------------------------------------------------------

    def get_microscope_info(self, cancel: Optional[CancellationToken] = None) -> MicroscopeInfo:
        return self.misc.get_microscope_info(cancel)
