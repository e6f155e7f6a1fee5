"""
Vacuum subsystem service.

Reads chamber status, pressure and vacuum mode, and starts pump-down or
venting. Pump and vent return immediately; poll get_status() for progress.
"""

from typing import Optional

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.core.wire_codec import encode_int
from py2sharksem.models.enums import VacuumGauge, VacuumMode, VacuumStatus
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


class VacuumService(MicroscopeCommandService):
    """
    Service for vacuum operations.

    Example:
        >>> vacuum = VacuumService(connection)
        >>> if vacuum.get_status() == VacuumStatus.READY:
        ...     print(vacuum.get_pressure(VacuumGauge.CHAMBER), "Pa")
    """

    def get_status(self, cancel: Optional[CancellationToken] = None) -> VacuumStatus:
        """Current vacuum status; ERROR when the device reports nothing."""
        code = self._query_int('VacGetStatus', default=VacuumStatus.ERROR, cancel=cancel)
        return VacuumStatus.from_code(code)

    def get_pressure(self, gauge: VacuumGauge = VacuumGauge.CHAMBER,
                     cancel: Optional[CancellationToken] = None) -> float:
        """Pressure at gauge in pascals, NaN if unavailable."""
        return self._query_float('VacGetPressure', encode_int(int(gauge)), cancel=cancel)

    def get_mode(self, cancel: Optional[CancellationToken] = None) -> VacuumMode:
        code = self._query_int('VacGetVPMode', default=VacuumMode.UNKNOWN, cancel=cancel)
        return VacuumMode.from_code(code)

    def pump(self, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info("Starting chamber pump-down")
        self._send('VacPump', cancel=cancel)

    def vent(self, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info("Venting chamber")
        self._send('VacVent', cancel=cancel)
