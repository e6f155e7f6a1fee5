"""
Electron optics service.

Field of view is exposed in micrometers (the device speaks millimeters);
working distance stays in millimeters and beam current in picoamperes.
"""

import math
from typing import List, Optional, Tuple

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.core.tcp_protocol import MessageFlags
from py2sharksem.core.wire_codec import encode_float, encode_int, parse_indexed_names
from py2sharksem.models.microscope import ScanningMode
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


MICRONS_PER_MM = 1000.0


class OpticsService(MicroscopeCommandService):
    """
    Service for view field, focus, probe current and scanning modes.

    Example:
        >>> optics = OpticsService(connection)
        >>> optics.set_view_field(250.0)        # micrometers
        >>> optics.auto_focus()
        >>> optics.get_working_distance()       # millimeters
    """

    def get_view_field(self, cancel: Optional[CancellationToken] = None) -> float:
        """Horizontal field of view in micrometers (NaN if unavailable)."""
        view_field_mm = self._query_float('GetViewField', cancel=cancel)
        return view_field_mm * MICRONS_PER_MM

    def set_view_field(self, view_field_um: float,
                       cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting view field to {view_field_um} um")
        self._send('SetViewField', encode_float(view_field_um / MICRONS_PER_MM), cancel)

    def get_working_distance(self, cancel: Optional[CancellationToken] = None) -> float:
        """Working distance in millimeters."""
        return self._query_float('GetWD', cancel=cancel)

    def set_working_distance(self, working_distance_mm: float,
                             cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting working distance to {working_distance_mm} mm")
        self._send('SetWD', encode_float(working_distance_mm), cancel)

    # Focus is driven through the working distance on SharkSEM.
    def get_focus(self, cancel: Optional[CancellationToken] = None) -> float:
        return self.get_working_distance(cancel)

    def set_focus(self, focus_mm: float, cancel: Optional[CancellationToken] = None) -> None:
        self.set_working_distance(focus_mm, cancel)

    def auto_focus(self, cancel: Optional[CancellationToken] = None) -> None:
        """Run automatic working distance; returns once the optics settled."""
        self.logger.info("Running auto focus")
        self._query_with_wait(
            'AutoWD', encode_int(0), MessageFlags.WAIT_OPTICS | MessageFlags.WAIT_AUTO, cancel
        )

    def get_spot_size(self, cancel: Optional[CancellationToken] = None) -> float:
        return self._query_float('GetSpotSize', cancel=cancel)

    def get_beam_current(self, cancel: Optional[CancellationToken] = None) -> float:
        """Beam (probe) current in picoamperes."""
        return self._query_float('GetBeamCurrent', cancel=cancel)

    def set_beam_current(self, current_pa: float,
                         cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting beam current to {current_pa} pA")
        self._query_with_wait('SetBeamCurrent', encode_float(current_pa),
                              MessageFlags.WAIT_OPTICS, cancel)

    def enum_pc_indexes(self, cancel: Optional[CancellationToken] = None) -> str:
        """Raw probe current index table as returned by the device."""
        return self._query_string('EnumPCIndexes', cancel=cancel)

    def get_pc_index(self, cancel: Optional[CancellationToken] = None) -> int:
        return self._query_int('GetPCIndex', default=-1, cancel=cancel)

    def set_pc_index(self, index: int, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Selecting probe current index {index}")
        self._query_with_wait('SetPCIndex', encode_int(index), MessageFlags.WAIT_OPTICS, cancel)

    def get_absorbed_current(self, cancel: Optional[CancellationToken] = None) -> float:
        """Specimen absorbed current (Faraday cup) in picoamperes."""
        return self._query_float('GetIAbsorbed', cancel=cancel)

    def enum_scanning_modes(self, cancel: Optional[CancellationToken] = None) -> List[ScanningMode]:
        text = self._query_string('SMEnumModes', cancel=cancel)
        return [ScanningMode(index, name) for index, name in parse_indexed_names(text, 'mode')]

    def get_scanning_mode(self, cancel: Optional[CancellationToken] = None) -> int:
        return self._query_int('SMGetMode', default=-1, cancel=cancel)

    def set_scanning_mode(self, mode: int, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Switching scanning mode to {mode}")
        self._query_with_wait('SMSetMode', encode_int(mode), MessageFlags.WAIT_OPTICS, cancel)

    def get_pivot_position(self, cancel: Optional[CancellationToken] = None) -> Tuple[int, float]:
        """
        Pivot point of the current scanning mode.

        Returns:
            (result code, pivot position in mm), or (-1, NaN) if unavailable
        """
        response = self._query('SMGetPivotPos', cancel=cancel)
        if not response:
            return (-1, math.nan)
        return self._decode('SMGetPivotPos', response, lambda r: (r.read_int(), r.read_float()))
