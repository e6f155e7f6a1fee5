"""
Protocol version parsing and command compatibility checks.

The device reports its SharkSEM protocol version through ``TcpGetVersion``.
Older firmware appends device text straight after the number, e.g.
``"2.0.210300USB\\VID_1234"``, so only the leading run of digits and dots is
used.

MINIMUM_VERSIONS is a read-only, process-wide table shared by every
connection. Only the negotiated version is per-connection state, held by
VersionGate.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class ProtocolVersion:
    """Three-part protocol version, ordered component by component."""

    major: int
    minor: int
    build: int = 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.build}"


def extract_version_text(raw: str) -> Optional[str]:
    """
    Return the leading run of digits and dots, or None if there is none.

    Example:
        >>> extract_version_text("3.2.20 beta")
        '3.2.20'
    """
    end = 0
    for ch in raw:
        if ch not in '0123456789.':
            break
        end += 1
    return raw[:end] if end else None


def parse_version(raw: Optional[str]) -> Optional[ProtocolVersion]:
    """
    Parse a possibly decorated version string.

    Two components are accepted with the build number defaulting to 0.
    Anything unparseable yields None rather than raising.

    Example:
        >>> parse_version("3.2.20")
        ProtocolVersion(major=3, minor=2, build=20)
        >>> parse_version("2.0USB")
        ProtocolVersion(major=2, minor=0, build=0)
    """
    if not raw:
        return None
    text = extract_version_text(raw.strip())
    if text:
        text = text.rstrip(".")
    if not text:
        return None
    parts = text.split('.')
    try:
        if len(parts) >= 3:
            return ProtocolVersion(int(parts[0]), int(parts[1]), int(parts[2]))
        if len(parts) == 2:
            return ProtocolVersion(int(parts[0]), int(parts[1]), 0)
    except ValueError:
        return None
    return None


def _v(text: str) -> ProtocolVersion:
    version = parse_version(text)
    assert version is not None, text
    return version


MINIMUM_VERSIONS: Mapping[str, ProtocolVersion] = MappingProxyType({
    # Connection / identification
    'TcpGetVersion': _v('1.0.5'),
    'TcpGetModel': _v('3.2.20'),
    'TcpGetDevice': _v('2.0.3'),
    'TcpGetSWVersion': _v('2.0.9'),
    'TcpRegDataPort': _v('1.0.0'),

    # Vacuum
    'VacGetStatus': _v('1.0.0'),
    'VacGetPressure': _v('1.0.0'),
    'VacGetVPMode': _v('1.0.0'),
    'VacPump': _v('1.0.0'),
    'VacVent': _v('1.0.0'),

    # High voltage
    'HVGetBeam': _v('1.0.0'),
    'HVBeamOn': _v('1.0.0'),
    'HVBeamOff': _v('1.0.0'),
    'HVGetVoltage': _v('1.0.0'),
    'HVSetVoltage': _v('1.0.0'),
    'HVGetEmission': _v('1.0.0'),

    # Stage
    'StgGetPosition': _v('1.0.0'),
    'StgMoveTo': _v('1.0.0'),
    'StgMove': _v('1.0.0'),
    'StgIsBusy': _v('1.0.0'),
    'StgStop': _v('1.0.0'),
    'StgCalibrate': _v('1.0.0'),
    'StgIsCalibrated': _v('1.0.0'),
    'StgGetLimits': _v('2.0.22'),
    'StgGetMotorized': _v('2.0.22'),

    # Electron optics
    'GetViewField': _v('1.0.0'),
    'SetViewField': _v('1.0.0'),
    'GetWD': _v('1.0.0'),
    'SetWD': _v('1.0.0'),
    'AutoWD': _v('1.0.0'),
    'GetSpotSize': _v('1.0.0'),
    'GetIAbsorbed': _v('1.0.0'),

    # Scanning modes
    'SMEnumModes': _v('1.0.0'),
    'SMGetMode': _v('1.0.0'),
    'SMSetMode': _v('1.0.0'),
    'SMGetPivotPos': _v('2.0.22'),

    # Scanning
    'ScGetSpeed': _v('1.0.0'),
    'ScSetSpeed': _v('1.0.0'),
    'ScEnumSpeeds': _v('3.1.14'),
    'ScGetBlanker': _v('1.0.0'),
    'ScSetBlanker': _v('1.0.0'),
    'ScStopScan': _v('1.0.0'),
    'ScScanXY': _v('1.0.0'),

    # Detectors
    'DtEnumDetectors': _v('1.0.0'),
    'DtGetChannels': _v('1.0.0'),
    'DtGetSelected': _v('1.0.0'),
    'DtSelect': _v('1.0.0'),
    'DtEnable': _v('1.0.0'),
    'DtGetEnabled': _v('1.0.11'),
    'DtAutoSignal': _v('1.0.11'),
    'DtGetSESuitable': _v('3.1.20'),
    'DtStateEnum': _v('3.1.1'),
    'DtStateGet': _v('3.1.1'),
    'DtStateSet': _v('3.1.1'),

    # Image geometry
    'EnumGeometries': _v('1.0.5'),
    'GetGeometry': _v('1.0.5'),
    'SetGeometry': _v('1.0.5'),
    'GetGeomLimits': _v('2.0.22'),
    'EnumCenterings': _v('1.0.5'),
    'GetCentering': _v('1.0.5'),
    'SetCentering': _v('1.0.5'),
    'GetImageShift': _v('1.0.0'),
    'SetImageShift': _v('1.0.0'),

    # GUI
    'GUIGetScanning': _v('1.0.5'),
    'GUISetScanning': _v('1.0.5'),
    'GUIGetCurrDets': _v('3.2.20'),
    'GUIResetLUT': _v('3.2.20'),
    'GUISetLiveAS': _v('3.2.20'),
})


class VersionGate:
    """
    Per-connection compatibility check against MINIMUM_VERSIONS.

    Permissive until a version is known. Commands missing from the table
    are always allowed. Never raises.

    Example:
        >>> gate = VersionGate()
        >>> gate.version = parse_version("2.0.21")
        >>> gate.is_supported("StgGetLimits")
        False
    """

    def __init__(self, table: Mapping[str, ProtocolVersion] = MINIMUM_VERSIONS):
        self._table = table
        self.version: Optional[ProtocolVersion] = None
        self.version_string: Optional[str] = None

    def reset(self) -> None:
        self.version = None
        self.version_string = None

    def required_version(self, command: str) -> Optional[ProtocolVersion]:
        return self._table.get(command)

    def is_supported(self, command: str) -> bool:
        if self.version is None:
            return True
        required = self._table.get(command)
        if required is None:
            return True
        return self.version >= required

    def check(self, command: str) -> bool:
        """Like is_supported, but logs a warning when the command is skipped."""
        if self.is_supported(command):
            return True
        logger.warning(
            f"Skipping {command}: requires protocol {self._table[command]}, "
            f"device reports {self.version}"
        )
        return False
