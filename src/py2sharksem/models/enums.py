"""
Device state enumerations.

Integer values match the codes the SharkSEM server returns, so a decoded
int converts directly with ``VacuumStatus(value)``. Unknown codes map to
the enum's fallback member through ``from_code``.
"""

from enum import IntEnum


class _CodedEnum(IntEnum):

    @classmethod
    def from_code(cls, code: int, default=None):
        try:
            return cls(code)
        except ValueError:
            return default if default is not None else cls._fallback()

    @classmethod
    def _fallback(cls):
        return list(cls)[0]


class VacuumStatus(_CodedEnum):
    """Vacuum system status (VacGetStatus)."""
    ERROR = -1
    READY = 0
    PUMPING = 1
    VENTING = 2
    VACUUM_OFF = 3
    CHAMBER_OPEN = 4


class VacuumMode(_CodedEnum):
    """Chamber vacuum mode (VacGetVPMode)."""
    UNKNOWN = -1
    HIGH_VACUUM = 0
    VARIABLE_PRESSURE = 1


class VacuumGauge(IntEnum):
    """Pressure gauge selector for VacGetPressure."""
    CHAMBER = 0
    TMP_GAUGE = 1
    SEM_GUN = 2
    FIB_COLUMN = 3
    FIB_GUN = 4
    SEM_COLUMN = 5
    XE_VALVE = 6


class BeamState(_CodedEnum):
    """Electron beam state (HVGetBeam)."""
    UNKNOWN = -1
    OFF = 0
    ON = 1
    TRANSITIONING = 1000


class BlankerMode(_CodedEnum):
    """Beam blanker mode (ScGetBlanker / ScSetBlanker)."""
    OFF = 0
    ON = 1
    AUTO = 2
