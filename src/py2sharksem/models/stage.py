# src/py2sharksem/models/stage.py
"""
Data models for stage position and travel limits.

Units follow the SharkSEM stage commands: X, Y and Z in millimeters,
rotation and tilts in degrees.
"""
from dataclasses import dataclass, fields
from typing import Dict, List, Optional

from ..core.errors import ValidationError


AXIS_ORDER = ('x', 'y', 'z', 'rotation', 'tilt_x', 'tilt_y')


@dataclass
class StagePosition:
    """
    Stage coordinates (absolute) or a stage offset (relative move).

    X and Y are always present. The optional axes form an ordered chain
    (z, rotation, tilt_x, tilt_y): the device only accepts a later axis
    when every earlier one is also sent.

    Attributes:
        x: X-axis position in millimeters
        y: Y-axis position in millimeters
        z: Z-axis position in millimeters
        rotation: Rotation in degrees
        tilt_x: Tilt around X in degrees
        tilt_y: Tilt around Y in degrees (not present on all stages)
    """
    x: float = 0.0
    y: float = 0.0
    z: Optional[float] = None
    rotation: Optional[float] = None
    tilt_x: Optional[float] = None
    tilt_y: Optional[float] = None

    def axes(self) -> List[float]:
        """
        Return the axis values that are sent on the wire.

        Raises:
            ValidationError: If an axis is set while an earlier one is None
        """
        values = [self.x, self.y]
        missing = None
        for name in AXIS_ORDER[2:]:
            value = getattr(self, name)
            if value is None:
                if missing is None:
                    missing = name
                continue
            if missing is not None:
                raise ValidationError(
                    f"Stage axis '{name}' requires '{missing}' to be set as well",
                    field_name=name
                )
            values.append(float(value))
        return values

    @classmethod
    def from_axes(cls, values: List[float]) -> 'StagePosition':
        """Build a position from up to six values in axis order."""
        kwargs = dict(zip(AXIS_ORDER, values))
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Optional[float]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def __str__(self) -> str:
        parts = [f"X={self.x:.4f}", f"Y={self.y:.4f}"]
        if self.z is not None:
            parts.append(f"Z={self.z:.4f}")
        if self.rotation is not None:
            parts.append(f"R={self.rotation:.2f}")
        if self.tilt_x is not None:
            parts.append(f"TX={self.tilt_x:.2f}")
        if self.tilt_y is not None:
            parts.append(f"TY={self.tilt_y:.2f}")
        return ", ".join(parts)


@dataclass
class StageLimits:
    """Travel range per axis as reported by StgGetLimits."""
    min_x: float = 0.0
    max_x: float = 0.0
    min_y: float = 0.0
    max_y: float = 0.0
    min_z: float = 0.0
    max_z: float = 0.0
    min_rotation: float = 0.0
    max_rotation: float = 0.0
    min_tilt_x: float = 0.0
    max_tilt_x: float = 0.0
    min_tilt_y: Optional[float] = None
    max_tilt_y: Optional[float] = None

    def contains(self, position: StagePosition) -> bool:
        """Check the axes present in position against these limits."""
        for axis in AXIS_ORDER:
            value = getattr(position, axis)
            low = getattr(self, f"min_{axis}")
            high = getattr(self, f"max_{axis}")
            if value is None or low is None or high is None:
                continue
            if not (low <= value <= high):
                return False
        return True
