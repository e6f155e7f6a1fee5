# src/py2sharksem/models/microscope.py
"""
Data models for microscope identification and enumerated settings.

Enumeration commands return indexed records (scanning modes, geometries,
centerings, scan speeds, detectors); each is a small immutable value type.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class ScanningMode:
    """Scanning mode entry from SMEnumModes (``mode.N.name``)."""
    index: int
    name: str

    def __str__(self) -> str:
        return f"{self.index}: {self.name}"


@dataclass(frozen=True)
class ImageGeometry:
    """Image geometry entry from EnumGeometries (``geom.N.name``)."""
    index: int
    name: str

    def __str__(self) -> str:
        return f"{self.index}: {self.name}"


@dataclass(frozen=True)
class Centering:
    """Centering entry from EnumCenterings (``cen.N.name``)."""
    index: int
    name: str

    def __str__(self) -> str:
        return f"{self.index}: {self.name}"


@dataclass(frozen=True)
class Detector:
    """Detector entry from DtEnumDetectors (``det.N.name``)."""
    index: int
    name: str

    def __str__(self) -> str:
        return f"{self.index}: {self.name}"


@dataclass(frozen=True)
class ScanSpeed:
    """Scan speed index with its pixel dwell time."""
    index: int
    dwell_time_us: float

    def __str__(self) -> str:
        return f"Speed {self.index}: {self.dwell_time_us:.1f} µs/pixel"


@dataclass
class MicroscopeInfo:
    """
    Identification strings of the connected microscope.

    Fields the firmware cannot report are left empty.

    Attributes:
        manufacturer: Always "TESCAN" for SharkSEM devices
        model: Microscope model (TcpGetModel)
        serial_number: Device identifier (TcpGetDevice)
        software_version: Control software version (TcpGetSWVersion)
        protocol_version: SharkSEM protocol version (TcpGetVersion)
    """
    manufacturer: str = "TESCAN"
    model: str = ""
    serial_number: str = ""
    software_version: str = ""
    protocol_version: str = ""

    def __str__(self) -> str:
        return (f"{self.manufacturer} {self.model or '?'} (S/N {self.serial_number or '?'}, "
                f"SW {self.software_version or '?'}, protocol {self.protocol_version or '?'})")
