"""Image data models for acquired SEM images.

This module provides the container returned by image acquisition and the
settings that describe a scan.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Tuple

import numpy as np


@dataclass
class SemImage:
    """One detector channel of an acquired frame.

    ``data`` holds raw pixel bytes row by row, one byte per pixel for 8-bit
    images and two little-endian bytes per pixel for 16-bit images. An
    empty ``data`` means the channel did not arrive completely.
    """
    width: int
    height: int
    data: bytes = b''
    channel: int = 0
    bits_per_pixel: int = 8
    capture_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return len(self.data) == 0

    @property
    def expected_size(self) -> int:
        return self.width * self.height * self.bytes_per_pixel

    @property
    def bytes_per_pixel(self) -> int:
        return 2 if self.bits_per_pixel > 8 else 1

    @property
    def is_complete(self) -> bool:
        return not self.is_empty and len(self.data) == self.expected_size

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    def to_array(self) -> np.ndarray:
        """Return the pixels as a (height, width) array without copying.

        Returns:
            uint8 or little-endian uint16 array; shape (0, 0) for empty images

        Raises:
            ValueError: If data length does not match width x height
        """
        dtype = np.dtype('<u2') if self.bytes_per_pixel == 2 else np.dtype(np.uint8)
        if self.is_empty:
            return np.zeros((0, 0), dtype=dtype)
        if len(self.data) != self.expected_size:
            raise ValueError(
                f"Image data has {len(self.data)} bytes, expected {self.expected_size} "
                f"for {self.width}x{self.height} at {self.bits_per_pixel} bpp"
            )
        return np.frombuffer(self.data, dtype=dtype).reshape(self.shape)

    def __str__(self) -> str:
        state = "empty" if self.is_empty else f"{len(self.data)} bytes"
        return f"SemImage(ch{self.channel}, {self.width}x{self.height}, {self.bits_per_pixel} bpp, {state})"


@dataclass
class ScanSettings:
    """Parameters for one image acquisition.

    right/bottom of 0 mean "full frame" (width-1 / height-1).
    """
    width: int = 1024
    height: int = 768
    dwell_time_us: float = 1.0
    frame_count: int = 1
    channels: List[int] = field(default_factory=lambda: [0])
    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0

    @property
    def effective_right(self) -> int:
        return self.right if self.right > 0 else self.width - 1

    @property
    def effective_bottom(self) -> int:
        return self.bottom if self.bottom > 0 else self.height - 1

    @property
    def bytes_per_channel(self) -> int:
        return self.width * self.height

    def validate(self) -> Tuple[bool, List[str]]:
        """Check the settings before a scan is started.

        Returns:
            Tuple of (is_valid, list_of_error_messages)
        """
        errors = []
        if self.width <= 0 or self.height <= 0:
            errors.append(f"Image size must be positive: {self.width}x{self.height}")
        if not self.channels:
            errors.append("At least one detector channel is required")
        if len(set(self.channels)) != len(self.channels):
            errors.append(f"Duplicate channels: {self.channels}")
        if self.left < 0 or self.top < 0:
            errors.append(f"Scan window origin must be non-negative: ({self.left}, {self.top})")
        if self.width > 0 and not (self.left <= self.effective_right < self.width):
            errors.append(f"Scan window right edge out of range: {self.effective_right}")
        if self.height > 0 and not (self.top <= self.effective_bottom < self.height):
            errors.append(f"Scan window bottom edge out of range: {self.effective_bottom}")
        if self.dwell_time_us <= 0:
            errors.append(f"Dwell time must be positive: {self.dwell_time_us}")
        if self.frame_count < 1:
            errors.append(f"Frame count must be at least 1: {self.frame_count}")
        return (len(errors) == 0, errors)
