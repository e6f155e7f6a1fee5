"""
Stage subsystem service.

Handles position queries, absolute and relative moves, limits and
calibration. Move commands are fire-and-forget; completion is detected by
polling StgIsBusy, since stage travel time is unbounded and an operator
may stop it at any time.
"""

import time
from typing import List, Optional

from py2sharksem.core.cancellation import CancellationToken, sleep_or_cancel
from py2sharksem.core.errors import ErrorCodes, TimeoutError
from py2sharksem.core.wire_codec import BodyReader, encode_float, encode_int
from py2sharksem.models.stage import AXIS_ORDER, StageLimits, StagePosition
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


MOTION_POLL_INTERVAL = 0.1
MOTION_TIMEOUT = 300.0


def encode_axes(position: StagePosition) -> bytes:
    """
    Encode X, Y and the present prefix of the optional axes.

    Raises:
        ValidationError: If a later axis is given without an earlier one
    """
    return b''.join(encode_float(value) for value in position.axes())


class StageService(MicroscopeCommandService):
    """
    Service for stage operations.

    Example:
        >>> stage = StageService(connection)
        >>> stage.move_to(StagePosition(x=10.0, y=5.0))     # waits for motion
        >>> stage.move_relative(StagePosition(x=0.5, y=0.0), wait=False)
        >>> stage.get_position()
    """

    def __init__(self, connection, motion_timeout: float = MOTION_TIMEOUT,
                 poll_interval: float = MOTION_POLL_INTERVAL):
        super().__init__(connection)
        self.motion_timeout = motion_timeout
        self.poll_interval = poll_interval

    def get_position(self, cancel: Optional[CancellationToken] = None) -> StagePosition:
        """
        Current stage position.

        Axes the stage does not report stay None. An empty response yields
        StagePosition(0, 0).
        """
        values = self._query_floats('StgGetPosition', limit=len(AXIS_ORDER), cancel=cancel)
        return StagePosition.from_axes(values)

    def move_to(self, position: StagePosition, wait: bool = True,
                cancel: Optional[CancellationToken] = None) -> None:
        """Move to an absolute position (mm / degrees)."""
        body = encode_axes(position)
        self.logger.info(f"Moving stage to {position}")
        self._send('StgMoveTo', body, cancel)
        if wait:
            self.wait_for_motion(cancel=cancel)

    def move_relative(self, delta: StagePosition, wait: bool = True,
                      cancel: Optional[CancellationToken] = None) -> None:
        """Move by an offset (mm / degrees)."""
        body = encode_axes(delta)
        self.logger.info(f"Moving stage by {delta}")
        self._send('StgMove', body, cancel)
        if wait:
            self.wait_for_motion(cancel=cancel)

    def is_moving(self, cancel: Optional[CancellationToken] = None) -> bool:
        return self._query_int('StgIsBusy', default=0, cancel=cancel) != 0

    def wait_for_motion(self, timeout: Optional[float] = None,
                        cancel: Optional[CancellationToken] = None) -> None:
        """
        Block until StgIsBusy reports idle.

        Raises:
            TimeoutError: Still moving after timeout (default 5 minutes).
                The connection remains usable; call stop() if needed.
            OperationCancelledError: cancel fired
        """
        timeout = self.motion_timeout if timeout is None else timeout
        start = time.monotonic()
        while self.is_moving(cancel):
            elapsed = time.monotonic() - start
            if elapsed > timeout:
                raise TimeoutError(
                    f"Stage movement timed out after {timeout:.0f}s",
                    timeout_seconds=timeout,
                    error_code=ErrorCodes.STAGE_MOTION_TIMEOUT,
                    suggestions=["Check for obstructions", "Call stop() before retrying"]
                )
            sleep_or_cancel(self.poll_interval, cancel, "Waiting for stage motion")
        self.logger.debug(f"Stage idle after {time.monotonic() - start:.2f}s")

    def stop(self, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info("Stopping stage")
        self._send('StgStop', cancel=cancel)

    def get_limits(self, cancel: Optional[CancellationToken] = None) -> StageLimits:
        """Travel limits (StgGetLimits, type 0 = absolute)."""
        values = self._query_floats('StgGetLimits', encode_int(0), limit=12, cancel=cancel)
        limits = StageLimits()
        names = ['min_x', 'max_x', 'min_y', 'max_y', 'min_z', 'max_z',
                 'min_rotation', 'max_rotation', 'min_tilt_x', 'max_tilt_x',
                 'min_tilt_y', 'max_tilt_y']
        for name, value in zip(names, values):
            setattr(limits, name, value)
        return limits

    def get_motorized(self, cancel: Optional[CancellationToken] = None) -> List[bool]:
        """Per-axis motorization flags in axis order (empty if unsupported)."""
        response = self._query('StgGetMotorized', cancel=cancel)
        if not response:
            return []

        def parse(reader: BodyReader) -> List[bool]:
            flags = []
            while reader.remaining >= 4 and len(flags) < len(AXIS_ORDER):
                flags.append(reader.read_int() != 0)
            return flags

        return self._decode('StgGetMotorized', response, parse)

    def calibrate(self, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info("Starting stage calibration")
        self._send('StgCalibrate', cancel=cancel)

    def is_calibrated(self, cancel: Optional[CancellationToken] = None) -> bool:
        return self._query_int('StgIsCalibrated', default=0, cancel=cancel) != 0
