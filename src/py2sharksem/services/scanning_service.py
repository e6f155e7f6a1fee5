"""
Scanning and image acquisition service.

Acquisition sequence (ScScanXY):
    1. ensure the data channel is registered and connected
    2. enable each requested detector channel (8 bpp)
    3. take the scan generator from the GUI and stop any running scan
    4. ScScanXY -> frame id; pixel data streams on the data channel
    5. reassemble ScData chunks per channel
    6. always hand scanning back to the GUI
"""

from typing import List, Optional

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.core.data_channel import DataConnection
from py2sharksem.core.errors import CommandError, ErrorCodes, ValidationError
from py2sharksem.core.image_assembler import ImageAssembler
from py2sharksem.core.wire_codec import encode_int, encode_ints, parse_scan_speeds
from py2sharksem.models.enums import BlankerMode
from py2sharksem.models.image import ScanSettings, SemImage
from py2sharksem.models.microscope import ScanSpeed
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


SCAN_MODE_SINGLE_FRAME = 0
ACQUISITION_BITS_PER_PIXEL = 8


class ScanningService(MicroscopeCommandService):
    """
    Service for scan speed, blanker and image acquisition.

    Example:
        >>> scanning = ScanningService(connection, data_connection, acquisition_timeout=90.0)
        >>> scanning.set_speed_by_dwell_time(3.2)
        >>> image = scanning.acquire_single_image(0, 512, 512)
        >>> image.to_array().mean()
    """

    def __init__(self, connection, data_connection: DataConnection,
                 acquisition_timeout: float = 90.0):
        super().__init__(connection)
        self.data_connection = data_connection
        self.acquisition_timeout = acquisition_timeout
        self._speeds: Optional[List[ScanSpeed]] = None

    # ------------------------------------------------------------------
    # Scan speed
    # ------------------------------------------------------------------

    def enum_speeds(self, force_refresh: bool = False,
                    cancel: Optional[CancellationToken] = None) -> List[ScanSpeed]:
        """
        Available scan speeds sorted by index.

        The table is cached after the first successful query; pass
        force_refresh=True after the SEM software was restarted.
        """
        if self._speeds is not None and not force_refresh:
            return list(self._speeds)

        text = self._query_string('ScEnumSpeeds', cancel=cancel)
        speeds = [ScanSpeed(index, dwell) for index, dwell in parse_scan_speeds(text)]
        self.logger.debug(f"Scan speeds: {[str(s) for s in speeds]}")
        self._speeds = speeds
        return list(speeds)

    def clear_speed_cache(self) -> None:
        self._speeds = None

    def get_speed(self, cancel: Optional[CancellationToken] = None) -> int:
        return self._query_int('ScGetSpeed', default=0, cancel=cancel)

    def set_speed(self, index: int, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting scan speed {index}")
        self._send('ScSetSpeed', encode_int(index), cancel)

    def find_speed_index_by_dwell_time(self, dwell_time_us: float,
                                       cancel: Optional[CancellationToken] = None) -> Optional[int]:
        """Index of the speed whose dwell time is nearest, None if none are known."""
        speeds = self.enum_speeds(cancel=cancel)
        if not speeds:
            return None
        best = min(speeds, key=lambda s: abs(s.dwell_time_us - dwell_time_us))
        return best.index

    def set_speed_by_dwell_time(self, dwell_time_us: float,
                                cancel: Optional[CancellationToken] = None) -> bool:
        index = self.find_speed_index_by_dwell_time(dwell_time_us, cancel)
        if index is None:
            self.logger.warning(f"No scan speeds available to match {dwell_time_us} us")
            return False
        self.set_speed(index, cancel)
        return True

    # ------------------------------------------------------------------
    # Blanker / scan control
    # ------------------------------------------------------------------

    def get_blanker(self, cancel: Optional[CancellationToken] = None) -> BlankerMode:
        code = self._query_int('ScGetBlanker', default=BlankerMode.OFF, cancel=cancel)
        return BlankerMode.from_code(code)

    def set_blanker(self, mode: BlankerMode, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting blanker {BlankerMode(mode).name}")
        self._send('ScSetBlanker', encode_int(int(mode)), cancel)

    def stop_scan(self, cancel: Optional[CancellationToken] = None) -> None:
        self._send('ScStopScan', cancel=cancel)

    def set_gui_scanning(self, enabled: bool, cancel: Optional[CancellationToken] = None) -> None:
        self._send('GUISetScanning', encode_int(1 if enabled else 0), cancel)

    def get_gui_scanning(self, cancel: Optional[CancellationToken] = None) -> bool:
        return self._query_int('GUIGetScanning', default=0, cancel=cancel) != 0

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def acquire_images(self, settings: ScanSettings,
                       cancel: Optional[CancellationToken] = None) -> List[SemImage]:
        """
        Scan one frame and return one image per requested channel.

        Channels that did not arrive completely within the acquisition
        timeout are returned with empty data (``image.is_empty``).

        Raises:
            ValidationError: settings are invalid
            CommandError: ScScanXY reported an error (negative frame id)
            ConnectionError: control or data channel failed
            OperationCancelledError: cancel fired
        """
        valid, errors = settings.validate()
        if not valid:
            raise ValidationError(
                f"Invalid scan settings: {'; '.join(errors)}",
                field_name='settings'
            )

        self.data_connection.ensure_connected(cancel)

        for channel in settings.channels:
            self._send('DtEnable', encode_ints(channel, 1, ACQUISITION_BITS_PER_PIXEL), cancel)

        self.set_gui_scanning(False, cancel)
        self.stop_scan(cancel)

        self.logger.info(
            f"Acquiring {settings.width}x{settings.height} on channels {settings.channels}"
        )
        try:
            body = encode_ints(
                SCAN_MODE_SINGLE_FRAME,
                settings.width, settings.height,
                settings.left, settings.top,
                settings.effective_right, settings.effective_bottom,
                1
            )
            frame_id = self._query_int('ScScanXY', body, default=None, cancel=cancel)
            if frame_id is not None and frame_id < 0:
                raise CommandError(
                    f"ScScanXY failed with error code {frame_id}",
                    command='ScScanXY',
                    result_code=frame_id,
                    error_code=ErrorCodes.SCAN_FAILED
                )

            assembler = ImageAssembler(settings.channels, settings.bytes_per_channel, frame_id)
            data = assembler.assemble(self.data_connection, self.acquisition_timeout, cancel)
        finally:
            if self.connection.is_connected():
                self.set_gui_scanning(True)
            else:
                self.logger.warning("Connection lost; GUI scanning could not be restored")

        return [
            SemImage(
                width=settings.width,
                height=settings.height,
                data=data[channel],
                channel=channel,
                bits_per_pixel=ACQUISITION_BITS_PER_PIXEL
            )
            for channel in settings.channels
        ]

    def acquire_single_image(self, channel: int = 0, width: int = 1024, height: int = 768,
                             cancel: Optional[CancellationToken] = None) -> SemImage:
        settings = ScanSettings(width=width, height=height, channels=[channel])
        return self.acquire_images(settings, cancel)[0]
