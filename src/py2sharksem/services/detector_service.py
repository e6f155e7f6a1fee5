"""Detector and acquisition channel service."""

from typing import List, Optional, Tuple

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.core.tcp_protocol import MessageFlags
from py2sharksem.core.wire_codec import encode_int, encode_ints, parse_indexed_names
from py2sharksem.models.microscope import Detector
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


class DetectorService(MicroscopeCommandService):
    """
    Detector selection per acquisition channel.

    A channel must be enabled (and have a detector selected) before
    ScScanXY will stream data for it.
    """

    def enum_detectors(self, cancel: Optional[CancellationToken] = None) -> str:
        """Raw ``det.N.name=...`` property map."""
        return self._query_string('DtEnumDetectors', cancel=cancel)

    def list_detectors(self, cancel: Optional[CancellationToken] = None) -> List[Detector]:
        text = self.enum_detectors(cancel)
        return [Detector(index, name) for index, name in parse_indexed_names(text, 'det')]

    def get_channel_count(self, cancel: Optional[CancellationToken] = None) -> int:
        return self._query_int('DtGetChannels', default=0, cancel=cancel)

    def get_selected(self, channel: int, cancel: Optional[CancellationToken] = None) -> int:
        """Detector index selected on channel, -1 if unknown."""
        return self._query_int('DtGetSelected', encode_int(channel), default=-1, cancel=cancel)

    def select(self, channel: int, detector: int,
               cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Selecting detector {detector} on channel {channel}")
        self._send('DtSelect', encode_ints(channel, detector), cancel)

    def get_enabled(self, channel: int,
                    cancel: Optional[CancellationToken] = None) -> Tuple[int, int]:
        """
        Returns:
            (enabled flag, bits per pixel); (0, 0) if unavailable
        """
        response = self._query('DtGetEnabled', encode_int(channel), cancel)
        if not response:
            return (0, 0)
        return self._decode('DtGetEnabled', response, lambda r: (r.read_int(), r.read_int()))

    def enable(self, channel: int, enabled: bool = True, bits_per_pixel: int = 8,
               cancel: Optional[CancellationToken] = None) -> None:
        self.logger.debug(f"Channel {channel} enabled={enabled} ({bits_per_pixel} bpp)")
        self._send('DtEnable', encode_ints(channel, 1 if enabled else 0, bits_per_pixel), cancel)

    def auto_signal(self, channel: int, cancel: Optional[CancellationToken] = None) -> None:
        """Automatic contrast/brightness on channel; returns when finished."""
        self.logger.info(f"Running auto signal on channel {channel}")
        self._query_with_wait('DtAutoSignal', encode_int(channel),
                              MessageFlags.WAIT_OPTICS | MessageFlags.WAIT_AUTO, cancel)
