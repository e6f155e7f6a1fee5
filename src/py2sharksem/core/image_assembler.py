"""
Reassembly of ScData chunks into per-channel pixel buffers.

ScData body layout (little-endian):

    Offset  Size  Field
    0       4     frame id (as returned by ScScanXY)
    4       4     detector channel
    8       4     starting byte offset within the channel image (uint32)
    12      4     bits per pixel
    16      4     chunk data size in bytes (uint32)
    20      N     pixel data

Each requested channel has a buffer of width x height bytes and a write
cursor. For every chunk:

    offset <  cursor  retransmission: rewind the cursor, overwrite
    offset == cursor  copy, advance the cursor
    offset >  cursor  hold the chunk until the cursor reaches its offset

A held chunk is only ever written when the bytes before it are in place,
so a gap is never papered over. Channels that did not reach their full
length when reading stops are reported as empty.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol, Tuple

import numpy as np

from .cancellation import CancellationToken
from .tcp_protocol import MessageHeader
from .wire_codec import decode_int, decode_uint


logger = logging.getLogger(__name__)

DATA_COMMAND = 'ScData'
CHUNK_HEADER_SIZE = 20


class MessageSource(Protocol):
    def read_message(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None
    ) -> Optional[Tuple[MessageHeader, bytes]]:
        ...


@dataclass(frozen=True)
class DataChunk:
    """Decoded ScData chunk header plus a view of its pixel bytes."""
    frame_id: int
    channel: int
    offset: int
    bits_per_pixel: int
    size: int
    payload: memoryview

    @classmethod
    def from_body(cls, body: bytes) -> 'DataChunk':
        view = memoryview(body)
        return cls(
            frame_id=decode_int(body, 0),
            channel=decode_int(body, 4),
            offset=decode_uint(body, 8),
            bits_per_pixel=decode_int(body, 12),
            size=decode_uint(body, 16),
            payload=view[CHUNK_HEADER_SIZE:],
        )


class _ChannelBuffer:

    def __init__(self, size: int):
        self.data = np.zeros(size, dtype=np.uint8)
        self.cursor = 0
        self.pending: Dict[int, bytes] = {}

    @property
    def complete(self) -> bool:
        return self.cursor >= len(self.data)

    def write(self, offset: int, payload) -> None:
        length = min(len(payload), len(self.data) - offset)
        if length <= 0:
            return
        self.data[offset:offset + length] = np.frombuffer(payload[:length], dtype=np.uint8)
        self.cursor = offset + length

        while self.cursor in self.pending and not self.complete:
            held = self.pending.pop(self.cursor)
            start = self.cursor
            length = min(len(held), len(self.data) - start)
            self.data[start:start + length] = np.frombuffer(held[:length], dtype=np.uint8)
            self.cursor = start + length


class ImageAssembler:
    """
    Collects ScData chunks for one acquisition.

    Example:
        >>> assembler = ImageAssembler([0, 1], 1024 * 768, frame_id=7)
        >>> images = assembler.assemble(data_connection, timeout=90.0)
        >>> images[0]          # bytes, or b'' if channel 0 is incomplete
    """

    def __init__(
        self,
        channels: Iterable[int],
        bytes_per_channel: int,
        frame_id: Optional[int] = None
    ):
        """
        Args:
            channels: Detector channels to collect
            bytes_per_channel: Expected image size (width x height at 8 bpp)
            frame_id: Only accept chunks carrying this frame id (None = any)
        """
        self.bytes_per_channel = bytes_per_channel
        self.frame_id = frame_id
        self._channels: Dict[int, _ChannelBuffer] = {
            ch: _ChannelBuffer(bytes_per_channel) for ch in channels
        }
        self._stats = {'chunks': 0, 'ignored': 0, 'retransmitted': 0, 'held': 0}

    @property
    def channels(self):
        return list(self._channels)

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def is_complete(self) -> bool:
        return all(buf.complete for buf in self._channels.values())

    def received(self, channel: int) -> int:
        """Bytes written contiguously from the start of channel's image."""
        return self._channels[channel].cursor

    def feed(self, header: MessageHeader, body: bytes) -> bool:
        """
        Apply one data-channel message.

        Returns:
            True if the message was a usable chunk for a requested channel
        """
        if header.command != DATA_COMMAND or len(body) < CHUNK_HEADER_SIZE:
            self._stats['ignored'] += 1
            return False

        chunk = DataChunk.from_body(body)
        buf = self._channels.get(chunk.channel)
        if buf is None:
            self._stats['ignored'] += 1
            return False
        if self.frame_id is not None and chunk.frame_id != self.frame_id:
            logger.debug(f"Ignoring chunk from frame {chunk.frame_id} (expecting {self.frame_id})")
            self._stats['ignored'] += 1
            return False
        if chunk.bits_per_pixel != 8:
            logger.warning(f"Ignoring {chunk.bits_per_pixel}-bit chunk on channel {chunk.channel}")
            self._stats['ignored'] += 1
            return False
        if CHUNK_HEADER_SIZE + chunk.size > len(body) or chunk.offset >= len(buf.data):
            logger.warning(
                f"Ignoring malformed chunk on channel {chunk.channel}: offset={chunk.offset} "
                f"size={chunk.size} body={len(body)}"
            )
            self._stats['ignored'] += 1
            return False

        payload = chunk.payload[:chunk.size]
        self._stats['chunks'] += 1

        if chunk.offset > buf.cursor:
            buf.pending[chunk.offset] = bytes(payload)
            self._stats['held'] += 1
            return True

        if chunk.offset < buf.cursor:
            logger.debug(
                f"Channel {chunk.channel}: rewinding cursor {buf.cursor} -> {chunk.offset}"
            )
            self._stats['retransmitted'] += 1

        buf.write(chunk.offset, payload)
        return True

    def results(self) -> Dict[int, bytes]:
        """Per-channel pixel bytes; b'' for channels that are incomplete."""
        return {
            ch: buf.data.tobytes() if buf.complete else b''
            for ch, buf in self._channels.items()
        }

    def assemble(
        self,
        source: MessageSource,
        timeout: float,
        cancel: Optional[CancellationToken] = None
    ) -> Dict[int, bytes]:
        """
        Read from source until every channel is complete, the timeout
        elapses, or the source reports the channel closed.

        Raises:
            OperationCancelledError: cancel fired
        """
        deadline = time.monotonic() + timeout

        while not self.is_complete():
            if cancel is not None:
                cancel.raise_if_cancelled("Image acquisition")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning(f"Image acquisition timed out after {timeout}s")
                break
            message = source.read_message(timeout=remaining, cancel=cancel)
            if message is None:
                logger.warning("Data channel closed before the image was complete")
                break
            self.feed(*message)

        for ch, buf in self._channels.items():
            if not buf.complete:
                logger.warning(
                    f"Channel {ch} incomplete: {buf.cursor}/{len(buf.data)} bytes contiguous"
                )
        logger.debug(f"Reassembly stats: {self._stats}")
        return self.results()
