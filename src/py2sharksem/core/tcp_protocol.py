"""
SharkSEM message header encoding and decoding.

Every message on both the control and the data channel starts with a fixed
32-byte little-endian header followed by ``body_size`` bytes of body.

Header Structure (32 bytes total):
    - Command name: 16 bytes, ASCII, NUL padded (at most 15 characters)
    - Body size: 4 bytes, uint32
    - Message ID: 4 bytes, uint32 (pre-incremented per connection)
    - Flags: 2 bytes, uint16 (see MessageFlags)
    - Queue: 2 bytes, uint16 (usually 0)
    - Reserved: 4 bytes, zero
"""

import struct
from dataclasses import dataclass

from .errors import ProtocolError


HEADER_SIZE = 32
COMMAND_NAME_SIZE = 16

_HEADER = struct.Struct('<16sIIHH4x')


class MessageFlags:
    """
    Flag bits for the header ``flags`` field.

    These are bit flags that can be combined using bitwise OR (|).

    Usage Examples:
        # Query that needs a reply:
        flags = MessageFlags.SEND_RESPONSE

        # Auto focus, reply only once optics have settled:
        flags = (MessageFlags.SEND_RESPONSE |
                 MessageFlags.WAIT_OPTICS |
                 MessageFlags.WAIT_AUTO)
    """

    # Without this bit the device sends no reply at all, so the client
    # must not block reading one.
    SEND_RESPONSE = 0x0001

    # Server-side wait bits: the reply is delayed until the subsystem settles
    WAIT_SCAN = 0x0100
    WAIT_STAGE = 0x0200
    WAIT_OPTICS = 0x0400
    WAIT_AUTO = 0x0800

    WAIT_MASK = WAIT_SCAN | WAIT_STAGE | WAIT_OPTICS | WAIT_AUTO


@dataclass(frozen=True)
class MessageHeader:
    """Decoded 32-byte message header."""

    command: str
    body_size: int
    message_id: int = 0
    flags: int = 0
    queue: int = 0

    @property
    def wants_response(self) -> bool:
        return bool(self.flags & MessageFlags.SEND_RESPONSE)

    def to_bytes(self) -> bytes:
        return encode_header(self.command, self.body_size, self.message_id, self.flags, self.queue)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'MessageHeader':
        return decode_header(data)


def encode_header(
    command: str,
    body_size: int,
    message_id: int,
    flags: int = MessageFlags.SEND_RESPONSE,
    queue: int = 0
) -> bytes:
    """
    Build a 32-byte header.

    Args:
        command: Case-sensitive command name, e.g. "StgGetPosition"
        body_size: Number of body bytes that follow
        message_id: Per-connection message counter value
        flags: MessageFlags bits
        queue: Queue identifier

    Raises:
        ValueError: If the command name is not ASCII or longer than 15 characters
    """
    try:
        name = command.encode('ascii')
    except UnicodeEncodeError as e:
        raise ValueError(f"Command name must be ASCII: {command!r}") from e
    if not name or len(name) > COMMAND_NAME_SIZE - 1:
        raise ValueError(
            f"Command name must be 1-{COMMAND_NAME_SIZE - 1} characters: {command!r}"
        )
    return _HEADER.pack(
        name,
        body_size & 0xFFFFFFFF,
        message_id & 0xFFFFFFFF,
        flags & 0xFFFF,
        queue & 0xFFFF,
    )


def decode_header(data: bytes) -> MessageHeader:
    """
    Parse a 32-byte header.

    Raises:
        ProtocolError: If fewer than 32 bytes are supplied
    """
    if len(data) < HEADER_SIZE:
        raise ProtocolError(f"Header must be {HEADER_SIZE} bytes, got {len(data)}")
    name, body_size, message_id, flags, queue = _HEADER.unpack_from(data, 0)
    command = name.split(b'\x00', 1)[0].decode('ascii', errors='replace')
    return MessageHeader(command, body_size, message_id, flags, queue)
