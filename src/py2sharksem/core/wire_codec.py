"""
Body encoding and decoding for the SharkSEM wire protocol.

SharkSEM message bodies are sequences of 4-byte aligned values:

    int     4 bytes, little-endian signed 32-bit
    uint    4 bytes, little-endian unsigned 32-bit
    float   [uint32 length][ASCII decimal + NUL][zero padding]
    string  same framing as float

The length prefix of a float/string counts the text including its NUL
terminator but not the padding. The total size of one encoded value is
pad4(4 + length), so decoders must advance by the padded length:

    3.14159 -> 08 00 00 00 '3' '.' '1' '4' '1' '5' '9' 00   (12 bytes)
    "abc"   -> 04 00 00 00 'a' 'b' 'c' 00                    (8 bytes)
    10.5    -> 05 00 00 00 '1' '0' '.' '5' 00 00 00 00       (12 bytes)

Floats travel as text on purpose, so the encoding below must stay
bit-compatible with the device firmware.

Enumeration commands (SMEnumModes, EnumGeometries, ScEnumSpeeds, ...) return
a single string holding a property map, one ``prefix.<index>.<field>=<value>``
per line. Indices may have gaps and arrive in any order.
"""

import math
import re
import struct
from typing import Dict, List, Tuple

from .errors import ProtocolError


_INT32 = struct.Struct('<i')
_UINT32 = struct.Struct('<I')

_PROPERTY_LINE = re.compile(r'^\s*([A-Za-z_]\w*)\.(\d+)\.([\w.]+)\s*=(.*)$')
_SPEED_ENTRY = re.compile(r'speed\.(\d+)\.dwell=([0-9.]+)', re.IGNORECASE)


def pad4(size: int) -> int:
    """Round size up to the next multiple of 4."""
    return (size + 3) & ~3


# ============================================================================
# Encoding
# ============================================================================

def encode_int(value: int) -> bytes:
    """Encode a signed 32-bit integer."""
    return _INT32.pack(int(value))


def encode_uint(value: int) -> bytes:
    """Encode an unsigned 32-bit integer."""
    return _UINT32.pack(int(value))


def encode_ints(*values: int) -> bytes:
    """Encode several signed integers back to back."""
    return b''.join(encode_int(v) for v in values)


def _encode_text(text: str) -> bytes:
    try:
        raw = text.encode('ascii') + b'\x00'
    except UnicodeEncodeError as e:
        raise ValueError(f"SharkSEM strings must be ASCII: {text!r}") from e
    total = pad4(4 + len(raw))
    return _UINT32.pack(len(raw)) + raw + b'\x00' * (total - 4 - len(raw))


def format_float(value: float) -> str:
    """
    Format a float the way it travels on the wire.

    Uses the shortest decimal text that parses back to the same double,
    always with '.' as the decimal separator.

    Raises:
        ValueError: If value is NaN or infinite (the device cannot parse them)
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot encode non-finite float: {value}")
    return repr(value)


def encode_float(value: float) -> bytes:
    """Encode a float as length-prefixed, NUL-terminated ASCII decimal."""
    return _encode_text(format_float(value))


def encode_string(value: str) -> bytes:
    """Encode a string with the same framing as floats."""
    return _encode_text(value)


# ============================================================================
# Decoding
# ============================================================================

def _require(buf: bytes, offset: int, size: int, what: str) -> None:
    if offset < 0 or offset + size > len(buf):
        raise ProtocolError(
            f"Response too short for {what}: need {size} bytes at offset "
            f"{offset}, body has {len(buf)}"
        )


def decode_int(buf: bytes, offset: int = 0) -> int:
    """Decode a signed 32-bit integer at offset."""
    _require(buf, offset, 4, "int")
    return _INT32.unpack_from(buf, offset)[0]


def decode_uint(buf: bytes, offset: int = 0) -> int:
    """Decode an unsigned 32-bit integer at offset."""
    _require(buf, offset, 4, "uint")
    return _UINT32.unpack_from(buf, offset)[0]


def decode_string(buf: bytes, offset: int = 0) -> Tuple[str, int]:
    """
    Decode a length-prefixed string.

    Returns:
        Tuple of (text, offset of the next value)
    """
    length = decode_uint(buf, offset)
    offset += 4
    if length == 0:
        return '', offset
    _require(buf, offset, length, "string")
    text = buf[offset:offset + length - 1].decode('ascii', errors='replace')
    return text, offset + pad4(length)


def decode_float(buf: bytes, offset: int = 0) -> Tuple[float, int]:
    """
    Decode an ASCII-decimal float.

    Returns:
        Tuple of (value, offset of the next value)
    """
    text, next_offset = decode_string(buf, offset)
    try:
        value = float(text.strip().rstrip('\x00'))
    except ValueError as e:
        raise ProtocolError(f"Malformed float value on the wire: {text!r}", cause=e) from e
    return value, next_offset


class BodyReader:
    """
    Sequential reader over a response body.

    Example:
        >>> reader = BodyReader(response)
        >>> result = reader.read_int()
        >>> pivot = reader.read_float()
    """

    def __init__(self, body: bytes, offset: int = 0):
        self.body = body
        self.offset = offset

    @property
    def remaining(self) -> int:
        return max(0, len(self.body) - self.offset)

    def has_more(self) -> bool:
        return self.offset < len(self.body)

    def read_int(self) -> int:
        value = decode_int(self.body, self.offset)
        self.offset += 4
        return value

    def read_uint(self) -> int:
        value = decode_uint(self.body, self.offset)
        self.offset += 4
        return value

    def read_float(self) -> float:
        value, self.offset = decode_float(self.body, self.offset)
        return value

    def read_string(self) -> str:
        value, self.offset = decode_string(self.body, self.offset)
        return value


# ============================================================================
# Property maps
# ============================================================================

def parse_property_map(text: str) -> Dict[str, Dict[int, Dict[str, str]]]:
    """
    Parse a ``prefix.<index>.<field>=<value>`` property map.

    Lines that do not match the pattern are ignored. Later lines win when
    the same key appears twice.

    Returns:
        Nested dict: {prefix: {index: {field: value}}}

    Example:
        >>> parse_property_map("mode.3.name=DEPTH\\nmode.0.name=RESOLUTION\\n")
        {'mode': {3: {'name': 'DEPTH'}, 0: {'name': 'RESOLUTION'}}}
    """
    result: Dict[str, Dict[int, Dict[str, str]]] = {}
    for line in text.replace('\r', '\n').split('\n'):
        match = _PROPERTY_LINE.match(line)
        if not match:
            continue
        prefix, index, field, value = match.groups()
        result.setdefault(prefix, {}).setdefault(int(index), {})[field] = value.strip()
    return result


def parse_indexed_names(text: str, prefix: str, field: str = 'name') -> List[Tuple[int, str]]:
    """
    Extract ``prefix.<index>.name`` entries sorted by index.

    Args:
        text: Property map text
        prefix: Entry prefix without the trailing dot ("mode", "geom", "cen", "det")
        field: Field to extract (default "name")

    Returns:
        List of (index, value) tuples in ascending index order
    """
    entries = parse_property_map(text).get(prefix, {})
    return [
        (index, fields[field])
        for index, fields in sorted(entries.items())
        if field in fields
    ]


def parse_scan_speeds(text: str) -> List[Tuple[int, float]]:
    """
    Extract ``speed.<index>.dwell=<microseconds>`` entries sorted by index.

    Entries whose dwell time does not parse as a number are skipped.
    """
    speeds: Dict[int, float] = {}
    for index, dwell in _SPEED_ENTRY.findall(text):
        try:
            speeds[int(index)] = float(dwell)
        except ValueError:
            continue
    return sorted(speeds.items())
