"""
Core layer for SharkSEM microscope communication.

This package contains the wire codec, message framing, version gate and
the control/data socket transports.
"""

from .tcp_protocol import MessageFlags, MessageHeader, encode_header, decode_header
from .version_gate import ProtocolVersion, VersionGate, parse_version, MINIMUM_VERSIONS
from .cancellation import CancellationToken
from .tcp_connection import ControlConnection
from .data_channel import DataConnection
from .image_assembler import ImageAssembler, DataChunk

__all__ = [
    'MessageFlags',
    'MessageHeader',
    'encode_header',
    'decode_header',
    'ProtocolVersion',
    'VersionGate',
    'parse_version',
    'MINIMUM_VERSIONS',
    'CancellationToken',
    'ControlConnection',
    'DataConnection',
    'ImageAssembler',
    'DataChunk',
]
