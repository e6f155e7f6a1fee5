"""
Base service class for SharkSEM command groups.

Provides the request helpers shared by every subsystem service (stage,
vacuum, optics, ...). Services hold a reference to one shared
ControlConnection; there is no further inheritance between them.

Decoding convention:
    empty response  -> the command was skipped by the version gate (or the
                       device had nothing to say): return the documented
                       default (NaN, -1, 0, "")
    short response  -> ProtocolError; the connection is torn down because
                       the stream may be out of step
"""

import logging
import math
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple, TypeVar

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.core.errors import ProtocolError
from py2sharksem.core.tcp_connection import ControlConnection
from py2sharksem.core.wire_codec import BodyReader, decode_int


T = TypeVar('T')

NAN = math.nan


class MicroscopeCommandService:
    """
    Base class for SEM subsystem services.

    Subsystem services inherit from this class and implement
    domain-specific methods on top of the _query/_send helpers.
    """

    def __init__(self, connection: ControlConnection):
        """
        Initialize command service.

        Args:
            connection: Shared ControlConnection
        """
        self.connection = connection
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    def _query(self, command: str, body: bytes = b'',
               cancel: Optional[CancellationToken] = None) -> bytes:
        return self.connection.request(command, body, cancel)

    def _query_with_wait(self, command: str, body: bytes, wait_flags: int,
                         cancel: Optional[CancellationToken] = None) -> bytes:
        return self.connection.request_with_wait(command, body, wait_flags, cancel)

    def _send(self, command: str, body: bytes = b'',
              cancel: Optional[CancellationToken] = None) -> bool:
        return self.connection.request_no_reply(command, body, cancel)

    @contextmanager
    def _decoding(self, command: str) -> Iterator[None]:
        try:
            yield
        except ProtocolError as e:
            e.context.setdefault('command', command)
            self.connection.mark_broken(f"Malformed {command} response: {e.message}")
            raise

    def _decode(self, command: str, response: bytes, parser: Callable[[BodyReader], T]) -> T:
        with self._decoding(command):
            return parser(BodyReader(response))

    # ------------------------------------------------------------------
    # Typed queries
    # ------------------------------------------------------------------

    def _query_int(self, command: str, body: bytes = b'', default: int = 0,
                   cancel: Optional[CancellationToken] = None) -> int:
        response = self._query(command, body, cancel)
        if not response:
            return default
        with self._decoding(command):
            return decode_int(response)

    def _query_float(self, command: str, body: bytes = b'', default: float = NAN,
                     cancel: Optional[CancellationToken] = None) -> float:
        response = self._query(command, body, cancel)
        if not response:
            return default
        return self._decode(command, response, lambda r: r.read_float())

    def _query_string(self, command: str, body: bytes = b'', default: str = '',
                      cancel: Optional[CancellationToken] = None) -> str:
        response = self._query(command, body, cancel)
        if not response:
            return default
        return self._decode(command, response, lambda r: r.read_string())

    def _query_float_pair(self, command: str, body: bytes = b'',
                          cancel: Optional[CancellationToken] = None) -> Tuple[float, float]:
        response = self._query(command, body, cancel)
        if not response:
            return (NAN, NAN)
        return self._decode(command, response, lambda r: (r.read_float(), r.read_float()))

    def _query_floats(self, command: str, body: bytes = b'', limit: int = 0,
                      cancel: Optional[CancellationToken] = None) -> List[float]:
        """Decode floats until the body (or limit, if non-zero) runs out."""
        response = self._query(command, body, cancel)

        def parse(reader: BodyReader) -> List[float]:
            values = []
            while reader.has_more() and (not limit or len(values) < limit):
                values.append(reader.read_float())
            return values

        if not response:
            return []
        return self._decode(command, response, parse)
