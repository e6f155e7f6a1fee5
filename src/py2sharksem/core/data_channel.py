"""
Data channel connection for streamed image payloads.

The data channel is opened lazily, the first time an acquisition needs it.
The handshake is order sensitive:

    1. bind a local ephemeral port
    2. TcpRegDataPort(<local port>) on the control channel, no reply
    3. connect the bound socket to <host>:<control port + 1>

The device only streams to a port it has been told about, and the port
must exist before it can be registered. A failure at any step closes the
socket and clears all data-channel state so the next call starts over.

The read loop runs independently of control-channel traffic: ScScanXY is
sent on the control channel while this socket drains the ScData stream.
"""

import logging
import socket
import threading
from typing import Optional, Tuple

from .cancellation import CancellationToken
from .errors import ConnectionError, ErrorCodes, OperationCancelledError, SemError
from .socket_reader import read_message
from .tcp_connection import ControlConnection
from .tcp_protocol import MessageHeader
from .wire_codec import encode_int


REGISTER_COMMAND = 'TcpRegDataPort'


class DataConnection:
    """
    Manages the SharkSEM data socket.

    Example:
        >>> data = DataConnection(control)
        >>> data.ensure_connected()
        >>> message = data.read_message(timeout=5.0)
        >>> if message is not None:
        ...     header, body = message
    """

    def __init__(self, control: ControlConnection, data_port: Optional[int] = None):
        """
        Initialize the data channel.

        Args:
            control: Control connection used for port registration
            data_port: Device data port (defaults to control port + 1)
        """
        self._control = control
        self._data_port = data_port
        self._socket: Optional[socket.socket] = None
        self._local_port: Optional[int] = None
        self._registered = False
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)

        control.add_disconnect_listener(self.close)

    @property
    def local_port(self) -> Optional[int]:
        return self._local_port

    @property
    def is_registered(self) -> bool:
        return self._registered

    def is_connected(self) -> bool:
        return self._socket is not None and self._registered

    def ensure_connected(self, cancel: Optional[CancellationToken] = None) -> None:
        """
        Run the bind -> register -> connect handshake unless already done.

        Raises:
            ConnectionError: Control channel down, registration skipped by
                the version gate, or the data socket could not be opened
        """
        # Control lock first: a failing control channel closes this one
        # from its disconnect listener while holding it.
        with self._control.lock, self._lock:
            if self._socket is not None and self._registered:
                return
            self._reset()

            host, port = self._control.get_connection_info()
            if not self._control.is_connected() or host is None:
                raise ConnectionError(
                    "Control channel is not connected; cannot open data channel",
                    error_code=ErrorCodes.NOT_CONNECTED
                )
            data_port = self._data_port if self._data_port is not None else port + 1

            sock = None
            try:
                sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
                sock.bind(('', 0))
                local_port = sock.getsockname()[1]
                self.logger.info(f"Data channel bound to local port {local_port}")

                if not self._control.request_no_reply(REGISTER_COMMAND, encode_int(local_port), cancel):
                    raise ConnectionError(
                        f"{REGISTER_COMMAND} is not supported by the connected firmware",
                        error_code=ErrorCodes.DATA_CHANNEL_FAILED
                    )
                self.logger.debug(f"Registered data port {local_port}")

                sock.settimeout(self._control.timeout)
                sock.connect((host, data_port))
                self.logger.info(f"Connected data channel to {host}:{data_port}")
            except OSError as e:
                self._discard(sock)
                raise ConnectionError(
                    f"Could not open data channel to {host}:{data_port}: {e}",
                    host=host, port=data_port,
                    error_code=ErrorCodes.DATA_CHANNEL_FAILED, cause=e
                ) from e
            except SemError:
                self._discard(sock)
                raise

            self._socket = sock
            self._local_port = local_port
            self._registered = True

    def read_message(
        self,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None
    ) -> Optional[Tuple[MessageHeader, bytes]]:
        """
        Read one framed message from the data channel.

        Returns:
            (header, body), or None if the channel is closed, was closed by
            the peer, or failed. The channel is torn down in that case.

        Raises:
            OperationCancelledError: cancel fired (the channel is closed first)
        """
        sock = self._socket
        if sock is None:
            return None
        try:
            return read_message(sock, timeout, cancel)
        except OperationCancelledError:
            self.close()
            raise
        except ConnectionError as e:
            self.logger.info(f"Data channel closed: {e.message}")
            self.close()
            return None

    def close(self) -> None:
        """Close the data socket and forget the registration. Idempotent."""
        with self._lock:
            if self._socket is not None:
                self.logger.info("Closing data channel")
            self._reset()

    def _reset(self) -> None:
        self._discard(self._socket)
        self._socket = None
        self._local_port = None
        self._registered = False

    def _discard(self, sock: Optional[socket.socket]) -> None:
        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            self.logger.error(f"Error closing data socket: {e}")
