"""
Control channel connection for SharkSEM microscope communication.

This module owns the primary TCP socket to the SEM. It builds headers,
writes requests, reads framed responses and tracks the per-connection
message id. Three request modes are offered:

- request: send with SEND_RESPONSE, block for the reply
- request_no_reply: send without SEND_RESPONSE, never read
- request_with_wait: like request, plus server-side wait flags so the
  reply is held back until the hardware has settled

State machine:

    DISCONNECTED --connect()--> CONNECTING --version query--> CONNECTED
         ^                                                       |
         +------ disconnect() / socket error / lost peer ---------+

The protocol is strictly one request in flight per connection, so exchanges
are serialized by an internal lock that owners may also hold across several
calls (see ``lock``).
"""

import logging
import socket
import threading
from datetime import datetime
from typing import Callable, Optional, Tuple

from .cancellation import CancellationToken
from .errors import (
    ConnectionError, ConnectionLostError, ErrorCodes, OperationCancelledError,
    ProtocolError, ValidationError
)
from .socket_reader import read_message
from .tcp_protocol import MessageFlags, encode_header
from .version_gate import ProtocolVersion, VersionGate, extract_version_text, parse_version
from .wire_codec import decode_string
from ..models.connection import (
    ConnectionModel, ConnectionState, ConnectionStatus, DEFAULT_TIMEOUT
)


VERSION_COMMAND = 'TcpGetVersion'


class ControlConnection:
    """
    Manages the SharkSEM control socket.

    Example:
        >>> control = ControlConnection()
        >>> control.connect("192.168.1.50", 8300, timeout=10.0)
        >>> body = control.request("StgGetPosition")
        >>> control.request_no_reply("StgStop")
        >>> control.disconnect()
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize the control connection.

        Args:
            timeout: Socket timeout in seconds for connect and each read
        """
        self._socket: Optional[socket.socket] = None
        self._lock = threading.RLock()
        self._message_id = 0
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

        self._host: Optional[str] = None
        self._port: Optional[int] = None

        self.gate = VersionGate()
        self.model = ConnectionModel()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing control-channel exchanges."""
        return self._lock

    @property
    def host(self) -> Optional[str]:
        return self._host

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def message_id(self) -> int:
        """Id of the most recently sent message (0 before the first one)."""
        return self._message_id

    @property
    def protocol_version(self) -> Optional[ProtocolVersion]:
        return self.gate.version

    @property
    def protocol_version_string(self) -> Optional[str]:
        return self.gate.version_string

    @property
    def status(self) -> ConnectionStatus:
        return self.model.status

    def is_connected(self) -> bool:
        return self._socket is not None and self.model.status.state == ConnectionState.CONNECTED

    def get_connection_info(self) -> Tuple[Optional[str], Optional[int]]:
        return self._host, self._port

    def add_disconnect_listener(self, callback: Callable[[], None]) -> None:
        """Call callback whenever the control channel goes down."""
        def _observer(status: ConnectionStatus) -> None:
            if status.state in (ConnectionState.DISCONNECTED, ConnectionState.ERROR):
                callback()
        self.model.add_observer(_observer)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def connect(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None
    ) -> Optional[ProtocolVersion]:
        """
        Open the control socket and negotiate the protocol version.

        The version query bypasses the version gate. A version that cannot
        be parsed leaves the gate permissive and does not fail the connect.

        Args:
            host: SEM host name or IP address
            port: Control port (data channel uses port + 1)
            timeout: Overrides the timeout given at construction
            cancel: Optional cancellation token

        Returns:
            The negotiated ProtocolVersion, or None if unknown

        Raises:
            ValidationError: If host or port is invalid
            ConnectionError: If the socket cannot be opened or the peer drops
        """
        self._validate_host(host)
        self._validate_port(port)
        if timeout is not None:
            self.timeout = timeout

        with self._lock:
            if self._socket is not None:
                self.logger.warning("Already connected. Disconnecting first.")
                self._close_socket()
                # Listeners drop state tied to the old session.
                self.model.status = ConnectionStatus(state=ConnectionState.DISCONNECTED)

            self._host = host
            self._port = port
            self._message_id = 0
            self.gate.reset()
            self.model.status = ConnectionStatus(
                state=ConnectionState.CONNECTING, host=host, port=port
            )

            try:
                self.logger.info(f"Connecting to {host}:{port} (control channel)")
                sock = socket.create_connection((host, port), timeout=self.timeout)
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except socket.timeout as e:
                self._fail(f"Timed out connecting to {host}:{port}")
                raise ConnectionError(
                    f"Timed out connecting to {host}:{port}",
                    host=host, port=port, error_code=ErrorCodes.CONNECTION_TIMEOUT, cause=e
                ) from e
            except OSError as e:
                self._fail(f"Could not connect to {host}:{port}: {e}")
                raise ConnectionError(
                    f"Could not connect to {host}:{port}: {e}",
                    host=host, port=port, error_code=ErrorCodes.CONNECTION_REFUSED, cause=e,
                    suggestions=["Check that SharkSEM remote control is enabled on the SEM PC",
                                 "Verify host name and port (default 8300)"]
                ) from e

            self._socket = sock
            self.logger.info("Connected to control channel")

            try:
                self._fetch_protocol_version(cancel)
            except OperationCancelledError:
                self._fail("Connect cancelled during version query")
                raise

            self.model.status = ConnectionStatus(
                state=ConnectionState.CONNECTED,
                host=host,
                port=port,
                connected_at=datetime.now(),
                protocol_version=self.gate.version_string,
            )
            return self.gate.version

    def _fetch_protocol_version(self, cancel: Optional[CancellationToken]) -> None:
        body = self._exchange(VERSION_COMMAND, b'', MessageFlags.SEND_RESPONSE,
                              cancel, skip_gate=True)
        if not body:
            self.logger.warning("Device returned no protocol version; version checks disabled")
            return
        try:
            raw, _ = decode_string(body)
        except ProtocolError as e:
            self.logger.warning(f"Could not decode protocol version: {e}")
            return

        self.gate.version_string = extract_version_text(raw.strip())
        self.gate.version = parse_version(raw)
        if self.gate.version is None:
            self.logger.warning(f"Unrecognized protocol version {raw!r}; version checks disabled")
        else:
            self.logger.info(f"SharkSEM protocol version {self.gate.version} ({raw!r})")

    def disconnect(self) -> None:
        """
        Close the control socket. Safe to call when not connected.

        Observers (e.g. the data channel) are notified and drop their state.
        """
        with self._lock:
            was_open = self._socket is not None
            self._close_socket()
            self.gate.reset()
            self._host = None
            self._port = None
            if was_open or self.model.status.state != ConnectionState.DISCONNECTED:
                self.model.status = ConnectionStatus(state=ConnectionState.DISCONNECTED)

    def mark_broken(self, reason: str) -> None:
        """
        Tear the connection down after an unrecoverable stream error.

        Used when a response turned out to be malformed: the framing may be
        out of step, so no further reads are attempted on this socket.
        """
        with self._lock:
            self._fail(reason)

    def _fail(self, reason: str) -> None:
        self.logger.error(f"Control channel failed: {reason}")
        self._close_socket()
        self.model.status = ConnectionStatus(
            state=ConnectionState.ERROR,
            host=self._host,
            port=self._port,
            protocol_version=self.gate.version_string,
            last_error=reason,
        )

    def _close_socket(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.close()
            self.logger.info("Closed control socket")
        except OSError as e:
            self.logger.error(f"Error closing control socket: {e}")
        finally:
            self._socket = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        command: str,
        body: bytes = b'',
        cancel: Optional[CancellationToken] = None
    ) -> bytes:
        """
        Send a command and return the response body.

        Returns:
            Response body, or b'' if the command is not supported by the
            connected firmware (nothing is sent in that case)

        Raises:
            ConnectionError: Not connected, socket failure, or read timeout
            ConnectionLostError: Peer closed the socket mid-exchange
            OperationCancelledError: cancel fired
        """
        return self._exchange(command, body, MessageFlags.SEND_RESPONSE, cancel)

    def request_with_wait(
        self,
        command: str,
        body: bytes = b'',
        wait_flags: int = 0,
        cancel: Optional[CancellationToken] = None
    ) -> bytes:
        """
        Send a command whose reply the server holds until hardware settles.

        Args:
            wait_flags: Combination of MessageFlags.WAIT_* bits
        """
        flags = MessageFlags.SEND_RESPONSE | (wait_flags & MessageFlags.WAIT_MASK)
        return self._exchange(command, body, flags, cancel)

    def request_no_reply(
        self,
        command: str,
        body: bytes = b'',
        cancel: Optional[CancellationToken] = None
    ) -> bool:
        """
        Send a command without asking for a response. Nothing is read.

        Returns:
            True if sent, False if skipped by the version gate
        """
        with self._lock:
            sock = self._require_socket(command)
            if not self.gate.check(command):
                return False
            if cancel is not None:
                cancel.raise_if_cancelled(command)
            self._send(sock, command, body, 0)
            return True

    def _exchange(
        self,
        command: str,
        body: bytes,
        flags: int,
        cancel: Optional[CancellationToken],
        skip_gate: bool = False
    ) -> bytes:
        with self._lock:
            sock = self._require_socket(command)
            if not skip_gate and not self.gate.check(command):
                return b''
            if cancel is not None:
                cancel.raise_if_cancelled(command)

            message_id = self._send(sock, command, body, flags)

            try:
                header, response = read_message(sock, self.timeout, cancel)
            except OperationCancelledError:
                self._fail(f"{command} cancelled while awaiting response")
                raise
            except ProtocolError as e:
                self._fail(f"Malformed response to {command}: {e}")
                raise
            except ConnectionError as e:
                self._fail(f"{command}: {e.message}")
                raise

            if header.command != command:
                self.logger.debug(
                    f"Response to {command} (id {message_id}) carries name {header.command!r}"
                )
            return response

    def _send(self, sock: socket.socket, command: str, body: bytes, flags: int) -> int:
        self._message_id = (self._message_id + 1) & 0xFFFFFFFF
        header = encode_header(command, len(body), self._message_id, flags)
        try:
            sock.settimeout(self.timeout)
            sock.sendall(header + body)
        except socket.timeout as e:
            self._fail(f"Timed out sending {command}")
            raise ConnectionError(
                f"Timed out sending {command}",
                error_code=ErrorCodes.CONNECTION_TIMEOUT, cause=e
            ) from e
        except OSError as e:
            self._fail(f"Failed to send {command}: {e}")
            raise ConnectionLostError(f"Failed to send {command}: {e}", cause=e) from e
        self.logger.debug(
            f"Sent {command} id={self._message_id} flags=0x{flags:04X} ({len(body)} body bytes)"
        )
        return self._message_id

    def _require_socket(self, command: str) -> socket.socket:
        if self._socket is None:
            raise ConnectionError(
                f"Not connected to microscope (cannot send {command})",
                error_code=ErrorCodes.NOT_CONNECTED,
                suggestions=["Call connect() first"]
            )
        return self._socket

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_host(self, host: str) -> None:
        if not isinstance(host, str) or not host.strip():
            raise ValidationError(f"Host must be a non-empty string, got {host!r}", field_name='host')

    def _validate_port(self, port: int) -> None:
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValidationError(f"Port must be an integer, got {type(port).__name__}", field_name='port')
        # port + 1 is the data channel
        if not (1 <= port <= 65534):
            raise ValidationError(f"Port out of range (1-65534): {port}", field_name='port')
