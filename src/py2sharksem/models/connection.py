"""
Connection models for py2sharksem.

This module provides data structures for configuring and tracking the
SharkSEM control connection.

Classes:
    SemConnectionSettings: Immutable configuration for a connection
    ConnectionState: Enumeration of connection states
    ConnectionStatus: Current status of a connection
    ConnectionModel: Observable model for connection state management
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple


DEFAULT_PORT = 8300
DEFAULT_TIMEOUT = 30.0

# RFC 1123 host name, or a dotted IPv4 address
_HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*$'
)


@dataclass(frozen=True)
class SemConnectionSettings:
    """
    Immutable configuration for a SharkSEM connection.

    Attributes:
        host: Host name or IPv4 address of the SEM PC (default "localhost")
        port: Control channel port (default 8300)
        timeout: Per-call socket timeout in seconds (default 30.0)
        data_port: Data channel port (defaults to port + 1)

    Example:
        >>> settings = SemConnectionSettings("192.168.1.50")
        >>> settings.data_port
        8301
        >>> valid, errors = settings.validate()
    """

    host: str = "localhost"
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    data_port: Optional[int] = None

    def __post_init__(self):
        """Set data_port to port + 1 if not specified."""
        if self.data_port is None:
            object.__setattr__(self, 'data_port', self.port + 1)

    @property
    def acquisition_timeout(self) -> float:
        """Overall window for one image acquisition (3x the control timeout)."""
        return self.timeout * 3

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate the connection settings.

        Returns:
            Tuple of (is_valid, list_of_error_messages)

        Example:
            >>> SemConnectionSettings("bad host!", 0, timeout=-1).validate()
            (False, ['Invalid host name: bad host!',
                     'Port out of range (1-65535): 0',
                     'Timeout must be positive: -1'])
        """
        errors = []

        if not isinstance(self.host, str) or not _HOSTNAME_PATTERN.match(self.host):
            errors.append(f"Invalid host name: {self.host}")

        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            errors.append(f"Port out of range (1-65535): {self.port}")

        if not isinstance(self.data_port, int) or not (1 <= self.data_port <= 65535):
            errors.append(f"Data port out of range (1-65535): {self.data_port}")
        elif self.data_port == self.port:
            errors.append(f"Control port and data port must be different: {self.port}")

        if not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            errors.append(f"Timeout must be positive: {self.timeout}")

        return (len(errors) == 0, errors)


class ConnectionState(Enum):
    """
    Enumeration of possible connection states.

    States:
        DISCONNECTED: Not connected to the SEM
        CONNECTING: Socket open in progress or version query outstanding
        CONNECTED: Control channel ready
        ERROR: Connection dropped or desynchronized, reconnect required
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class ConnectionStatus:
    """
    Current status of a connection.

    Attributes:
        state: Current connection state
        host: Host if connected, None otherwise
        port: Port if connected, None otherwise
        connected_at: Timestamp when connection was established
        protocol_version: Version string reported by the device
        last_error: Last error message if state is ERROR
    """

    state: ConnectionState
    host: Optional[str] = None
    port: Optional[int] = None
    connected_at: Optional[datetime] = None
    protocol_version: Optional[str] = None
    last_error: Optional[str] = None


class ConnectionModel:
    """
    Observable connection status.

    Observers are called with the new ConnectionStatus whenever it changes.
    The data channel uses this to drop its socket when the control channel
    goes away.
    """

    def __init__(self):
        self._status = ConnectionStatus(state=ConnectionState.DISCONNECTED)
        self._observers: List[Callable[[ConnectionStatus], None]] = []

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @status.setter
    def status(self, new_status: ConnectionStatus) -> None:
        self._status = new_status
        self._notify()

    def add_observer(self, callback: Callable[[ConnectionStatus], None]) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: Callable[[ConnectionStatus], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self._status)
