"""
Framed reads from a SharkSEM socket.

Both channels carry the same framing: a 32-byte header followed by exactly
``body_size`` bytes. The helpers here loop over partial reads and wait in
short timeout slices, so a CancellationToken is observed while a read is
blocked.

Errors raised:
    ConnectionLostError: the peer closed the socket (zero-byte recv) or reset it
    ConnectionError: the overall read timeout elapsed, or another socket error
    OperationCancelledError: the cancellation token fired

Any of these leaves the stream position undefined, so callers tear the
socket down instead of reading from it again.
"""

import logging
import socket
import time
from typing import Optional, Tuple

from .cancellation import CancellationToken, POLL_SLICE_SECONDS
from .errors import (
    ConnectionError, ConnectionLostError, ErrorCodes, OperationCancelledError
)
from .tcp_protocol import HEADER_SIZE, MessageHeader, decode_header


logger = logging.getLogger(__name__)


def receive_exact(
    sock: socket.socket,
    num_bytes: int,
    timeout: Optional[float] = None,
    cancel: Optional[CancellationToken] = None
) -> bytes:
    """
    Receive exactly num_bytes from sock.

    Args:
        sock: Connected socket
        num_bytes: Number of bytes to read
        timeout: Overall timeout in seconds (None = wait forever)
        cancel: Optional cancellation token checked between slices

    Returns:
        Bytes read from the socket
    """
    if num_bytes <= 0:
        return b''

    deadline = None if timeout is None else time.monotonic() + timeout
    data = bytearray()

    while len(data) < num_bytes:
        if cancel is not None and cancel.is_cancelled:
            raise OperationCancelledError(
                f"Read cancelled ({len(data)}/{num_bytes} bytes received)"
            )

        slice_timeout = POLL_SLICE_SECONDS if cancel is not None else None
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConnectionError(
                    f"Timed out after {timeout}s waiting for data "
                    f"({len(data)}/{num_bytes} bytes received)",
                    error_code=ErrorCodes.CONNECTION_TIMEOUT
                )
            slice_timeout = remaining if slice_timeout is None else min(slice_timeout, remaining)

        try:
            sock.settimeout(slice_timeout)
            chunk = sock.recv(num_bytes - len(data))
        except socket.timeout:
            continue
        except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError) as e:
            raise ConnectionLostError(
                f"Connection lost while reading ({len(data)}/{num_bytes} bytes)", cause=e
            ) from e
        except OSError as e:
            raise ConnectionError(
                f"Socket error while reading: {e}",
                error_code=ErrorCodes.SOCKET_ERROR, cause=e
            ) from e

        if not chunk:
            raise ConnectionLostError(
                f"Socket closed while reading (got {len(data)}/{num_bytes} bytes)"
            )
        data.extend(chunk)

    return bytes(data)


def read_message(
    sock: socket.socket,
    timeout: Optional[float] = None,
    cancel: Optional[CancellationToken] = None
) -> Tuple[MessageHeader, bytes]:
    """
    Read one framed message (header + body).

    The timeout applies to each of the two reads separately.
    """
    header = decode_header(receive_exact(sock, HEADER_SIZE, timeout, cancel))
    body = receive_exact(sock, header.body_size, timeout, cancel)
    logger.debug(f"Received {header.command} id={header.message_id} ({header.body_size} body bytes)")
    return header, body
