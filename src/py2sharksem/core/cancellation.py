"""
Cooperative cancellation for blocking SEM operations.

A CancellationToken is handed to any blocking call (socket reads, stage
waits, image acquisition). Blocking code checks it between short waits,
so a cancel request is observed within one poll slice.
"""

import threading
import time
from typing import Optional

from .errors import OperationCancelledError


# Socket reads wait in slices of this length so cancellation is noticed promptly
POLL_SLICE_SECONDS = 0.1


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Example:
        >>> token = CancellationToken()
        >>> threading.Timer(5.0, token.cancel).start()
        >>> sem.stage.move_to(StagePosition(10, 5), cancel=token)
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, what: str = "Operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{what} cancelled")

    def wait(self, seconds: float) -> bool:
        """
        Sleep up to seconds, waking early on cancellation.

        Returns:
            True if cancelled during the wait
        """
        return self._event.wait(seconds)


def sleep_or_cancel(seconds: float, cancel: Optional[CancellationToken], what: str) -> None:
    """Sleep, raising OperationCancelledError if cancel fires meanwhile."""
    if cancel is None:
        time.sleep(seconds)
        return
    if cancel.wait(seconds):
        raise OperationCancelledError(f"{what} cancelled")
