"""
High voltage / electron beam service.

Beam-on is sent with the optics and auto wait flags, so the reply only
arrives once the gun has stabilized. wait_for_beam_on() is available for
callers that started the beam elsewhere (e.g. from the SEM GUI).
"""

import time
from typing import Optional

from py2sharksem.core.cancellation import CancellationToken, sleep_or_cancel
from py2sharksem.core.tcp_protocol import MessageFlags
from py2sharksem.core.wire_codec import encode_float, encode_int
from py2sharksem.models.enums import BeamState
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


BEAM_POLL_INTERVAL = 0.2
BEAM_ON_TIMEOUT = 30.0


class HighVoltageService(MicroscopeCommandService):
    """
    Service for electron beam and accelerating voltage.

    Example:
        >>> hv = HighVoltageService(connection)
        >>> hv.set_voltage(15000.0)
        >>> hv.beam_on()
        >>> hv.get_emission_current()   # amperes
    """

    def get_beam_state(self, cancel: Optional[CancellationToken] = None) -> BeamState:
        code = self._query_int('HVGetBeam', default=BeamState.UNKNOWN, cancel=cancel)
        return BeamState.from_code(code)

    def beam_on(self, cancel: Optional[CancellationToken] = None) -> None:
        """Switch the beam on and block until the device reports it settled."""
        self.logger.info("Switching electron beam on")
        self._query_with_wait(
            'HVBeamOn', b'', MessageFlags.WAIT_OPTICS | MessageFlags.WAIT_AUTO, cancel
        )

    def wait_for_beam_on(self, timeout: float = BEAM_ON_TIMEOUT,
                         cancel: Optional[CancellationToken] = None) -> bool:
        """
        Poll the beam state until it is ON.

        Returns:
            True once the beam is on; False if it is OFF/UNKNOWN (the beam
            failed to come up) or the timeout elapsed
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            state = self.get_beam_state(cancel)
            if state == BeamState.ON:
                return True
            if state in (BeamState.OFF, BeamState.UNKNOWN):
                self.logger.warning(f"Beam did not come on (state {state.name})")
                return False
            sleep_or_cancel(BEAM_POLL_INTERVAL, cancel, "Waiting for beam")
        self.logger.warning(f"Beam still transitioning after {timeout}s")
        return False

    def beam_off(self, cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info("Switching electron beam off")
        self._send('HVBeamOff', cancel=cancel)

    def get_voltage(self, cancel: Optional[CancellationToken] = None) -> float:
        """Accelerating voltage in volts."""
        return self._query_float('HVGetVoltage', cancel=cancel)

    def set_voltage(self, voltage: float, wait: bool = True,
                    cancel: Optional[CancellationToken] = None) -> None:
        """
        Set the accelerating voltage in volts.

        Args:
            voltage: Target voltage in volts
            wait: Ask the device to apply the change synchronously
                  (asynchronous flag 0) rather than in the background (1)
        """
        async_flag = 0 if wait else 1
        self.logger.info(f"Setting high voltage to {voltage} V")
        self._send('HVSetVoltage', encode_float(voltage) + encode_int(async_flag), cancel=cancel)

    def get_emission_current(self, cancel: Optional[CancellationToken] = None) -> float:
        """Emission current in amperes (device reports microamperes)."""
        micro_amps = self._query_float('HVGetEmission', cancel=cancel)
        return micro_amps * 1e-6
