"""Microscope identification queries."""

from typing import Optional

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.models.microscope import MicroscopeInfo
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


class MiscService(MicroscopeCommandService):
    """Model, serial number and software/protocol versions."""

    def get_model(self, cancel: Optional[CancellationToken] = None) -> str:
        return self._query_string('TcpGetModel', cancel=cancel)

    def get_device(self, cancel: Optional[CancellationToken] = None) -> str:
        return self._query_string('TcpGetDevice', cancel=cancel)

    def get_software_version(self, cancel: Optional[CancellationToken] = None) -> str:
        return self._query_string('TcpGetSWVersion', cancel=cancel)

    def get_protocol_version(self, cancel: Optional[CancellationToken] = None) -> str:
        return self._query_string('TcpGetVersion', cancel=cancel)

    def get_microscope_info(self, cancel: Optional[CancellationToken] = None) -> MicroscopeInfo:
        """
        Collect identification strings.

        Fields the firmware does not support are left empty; a broken
        connection raises instead of producing a half-filled record.
        """
        info = MicroscopeInfo(
            model=self.get_model(cancel),
            serial_number=self.get_device(cancel),
            software_version=self.get_software_version(cancel),
            protocol_version=self.get_protocol_version(cancel),
        )
        self.logger.info(f"Connected to {info}")
        return info
