"""
Unit tests for the command group services against a mock transport.
"""

import math
import unittest
from unittest.mock import Mock

from py2sharksem.core.errors import CommandError, ProtocolError, ValidationError
from py2sharksem.core.tcp_protocol import MessageFlags, MessageHeader
from py2sharksem.core.wire_codec import (
    encode_float, encode_int, encode_ints, encode_string, encode_uint
)
from py2sharksem.models.enums import BeamState, BlankerMode, VacuumGauge, VacuumMode, VacuumStatus
from py2sharksem.models.image import ScanSettings
from py2sharksem.models.microscope import Centering, Detector, ImageGeometry, ScanningMode, ScanSpeed
from py2sharksem.services.detector_service import DetectorService
from py2sharksem.services.high_voltage_service import HighVoltageService
from py2sharksem.services.image_geometry_service import ImageGeometryService
from py2sharksem.services.misc_service import MiscService
from py2sharksem.services.optics_service import OpticsService
from py2sharksem.services.scanning_service import ScanningService
from py2sharksem.services.vacuum_service import VacuumService
from service_fixtures import make_connection, sent_body, sent_commands


class TestVacuumService(unittest.TestCase):

    def setUp(self):
        self.connection = make_connection()
        self.vacuum = VacuumService(self.connection)

    def test_status_decoding(self):
        self.connection.responses['VacGetStatus'] = encode_int(1)
        self.assertEqual(self.vacuum.get_status(), VacuumStatus.PUMPING)

    def test_status_empty_is_error(self):
        self.assertEqual(self.vacuum.get_status(), VacuumStatus.ERROR)

    def test_unknown_status_code_falls_back(self):
        self.connection.responses['VacGetStatus'] = encode_int(42)
        self.assertEqual(self.vacuum.get_status(), VacuumStatus.ERROR)

    def test_pressure_sends_gauge(self):
        self.connection.responses['VacGetPressure'] = encode_float(0.0012)
        self.assertEqual(self.vacuum.get_pressure(VacuumGauge.SEM_GUN), 0.0012)
        self.assertEqual(self.connection.request.call_args[0][1], encode_int(2))

    def test_pressure_unavailable_is_nan(self):
        self.assertTrue(math.isnan(self.vacuum.get_pressure()))

    def test_mode(self):
        self.connection.responses['VacGetVPMode'] = encode_int(1)
        self.assertEqual(self.vacuum.get_mode(), VacuumMode.VARIABLE_PRESSURE)

    def test_pump_and_vent(self):
        self.vacuum.pump()
        self.vacuum.vent()
        self.assertEqual(sent_commands(self.connection), ['VacPump', 'VacVent'])


class TestHighVoltageService(unittest.TestCase):

    def setUp(self):
        self.connection = make_connection()
        self.hv = HighVoltageService(self.connection)

    def test_beam_on_uses_wait_flags(self):
        self.hv.beam_on()
        command, body, flags, _ = self.connection.request_with_wait.call_args[0]
        self.assertEqual(command, 'HVBeamOn')
        self.assertEqual(flags, MessageFlags.WAIT_OPTICS | MessageFlags.WAIT_AUTO)

    def test_beam_state(self):
        self.connection.responses['HVGetBeam'] = encode_int(1000)
        self.assertEqual(self.hv.get_beam_state(), BeamState.TRANSITIONING)

    def test_wait_for_beam_on(self):
        states = [encode_int(1000), encode_int(1)]
        self.connection.responses['HVGetBeam'] = lambda body: states.pop(0)
        self.assertTrue(self.hv.wait_for_beam_on(timeout=5.0))

    def test_wait_for_beam_on_fails_when_off(self):
        self.connection.responses['HVGetBeam'] = encode_int(0)
        self.assertFalse(self.hv.wait_for_beam_on(timeout=5.0))

    def test_set_voltage_body(self):
        self.hv.set_voltage(15000.0)
        self.assertEqual(sent_body(self.connection, 'HVSetVoltage'),
                         encode_float(15000.0) + encode_int(0))
        self.hv.set_voltage(5000.0, wait=False)
        self.assertEqual(sent_body(self.connection, 'HVSetVoltage'),
                         encode_float(5000.0) + encode_int(1))

    def test_emission_current_in_amperes(self):
        self.connection.responses['HVGetEmission'] = encode_float(150.0)
        self.assertAlmostEqual(self.hv.get_emission_current(), 150e-6)


class TestOpticsService(unittest.TestCase):

    def setUp(self):
        self.connection = make_connection()
        self.optics = OpticsService(self.connection)

    def test_view_field_millimeters_to_micrometers(self):
        self.connection.responses['GetViewField'] = encode_float(0.25)
        self.assertEqual(self.optics.get_view_field(), 250.0)

    def test_set_view_field_micrometers_to_millimeters(self):
        self.optics.set_view_field(250.0)
        self.assertEqual(sent_body(self.connection, 'SetViewField'), encode_float(0.25))

    def test_view_field_unavailable_is_nan(self):
        self.assertTrue(math.isnan(self.optics.get_view_field()))

    def test_focus_aliases_working_distance(self):
        self.connection.responses['GetWD'] = encode_float(10.5)
        self.assertEqual(self.optics.get_focus(), 10.5)
        self.optics.set_focus(9.0)
        self.assertEqual(sent_body(self.connection, 'SetWD'), encode_float(9.0))

    def test_auto_focus(self):
        self.optics.auto_focus()
        command, body, flags, _ = self.connection.request_with_wait.call_args[0]
        self.assertEqual((command, body), ('AutoWD', encode_int(0)))
        self.assertEqual(flags, MessageFlags.WAIT_OPTICS | MessageFlags.WAIT_AUTO)

    def test_beam_current_and_pc_index(self):
        self.connection.responses['GetBeamCurrent'] = encode_float(120.0)
        self.assertEqual(self.optics.get_beam_current(), 120.0)
        self.assertEqual(self.optics.get_pc_index(), -1)

        self.optics.set_pc_index(3)
        command, body, flags, _ = self.connection.request_with_wait.call_args[0]
        self.assertEqual((command, body, flags), ('SetPCIndex', encode_int(3), MessageFlags.WAIT_OPTICS))

    def test_enum_scanning_modes(self):
        self.connection.responses['SMEnumModes'] = encode_string(
            "mode.1.name=DEPTH\nmode.0.name=RESOLUTION\n"
        )
        self.assertEqual(self.optics.enum_scanning_modes(),
                         [ScanningMode(0, 'RESOLUTION'), ScanningMode(1, 'DEPTH')])

    def test_scanning_mode_default(self):
        self.assertEqual(self.optics.get_scanning_mode(), -1)

    def test_pivot_position(self):
        self.connection.responses['SMGetPivotPos'] = encode_int(0) + encode_float(12.5)
        self.assertEqual(self.optics.get_pivot_position(), (0, 12.5))

    def test_pivot_position_unavailable(self):
        result, pivot = self.optics.get_pivot_position()
        self.assertEqual(result, -1)
        self.assertTrue(math.isnan(pivot))

    def test_short_response_raises_protocol_error(self):
        self.connection.responses['GetWD'] = encode_uint(16) + b'1.5'
        with self.assertRaises(ProtocolError):
            self.optics.get_working_distance()
        self.connection.mark_broken.assert_called_once()


class TestDetectorService(unittest.TestCase):

    def setUp(self):
        self.connection = make_connection()
        self.detectors = DetectorService(self.connection)

    def test_list_detectors(self):
        self.connection.responses['DtEnumDetectors'] = encode_string("det.0.name=SE\ndet.1.name=BSE\n")
        self.assertEqual(self.detectors.list_detectors(), [Detector(0, 'SE'), Detector(1, 'BSE')])

    def test_defaults_when_unavailable(self):
        self.assertEqual(self.detectors.enum_detectors(), '')
        self.assertEqual(self.detectors.get_channel_count(), 0)
        self.assertEqual(self.detectors.get_selected(0), -1)
        self.assertEqual(self.detectors.get_enabled(0), (0, 0))

    def test_get_enabled(self):
        self.connection.responses['DtGetEnabled'] = encode_ints(1, 8)
        self.assertEqual(self.detectors.get_enabled(1), (1, 8))

    def test_select_and_enable_bodies(self):
        self.detectors.select(0, 2)
        self.detectors.enable(1, True, 16)
        self.assertEqual(sent_body(self.connection, 'DtSelect'), encode_ints(0, 2))
        self.assertEqual(sent_body(self.connection, 'DtEnable'), encode_ints(1, 1, 16))


class TestImageGeometryService(unittest.TestCase):

    def setUp(self):
        self.connection = make_connection()
        self.geometry = ImageGeometryService(self.connection)

    def test_enum_geometries_and_centerings(self):
        self.connection.responses['EnumGeometries'] = encode_string("geom.0.name=Image Shift\n")
        self.connection.responses['EnumCenterings'] = encode_string("cen.2.name=Gun Tilt\n")
        self.assertEqual(self.geometry.enum_geometries(), [ImageGeometry(0, 'Image Shift')])
        self.assertEqual(self.geometry.enum_centerings(), [Centering(2, 'Gun Tilt')])

    def test_get_geometry_pair(self):
        self.connection.responses['GetGeometry'] = encode_float(1.0) + encode_float(-2.0)
        self.assertEqual(self.geometry.get_geometry(0), (1.0, -2.0))

    def test_geometry_limits(self):
        self.connection.responses['GetGeomLimits'] = encode_int(0) + b''.join(
            encode_float(v) for v in (-1.0, 1.0, -2.0, 2.0)
        )
        self.assertEqual(self.geometry.get_geometry_limits(0), (-1.0, 1.0, -2.0, 2.0))

    def test_geometry_limits_unavailable(self):
        self.assertTrue(all(math.isnan(v) for v in self.geometry.get_geometry_limits(0)))

    def test_set_centering_body(self):
        self.geometry.set_centering(1, 0.5, -0.5)
        self.assertEqual(sent_body(self.connection, 'SetCentering'),
                         encode_int(1) + encode_float(0.5) + encode_float(-0.5))


class FakeDataConnection:

    def __init__(self, messages=()):
        self.messages = list(messages)
        self.ensure_connected = Mock()

    def read_message(self, timeout=None, cancel=None):
        return self.messages.pop(0) if self.messages else None


def chunk(offset, payload, channel=0, frame_id=7):
    body = (encode_int(frame_id) + encode_int(channel) + encode_uint(offset)
            + encode_int(8) + encode_uint(len(payload)) + payload)
    return MessageHeader('ScData', len(body)), body


class TestScanningService(unittest.TestCase):

    def setUp(self):
        self.connection = make_connection()
        self.data = FakeDataConnection()
        self.scanning = ScanningService(self.connection, self.data, acquisition_timeout=1.0)
        self.connection.responses['ScEnumSpeeds'] = encode_string(
            "speed.1.dwell=0.1\nspeed.2.dwell=1.0\nspeed.3.dwell=3.2\n"
        )

    def test_enum_speeds_cached(self):
        speeds = self.scanning.enum_speeds()
        self.assertEqual(speeds[0], ScanSpeed(1, 0.1))
        self.scanning.enum_speeds()
        self.assertEqual(self.connection.request.call_count, 1)

        self.scanning.enum_speeds(force_refresh=True)
        self.assertEqual(self.connection.request.call_count, 2)

    def test_find_nearest_speed(self):
        self.assertEqual(self.scanning.find_speed_index_by_dwell_time(2.5), 3)
        self.assertEqual(self.scanning.find_speed_index_by_dwell_time(0.0), 1)

    def test_set_speed_by_dwell_time(self):
        self.assertTrue(self.scanning.set_speed_by_dwell_time(0.9))
        self.assertEqual(sent_body(self.connection, 'ScSetSpeed'), encode_int(2))

    def test_set_speed_by_dwell_time_without_speeds(self):
        del self.connection.responses['ScEnumSpeeds']
        self.scanning.clear_speed_cache()
        self.assertIsNone(self.scanning.find_speed_index_by_dwell_time(1.0))
        self.assertFalse(self.scanning.set_speed_by_dwell_time(1.0))

    def test_blanker(self):
        self.connection.responses['ScGetBlanker'] = encode_int(2)
        self.assertEqual(self.scanning.get_blanker(), BlankerMode.AUTO)
        self.scanning.set_blanker(BlankerMode.ON)
        self.assertEqual(sent_body(self.connection, 'ScSetBlanker'), encode_int(1))

    def test_acquire_images_sequence(self):
        image = bytes(range(16))
        self.connection.responses['ScScanXY'] = encode_int(7)
        self.data.messages = [chunk(8, image[8:]), chunk(0, image[:8])]

        images = self.scanning.acquire_images(ScanSettings(width=4, height=4, channels=[0]))

        self.data.ensure_connected.assert_called_once()
        self.assertEqual(len(images), 1)
        self.assertEqual(images[0].data, image)
        self.assertEqual(images[0].to_array().shape, (4, 4))
        self.assertEqual(
            sent_commands(self.connection),
            ['DtEnable', 'GUISetScanning', 'ScStopScan', 'GUISetScanning']
        )
        self.assertEqual(sent_body(self.connection, 'GUISetScanning'), encode_int(1))
        scan_body = self.connection.request.call_args[0][1]
        self.assertEqual(scan_body, encode_ints(0, 4, 4, 0, 0, 3, 3, 1))

    def test_acquire_ignores_chunks_from_other_frames(self):
        self.connection.responses['ScScanXY'] = encode_int(7)
        self.data.messages = [chunk(0, b'\xff' * 4, frame_id=6), chunk(0, b'\x01' * 4)]
        images = self.scanning.acquire_images(ScanSettings(width=2, height=2))
        self.assertEqual(images[0].data, b'\x01' * 4)

    def test_incomplete_channel_is_empty(self):
        self.connection.responses['ScScanXY'] = encode_int(7)
        self.data.messages = [chunk(0, b'\x01' * 4, channel=0)]

        images = self.scanning.acquire_images(ScanSettings(width=2, height=2, channels=[0, 1]))

        self.assertEqual([img.channel for img in images], [0, 1])
        self.assertFalse(images[0].is_empty)
        self.assertTrue(images[1].is_empty)

    def test_scan_error_restores_gui_scanning(self):
        self.connection.responses['ScScanXY'] = encode_int(-3)

        with self.assertRaises(CommandError):
            self.scanning.acquire_images(ScanSettings(width=2, height=2))

        self.assertEqual(sent_commands(self.connection)[-1], 'GUISetScanning')
        self.assertEqual(sent_body(self.connection, 'GUISetScanning'), encode_int(1))

    def test_invalid_settings_rejected(self):
        with self.assertRaises(ValidationError):
            self.scanning.acquire_images(ScanSettings(width=0, height=10))
        self.data.ensure_connected.assert_not_called()

    def test_acquire_single_image(self):
        self.connection.responses['ScScanXY'] = encode_int(7)
        self.data.messages = [chunk(0, b'\x02' * 4, channel=1)]
        image = self.scanning.acquire_single_image(channel=1, width=2, height=2)
        self.assertEqual((image.channel, image.data), (1, b'\x02' * 4))


class TestMiscService(unittest.TestCase):

    def test_microscope_info(self):
        connection = make_connection({
            'TcpGetModel': encode_string('VEGA3'),
            'TcpGetDevice': encode_string('SN-1234'),
            'TcpGetSWVersion': encode_string('4.2.7'),
            'TcpGetVersion': encode_string('3.2.20'),
        })
        info = MiscService(connection).get_microscope_info()
        self.assertEqual(info.manufacturer, 'TESCAN')
        self.assertEqual((info.model, info.serial_number), ('VEGA3', 'SN-1234'))
        self.assertEqual((info.software_version, info.protocol_version), ('4.2.7', '3.2.20'))

    def test_gated_fields_are_empty(self):
        connection = make_connection({'TcpGetVersion': encode_string('2.0.21')})
        info = MiscService(connection).get_microscope_info()
        self.assertEqual(info.model, '')
        self.assertEqual(info.protocol_version, '2.0.21')


if __name__ == '__main__':
    unittest.main()
