"""
Unit tests for the error hierarchy.
"""

import unittest

from py2sharksem.core.errors import (
    CommandError, ConfigurationError, ConnectionError, ConnectionLostError, ErrorCodes,
    OperationCancelledError, ProtocolError, SemError, TimeoutError, ValidationError,
    wrap_external_error
)


class TestErrorHierarchy(unittest.TestCase):

    def test_default_codes(self):
        self.assertEqual(ConnectionError("x").error_code, ErrorCodes.CONNECTION_REFUSED)
        self.assertEqual(ConnectionLostError("x").error_code, ErrorCodes.CONNECTION_LOST)
        self.assertEqual(ProtocolError("x").error_code, ErrorCodes.PROTOCOL_ERROR)
        self.assertEqual(CommandError("x").error_code, ErrorCodes.COMMAND_FAILED)
        self.assertEqual(OperationCancelledError().error_code, ErrorCodes.CANCELLED)
        self.assertEqual(TimeoutError("x").error_code, ErrorCodes.OPERATION_TIMEOUT)
        self.assertEqual(SemError("x").error_code, ErrorCodes.UNKNOWN_ERROR)

    def test_protocol_error_is_connection_error(self):
        error = ProtocolError("short body", command="GetWD")
        self.assertIsInstance(error, ConnectionError)
        self.assertEqual(error.context['category'], 'PROTOCOL')
        self.assertEqual(error.context['command'], 'GetWD')

    def test_lost_connection_has_suggestions(self):
        self.assertTrue(ConnectionLostError("peer closed").suggestions)

    def test_connection_context(self):
        error = ConnectionError("refused", host="sem", port=8300)
        self.assertEqual(error.context['host'], 'sem')
        self.assertEqual(error.context['port'], 8300)
        self.assertEqual(error.context['category'], 'CONNECTION')

    def test_command_error_context(self):
        error = CommandError("scan failed", command='ScScanXY', result_code=-3,
                             error_code=ErrorCodes.SCAN_FAILED)
        self.assertEqual(error.error_code, ErrorCodes.SCAN_FAILED)
        self.assertEqual(error.context['result_code'], -3)

    def test_to_dict(self):
        error = ValidationError("bad width", field_name='width')
        data = error.to_dict()
        self.assertEqual(data['error_type'], 'ValidationError')
        self.assertEqual(data['code'], ErrorCodes.INVALID_PARAMETER)
        self.assertEqual(data['context']['field'], 'width')
        self.assertIsNone(data['cause'])

    def test_format_messages(self):
        error = TimeoutError("stage stuck", timeout_seconds=5.0,
                             suggestions=["Call stop()"])
        self.assertIn("1. Call stop()", error.format_user_message())
        self.assertTrue(error.format_log_message().startswith("[8001] TimeoutError"))

    def test_wrap_external_error(self):
        original = ValueError("not a number")
        error = wrap_external_error(original, "Bad profile", ConfigurationError, path="a.yaml")
        self.assertIsInstance(error, ConfigurationError)
        self.assertIs(error.cause, original)
        self.assertEqual(error.context['original_type'], 'ValueError')
        self.assertEqual(error.context['path'], 'a.yaml')


if __name__ == '__main__':
    unittest.main()
