"""
Unit tests for the SharkSEM body codec.

Covers integer and text framing, 4-byte padding, float formatting,
short-body detection and property map parsing.
"""

import math
import unittest

from py2sharksem.core.errors import ProtocolError
from py2sharksem.core.wire_codec import (
    BodyReader, decode_float, decode_int, decode_string, decode_uint,
    encode_float, encode_int, encode_ints, encode_string, encode_uint,
    format_float, pad4, parse_indexed_names, parse_property_map, parse_scan_speeds
)


class TestIntegerEncoding(unittest.TestCase):

    def test_encode_int_little_endian(self):
        self.assertEqual(encode_int(1), b'\x01\x00\x00\x00')
        self.assertEqual(encode_int(-1), b'\xff\xff\xff\xff')

    def test_encode_uint_full_range(self):
        self.assertEqual(encode_uint(0xFFFFFFFF), b'\xff\xff\xff\xff')
        self.assertEqual(decode_uint(encode_uint(3000000000)), 3000000000)

    def test_encode_ints_concatenates(self):
        self.assertEqual(encode_ints(1, 2), encode_int(1) + encode_int(2))

    def test_decode_int_at_offset(self):
        body = encode_int(7) + encode_int(-42)
        self.assertEqual(decode_int(body, 4), -42)

    def test_decode_int_short_body_raises(self):
        with self.assertRaises(ProtocolError):
            decode_int(b'\x01\x02')


class TestTextEncoding(unittest.TestCase):

    def test_pad4(self):
        self.assertEqual([pad4(n) for n in (0, 1, 4, 5, 8, 11)], [0, 4, 4, 8, 8, 12])

    def test_float_layout_matches_device_format(self):
        encoded = encode_float(3.14159)
        self.assertEqual(encoded, b'\x08\x00\x00\x00' + b'3.14159\x00')

    def test_float_with_padding(self):
        encoded = encode_float(10.5)
        self.assertEqual(encoded, b'\x05\x00\x00\x00' + b'10.5\x00' + b'\x00\x00\x00')

    def test_string_layout(self):
        self.assertEqual(encode_string('abc'), b'\x04\x00\x00\x00abc\x00')

    def test_encoded_lengths_are_multiples_of_four(self):
        for value in (0.0, 1.5, -2.25, 123456.789, 1e-9, 0.1 + 0.2):
            self.assertEqual(len(encode_float(value)) % 4, 0, value)
        for text in ('', 'a', 'ab', 'abc', 'abcd', 'StgGetPosition'):
            self.assertEqual(len(encode_string(text)) % 4, 0, text)

    def test_format_float_uses_dot_separator(self):
        self.assertEqual(format_float(2), '2.0')
        self.assertEqual(format_float(0.25), '0.25')

    def test_non_finite_float_rejected(self):
        for value in (math.nan, math.inf, -math.inf):
            with self.assertRaises(ValueError):
                encode_float(value)

    def test_non_ascii_string_rejected(self):
        with self.assertRaises(ValueError):
            encode_string('µm')

    def test_float_round_trip_preserves_value(self):
        for value in (0.1, 1 / 3, -1234.5678, 6.02214076e23):
            decoded, _ = decode_float(encode_float(value))
            self.assertEqual(decoded, value)

    def test_decode_string_advances_past_padding(self):
        body = encode_string('abcd') + encode_int(9)
        text, offset = decode_string(body)
        self.assertEqual(text, 'abcd')
        self.assertEqual(offset, 12)
        self.assertEqual(decode_int(body, offset), 9)

    def test_decode_truncated_string_raises(self):
        body = encode_uint(20) + b'12'
        with self.assertRaises(ProtocolError):
            decode_string(body)

    def test_decode_malformed_float_raises(self):
        with self.assertRaises(ProtocolError):
            decode_float(encode_string('not-a-number'))


class TestBodyReader(unittest.TestCase):

    def test_sequential_reads(self):
        body = encode_int(1) + encode_float(2.5) + encode_string('mode')
        reader = BodyReader(body)
        self.assertEqual(reader.read_int(), 1)
        self.assertEqual(reader.read_float(), 2.5)
        self.assertEqual(reader.read_string(), 'mode')
        self.assertFalse(reader.has_more())
        self.assertEqual(reader.remaining, 0)

    def test_read_past_end_raises(self):
        reader = BodyReader(encode_int(1))
        reader.read_int()
        with self.assertRaises(ProtocolError):
            reader.read_float()


class TestPropertyMaps(unittest.TestCase):

    def test_parse_property_map_handles_gaps_and_order(self):
        text = "mode.3.name=DEPTH\r\nmode.0.name=RESOLUTION\n\ngarbage line\nmode.0.id=7\n"
        result = parse_property_map(text)
        self.assertEqual(result['mode'][3], {'name': 'DEPTH'})
        self.assertEqual(result['mode'][0], {'name': 'RESOLUTION', 'id': '7'})

    def test_parse_indexed_names_sorted(self):
        text = "geom.2.name=Rotation\ngeom.0.name=Shift\ncen.0.name=Gun\n"
        self.assertEqual(parse_indexed_names(text, 'geom'), [(0, 'Shift'), (2, 'Rotation')])
        self.assertEqual(parse_indexed_names(text, 'cen'), [(0, 'Gun')])
        self.assertEqual(parse_indexed_names(text, 'det'), [])

    def test_parse_scan_speeds(self):
        text = "speed.2.dwell=3.2\nSPEED.1.DWELL=1.0\nspeed.10.dwell=100\n"
        self.assertEqual(parse_scan_speeds(text), [(1, 1.0), (2, 3.2), (10, 100.0)])

    def test_parse_empty_text(self):
        self.assertEqual(parse_property_map(''), {})
        self.assertEqual(parse_scan_speeds(''), [])


if __name__ == '__main__':
    unittest.main()
