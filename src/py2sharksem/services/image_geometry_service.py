"""
Image geometry, image shift and centering service.

Geometries and centerings are device-defined, indexed transforms (for
example "Rotation" or "Gun Tilt"); each has an X/Y value pair.
"""

import math
from typing import List, Optional, Tuple

from py2sharksem.core.cancellation import CancellationToken
from py2sharksem.core.wire_codec import BodyReader, encode_float, encode_int, parse_indexed_names
from py2sharksem.models.microscope import Centering, ImageGeometry
from py2sharksem.services.microscope_command_service import MicroscopeCommandService


def _index_xy(index: int, x: float, y: float) -> bytes:
    return encode_int(index) + encode_float(x) + encode_float(y)


class ImageGeometryService(MicroscopeCommandService):
    """Service for image geometries, image shift and centerings."""

    def enum_geometries(self, cancel: Optional[CancellationToken] = None) -> List[ImageGeometry]:
        text = self._query_string('EnumGeometries', cancel=cancel)
        return [ImageGeometry(index, name) for index, name in parse_indexed_names(text, 'geom')]

    def get_geometry(self, index: int,
                     cancel: Optional[CancellationToken] = None) -> Tuple[float, float]:
        return self._query_float_pair('GetGeometry', encode_int(index), cancel)

    def get_geometry_limits(self, index: int, cancel: Optional[CancellationToken] = None
                            ) -> Tuple[float, float, float, float]:
        """
        Returns:
            (min_x, max_x, min_y, max_y); all NaN if unavailable
        """
        response = self._query('GetGeomLimits', encode_int(index), cancel)
        if not response:
            return (math.nan, math.nan, math.nan, math.nan)

        def parse(reader: BodyReader) -> Tuple[float, float, float, float]:
            reader.read_int()  # result code
            return (reader.read_float(), reader.read_float(),
                    reader.read_float(), reader.read_float())

        return self._decode('GetGeomLimits', response, parse)

    def set_geometry(self, index: int, x: float, y: float,
                     cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting geometry {index} to ({x}, {y})")
        self._send('SetGeometry', _index_xy(index, x, y), cancel)

    def get_image_shift(self, cancel: Optional[CancellationToken] = None) -> Tuple[float, float]:
        return self._query_float_pair('GetImageShift', cancel=cancel)

    def set_image_shift(self, x: float, y: float,
                        cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting image shift to ({x}, {y})")
        self._send('SetImageShift', encode_float(x) + encode_float(y), cancel)

    def enum_centerings(self, cancel: Optional[CancellationToken] = None) -> List[Centering]:
        text = self._query_string('EnumCenterings', cancel=cancel)
        return [Centering(index, name) for index, name in parse_indexed_names(text, 'cen')]

    def get_centering(self, index: int,
                      cancel: Optional[CancellationToken] = None) -> Tuple[float, float]:
        return self._query_float_pair('GetCentering', encode_int(index), cancel)

    def set_centering(self, index: int, x: float, y: float,
                      cancel: Optional[CancellationToken] = None) -> None:
        self.logger.info(f"Setting centering {index} to ({x}, {y})")
        self._send('SetCentering', _index_xy(index, x, y), cancel)
