"""RLE Lossless codec (DICOM PS3.5 Annex G).

A frame is a 64-byte header (segment count plus up to 15 segment offsets)
followed by PackBits-compressed segments. Each segment holds one byte
plane: samples in order, most significant byte first within a sample.
"""

from __future__ import annotations

import struct

import numpy as np

from dicomancer.core.types import FrameGeometry, PixelFrame
from dicomancer.errors import PixelDataError, UnsupportedPixelCodec
from dicomancer.pixels.base import PixelCodec
from dicomancer.pixels.registry import register_codec

RLE_LOSSLESS = "1.2.840.10008.1.2.5"
_HEADER = struct.Struct("<16I")


def unpack_segment(segment: bytes, expected: int) -> np.ndarray:
    """Expand one PackBits segment to ``expected`` bytes."""
    out = bytearray()
    i = 0
    n = len(segment)
    while i < n and len(out) < expected:
        header = segment[i]
        i += 1
        if header < 128:
            count = header + 1
            out += segment[i : i + count]
            i += count
        elif header > 128:
            if i < n:
                out += bytes((segment[i],)) * (257 - header)
                i += 1
        # 128 is a no-op
    if len(out) < expected:
        raise PixelDataError(f"RLE segment decoded to {len(out)} of {expected} bytes")
    return np.frombuffer(bytes(out[:expected]), dtype=np.uint8)


@register_codec(RLE_LOSSLESS)
class RleCodec(PixelCodec):
    """Built-in RLE Lossless decoder."""

    name = "rle"
    description = "RLE Lossless (PackBits byte segments)"

    def decode(self, data: bytes, geometry: FrameGeometry) -> PixelFrame:
        bits = geometry.bits_allocated
        if bits not in (8, 16, 32):
            raise UnsupportedPixelCodec(f"RLE with {bits} bits allocated is not supported")
        if len(data) < _HEADER.size:
            raise PixelDataError("RLE frame is shorter than its 64-byte header")

        header = _HEADER.unpack_from(data)
        n_segments = header[0]
        bytes_per_sample = bits // 8
        expected_segments = geometry.samples_per_pixel * bytes_per_sample
        if n_segments != expected_segments:
            raise PixelDataError(
                f"RLE frame has {n_segments} segment(s), expected {expected_segments}"
            )
        offsets = list(header[1 : 1 + n_segments]) + [len(data)]

        pixel_count = geometry.pixel_count
        dtype = np.dtype(f"u{bytes_per_sample}")
        planes = np.zeros((geometry.samples_per_pixel, pixel_count), dtype=dtype)
        for sample in range(geometry.samples_per_pixel):
            for byte in range(bytes_per_sample):
                index = sample * bytes_per_sample + byte
                segment = data[offsets[index] : offsets[index + 1]]
                plane = unpack_segment(segment, pixel_count).astype(dtype)
                shift = 8 * (bytes_per_sample - 1 - byte)
                planes[sample] |= plane << dtype.type(shift)

        samples = planes.ravel()
        if geometry.pixel_representation == 1:
            samples = samples.view(f"i{bytes_per_sample}")
        # Segments are stored plane by plane.
        return PixelFrame.from_geometry(geometry, samples, planar_configuration=1)
