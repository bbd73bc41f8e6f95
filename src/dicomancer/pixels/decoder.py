"""Extract the first frame of Pixel Data as samples."""

from __future__ import annotations

import logging

import numpy as np

from dicomancer.core.dataset import DataSet
from dicomancer.core.types import PIXEL_DATA, FrameGeometry, PixelFrame, Value, ValueKind
from dicomancer.errors import (
    IncompleteImageMetadata,
    NoPixelData,
    PixelDataError,
    UnsupportedPixelCodec,
)
from dicomancer.io.cursor import BinaryCursor
from dicomancer.io.file_meta import EXPLICIT_VR_LITTLE_ENDIAN
from dicomancer.pixels.registry import get_codec

logger = logging.getLogger("dicomancer")

_REQUIRED = ("Rows", "Columns", "BitsAllocated", "SamplesPerPixel", "PhotometricInterpretation")
_JPEG_EOI = b"\xff\xd9"


def read_geometry(dataset: DataSet) -> FrameGeometry:
    """Collect the Image Pixel attributes needed to lay out one frame.

    Raises IncompleteImageMetadata when a required attribute is missing or
    not usable. PlanarConfiguration is only required for color data.
    """
    missing = [alias for alias in _REQUIRED if dataset.first_value(alias) is None]
    samples_per_pixel = dataset.first_value("SamplesPerPixel")
    planar = dataset.first_value("PlanarConfiguration")
    if isinstance(samples_per_pixel, int) and samples_per_pixel > 1 and planar is None:
        missing.append("PlanarConfiguration")
    if missing:
        raise IncompleteImageMetadata(f"missing {', '.join(missing)}")

    try:
        geometry = FrameGeometry(
            rows=int(dataset.first_value("Rows")),
            columns=int(dataset.first_value("Columns")),
            bits_allocated=int(dataset.first_value("BitsAllocated")),
            samples_per_pixel=int(samples_per_pixel),
            photometric_interpretation=str(dataset.first_value("PhotometricInterpretation")).strip().upper(),
            planar_configuration=int(planar or 0),
            bits_stored=int(dataset.first_value("BitsStored", 0)),
            pixel_representation=int(dataset.first_value("PixelRepresentation", 0)),
            number_of_frames=int(dataset.first_value("NumberOfFrames", 1)),
        )
    except (TypeError, ValueError) as e:
        raise IncompleteImageMetadata(f"invalid image attribute ({e})") from e

    if geometry.rows <= 0 or geometry.columns <= 0:
        raise IncompleteImageMetadata(f"invalid dimensions {geometry.columns}x{geometry.rows}")
    if geometry.samples_per_pixel not in (1, 3):
        raise IncompleteImageMetadata(f"unsupported SamplesPerPixel {geometry.samples_per_pixel}")
    return geometry


def decode_native(payload: bytes, geometry: FrameGeometry, little_endian: bool = True) -> PixelFrame:
    """Slice and convert the first frame of uncompressed pixel data.

    Raises TruncatedStream when the payload is shorter than one frame.
    """
    bits = geometry.bits_allocated
    if bits not in (1, 8, 16, 32):
        raise UnsupportedPixelCodec(f"native pixel data with {bits} bits allocated")

    data = BinaryCursor(payload).read_bytes(geometry.frame_length)
    if bits == 1:
        packed = np.frombuffer(data, dtype=np.uint8)
        samples = np.unpackbits(packed, bitorder="little")[: geometry.sample_count]
        return PixelFrame.from_geometry(geometry, samples)

    kind = "i" if geometry.pixel_representation == 1 else "u"
    order = "<" if little_endian else ">"
    dtype = np.dtype(f"{order}{kind}{bits // 8}")
    samples = np.frombuffer(data, dtype=dtype).astype(dtype.newbyteorder("="))
    return PixelFrame.from_geometry(geometry, _apply_bits_stored(samples, geometry))


def _apply_bits_stored(samples: np.ndarray, geometry: FrameGeometry) -> np.ndarray:
    """Drop bits above BitsStored, sign-extending signed data."""
    bits = geometry.bits_allocated
    stored = geometry.bits_stored
    if stored <= 0 or stored >= bits:
        return samples
    mask = (1 << stored) - 1
    unsigned = samples.view(f"u{bits // 8}").astype(np.int64) & mask
    if geometry.pixel_representation == 1:
        sign = 1 << (stored - 1)
        return ((unsigned ^ sign) - sign).astype(samples.dtype)
    return unsigned.astype(samples.dtype)


def first_frame_data(value: Value, number_of_frames: int = 1) -> bytes:
    """Concatenate the fragments that make up the first frame."""
    fragments = value.items
    if not fragments:
        raise PixelDataError("encapsulated pixel data has no fragments")
    if number_of_frames <= 1:
        return b"".join(fragments)

    table = value.offset_table
    if len(table) >= 2:
        # Offsets count item headers, 8 bytes per fragment.
        end = table[1]
        position = 0
        parts = []
        for fragment in fragments:
            if position >= end:
                break
            parts.append(fragment)
            position += 8 + len(fragment)
        return b"".join(parts)

    if len(fragments) == number_of_frames:
        return fragments[0]

    parts = []
    for fragment in fragments:
        parts.append(fragment)
        if fragment.rstrip(b"\x00").endswith(_JPEG_EOI):
            break
    return b"".join(parts)


def decode_first_frame(dataset: DataSet) -> PixelFrame:
    """Decode frame 0 of a data set's Pixel Data.

    Raises NoPixelData, IncompleteImageMetadata, UnsupportedPixelCodec,
    PixelDataError or TruncatedStream.
    """
    element = dataset.find(PIXEL_DATA)
    if element is None:
        raise NoPixelData("no Pixel Data element")
    geometry = read_geometry(dataset)
    syntax = dataset.transfer_syntax or EXPLICIT_VR_LITTLE_ENDIAN

    if element.value.kind is ValueKind.FRAGMENTS:
        data = first_frame_data(element.value, geometry.number_of_frames)
        codec = get_codec(syntax.uid)
        logger.debug(f"Decoding {len(data)} byte(s) of {syntax.name} with {codec.name}")
        return codec.decode(data, geometry)

    if element.value.kind is not ValueKind.BYTES:
        raise PixelDataError(f"Pixel Data has unexpected VR {element.vr}")
    payload = element.value.first or b""
    return decode_native(payload, geometry, syntax.little_endian)
