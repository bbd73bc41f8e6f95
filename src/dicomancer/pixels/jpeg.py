"""JPEG family codecs backed by Pillow."""

from __future__ import annotations

import io

import numpy as np
from PIL import Image, features

from dicomancer.core.types import FrameGeometry, PixelFrame
from dicomancer.errors import PixelDataError, UnsupportedPixelCodec
from dicomancer.pixels.base import PixelCodec
from dicomancer.pixels.registry import register_codec

JPEG_BASELINE = "1.2.840.10008.1.2.4.50"
JPEG_EXTENDED = "1.2.840.10008.1.2.4.51"
JPEG_2000_LOSSLESS = "1.2.840.10008.1.2.4.90"
JPEG_2000 = "1.2.840.10008.1.2.4.91"

_GRAY_MODES = ("L", "I;16", "I;16B", "I;16L", "I")


def _open_image(data: bytes, codec: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, SyntaxError, ValueError) as e:
        # Pillow raises for 12-bit JPEG and for streams it cannot read.
        raise UnsupportedPixelCodec(f"{codec} data could not be decoded by Pillow ({e})") from e
    return image


def _frame_from_image(image: Image.Image, geometry: FrameGeometry) -> PixelFrame:
    if image.size != (geometry.columns, geometry.rows):
        raise PixelDataError(
            f"decoded image is {image.size[0]}x{image.size[1]}, "
            f"expected {geometry.columns}x{geometry.rows}"
        )
    if image.mode in _GRAY_MODES:
        photometric = geometry.photometric_interpretation
        if not photometric.startswith("MONOCHROME"):
            photometric = "MONOCHROME2"
        samples = np.asarray(image)
    else:
        # Pillow applies the YCbCr -> RGB transform while decoding.
        if image.mode != "RGB":
            image = image.convert("RGB")
        photometric = "RGB"
        samples = np.asarray(image)
    return PixelFrame.from_geometry(
        geometry, samples, photometric_interpretation=photometric, planar_configuration=0
    )


@register_codec(JPEG_BASELINE, JPEG_EXTENDED)
class JpegCodec(PixelCodec):
    """JPEG baseline and 8-bit extended via Pillow's libjpeg."""

    name = "jpeg"
    description = "JPEG Baseline / Extended (8-bit) via Pillow"

    def decode(self, data: bytes, geometry: FrameGeometry) -> PixelFrame:
        image = _open_image(data, "JPEG")
        return _frame_from_image(image, geometry)

    @classmethod
    def check_dependencies(cls) -> tuple[bool, str]:
        if features.check("jpg"):
            return True, "Pillow built with libjpeg."
        return False, "Pillow was built without JPEG support."


@register_codec(JPEG_2000_LOSSLESS, JPEG_2000)
class Jpeg2000Codec(PixelCodec):
    """JPEG 2000 via Pillow's OpenJPEG plugin."""

    name = "jpeg2000"
    description = "JPEG 2000 via Pillow (OpenJPEG)"

    def decode(self, data: bytes, geometry: FrameGeometry) -> PixelFrame:
        if not features.check("jpg_2000"):
            raise UnsupportedPixelCodec("Pillow was built without OpenJPEG")
        image = _open_image(data, "JPEG 2000")
        return _frame_from_image(image, geometry)

    @classmethod
    def check_dependencies(cls) -> tuple[bool, str]:
        if features.check("jpg_2000"):
            return True, "Pillow built with OpenJPEG."
        return False, "Pillow was built without OpenJPEG."
