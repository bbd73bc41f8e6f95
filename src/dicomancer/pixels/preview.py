"""Frame preview for the inspector: decode, render, and report why not."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from dicomancer.core.dataset import DataSet
from dicomancer.core.types import Raster
from dicomancer.errors import (
    DicomError,
    NoPixelData,
    UnsupportedPhotometricInterpretation,
    UnsupportedPixelCodec,
)
from dicomancer.pixels.decoder import decode_first_frame
from dicomancer.pixels.renderer import render_frame, rescale_from_dataset, window_from_dataset

logger = logging.getLogger("dicomancer")


class PreviewStatus(Enum):
    RENDERED = "rendered"
    NO_IMAGE = "no image"
    UNSUPPORTED_CODEC = "unsupported codec"
    FAILED = "failed"


@dataclass
class PreviewResult:
    status: PreviewStatus
    raster: Raster | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is PreviewStatus.RENDERED


def render_preview(dataset: DataSet) -> PreviewResult:
    """Render the first frame; pixel errors become a status, never an exception."""
    try:
        frame = decode_first_frame(dataset)
        raster = render_frame(frame, window_from_dataset(dataset), rescale_from_dataset(dataset))
    except NoPixelData as e:
        return PreviewResult(PreviewStatus.NO_IMAGE, message=str(e))
    except (UnsupportedPixelCodec, UnsupportedPhotometricInterpretation) as e:
        logger.warning(f"Preview unavailable: {e}")
        return PreviewResult(PreviewStatus.UNSUPPORTED_CODEC, message=str(e))
    except DicomError as e:
        logger.warning(f"Unable to build frame preview: {e}")
        return PreviewResult(PreviewStatus.FAILED, message=str(e))
    return PreviewResult(PreviewStatus.RENDERED, raster, f"{raster.width}x{raster.height}")
