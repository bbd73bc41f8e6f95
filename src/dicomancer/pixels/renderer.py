"""Turn a decoded frame into an 8-bit RGBA raster."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from dicomancer.core.dataset import DataSet
from dicomancer.core.types import PixelFrame, Raster
from dicomancer.errors import IncompleteImageMetadata, PixelDataError, UnsupportedPhotometricInterpretation

_YBR = ("YBR_FULL", "YBR_FULL_422")


@dataclass(frozen=True)
class Window:
    """VOI LUT window center and width."""

    center: float
    width: float


@dataclass(frozen=True)
class Rescale:
    """Modality LUT slope and intercept."""

    slope: float = 1.0
    intercept: float = 0.0

    @property
    def is_identity(self) -> bool:
        return self.slope == 1.0 and self.intercept == 0.0


def _number(dataset: DataSet, alias: str) -> float | None:
    value = dataset.first_value(alias)
    if isinstance(value, (int, float)):
        return float(value)
    return None


def window_from_dataset(dataset: DataSet) -> Window | None:
    """First WindowCenter/WindowWidth pair, or None when unusable."""
    center = _number(dataset, "WindowCenter")
    width = _number(dataset, "WindowWidth")
    if center is None or width is None or not width >= 1:
        return None
    return Window(center, width)


def rescale_from_dataset(dataset: DataSet) -> Rescale | None:
    slope = _number(dataset, "RescaleSlope")
    intercept = _number(dataset, "RescaleIntercept")
    if slope is None and intercept is None:
        return None
    return Rescale(
        slope if slope is not None else 1.0,
        intercept if intercept is not None else 0.0,
    )


def apply_window(values: np.ndarray, window: Window) -> np.ndarray:
    """Linear VOI LUT function (DICOM PS3.3 C.11.2.1.2.1), output 0-255."""
    center, width = window.center, window.width
    if width <= 1:
        return np.where(values > center - 0.5, 255, 0).astype(np.uint8)
    out = ((values - (center - 0.5)) / (width - 1) + 0.5) * 255
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def normalize(values: np.ndarray) -> np.ndarray:
    """Stretch min..max onto 0-255; a flat image maps to 0."""
    data = values.astype(np.float64)
    dmin, dmax = data.min(), data.max()
    if dmax > dmin:
        return ((data - dmin) / (dmax - dmin) * 255).astype(np.uint8)
    return np.zeros_like(data, dtype=np.uint8)


def render_frame(
    frame: PixelFrame,
    window: Window | None = None,
    rescale: Rescale | None = None,
) -> Raster:
    """Render a frame as RGBA.

    Grayscale goes through rescale and window/level; color frames are
    de-interleaved and converted to RGB. Raises
    UnsupportedPhotometricInterpretation for other color models.
    """
    if frame.width <= 0 or frame.height <= 0:
        raise IncompleteImageMetadata(f"invalid dimensions {frame.width}x{frame.height}")

    if frame.is_monochrome:
        gray = _render_gray(frame, window, rescale)
        rgb = np.repeat(gray[..., None], 3, axis=2)
    elif frame.samples_per_pixel == 3:
        rgb = _render_color(frame)
    else:
        raise UnsupportedPhotometricInterpretation(
            f"cannot render {frame.photometric_interpretation} "
            f"with {frame.samples_per_pixel} sample(s) per pixel"
        )

    rgba = np.empty((frame.height, frame.width, 4), dtype=np.uint8)
    rgba[..., :3] = rgb
    rgba[..., 3] = 255
    return Raster(frame.width, frame.height, rgba.tobytes())


def _take(frame: PixelFrame, count: int) -> np.ndarray:
    if frame.samples.size < count:
        raise PixelDataError(f"frame has {frame.samples.size} sample(s), expected {count}")
    return frame.samples[:count]


def _render_gray(frame: PixelFrame, window: Window | None, rescale: Rescale | None) -> np.ndarray:
    h, w = frame.height, frame.width
    samples = _take(frame, h * w).reshape(h, w)
    values = samples.astype(np.float64)
    if rescale is not None:
        values = values * rescale.slope + rescale.intercept

    if window is not None:
        gray = apply_window(values, window)
    elif frame.bits_allocated == 1:
        gray = (samples * 255).astype(np.uint8)
    elif (
        frame.bits_allocated <= 8
        and frame.pixel_representation == 0
        and (rescale is None or rescale.is_identity)
    ):
        gray = samples.astype(np.uint8)
    else:
        gray = normalize(values)

    if frame.photometric_interpretation == "MONOCHROME1":
        gray = 255 - gray
    return gray


def _render_color(frame: PixelFrame) -> np.ndarray:
    h, w = frame.height, frame.width
    photometric = frame.photometric_interpretation
    if photometric not in ("RGB",) + _YBR:
        raise UnsupportedPhotometricInterpretation(f"cannot render {photometric}")

    if photometric == "YBR_FULL_422" and frame.samples.size < h * w * 3:
        data = _upsample_422(_take(frame, h * w * 2), h, w)
    elif frame.planar_configuration == 1:
        data = np.moveaxis(_take(frame, h * w * 3).reshape(3, h, w), 0, -1)
    else:
        data = _take(frame, h * w * 3).reshape(h, w, 3)

    if frame.bits_allocated > 8:
        if photometric in _YBR:
            raise UnsupportedPhotometricInterpretation(
                f"{photometric} with {frame.bits_allocated} bits allocated"
            )
        return np.stack([normalize(data[..., c]) for c in range(3)], axis=-1)

    if photometric in _YBR:
        return _ybr_to_rgb(data)
    return data.astype(np.uint8)


def _upsample_422(samples: np.ndarray, h: int, w: int) -> np.ndarray:
    """Y1 Y2 Cb Cr per pixel pair -> (h, w, 3) with chroma repeated."""
    if w % 2:
        raise PixelDataError(f"YBR_FULL_422 needs an even width, got {w}")
    pairs = samples.reshape(h, w // 2, 4)
    y = pairs[..., :2].reshape(h, w)
    cb = np.repeat(pairs[..., 2], 2, axis=1)
    cr = np.repeat(pairs[..., 3], 2, axis=1)
    return np.stack([y, cb, cr], axis=-1)


def _ybr_to_rgb(data: np.ndarray) -> np.ndarray:
    ybr = data.astype(np.float64)
    y = ybr[..., 0]
    cb = ybr[..., 1] - 128.0
    cr = ybr[..., 2] - 128.0
    rgb = np.stack(
        [
            y + 1.402 * cr,
            y - 0.344136 * cb - 0.714136 * cr,
            y + 1.772 * cb,
        ],
        axis=-1,
    )
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
