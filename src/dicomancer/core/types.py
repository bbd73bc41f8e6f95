"""Core data types for the dicomancer parser and pixel pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from PIL import Image

UNDEFINED_LENGTH = 0xFFFFFFFF


class Tag(NamedTuple):
    """DICOM attribute tag, ordered by (group, element)."""

    group: int
    element: int

    @classmethod
    def from_int(cls, value: int) -> Tag:
        return cls((value >> 16) & 0xFFFF, value & 0xFFFF)

    def as_int(self) -> int:
        return (self.group << 16) | self.element

    @property
    def is_private(self) -> bool:
        return self.group % 2 == 1

    @property
    def is_private_creator(self) -> bool:
        return self.is_private and 0x0010 <= self.element <= 0x00FF

    def __str__(self) -> str:
        return f"({self.group:04X},{self.element:04X})"


ITEM = Tag(0xFFFE, 0xE000)
ITEM_DELIMITER = Tag(0xFFFE, 0xE00D)
SEQUENCE_DELIMITER = Tag(0xFFFE, 0xE0DD)
SPECIFIC_CHARACTER_SET = Tag(0x0008, 0x0005)
PIXEL_DATA = Tag(0x7FE0, 0x0010)


class VR(str, Enum):
    """Value representation codes."""

    AE = "AE"
    AS = "AS"
    AT = "AT"
    CS = "CS"
    DA = "DA"
    DS = "DS"
    DT = "DT"
    FD = "FD"
    FL = "FL"
    IS = "IS"
    LO = "LO"
    LT = "LT"
    OB = "OB"
    OD = "OD"
    OF = "OF"
    OL = "OL"
    OV = "OV"
    OW = "OW"
    PN = "PN"
    SH = "SH"
    SL = "SL"
    SQ = "SQ"
    SS = "SS"
    ST = "ST"
    SV = "SV"
    TM = "TM"
    UC = "UC"
    UI = "UI"
    UL = "UL"
    UN = "UN"
    UR = "UR"
    US = "US"
    UT = "UT"
    UV = "UV"

    @classmethod
    def from_code(cls, code: bytes | str) -> VR | None:
        """Return the VR for a two-character code, or None if unknown."""
        if isinstance(code, bytes):
            try:
                code = code.decode("ascii")
            except UnicodeDecodeError:
                return None
        try:
            return cls(code)
        except ValueError:
            return None

    @property
    def has_long_length(self) -> bool:
        """Explicit VR encoding uses 2 reserved bytes + a 32-bit length."""
        return self in _LONG_LENGTH_VRS

    def __str__(self) -> str:
        return self.value


_LONG_LENGTH_VRS = frozenset(
    {VR.OB, VR.OD, VR.OF, VR.OL, VR.OV, VR.OW, VR.SQ, VR.UC, VR.UN, VR.UR, VR.UT, VR.SV, VR.UV}
)


class ValueKind(Enum):
    """Closed set of decoded value variants."""

    TEXT = "text"
    UID = "uid"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    TAG = "tag"
    BYTES = "bytes"
    SEQUENCE = "sequence"
    FRAGMENTS = "fragments"


KIND_BY_VR: dict[VR, ValueKind] = {
    VR.AE: ValueKind.TEXT,
    VR.AS: ValueKind.TEXT,
    VR.AT: ValueKind.TAG,
    VR.CS: ValueKind.TEXT,
    VR.DA: ValueKind.DATETIME,
    VR.DS: ValueKind.DECIMAL,
    VR.DT: ValueKind.DATETIME,
    VR.FD: ValueKind.DECIMAL,
    VR.FL: ValueKind.DECIMAL,
    VR.IS: ValueKind.INTEGER,
    VR.LO: ValueKind.TEXT,
    VR.LT: ValueKind.TEXT,
    VR.OB: ValueKind.BYTES,
    VR.OD: ValueKind.BYTES,
    VR.OF: ValueKind.BYTES,
    VR.OL: ValueKind.BYTES,
    VR.OV: ValueKind.BYTES,
    VR.OW: ValueKind.BYTES,
    VR.PN: ValueKind.TEXT,
    VR.SH: ValueKind.TEXT,
    VR.SL: ValueKind.INTEGER,
    VR.SQ: ValueKind.SEQUENCE,
    VR.SS: ValueKind.INTEGER,
    VR.ST: ValueKind.TEXT,
    VR.SV: ValueKind.INTEGER,
    VR.TM: ValueKind.DATETIME,
    VR.UC: ValueKind.TEXT,
    VR.UI: ValueKind.UID,
    VR.UL: ValueKind.INTEGER,
    VR.UN: ValueKind.BYTES,
    VR.UR: ValueKind.TEXT,
    VR.US: ValueKind.INTEGER,
    VR.UT: ValueKind.TEXT,
    VR.UV: ValueKind.INTEGER,
}


@dataclass(frozen=True)
class Value:
    """Decoded element value.

    ``items`` holds the individual values: strings, ints, floats, date/time
    objects, Tags, a single ``bytes`` payload, nested DataSets, or pixel
    fragments depending on ``kind``.
    """

    kind: ValueKind
    items: tuple[Any, ...] = ()
    offset_table: tuple[int, ...] = ()

    @classmethod
    def empty(cls, vr: VR) -> Value:
        return cls(KIND_BY_VR[vr])

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def first(self) -> Any:
        return self.items[0] if self.items else None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass(frozen=True)
class Element:
    """One decoded data element."""

    tag: Tag
    vr: VR
    length: int | None  # None for undefined length
    value: Value
    offset: int = 0
    span: int = 0  # header + payload bytes consumed from the stream
    warning: str | None = None
    raw: bytes = field(default=b"", repr=False)

    @property
    def has_warning(self) -> bool:
        return self.warning is not None

    @property
    def is_undefined_length(self) -> bool:
        return self.length is None


class ParseStatus(Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"


@dataclass(frozen=True)
class TransferSyntax:
    """Encoding rules for a file body, fixed by its File Meta Information."""

    uid: str
    name: str
    little_endian: bool = True
    implicit_vr: bool = False
    encapsulated: bool = False
    deflated: bool = False

    @property
    def byte_order(self) -> str:
        return "<" if self.little_endian else ">"


@dataclass(frozen=True)
class FrameGeometry:
    """Image pixel module attributes describing one frame."""

    rows: int
    columns: int
    bits_allocated: int
    samples_per_pixel: int
    photometric_interpretation: str
    planar_configuration: int = 0
    bits_stored: int = 0
    pixel_representation: int = 0
    number_of_frames: int = 1

    @property
    def pixel_count(self) -> int:
        return self.rows * self.columns

    @property
    def sample_count(self) -> int:
        """Samples in one native frame; YBR_FULL_422 shares chroma across pixel pairs."""
        if self.photometric_interpretation == "YBR_FULL_422" and self.samples_per_pixel == 3:
            return self.pixel_count * 2
        return self.pixel_count * self.samples_per_pixel

    @property
    def frame_length(self) -> int:
        """Bytes used by one native frame."""
        if self.bits_allocated == 1:
            return (self.sample_count + 7) // 8
        return self.sample_count * (self.bits_allocated // 8)


@dataclass
class PixelFrame:
    """First frame of an image, as decoded samples."""

    width: int
    height: int
    bits_allocated: int
    samples_per_pixel: int
    photometric_interpretation: str
    samples: np.ndarray  # flat, width * height * samples_per_pixel
    planar_configuration: int = 0
    pixel_representation: int = 0

    @classmethod
    def from_geometry(
        cls,
        geometry: FrameGeometry,
        samples: np.ndarray,
        photometric_interpretation: str | None = None,
        planar_configuration: int | None = None,
    ) -> PixelFrame:
        return cls(
            width=geometry.columns,
            height=geometry.rows,
            bits_allocated=geometry.bits_allocated,
            samples_per_pixel=geometry.samples_per_pixel,
            photometric_interpretation=(
                photometric_interpretation or geometry.photometric_interpretation
            ),
            samples=np.ravel(samples),
            planar_configuration=(
                geometry.planar_configuration
                if planar_configuration is None
                else planar_configuration
            ),
            pixel_representation=geometry.pixel_representation,
        )

    @property
    def is_monochrome(self) -> bool:
        return self.photometric_interpretation in ("MONOCHROME1", "MONOCHROME2")


@dataclass
class Raster:
    """Displayable RGBA image produced by the frame renderer."""

    width: int
    height: int
    rgba: bytes  # width * height * 4

    def to_array(self) -> np.ndarray:
        return np.frombuffer(self.rgba, dtype=np.uint8).reshape(self.height, self.width, 4)

    def to_image(self) -> Image.Image:
        from PIL import Image

        return Image.frombytes("RGBA", (self.width, self.height), self.rgba)


@dataclass(frozen=True)
class MetadataRow:
    """One row of the metadata table."""

    tag: str
    vr: str
    alias: str
    value: str


@dataclass
class ReaderConfig:
    """Configuration for reading and displaying DICOM files."""

    max_depth: int = 32
    default_encoding: str = "iso8859"
