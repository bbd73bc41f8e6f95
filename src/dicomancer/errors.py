"""Exception taxonomy for dicomancer.

File-level failures abort a single file's import, pixel errors are scoped to
the image preview, and lookup misses are plain ``LookupError``s.
"""

from __future__ import annotations


class DicomError(Exception):
    """Base class for every error raised by dicomancer."""


class NotADicomFile(DicomError):
    """The buffer lacks the 128-byte preamble and ``DICM`` marker."""


class UnsupportedTransferSyntax(DicomError):
    """The file declares a transfer syntax outside the supported table."""

    def __init__(self, uid: str | None):
        self.uid = uid
        if uid:
            message = f"unsupported transfer syntax {uid}"
        else:
            message = "file meta information has no Transfer Syntax UID"
        super().__init__(message)


class TruncatedStream(DicomError):
    """A read asked for more bytes than the buffer holds."""

    def __init__(self, offset: int, requested: int, available: int):
        self.offset = offset
        self.requested = requested
        self.available = available
        super().__init__(
            f"truncated stream at offset {offset}: "
            f"needed {requested} byte(s), {available} available"
        )


class MaxNestingExceeded(DicomError):
    """Sequence nesting went deeper than the configured bound."""

    def __init__(self, depth: int):
        self.depth = depth
        super().__init__(f"sequence nesting exceeds maximum depth {depth}")


class PartialParse(DicomError):
    """Decoding stopped early; the elements read so far are still usable."""


class NotFound(DicomError, LookupError):
    """A tag or alias is not present in a data set or the dictionary."""


class PixelDataError(DicomError):
    """Base class for failures confined to the image preview."""


class NoPixelData(PixelDataError):
    """The data set carries no Pixel Data element."""


class IncompleteImageMetadata(PixelDataError):
    """An attribute needed to lay out the frame is missing or invalid."""


class UnsupportedPixelCodec(PixelDataError):
    """No decoder is available for the pixel data encoding."""


class UnsupportedPhotometricInterpretation(PixelDataError):
    """The frame's color model cannot be rendered."""
