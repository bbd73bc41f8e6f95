"""Abstract base class for compressed pixel data codecs."""

from __future__ import annotations

from abc import ABC, abstractmethod

from dicomancer.core.types import FrameGeometry, PixelFrame


class PixelCodec(ABC):
    """Decodes the first frame of one family of encapsulated transfer syntaxes."""

    name: str = ""
    description: str = ""
    transfer_syntaxes: tuple[str, ...] = ()

    @abstractmethod
    def decode(self, data: bytes, geometry: FrameGeometry) -> PixelFrame:
        """Decode one frame's compressed bytes into samples."""
        ...

    @classmethod
    def check_dependencies(cls) -> tuple[bool, str]:
        """Check whether the codec can run in this environment.

        Returns (available, message).
        """
        return True, "No additional dependencies required."
