"""Codec registry keyed by transfer syntax UID, filled by a decorator."""

from __future__ import annotations

from typing import Type

from dicomancer.errors import UnsupportedPixelCodec
from dicomancer.pixels.base import PixelCodec

_registry: dict[str, Type[PixelCodec]] = {}


def register_codec(*uids: str):
    """Decorator to register a codec for one or more transfer syntax UIDs."""

    def decorator(cls: Type[PixelCodec]):
        cls.transfer_syntaxes = tuple(uids)
        for uid in uids:
            _registry[uid] = cls
        return cls

    return decorator


def get_codec(uid: str) -> PixelCodec:
    """Get a codec instance for a transfer syntax UID."""
    _ensure_codecs_loaded()
    if uid not in _registry:
        raise UnsupportedPixelCodec(f"no pixel codec for transfer syntax {uid}")
    return _registry[uid]()


def list_codecs() -> list[dict[str, str | bool | tuple[str, ...]]]:
    """List all registered codecs with their availability."""
    _ensure_codecs_loaded()
    codecs = []
    for cls in dict.fromkeys(_registry.values()):
        available, msg = cls.check_dependencies()
        codecs.append(
            {
                "name": cls.name,
                "description": cls.description,
                "transfer_syntaxes": cls.transfer_syntaxes,
                "available": available,
                "dependency_message": msg,
            }
        )
    return codecs


def _ensure_codecs_loaded():
    """Import codec modules to trigger registration."""
    import dicomancer.pixels.jpeg  # noqa: F401
    import dicomancer.pixels.rle  # noqa: F401
