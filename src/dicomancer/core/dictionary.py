"""Tag dictionary: (group, element) -> name, alias and default VR.

Built once from pydicom's standard data dictionary and never mutated, so a
single instance is shared by every parser thread.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from pydicom.datadict import DicomDictionary, RepeatersDictionary, mask_match

from dicomancer.core.types import PIXEL_DATA, VR, Tag

UNKNOWN_ALIAS = "Unknown"

_GROUP_LENGTH = ("UL", "1", "Group Length", "", "GroupLength")
_PRIVATE_CREATOR = ("LO", "1", "Private Creator", "", "PrivateCreator")


@dataclass(frozen=True)
class DictionaryEntry:
    """One data dictionary row."""

    tag: Tag
    vr: str  # may be ambiguous, e.g. "US or SS"
    multiplicity: str
    name: str
    alias: str
    retired: bool = False

    @property
    def default_vr(self) -> VR:
        """Resolve the dictionary VR to a single code."""
        if self.tag == PIXEL_DATA:
            return VR.OW
        first = self.vr.split(" or ")[0].strip()
        return VR.from_code(first) or VR.UN


class TagDictionary:
    """Read-only lookup over standard and repeating-group entries."""

    def __init__(
        self,
        entries: Mapping[int, tuple],
        repeaters: Mapping[str, tuple] | None = None,
    ):
        self._entries = dict(entries)
        self._repeaters = dict(repeaters or {})
        self._by_alias: dict[str, int] = {}
        for tag, row in self._entries.items():
            keyword = row[4]
            if keyword:
                self._by_alias.setdefault(keyword, tag)

    @classmethod
    def from_pydicom(cls) -> TagDictionary:
        return cls(DicomDictionary, RepeatersDictionary)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tag: Tag) -> bool:
        return self.entry(tag) is not None

    def entry(self, tag: Tag) -> DictionaryEntry | None:
        """Return the entry for a tag, or None for unknown/private tags."""
        row = self._row(tag)
        if row is None:
            return None
        vr, multiplicity, name, retired, keyword = row
        return DictionaryEntry(
            tag=tag,
            vr=vr,
            multiplicity=multiplicity,
            name=name,
            alias=keyword,
            retired=bool(retired),
        )

    def alias(self, tag: Tag) -> str:
        entry = self.entry(tag)
        if entry is None or not entry.alias:
            return UNKNOWN_ALIAS
        return entry.alias

    def vr_for(self, tag: Tag) -> VR:
        """Default VR used when the stream does not carry one."""
        entry = self.entry(tag)
        if entry is None:
            return VR.UN
        return entry.default_vr

    def tag_for(self, alias: str) -> Tag | None:
        value = self._by_alias.get(alias)
        if value is None:
            return None
        return Tag.from_int(value)

    def _row(self, tag: Tag) -> tuple | None:
        value = tag.as_int()
        row = self._entries.get(value)
        if row is not None:
            return row
        if tag.element == 0x0000:
            return _GROUP_LENGTH
        if tag.is_private:
            if tag.is_private_creator:
                return _PRIVATE_CREATOR
            return None
        mask = mask_match(value)
        if mask:
            return self._repeaters.get(mask)
        return None


STANDARD_DICTIONARY = TagDictionary.from_pydicom()
