"""In-memory data set: ordered, read-only mapping of Tag -> Element."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import Any

from dicomancer.core.dictionary import STANDARD_DICTIONARY, TagDictionary
from dicomancer.core.types import Element, ParseStatus, Tag, TransferSyntax
from dicomancer.errors import NotFound

logger = logging.getLogger("dicomancer")


class DataSet:
    """Loss-free representation of one parsed file or sequence item.

    Elements keep stream order. Nothing mutates a DataSet after
    construction, so instances can be shared between threads freely.
    """

    def __init__(
        self,
        elements: Iterable[Element] = (),
        *,
        status: ParseStatus = ParseStatus.COMPLETE,
        issues: Iterable[str] = (),
        transfer_syntax: TransferSyntax | None = None,
        file_meta: DataSet | None = None,
        body_offset: int = 0,
        dictionary: TagDictionary = STANDARD_DICTIONARY,
    ):
        ordered: dict[Tag, Element] = {}
        issue_list = list(issues)
        for element in elements:
            if element.tag in ordered:
                message = f"duplicate element {element.tag} ignored"
                logger.warning(message)
                issue_list.append(message)
                # The dropped element's bytes are no longer accounted for.
                status = ParseStatus.PARTIAL
                continue
            ordered[element.tag] = element
        self._elements = MappingProxyType(ordered)
        self._dictionary = dictionary
        self.status = status
        self.issues: tuple[str, ...] = tuple(issue_list)
        self.transfer_syntax = transfer_syntax
        self.file_meta = file_meta
        self.body_offset = body_offset

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[Element]:
        return iter(self._elements.values())

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            tag = self._dictionary.tag_for(key)
            return tag is not None and tag in self._elements
        return key in self._elements

    def __repr__(self) -> str:
        return f"DataSet({len(self)} elements, status={self.status.value})"

    @property
    def is_partial(self) -> bool:
        return self.status is ParseStatus.PARTIAL

    @property
    def dictionary(self) -> TagDictionary:
        return self._dictionary

    def tags(self) -> list[Tag]:
        return list(self._elements)

    def get(self, tag: Tag) -> Element:
        """Return the element with this exact tag or raise NotFound."""
        try:
            return self._elements[tag]
        except KeyError:
            raise NotFound(f"{tag} not present") from None

    def get_by_alias(self, alias: str) -> Element:
        """Look up an element by dictionary keyword, e.g. ``"PatientID"``."""
        tag = self._dictionary.tag_for(alias)
        if tag is None:
            raise NotFound(f"no dictionary entry named '{alias}'")
        try:
            return self._elements[tag]
        except KeyError:
            raise NotFound(f"{alias} {tag} not present") from None

    def find(self, key: Tag | str) -> Element | None:
        try:
            if isinstance(key, str):
                return self.get_by_alias(key)
            return self.get(key)
        except NotFound:
            return None

    def first_value(self, key: Tag | str, default: Any = None) -> Any:
        """First decoded item of an element, or ``default`` when absent/empty."""
        element = self.find(key)
        if element is None or element.value.is_empty:
            return default
        return element.value.first

    def text(self, key: Tag | str, default: str | None = None) -> str | None:
        """First item as stripped text; blank values count as absent."""
        value = self.first_value(key)
        if value is None:
            return default
        text = str(value).strip()
        return text or default

    def alias_of(self, tag: Tag) -> str:
        return self._dictionary.alias(tag)
