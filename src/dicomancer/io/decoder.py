"""Data element decoder: byte stream -> raw elements.

Summary of DICOM PS3.5 chapter 7 as handled here:

- Implicit VR: tag, 4-byte length, value. The VR comes from the dictionary.
- Explicit VR: tag, 2-character VR, then either a 2-byte length or, for the
  long-form VRs (OB, OD, OF, OL, OV, OW, SQ, UC, UN, UR, UT, SV, UV), two
  reserved bytes and a 4-byte length.
- A length of 0xFFFFFFFF is undefined: the extent of a sequence, an item or
  encapsulated pixel data is marked by delimitation items instead.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field

from dicomancer.core.dictionary import STANDARD_DICTIONARY, TagDictionary
from dicomancer.core.types import (
    ITEM,
    ITEM_DELIMITER,
    PIXEL_DATA,
    SEQUENCE_DELIMITER,
    UNDEFINED_LENGTH,
    VR,
    ParseStatus,
    Tag,
    TransferSyntax,
)
from dicomancer.errors import (
    DicomError,
    MaxNestingExceeded,
    PartialParse,
    TruncatedStream,
)
from dicomancer.io.cursor import BinaryCursor

logger = logging.getLogger("dicomancer")

_ITEM_GROUP = 0xFFFE


@dataclass
class RawElement:
    """Element as found in the stream, before value interpretation."""

    tag: Tag
    vr: VR
    length: int | None  # None for undefined length
    offset: int
    span: int = 0
    payload: bytes = field(default=b"", repr=False)
    items: list[list[RawElement]] | None = None  # SQ only
    fragments: list[bytes] | None = None  # encapsulated pixel data only
    offset_table: tuple[int, ...] = ()
    explicit_vr: bool = True
    little_endian: bool = True
    warning: str | None = None


@dataclass
class DecodeResult:
    """Top-level elements of a body plus how decoding ended."""

    elements: list[RawElement]
    status: ParseStatus = ParseStatus.COMPLETE
    issues: list[str] = field(default_factory=list)


class ElementDecoder:
    """Walks a cursor under one transfer syntax, recursing into sequences."""

    def __init__(
        self,
        cursor: BinaryCursor,
        syntax: TransferSyntax,
        dictionary: TagDictionary = STANDARD_DICTIONARY,
        max_depth: int = 32,
    ):
        self.cursor = cursor
        self.syntax = syntax
        self.dictionary = dictionary
        self.max_depth = max_depth
        self.issues: list[str] = []

    def decode(self) -> DecodeResult:
        """Decode every remaining top-level element.

        Truncation, runaway nesting and unrecoverable undefined lengths stop
        decoding; whatever was read before is returned as a partial result.
        """
        elements: list[RawElement] = []
        status = ParseStatus.COMPLETE
        try:
            self._read_data_set(
                self.cursor,
                depth=0,
                implicit=self.syntax.implicit_vr,
                little=self.syntax.little_endian,
                delimited=False,
                out=elements,
            )
        except (TruncatedStream, PartialParse, MaxNestingExceeded) as e:
            message = f"{type(e).__name__}: {e}"
            logger.warning(f"Decoding stopped after {len(elements)} element(s): {message}")
            self.issues.append(message)
            status = ParseStatus.PARTIAL
        logger.debug(f"Decoded {len(elements)} top-level element(s)")
        return DecodeResult(elements=elements, status=status, issues=list(self.issues))

    def read_element(self, cursor: BinaryCursor | None = None, depth: int = 0) -> RawElement:
        """Read a single element at the cursor using the syntax defaults."""
        cursor = cursor or self.cursor
        return self._read_element(
            cursor, depth, self.syntax.implicit_vr, self.syntax.little_endian
        )

    def _read_data_set(
        self,
        cursor: BinaryCursor,
        depth: int,
        implicit: bool,
        little: bool,
        delimited: bool,
        out: list[RawElement],
    ) -> None:
        while not cursor.at_end:
            if cursor.remaining >= 2 and cursor.peek_uint16(little) == _ITEM_GROUP:
                start = cursor.offset
                tag = cursor.read_tag(little)
                length = cursor.read_uint32(little)
                if delimited and tag == ITEM_DELIMITER:
                    return
                self._skip_stray_marker(cursor, tag, length, start)
                continue
            out.append(self._read_element(cursor, depth, implicit, little))
        if delimited:
            # Ran out of bytes before the item delimiter.
            raise TruncatedStream(cursor.offset, 8, 0)

    def _skip_stray_marker(self, cursor: BinaryCursor, tag: Tag, length: int, start: int) -> None:
        message = f"unexpected {tag} at offset {start} skipped"
        logger.warning(message)
        self.issues.append(message)
        if tag == ITEM and length != UNDEFINED_LENGTH:
            cursor.skip(length)
        elif tag == ITEM:
            raise PartialParse(f"stray item with undefined length at offset {start}")

    def _read_element(
        self, cursor: BinaryCursor, depth: int, implicit: bool, little: bool
    ) -> RawElement:
        start = cursor.offset
        mark = cursor.bookmark()
        tag = cursor.read_tag(little)
        explicit = not implicit
        warning = None

        if implicit:
            vr = self.dictionary.vr_for(tag)
            length = cursor.read_uint32(little)
        else:
            code = cursor.read_bytes(2)
            vr = VR.from_code(code)
            if vr is None:
                # Some writers switch to implicit VR mid-stream; resync on it.
                cursor.reset(mark)
                tag = cursor.read_tag(little)
                vr = self.dictionary.vr_for(tag)
                length = cursor.read_uint32(little)
                explicit = False
                warning = f"invalid VR {code!r}, element read as implicit VR"
                logger.warning(f"{tag} at offset {start}: {warning}")
            elif vr.has_long_length:
                cursor.skip(2)
                length = cursor.read_uint32(little)
            else:
                length = cursor.read_uint16(little)

        element = RawElement(
            tag=tag,
            vr=vr,
            length=None if length == UNDEFINED_LENGTH else length,
            offset=start,
            explicit_vr=explicit,
            little_endian=little,
            warning=warning,
        )
        if length == UNDEFINED_LENGTH:
            self._read_undefined(element, cursor, depth, implicit, little)
        else:
            self._read_defined(element, cursor, length, depth, implicit, little)
        element.span = cursor.offset - start
        return element

    def _read_defined(
        self,
        element: RawElement,
        cursor: BinaryCursor,
        length: int,
        depth: int,
        implicit: bool,
        little: bool,
    ) -> None:
        window = cursor.window(length)
        if element.vr is not VR.SQ:
            element.payload = window.rest()
            return
        try:
            element.items = self._read_items(window, depth + 1, implicit, little, delimited=False)
        except MaxNestingExceeded:
            raise
        except DicomError as e:
            window.reset(0)
            element.items = None
            element.payload = window.rest()
            element.warning = f"sequence items could not be decoded ({e})"
            logger.warning(f"{element.tag} at offset {element.offset}: {element.warning}")

    def _read_undefined(
        self,
        element: RawElement,
        cursor: BinaryCursor,
        depth: int,
        implicit: bool,
        little: bool,
    ) -> None:
        if element.tag == PIXEL_DATA and element.vr in (VR.OB, VR.OW, VR.UN):
            element.offset_table, element.fragments = self._read_fragments(cursor, little)
        elif element.vr is VR.SQ:
            element.items = self._read_items(cursor, depth + 1, implicit, little, delimited=True)
        elif element.vr is VR.UN:
            # PS3.5 6.2.2: undefined length UN is a sequence in implicit VR LE.
            element.vr = VR.SQ
            element.items = self._read_items(cursor, depth + 1, True, True, delimited=True)
        else:
            raise PartialParse(
                f"{element.tag} with VR {element.vr} has undefined length at offset {element.offset}"
            )

    def _read_items(
        self,
        cursor: BinaryCursor,
        depth: int,
        implicit: bool,
        little: bool,
        delimited: bool,
    ) -> list[list[RawElement]]:
        if depth > self.max_depth:
            raise MaxNestingExceeded(self.max_depth)
        items: list[list[RawElement]] = []
        while not cursor.at_end:
            start = cursor.offset
            tag = cursor.read_tag(little)
            length = cursor.read_uint32(little)
            if tag == SEQUENCE_DELIMITER:
                if delimited:
                    return items
                continue
            if tag != ITEM:
                raise PartialParse(f"expected item tag at offset {start}, found {tag}")
            item: list[RawElement] = []
            if length == UNDEFINED_LENGTH:
                self._read_data_set(cursor, depth, implicit, little, delimited=True, out=item)
            else:
                self._read_data_set(
                    cursor.window(length), depth, implicit, little, delimited=False, out=item
                )
            items.append(item)
        if delimited:
            raise TruncatedStream(cursor.offset, 8, 0)
        return items

    def _read_fragments(
        self, cursor: BinaryCursor, little: bool
    ) -> tuple[tuple[int, ...], list[bytes]]:
        fragments: list[bytes] = []
        while True:
            start = cursor.offset
            tag = cursor.read_tag(little)
            length = cursor.read_uint32(little)
            if tag == SEQUENCE_DELIMITER:
                break
            if tag != ITEM or length == UNDEFINED_LENGTH:
                raise PartialParse(f"malformed pixel data fragment at offset {start}")
            fragments.append(cursor.read_bytes(length))
        if not fragments:
            return (), []
        table = fragments[0]
        count = len(table) // 4
        order = "<" if little else ">"
        offsets = struct.unpack(f"{order}{count}I", table[: count * 4])
        return tuple(offsets), fragments[1:]
