"""File preamble and File Meta Information (group 0002) parsing."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dicomancer.core.dictionary import STANDARD_DICTIONARY, TagDictionary
from dicomancer.core.types import Tag, TransferSyntax
from dicomancer.errors import NotADicomFile, UnsupportedTransferSyntax
from dicomancer.io.cursor import BinaryCursor
from dicomancer.io.decoder import ElementDecoder, RawElement

logger = logging.getLogger("dicomancer")

PREAMBLE_LENGTH = 128
MAGIC = b"DICM"
TRANSFER_SYNTAX_UID = Tag(0x0002, 0x0010)
_META_GROUP = 0x0002

IMPLICIT_VR_LITTLE_ENDIAN = TransferSyntax(
    "1.2.840.10008.1.2", "Implicit VR Little Endian", implicit_vr=True
)
EXPLICIT_VR_LITTLE_ENDIAN = TransferSyntax("1.2.840.10008.1.2.1", "Explicit VR Little Endian")
DEFLATED_EXPLICIT_VR_LITTLE_ENDIAN = TransferSyntax(
    "1.2.840.10008.1.2.1.99", "Deflated Explicit VR Little Endian", deflated=True
)
EXPLICIT_VR_BIG_ENDIAN = TransferSyntax(
    "1.2.840.10008.1.2.2", "Explicit VR Big Endian", little_endian=False
)


def _encapsulated(uid: str, name: str) -> TransferSyntax:
    return TransferSyntax(uid, name, encapsulated=True)


TRANSFER_SYNTAXES: dict[str, TransferSyntax] = {
    ts.uid: ts
    for ts in (
        IMPLICIT_VR_LITTLE_ENDIAN,
        EXPLICIT_VR_LITTLE_ENDIAN,
        DEFLATED_EXPLICIT_VR_LITTLE_ENDIAN,
        EXPLICIT_VR_BIG_ENDIAN,
        _encapsulated("1.2.840.10008.1.2.4.50", "JPEG Baseline (Process 1)"),
        _encapsulated("1.2.840.10008.1.2.4.51", "JPEG Extended (Process 2 & 4)"),
        _encapsulated("1.2.840.10008.1.2.4.57", "JPEG Lossless, Non-Hierarchical (Process 14)"),
        _encapsulated("1.2.840.10008.1.2.4.70", "JPEG Lossless, Non-Hierarchical, First-Order Prediction"),
        _encapsulated("1.2.840.10008.1.2.4.80", "JPEG-LS Lossless"),
        _encapsulated("1.2.840.10008.1.2.4.81", "JPEG-LS Near-Lossless"),
        _encapsulated("1.2.840.10008.1.2.4.90", "JPEG 2000 Image Compression (Lossless Only)"),
        _encapsulated("1.2.840.10008.1.2.4.91", "JPEG 2000 Image Compression"),
        _encapsulated("1.2.840.10008.1.2.5", "RLE Lossless"),
    )
}


@dataclass
class FileMeta:
    """Parsed File Meta Information group."""

    elements: list[RawElement]
    transfer_syntax: TransferSyntax
    body_offset: int


def check_preamble(cursor: BinaryCursor) -> None:
    """Consume the preamble and magic marker or raise NotADicomFile."""
    if cursor.remaining < PREAMBLE_LENGTH + len(MAGIC):
        raise NotADicomFile("file is too short for a DICOM preamble")
    cursor.skip(PREAMBLE_LENGTH)
    if cursor.read_bytes(len(MAGIC)) != MAGIC:
        raise NotADicomFile("missing 'DICM' marker after the 128-byte preamble")


def lookup_transfer_syntax(uid: str | None) -> TransferSyntax:
    if not uid:
        raise UnsupportedTransferSyntax(None)
    try:
        return TRANSFER_SYNTAXES[uid]
    except KeyError:
        raise UnsupportedTransferSyntax(uid) from None


def parse_file_meta(
    cursor: BinaryCursor,
    dictionary: TagDictionary = STANDARD_DICTIONARY,
) -> FileMeta:
    """Read preamble and group 0002, always explicit VR little endian.

    Leaves the cursor at the first body element.
    """
    check_preamble(cursor)
    decoder = ElementDecoder(cursor, EXPLICIT_VR_LITTLE_ENDIAN, dictionary)
    elements: list[RawElement] = []
    while cursor.remaining >= 2 and cursor.peek_uint16() == _META_GROUP:
        elements.append(decoder.read_element())

    uid = None
    for element in elements:
        if element.tag == TRANSFER_SYNTAX_UID:
            uid = element.payload.decode("ascii", errors="replace").strip(" \x00")
            break
    syntax = lookup_transfer_syntax(uid)
    logger.debug(f"File meta: {len(elements)} element(s), transfer syntax {syntax.name}")
    return FileMeta(elements=elements, transfer_syntax=syntax, body_offset=cursor.offset)
