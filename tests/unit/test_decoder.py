"""Tests for the data element decoder."""

from __future__ import annotations

import struct

from conftest import element, encapsulated_pixel_data, item, sequence_delimiter
from dicomancer.core.types import VR, ParseStatus, Tag
from dicomancer.io.cursor import BinaryCursor
from dicomancer.io.decoder import ElementDecoder
from dicomancer.io.file_meta import (
    EXPLICIT_VR_BIG_ENDIAN,
    EXPLICIT_VR_LITTLE_ENDIAN,
    IMPLICIT_VR_LITTLE_ENDIAN,
)


def _decode(body: bytes, syntax=EXPLICIT_VR_LITTLE_ENDIAN, max_depth: int = 32):
    return ElementDecoder(BinaryCursor(body), syntax, max_depth=max_depth).decode()


def _undefined_sequence(group: int, elem: int, items: bytes, vr: bytes = b"SQ") -> bytes:
    header = struct.pack("<HH", group, elem) + vr + b"\x00\x00" + struct.pack("<I", 0xFFFFFFFF)
    return header + items + sequence_delimiter()


def _nested(levels: int) -> bytes:
    if levels == 0:
        return element(0x0010, 0x0020, "LO", b"LEAF")
    return _undefined_sequence(0x0008, 0x1115, item(_nested(levels - 1), undefined=True))


def test_explicit_elements_in_order():
    body = (
        element(0x0008, 0x0060, "CS", b"CT")
        + element(0x0010, 0x0010, "PN", b"Doe^John")
        + element(0x0028, 0x0010, "US", struct.pack("<H", 512))
    )
    result = _decode(body)
    assert result.status is ParseStatus.COMPLETE
    assert [e.tag for e in result.elements] == [
        Tag(0x0008, 0x0060),
        Tag(0x0010, 0x0010),
        Tag(0x0028, 0x0010),
    ]
    assert [e.vr for e in result.elements] == [VR.CS, VR.PN, VR.US]
    assert sum(e.span for e in result.elements) == len(body)
    assert result.elements[1].payload == b"Doe^John"


def test_implicit_vr_from_dictionary():
    body = element(0x0028, 0x0010, "US", struct.pack("<H", 4), implicit=True)
    body += element(0x0009, 0x1001, "OB", b"\x01\x02", implicit=True)
    result = _decode(body, IMPLICIT_VR_LITTLE_ENDIAN)
    rows, private = result.elements
    assert rows.vr is VR.US
    assert not rows.explicit_vr
    assert private.vr is VR.UN


def test_big_endian_lengths():
    body = element(0x0028, 0x0010, "US", struct.pack(">H", 4), little=False)
    body += element(0x0008, 0x0060, "CS", b"MR", little=False)
    result = _decode(body, EXPLICIT_VR_BIG_ENDIAN)
    assert [e.tag for e in result.elements] == [Tag(0x0028, 0x0010), Tag(0x0008, 0x0060)]
    assert result.elements[0].payload == b"\x00\x04"


def test_defined_length_sequence():
    inner = element(0x0008, 0x1150, "UI", b"1.2.3") + element(0x0008, 0x1155, "UI", b"1.2.3.4")
    body = element(0x0008, 0x1115, "SQ", item(inner) + item(inner))
    result = _decode(body)
    (seq,) = result.elements
    assert seq.vr is VR.SQ
    assert len(seq.items) == 2
    assert [e.tag for e in seq.items[0]] == [Tag(0x0008, 0x1150), Tag(0x0008, 0x1155)]
    assert seq.span == len(body)


def test_undefined_length_sequence_and_item():
    body = _nested(2) + element(0x0020, 0x0013, "IS", b"7")
    result = _decode(body)
    assert result.status is ParseStatus.COMPLETE
    outer, number = result.elements
    assert outer.length is None
    inner = outer.items[0][0]
    assert inner.vr is VR.SQ
    assert inner.items[0][0].payload == b"LEAF"
    assert number.tag == Tag(0x0020, 0x0013)
    assert sum(e.span for e in result.elements) == len(body)


def test_nesting_beyond_max_depth_is_partial():
    body = element(0x0008, 0x0060, "CS", b"CT") + _nested(3)
    result = _decode(body, max_depth=2)
    assert result.status is ParseStatus.PARTIAL
    assert [e.tag for e in result.elements] == [Tag(0x0008, 0x0060)]
    assert any("MaxNestingExceeded" in issue for issue in result.issues)


def test_nesting_within_max_depth():
    assert _decode(_nested(3), max_depth=3).status is ParseStatus.COMPLETE


def test_undefined_length_un_is_read_as_implicit_sequence():
    inner = element(0x0009, 0x1011, "UN", b"\x01\x02\x03\x04", implicit=True)
    body = _undefined_sequence(0x0009, 0x1010, item(inner, undefined=True), vr=b"UN")
    (un,) = _decode(body).elements
    assert un.vr is VR.SQ
    assert un.items[0][0].payload == b"\x01\x02\x03\x04"


def test_undefined_length_on_plain_vr_is_partial():
    body = element(0x0008, 0x0060, "CS", b"CT")
    body += struct.pack("<HH", 0x0010, 0x0021) + b"UT\x00\x00" + struct.pack("<I", 0xFFFFFFFF)
    result = _decode(body)
    assert result.status is ParseStatus.PARTIAL
    assert result.elements[0].tag == Tag(0x0008, 0x0060)


def test_encapsulated_pixel_data_fragments():
    body = encapsulated_pixel_data([b"\x01\x02\x03\x04", b"\x05\x06"], offsets=[0])
    (pixels,) = _decode(body).elements
    assert pixels.length is None
    assert pixels.offset_table == (0,)
    assert pixels.fragments == [b"\x01\x02\x03\x04", b"\x05\x06"]
    assert pixels.span == len(body)


def test_invalid_vr_falls_back_to_implicit():
    body = element(0x0008, 0x0060, "CS", b"OT")
    body += struct.pack("<HHI", 0x0010, 0x0020, 4) + b"ABCD"
    body += element(0x0010, 0x0030, "DA", b"20240101")
    result = _decode(body)
    assert result.status is ParseStatus.COMPLETE
    modality, patient_id, birth = result.elements
    assert patient_id.vr is VR.LO
    assert patient_id.payload == b"ABCD"
    assert not patient_id.explicit_vr
    assert "invalid VR" in patient_id.warning
    assert birth.payload == b"20240101"


def test_truncated_body_keeps_earlier_elements():
    body = element(0x0008, 0x0060, "CS", b"CT") + element(0x0010, 0x0010, "PN", b"Doe^John")
    result = _decode(body[:-3])
    assert result.status is ParseStatus.PARTIAL
    assert len(result.elements) == 1
    assert any("TruncatedStream" in issue for issue in result.issues)


def test_stray_delimiter_is_skipped():
    body = element(0x0008, 0x0060, "CS", b"CT")
    body += struct.pack("<HHI", 0xFFFE, 0xE00D, 0)
    body += element(0x0010, 0x0020, "LO", b"ID1")
    result = _decode(body)
    assert result.status is ParseStatus.COMPLETE
    assert len(result.elements) == 2
    assert len(result.issues) == 1


def test_corrupt_defined_sequence_keeps_payload():
    garbage = b"\x08\x00\x50\x11" + b"\x00" * 4
    body = element(0x0008, 0x1115, "SQ", garbage)
    (seq,) = _decode(body).elements
    assert seq.items is None
    assert seq.payload == garbage
    assert "could not be decoded" in seq.warning


def test_read_element_uses_syntax_defaults():
    body = element(0x0028, 0x0011, "US", struct.pack("<H", 3), implicit=True)
    decoder = ElementDecoder(BinaryCursor(body), IMPLICIT_VR_LITTLE_ENDIAN)
    raw = decoder.read_element()
    assert raw.tag == Tag(0x0028, 0x0011)
    assert raw.vr is VR.US
    assert raw.span == len(body)
