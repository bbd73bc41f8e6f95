"""Tests for preamble detection and File Meta Information parsing."""

from __future__ import annotations

import pytest

from conftest import EXPLICIT_BE, IMPLICIT_LE, RLE, file_meta, part10
from dicomancer.core.types import Tag
from dicomancer.errors import NotADicomFile, TruncatedStream, UnsupportedTransferSyntax
from dicomancer.io.cursor import BinaryCursor
from dicomancer.io.file_meta import (
    TRANSFER_SYNTAXES,
    lookup_transfer_syntax,
    parse_file_meta,
)


def test_parse_meta_group():
    data = part10(b"", IMPLICIT_LE)
    meta = parse_file_meta(BinaryCursor(data))
    assert meta.transfer_syntax.uid == IMPLICIT_LE
    assert meta.transfer_syntax.implicit_vr
    assert meta.body_offset == len(data)
    assert [e.tag for e in meta.elements][:2] == [Tag(0x0002, 0x0000), Tag(0x0002, 0x0001)]


def test_meta_stops_at_first_body_group():
    body = b"\x08\x00\x60\x00CS\x02\x00OT"
    data = part10(body)
    meta = parse_file_meta(BinaryCursor(data))
    assert meta.body_offset == len(data) - len(body)


def test_missing_marker():
    data = b"\x00" * 128 + b"NOPE" + file_meta()
    with pytest.raises(NotADicomFile):
        parse_file_meta(BinaryCursor(data))


def test_too_short_for_preamble():
    with pytest.raises(NotADicomFile):
        parse_file_meta(BinaryCursor(b"DICM"))


def test_unknown_transfer_syntax():
    with pytest.raises(UnsupportedTransferSyntax) as exc:
        parse_file_meta(BinaryCursor(part10(b"", "1.2.3.4.5.999")))
    assert exc.value.uid == "1.2.3.4.5.999"


def test_missing_transfer_syntax():
    with pytest.raises(UnsupportedTransferSyntax) as exc:
        parse_file_meta(BinaryCursor(part10(b"", None)))
    assert exc.value.uid is None


def test_truncated_meta_group():
    data = part10(b"")[:-6]
    with pytest.raises(TruncatedStream):
        parse_file_meta(BinaryCursor(data))


def test_syntax_table_flags():
    assert not lookup_transfer_syntax(EXPLICIT_BE).little_endian
    assert lookup_transfer_syntax(RLE).encapsulated
    assert lookup_transfer_syntax("1.2.840.10008.1.2.1.99").deflated
    assert len(TRANSFER_SYNTAXES) == 13
