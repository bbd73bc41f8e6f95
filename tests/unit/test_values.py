"""Tests for turning raw payloads into typed values."""

from __future__ import annotations

import struct
from datetime import date, datetime, time, timedelta, timezone

import pytest

from conftest import element, item
from dicomancer.core.dataset import DataSet
from dicomancer.core.types import VR, Tag, ValueKind
from dicomancer.io.cursor import BinaryCursor
from dicomancer.io.decoder import ElementDecoder
from dicomancer.io.file_meta import EXPLICIT_VR_LITTLE_ENDIAN
from dicomancer.io.values import (
    interpret_elements,
    interpret_value,
    parse_date,
    parse_datetime,
    parse_time,
    resolve_encoding,
)


def _elements(body: bytes):
    raw = ElementDecoder(BinaryCursor(body), EXPLICIT_VR_LITTLE_ENDIAN).decode().elements
    return interpret_elements(raw, EXPLICIT_VR_LITTLE_ENDIAN)


def test_unsigned_short_round_trip():
    value, warning = interpret_value(VR.US, struct.pack("<3H", 1, 512, 65535))
    assert value.kind is ValueKind.INTEGER
    assert value.items == (1, 512, 65535)
    assert warning is None


def test_big_endian_numbers():
    value, _ = interpret_value(VR.UL, struct.pack(">I", 0x01020304), little_endian=False)
    assert value.first == 0x01020304


def test_trailing_bytes_warn():
    value, warning = interpret_value(VR.US, b"\x01\x00\x02")
    assert value.items == (1,)
    assert "trailing" in warning


def test_float_values():
    value, _ = interpret_value(VR.FD, struct.pack("<2d", 1.5, -2.25))
    assert value.kind is ValueKind.DECIMAL
    assert value.items == (1.5, -2.25)


def test_decimal_string_multi_valued():
    value, warning = interpret_value(VR.DS, b"0.5\\-1.25 \\3 ")
    assert value.items == (0.5, -1.25, 3.0)
    assert warning is None


def test_bad_decimal_string_degrades_with_warning():
    value, warning = interpret_value(VR.DS, b"1.5\\abc ")
    assert value.items == (1.5, 0.0)
    assert "abc" in warning


def test_integer_string_accepts_integral_decimal():
    value, warning = interpret_value(VR.IS, b" 12.0 ")
    assert value.items == (12,)
    assert warning is None


def test_multi_valued_text():
    value, _ = interpret_value(VR.CS, b"ORIGINAL\\PRIMARY\\AXIAL ")
    assert value.kind is ValueKind.TEXT
    assert value.items == ("ORIGINAL", "PRIMARY", "AXIAL")


def test_single_valued_text_keeps_backslashes_and_leading_spaces():
    value, _ = interpret_value(VR.LT, b"  a\\b ")
    assert value.items == ("  a\\b",)


def test_leading_spaces_trimmed_for_short_strings():
    value, _ = interpret_value(VR.LO, b"  ID1 ")
    assert value.items == ("ID1",)


def test_uid_padding_removed():
    value, _ = interpret_value(VR.UI, b"1.2.3\x00")
    assert value.kind is ValueKind.UID
    assert value.first == "1.2.3"


def test_date_round_trip():
    value, _ = interpret_value(VR.DA, b"20240131")
    assert value.kind is ValueKind.DATETIME
    assert value.first == date(2024, 1, 31)


def test_bad_date_dropped_with_warning():
    value, warning = interpret_value(VR.DA, b"20241399\\20240101")
    assert value.items == (date(2024, 1, 1),)
    assert "20241399" in warning


def test_tag_values():
    value, _ = interpret_value(VR.AT, struct.pack("<4H", 0x0010, 0x0020, 0x0028, 0x0010))
    assert value.items == (Tag(0x0010, 0x0020), Tag(0x0028, 0x0010))


def test_binary_payload_kept_whole():
    value, _ = interpret_value(VR.OB, b"\x00\x01\x02\x03")
    assert value.kind is ValueKind.BYTES
    assert value.first == b"\x00\x01\x02\x03"


def test_empty_payload():
    value, warning = interpret_value(VR.PN, b"")
    assert value.is_empty
    assert value.kind is ValueKind.TEXT
    assert warning is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("0930", time(9, 30)),
        ("093015.5", time(9, 30, 15, 500000)),
        ("09:30:15", time(9, 30, 15)),
        ("235960", time(23, 59, 59)),
    ],
)
def test_parse_time(text, expected):
    assert parse_time(text) == expected


def test_parse_legacy_date():
    assert parse_date("2024.01.31") == date(2024, 1, 31)


def test_parse_datetime_with_offset():
    parsed = parse_datetime("20240131120000.25-0500")
    assert parsed == datetime(2024, 1, 31, 12, 0, 0, 250000, tzinfo=timezone(-timedelta(hours=5)))


def test_parse_datetime_year_only():
    assert parse_datetime("2024") == datetime(2024, 1, 1)


def test_resolve_encoding():
    assert resolve_encoding("ISO_IR 100") == "latin_1"
    assert resolve_encoding(["", "ISO 2022 IR 100"]) == "latin_1"
    assert resolve_encoding(None) == "iso8859"
    assert resolve_encoding("NOT A CHARSET") == "iso8859"


def test_specific_character_set_applies_to_level():
    body = element(0x0008, 0x0005, "CS", b"ISO_IR 192")
    body += element(0x0010, 0x0010, "PN", "Müller^Anna".encode("utf-8"))
    charset, name = _elements(body)
    assert charset.value.first == "ISO_IR 192"
    assert name.value.first == "Müller^Anna"
    assert name.warning is None


def test_sequence_items_become_datasets_and_inherit_charset():
    inner = element(0x0010, 0x0010, "PN", "Gößling".encode("utf-8"))
    body = element(0x0008, 0x0005, "CS", b"ISO_IR 192")
    body += element(0x0008, 0x1115, "SQ", item(inner))
    _, seq = _elements(body)
    assert seq.value.kind is ValueKind.SEQUENCE
    (nested,) = seq.value.items
    assert isinstance(nested, DataSet)
    assert nested.text("PatientName") == "Gößling"


def test_warning_keeps_raw_payload():
    (bad,) = _elements(element(0x0020, 0x0013, "IS", b"twelve"))
    assert bad.value.items == (0,)
    assert bad.has_warning
    assert bad.raw == b"twelve"


def test_un_element_of_known_tag_uses_dictionary_vr():
    body = element(0x0028, 0x0010, "UN", struct.pack("<H", 512))
    body += element(0x0028, 0x1051, "UN", b"256 ")
    rows, width = _elements(body)
    assert rows.vr is VR.US and rows.value.items == (512,)
    assert width.vr is VR.DS and width.value.items == (256.0,)
    assert rows.raw == struct.pack("<H", 512)


def test_un_element_of_private_tag_stays_bytes():
    (private,) = _elements(element(0x0009, 0x1001, "UN", b"\x01\x02"))
    assert private.vr is VR.UN
    assert private.value.kind is ValueKind.BYTES
