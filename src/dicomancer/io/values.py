"""Value interpreter: raw element bytes -> typed values.

Interpretation never raises for odd content. Values that cannot be read
degrade to zero or are dropped, and the element carries a warning instead.
"""

from __future__ import annotations

import logging
import re
import struct
from datetime import date, datetime, time, timedelta, timezone

from pydicom.charset import python_encoding

from dicomancer.core.dataset import DataSet
from dicomancer.core.dictionary import STANDARD_DICTIONARY, TagDictionary
from dicomancer.core.types import (
    KIND_BY_VR,
    SPECIFIC_CHARACTER_SET,
    VR,
    Element,
    Tag,
    TransferSyntax,
    Value,
    ValueKind,
)
from dicomancer.io.decoder import RawElement

logger = logging.getLogger("dicomancer")

DEFAULT_ENCODING = "iso8859"

# struct format character and width of the binary numeric VRs
_BINARY_FORMATS: dict[VR, tuple[str, int]] = {
    VR.US: ("H", 2),
    VR.SS: ("h", 2),
    VR.UL: ("I", 4),
    VR.SL: ("i", 4),
    VR.UV: ("Q", 8),
    VR.SV: ("q", 8),
    VR.FL: ("f", 4),
    VR.FD: ("d", 8),
}

_SINGLE_VALUED = frozenset({VR.LT, VR.ST, VR.UT, VR.UR})
# Leading spaces are significant only in these text VRs.
_KEEP_LEADING = frozenset({VR.LT, VR.ST, VR.UT, VR.UC, VR.UR, VR.PN})

_TIME_RE = re.compile(r"^(\d{2})(\d{2})?(\d{2})?(?:\.(\d{1,6}))?$")
_DT_RE = re.compile(
    r"^(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?(?:\.(\d{1,6}))?([+-]\d{4})?$"
)


def resolve_encoding(charset: str | list[str] | tuple[str, ...] | None, default: str = DEFAULT_ENCODING) -> str:
    """Map a SpecificCharacterSet value to a Python codec name.

    Only the first declared term is honored; ISO 2022 code extensions are
    not switched mid-string.
    """
    if charset is None:
        return default
    terms = [charset] if isinstance(charset, str) else list(charset)
    for term in terms:
        term = term.strip()
        if not term:
            continue
        encoding = python_encoding.get(term)
        if encoding is None:
            logger.warning(f"Unknown character set '{term}', using {default}")
            return default
        return encoding
    return default


def interpret_value(
    vr: VR,
    payload: bytes,
    little_endian: bool = True,
    encoding: str = DEFAULT_ENCODING,
) -> tuple[Value, str | None]:
    """Decode a primitive (non-sequence) payload.

    Returns the value and an optional warning describing any degradation.
    """
    kind = KIND_BY_VR[vr]
    if not payload:
        return Value(kind), None
    if vr in _BINARY_FORMATS:
        return _unpack_numbers(vr, payload, little_endian)
    if vr is VR.AT:
        return _unpack_tags(payload, little_endian)
    if kind is ValueKind.BYTES:
        return Value(kind, (bytes(payload),)), None
    if kind is ValueKind.SEQUENCE:
        return Value(kind), "sequence payload was not decoded"

    text, warning = _decode_text(vr, payload, encoding)
    parts = [text] if vr in _SINGLE_VALUED else text.split("\\")
    parts = [_trim(vr, part) for part in parts]
    if len(parts) == 1 and not parts[0]:
        return Value(kind), warning

    if kind is ValueKind.INTEGER:
        items, bad = _convert(parts, _parse_int, 0)
    elif kind is ValueKind.DECIMAL:
        items, bad = _convert(parts, float, 0.0)
    elif kind is ValueKind.DATETIME:
        items, bad = _parse_temporal(vr, parts)
    else:
        items, bad = parts, []
    if bad:
        warning = _join_warnings(warning, f"invalid {vr} value(s): {', '.join(map(repr, bad))}")
    return Value(kind, tuple(items)), warning


def interpret_elements(
    raw_elements: list[RawElement],
    syntax: TransferSyntax,
    encoding: str = DEFAULT_ENCODING,
    dictionary: TagDictionary = STANDARD_DICTIONARY,
) -> list[Element]:
    """Turn raw elements of one data set level into Elements.

    SpecificCharacterSet is resolved first so that every text element of the
    level uses it; nested items inherit it unless they declare their own.
    """
    for raw in raw_elements:
        if raw.tag == SPECIFIC_CHARACTER_SET:
            value, _ = interpret_value(VR.CS, raw.payload, raw.little_endian, DEFAULT_ENCODING)
            encoding = resolve_encoding(value.items, encoding) if value.items else encoding
            break

    elements = []
    for raw in raw_elements:
        _replace_un_with_known_vr(raw, dictionary)
        value, warning = _interpret_raw(raw, syntax, encoding, dictionary)
        warning = _join_warnings(raw.warning, warning)
        if warning and warning != raw.warning:
            logger.warning(f"{raw.tag} {raw.vr}: {warning}")
        elements.append(
            Element(
                tag=raw.tag,
                vr=raw.vr,
                length=raw.length,
                value=value,
                offset=raw.offset,
                span=raw.span,
                warning=warning,
                raw=raw.payload,
            )
        )
    return elements


def _replace_un_with_known_vr(raw: RawElement, dictionary: TagDictionary) -> None:
    """Give a defined-length UN element of a known tag its dictionary VR.

    Sequences stay UN: their items would need a second decoding pass.
    """
    if raw.vr is not VR.UN or raw.length is None or raw.items is not None or raw.fragments is not None:
        return
    known = dictionary.vr_for(raw.tag)
    if known in (VR.UN, VR.SQ):
        return
    logger.debug(f"{raw.tag}: UN read as {known}")
    raw.vr = known


def _interpret_raw(
    raw: RawElement,
    syntax: TransferSyntax,
    encoding: str,
    dictionary: TagDictionary,
) -> tuple[Value, str | None]:
    if raw.fragments is not None:
        return Value(ValueKind.FRAGMENTS, tuple(raw.fragments), raw.offset_table), None
    if raw.vr is VR.SQ:
        if raw.items is None:
            # Items failed to decode; keep the bytes.
            return Value(ValueKind.BYTES, (raw.payload,) if raw.payload else ()), None
        datasets = tuple(
            DataSet(
                interpret_elements(item, syntax, encoding, dictionary),
                transfer_syntax=syntax,
                dictionary=dictionary,
            )
            for item in raw.items
        )
        return Value(ValueKind.SEQUENCE, datasets), None
    return interpret_value(raw.vr, raw.payload, raw.little_endian, encoding)


def _unpack_numbers(vr: VR, payload: bytes, little_endian: bool) -> tuple[Value, str | None]:
    fmt, width = _BINARY_FORMATS[vr]
    count, extra = divmod(len(payload), width)
    order = "<" if little_endian else ">"
    items = struct.unpack(f"{order}{count}{fmt}", payload[: count * width])
    warning = None
    if extra:
        warning = f"{extra} trailing byte(s) ignored for {vr}"
    return Value(KIND_BY_VR[vr], tuple(items)), warning


def _unpack_tags(payload: bytes, little_endian: bool) -> tuple[Value, str | None]:
    count, extra = divmod(len(payload), 4)
    order = "<" if little_endian else ">"
    numbers = struct.unpack(f"{order}{count * 2}H", payload[: count * 4])
    tags = tuple(Tag(numbers[i], numbers[i + 1]) for i in range(0, len(numbers), 2))
    warning = f"{extra} trailing byte(s) ignored for AT" if extra else None
    return Value(ValueKind.TAG, tags), warning


def _decode_text(vr: VR, payload: bytes, encoding: str) -> tuple[str, str | None]:
    # UIDs and code strings are plain ASCII whatever the character set.
    codec = "ascii" if vr in (VR.UI, VR.CS, VR.AE, VR.AS, VR.DA, VR.TM, VR.DT, VR.DS, VR.IS) else encoding
    try:
        return payload.decode(codec), None
    except (UnicodeDecodeError, LookupError):
        try:
            return payload.decode(codec, errors="replace"), f"undecodable characters for {codec}"
        except LookupError:
            return payload.decode(DEFAULT_ENCODING, errors="replace"), f"unknown codec {codec}"


def _trim(vr: VR, text: str) -> str:
    text = text.rstrip(" \x00")
    if vr not in _KEEP_LEADING:
        text = text.lstrip(" ")
    return text


def _convert(parts, parser, fallback):
    items = []
    bad = []
    for part in parts:
        try:
            items.append(parser(part))
        except ValueError:
            items.append(fallback)
            bad.append(part)
    return items, bad


def _parse_int(text: str) -> int:
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        # Some writers put "12.0" in IS
        number = float(text)
        if not number.is_integer():
            raise
        return int(number)


def _parse_temporal(vr: VR, parts: list[str]):
    parser = {VR.DA: parse_date, VR.TM: parse_time, VR.DT: parse_datetime}[vr]
    items = []
    bad = []
    for part in parts:
        if not part:
            continue
        try:
            items.append(parser(part))
        except ValueError:
            bad.append(part)
    return items, bad


def parse_date(text: str) -> date:
    """Parse DA (``YYYYMMDD`` or legacy ``YYYY.MM.DD``)."""
    text = text.strip()
    if len(text) == 10 and text[4] == "." and text[7] == ".":
        text = text.replace(".", "")
    if len(text) != 8 or not text.isdigit():
        raise ValueError(f"invalid date {text!r}")
    return date(int(text[:4]), int(text[4:6]), int(text[6:8]))


def parse_time(text: str) -> time:
    """Parse TM (``HH[MM[SS[.F{1-6}]]]`` or legacy ``HH:MM:SS``)."""
    text = text.strip().replace(":", "")
    match = _TIME_RE.match(text)
    if not match:
        raise ValueError(f"invalid time {text!r}")
    hour, minute, second, fraction = match.groups()
    return time(
        int(hour),
        int(minute or 0),
        # leap second 60 clamps to 59
        min(int(second or 0), 59),
        int((fraction or "0").ljust(6, "0")),
    )


def parse_datetime(text: str) -> datetime:
    """Parse DT (``YYYY[MM[DD[HH[MM[SS[.F]]]]]][&ZZXX]``)."""
    match = _DT_RE.match(text.strip())
    if not match:
        raise ValueError(f"invalid datetime {text!r}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    tzinfo = None
    if offset:
        sign = -1 if offset[0] == "-" else 1
        delta = timedelta(hours=int(offset[1:3]), minutes=int(offset[3:5]))
        tzinfo = timezone(sign * delta)
    return datetime(
        int(year),
        int(month or 1),
        int(day or 1),
        int(hour or 0),
        int(minute or 0),
        min(int(second or 0), 59),
        int((fraction or "0").ljust(6, "0")),
        tzinfo=tzinfo,
    )


def _join_warnings(first: str | None, second: str | None) -> str | None:
    if first and second:
        return f"{first}; {second}"
    return first or second
