"""Display strings for tags, values and the metadata table."""

from __future__ import annotations

from datetime import date, datetime, time

from dicomancer.core.dataset import DataSet
from dicomancer.core.types import VR, Element, MetadataRow, Tag, ValueKind

MAX_VALUE_LEN = 120
ELLIPSIS = "…"

_NUMERIC_BINARY_VRS = frozenset({VR.FD, VR.FL, VR.SL, VR.SS, VR.SV, VR.UL, VR.US, VR.UV})
_TEXTUAL_KINDS = frozenset(
    {ValueKind.TEXT, ValueKind.UID, ValueKind.INTEGER, ValueKind.DECIMAL, ValueKind.DATETIME}
)


def format_tag(tag: Tag) -> str:
    """``GGGG,EEEE`` in upper-case hex."""
    return f"{tag.group:04X},{tag.element:04X}"


def _plural(count: int, word: str, plural: str | None = None) -> str:
    return f"{count} {word if count == 1 else (plural or word + 's')}"


def format_item(item, vr: VR) -> str:
    if isinstance(item, Tag):
        return format_tag(item)
    if isinstance(item, float):
        if vr is VR.FL:
            return format(item, ".7g")
        return str(int(item)) if item.is_integer() else repr(item)
    if isinstance(item, datetime):
        text = item.strftime("%Y%m%d%H%M%S")
        if item.microsecond:
            text += f".{item.microsecond:06d}"
        if item.tzinfo is not None:
            text += item.strftime("%z")
        return text
    if isinstance(item, date):
        return item.strftime("%Y%m%d")
    if isinstance(item, time):
        text = item.strftime("%H%M%S")
        if item.microsecond:
            text += f".{item.microsecond:06d}"
        return text
    return str(item)


def _render(element: Element) -> str:
    value = element.value
    if value.kind is ValueKind.SEQUENCE:
        return f"Sequence ({_plural(len(value), 'item')})"
    if value.kind is ValueKind.FRAGMENTS:
        fragments = _plural(len(value), "fragment")
        if value.offset_table:
            entries = _plural(len(value.offset_table), "entry", "entries")
            return f"Pixel data ({fragments}, offset table {entries})"
        return f"Pixel data ({fragments})"
    if value.is_empty:
        return "(empty)"
    if value.kind is ValueKind.BYTES:
        return f"Binary data ({len(value.first)} bytes)"
    if (
        element.has_warning
        and element.raw
        and value.kind in _TEXTUAL_KINDS
        and element.vr not in _NUMERIC_BINARY_VRS
    ):
        # Degraded values show what the file actually holds.
        return element.raw.decode("latin-1").rstrip(" \x00")
    return "\\".join(format_item(item, element.vr) for item in value)


def value_to_string(element: Element, max_len: int = MAX_VALUE_LEN) -> str:
    """One-line display text for an element's value."""
    rendered = _render(element)
    if len(rendered) > max_len:
        return rendered[:max_len] + ELLIPSIS
    return rendered


def metadata_rows(dataset: DataSet, max_len: int = MAX_VALUE_LEN) -> list[MetadataRow]:
    """Tag / VR / Alias / Value rows for the body elements, in stream order."""
    return [
        MetadataRow(
            tag=format_tag(element.tag),
            vr=element.vr.value,
            alias=dataset.alias_of(element.tag),
            value=value_to_string(element, max_len),
        )
        for element in dataset
    ]
