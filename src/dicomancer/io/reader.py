"""Parse a whole DICOM Part 10 buffer into a DataSet."""

from __future__ import annotations

import logging
import zlib
from pathlib import Path

from dicomancer.core.dataset import DataSet
from dicomancer.core.dictionary import STANDARD_DICTIONARY, TagDictionary
from dicomancer.core.types import ParseStatus, ReaderConfig
from dicomancer.io.cursor import BinaryCursor
from dicomancer.io.decoder import ElementDecoder
from dicomancer.io.file_meta import EXPLICIT_VR_LITTLE_ENDIAN, parse_file_meta
from dicomancer.io.values import interpret_elements

logger = logging.getLogger("dicomancer")


def read_dataset(
    data: bytes,
    config: ReaderConfig | None = None,
    dictionary: TagDictionary = STANDARD_DICTIONARY,
) -> DataSet:
    """Parse file bytes into a DataSet.

    Raises NotADicomFile, UnsupportedTransferSyntax or TruncatedStream when
    the preamble or meta group is unusable. Problems in the body only make
    the result partial (see ``DataSet.status`` and ``DataSet.issues``).
    """
    config = config or ReaderConfig()
    cursor = BinaryCursor(data)
    meta = parse_file_meta(cursor, dictionary)
    syntax = meta.transfer_syntax
    file_meta = DataSet(
        interpret_elements(meta.elements, EXPLICIT_VR_LITTLE_ENDIAN, config.default_encoding, dictionary),
        transfer_syntax=EXPLICIT_VR_LITTLE_ENDIAN,
        dictionary=dictionary,
    )

    body = cursor
    if syntax.deflated:
        try:
            body = BinaryCursor(zlib.decompress(cursor.rest(), -zlib.MAX_WBITS))
        except zlib.error as e:
            message = f"deflated body could not be inflated ({e})"
            logger.warning(message)
            return DataSet(
                status=ParseStatus.PARTIAL,
                issues=[message],
                transfer_syntax=syntax,
                file_meta=file_meta,
                body_offset=meta.body_offset,
                dictionary=dictionary,
            )

    result = ElementDecoder(body, syntax, dictionary, config.max_depth).decode()
    elements = interpret_elements(result.elements, syntax, config.default_encoding, dictionary)
    dataset = DataSet(
        elements,
        status=result.status,
        issues=result.issues,
        transfer_syntax=syntax,
        file_meta=file_meta,
        body_offset=meta.body_offset,
        dictionary=dictionary,
    )
    logger.debug(f"Parsed {len(dataset)} element(s), status {dataset.status.value}")
    return dataset


def read_file(path: Path, config: ReaderConfig | None = None) -> DataSet:
    """Read a file fully into memory, then parse it."""
    data = Path(path).read_bytes()
    return read_dataset(data, config)
