"""Import DICOM files from disk into the hierarchy."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from dicomancer.core.dataset import DataSet
from dicomancer.core.types import ReaderConfig
from dicomancer.errors import DicomError
from dicomancer.hierarchy import HierarchyBuilder, identifier_path
from dicomancer.io.reader import read_file

logger = logging.getLogger("dicomancer")


@dataclass
class DicomEntry:
    """One successfully parsed file with its hierarchy identifiers."""

    path: Path
    dataset: DataSet
    patient_id: str
    study_instance_uid: str
    series_instance_uid: str
    sop_instance_uid: str


@dataclass
class ImportResult:
    """Outcome of importing one path; exactly one of entry/error is set."""

    path: Path
    entry: DicomEntry | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.entry is not None


def load_dicom(path: Path, config: ReaderConfig | None = None) -> DicomEntry:
    """Parse one file. Raises DicomError or OSError."""
    path = Path(path)
    logger.info(f"Loading DICOM file: {path}")
    dataset = read_file(path, config)
    if dataset.is_partial:
        logger.warning(f"{path}: parsed partially ({'; '.join(dataset.issues)})")
    patient, study, series, sop = identifier_path(dataset)
    return DicomEntry(path, dataset, patient, study, series, sop)


def _import_one(path: Path, config: ReaderConfig | None) -> ImportResult:
    try:
        return ImportResult(path, entry=load_dicom(path, config))
    except (DicomError, OSError) as e:
        message = f"{path}: failed to open DICOM file ({e})"
        logger.error(message)
        return ImportResult(path, error=message)


def scan_paths(paths: Iterable[Path]) -> list[Path]:
    """Expand directories recursively (sorted); files pass through as given."""
    files: list[Path] = []
    for path in map(Path, paths):
        if path.is_dir():
            files.extend(sorted(p for p in path.rglob("*") if p.is_file()))
        else:
            files.append(path)
    return files


def import_files(
    paths: Iterable[Path],
    builder: HierarchyBuilder | None = None,
    config: ReaderConfig | None = None,
    workers: int | None = None,
) -> tuple[HierarchyBuilder, list[ImportResult]]:
    """Parse files in parallel and ingest them into the tree in input order.

    A file that fails to import is reported in its ImportResult and does
    not stop the others.
    """
    builder = builder or HierarchyBuilder()
    files = scan_paths(paths)
    if not files:
        return builder, []

    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(lambda p: _import_one(p, config), files))

    for result in results:
        if result.entry is not None:
            builder.ingest(result.entry.dataset, result.path)

    imported = sum(1 for r in results if r.ok)
    logger.info(f"Imported {imported} of {len(results)} file(s)")
    return builder, results
