"""Patient -> Study -> Series -> Instance tree keyed by identifiers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dicomancer.core.dataset import DataSet

logger = logging.getLogger("dicomancer")

UNKNOWN_ID = "unknown"


class Level(Enum):
    PATIENT = "PatientID"
    STUDY = "StudyInstanceUID"
    SERIES = "SeriesInstanceUID"
    INSTANCE = "SOPInstanceUID"


_LEVELS = (Level.PATIENT, Level.STUDY, Level.SERIES, Level.INSTANCE)


@dataclass
class HierarchyNode:
    """One node of the tree; instance nodes carry the parsed DataSet."""

    level: Level
    identifier: str
    label: str
    children: list[HierarchyNode] = field(default_factory=list)
    dataset: DataSet | None = None
    source: Path | None = None
    _index: dict[str, HierarchyNode] = field(default_factory=dict, repr=False)

    def child(self, identifier: str) -> HierarchyNode | None:
        return self._index.get(identifier)

    def walk(self) -> Iterator[HierarchyNode]:
        """Depth-first, in insertion order, including this node."""
        yield self
        for child in self.children:
            yield from child.walk()


def identifier_path(dataset: DataSet) -> tuple[str, str, str, str]:
    """Patient/Study/Series/SOP identifiers, ``"unknown"`` when missing."""
    return tuple(dataset.text(level.value, UNKNOWN_ID) for level in _LEVELS)


class HierarchyBuilder:
    """Inserts DataSets into the tree; one writer at a time.

    Children keep the order in which they were first seen. Re-ingesting an
    instance with the same identifier path replaces its DataSet.
    """

    def __init__(self):
        self._roots: list[HierarchyNode] = []
        self._index: dict[str, HierarchyNode] = {}
        self._lock = threading.Lock()

    @property
    def roots(self) -> list[HierarchyNode]:
        return list(self._roots)

    def ingest(self, dataset: DataSet, source: Path | None = None) -> HierarchyNode:
        """Insert a DataSet and return its instance node."""
        path = identifier_path(dataset)
        with self._lock:
            siblings, index = self._roots, self._index
            node = None
            for level, identifier in zip(_LEVELS, path):
                node = index.get(identifier)
                if node is None:
                    node = HierarchyNode(
                        level=level,
                        identifier=identifier,
                        label=f"{level.value}: {identifier}",
                    )
                    index[identifier] = node
                    siblings.append(node)
                elif level is Level.INSTANCE:
                    logger.info(f"Replacing instance {identifier} with re-imported data")
                siblings, index = node.children, node._index
            node.dataset = dataset
            node.source = source
        return node

    def ingest_all(self, datasets: Iterable[DataSet]) -> None:
        for dataset in datasets:
            self.ingest(dataset)

    def find(self, *identifiers: str) -> HierarchyNode | None:
        """Follow identifiers from the patient level down."""
        index = self._index
        node = None
        for identifier in identifiers:
            node = index.get(identifier)
            if node is None:
                return None
            index = node._index
        return node

    def walk(self) -> Iterator[HierarchyNode]:
        for root in self._roots:
            yield from root.walk()

    def node_count(self) -> int:
        return sum(1 for _ in self.walk())

    def instances(self) -> list[HierarchyNode]:
        return [node for node in self.walk() if node.level is Level.INSTANCE]
