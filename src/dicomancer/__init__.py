"""dicomancer: parse DICOM files, browse their hierarchy and preview images."""

from dicomancer.core.dataset import DataSet
from dicomancer.core.types import Element, Tag, VR, Value, ValueKind
from dicomancer.hierarchy import HierarchyBuilder
from dicomancer.io.loader import import_files, load_dicom
from dicomancer.io.reader import read_dataset, read_file

__version__ = "0.1.0"

__all__ = [
    "DataSet",
    "Element",
    "HierarchyBuilder",
    "Tag",
    "VR",
    "Value",
    "ValueKind",
    "import_files",
    "load_dicom",
    "read_dataset",
    "read_file",
]
