"""Shared test fixtures: synthetic DICOM files and hand-built byte streams."""

from __future__ import annotations

import struct
from pathlib import Path

import numpy as np
import pytest
from pydicom.dataset import FileDataset, FileMetaDataset
from pydicom.uid import ExplicitVRLittleEndian, ImplicitVRLittleEndian, generate_uid

from dicomancer.core.types import VR

EXPLICIT_LE = "1.2.840.10008.1.2.1"
IMPLICIT_LE = "1.2.840.10008.1.2"
EXPLICIT_BE = "1.2.840.10008.1.2.2"
DEFLATED = "1.2.840.10008.1.2.1.99"
RLE = "1.2.840.10008.1.2.5"
JPEG_BASELINE = "1.2.840.10008.1.2.4.50"

STUDY_UID = "1.2.826.0.1.3680043.1"
SERIES_1 = "1.2.826.0.1.3680043.1.1"
SERIES_2 = "1.2.826.0.1.3680043.1.2"

MONO_4X4 = bytes([0, 85, 170, 255] * 4)


# --- raw byte builders -------------------------------------------------------


def pad(value: bytes, vr: str) -> bytes:
    """Pad to even length the way DICOM writers do."""
    if len(value) % 2:
        value += b"\x00" if vr in ("UI", "OB", "UN") else b" "
    return value


def element(
    group: int,
    elem: int,
    vr: str,
    value: bytes,
    *,
    little: bool = True,
    implicit: bool = False,
    length: int | None = None,
) -> bytes:
    """Encode one data element; ``length`` overrides the computed length."""
    order = "<" if little else ">"
    value = pad(value, vr)
    size = len(value) if length is None else length
    header = struct.pack(f"{order}HH", group, elem)
    if implicit:
        return header + struct.pack(f"{order}I", size) + value
    if VR(vr).has_long_length:
        return header + vr.encode() + b"\x00\x00" + struct.pack(f"{order}I", size) + value
    return header + vr.encode() + struct.pack(f"{order}H", size) + value


def item(content: bytes, *, little: bool = True, undefined: bool = False) -> bytes:
    order = "<" if little else ">"
    if undefined:
        return (
            struct.pack(f"{order}HHI", 0xFFFE, 0xE000, 0xFFFFFFFF)
            + content
            + struct.pack(f"{order}HHI", 0xFFFE, 0xE00D, 0)
        )
    return struct.pack(f"{order}HHI", 0xFFFE, 0xE000, len(content)) + content


def sequence_delimiter(little: bool = True) -> bytes:
    order = "<" if little else ">"
    return struct.pack(f"{order}HHI", 0xFFFE, 0xE0DD, 0)


def file_meta(transfer_syntax: str | None = EXPLICIT_LE) -> bytes:
    """Group 0002, explicit VR little endian, with a group length."""
    body = element(0x0002, 0x0001, "OB", b"\x00\x01")
    body += element(0x0002, 0x0002, "UI", b"1.2.840.10008.5.1.4.1.1.7")
    body += element(0x0002, 0x0003, "UI", b"1.2.3.4.5.6.7")
    if transfer_syntax is not None:
        body += element(0x0002, 0x0010, "UI", transfer_syntax.encode())
    return element(0x0002, 0x0000, "UL", struct.pack("<I", len(body))) + body


def part10(body: bytes, transfer_syntax: str | None = EXPLICIT_LE) -> bytes:
    """Preamble, DICM marker, file meta and the given body bytes."""
    return b"\x00" * 128 + b"DICM" + file_meta(transfer_syntax) + body


def image_body(
    pixels: bytes,
    rows: int,
    cols: int,
    *,
    bits: int = 8,
    samples: int = 1,
    photometric: str = "MONOCHROME2",
    planar: int | None = None,
    little: bool = True,
    implicit: bool = False,
    pixel_vr: str = "OB",
    extra: bytes = b"",
) -> bytes:
    """Image Pixel module plus Pixel Data, in tag order."""
    kw = {"little": little, "implicit": implicit}
    order = "<" if little else ">"
    us = lambda v: struct.pack(f"{order}H", v)  # noqa: E731
    body = element(0x0028, 0x0002, "US", us(samples), **kw)
    body += element(0x0028, 0x0004, "CS", photometric.encode(), **kw)
    if planar is not None:
        body += element(0x0028, 0x0006, "US", us(planar), **kw)
    body += element(0x0028, 0x0010, "US", us(rows), **kw)
    body += element(0x0028, 0x0011, "US", us(cols), **kw)
    body += element(0x0028, 0x0100, "US", us(bits), **kw)
    body += element(0x0028, 0x0101, "US", us(bits), **kw)
    body += element(0x0028, 0x0102, "US", us(bits - 1), **kw)
    body += element(0x0028, 0x0103, "US", us(0), **kw)
    body += extra
    body += element(0x7FE0, 0x0010, pixel_vr, pixels, **kw)
    return body


def encapsulated_pixel_data(frames: list[bytes], offsets: list[int] | None = None) -> bytes:
    """(7FE0,0010) OB with undefined length: offset table item then fragments."""
    table = b"".join(struct.pack("<I", o) for o in (offsets or []))
    out = struct.pack("<HH", 0x7FE0, 0x0010) + b"OB\x00\x00" + struct.pack("<I", 0xFFFFFFFF)
    out += item(table)
    for frame in frames:
        out += item(pad(frame, "OB"))
    return out + sequence_delimiter()


# --- pydicom-written files ---------------------------------------------------


def write_synthetic_dicom(
    path: Path,
    patient_id: str = "P1",
    study_uid: str = STUDY_UID,
    series_uid: str = SERIES_1,
    sop_uid: str | None = None,
    transfer_syntax: str = ExplicitVRLittleEndian,
    pixels: np.ndarray | None = None,
    photometric: str = "MONOCHROME2",
) -> Path:
    """Write a single synthetic DICOM file with pydicom."""
    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = "1.2.840.10008.5.1.4.1.1.7"
    meta.MediaStorageSOPInstanceUID = sop_uid or generate_uid()
    meta.TransferSyntaxUID = transfer_syntax

    ds = FileDataset(str(path), {}, file_meta=meta, preamble=b"\x00" * 128)
    ds.SpecificCharacterSet = "ISO_IR 100"
    ds.SOPClassUID = "1.2.840.10008.5.1.4.1.1.7"
    ds.SOPInstanceUID = meta.MediaStorageSOPInstanceUID
    ds.StudyDate = "20240131"
    ds.Modality = "OT"
    ds.PatientName = "Müller^Anna"
    ds.PatientID = patient_id
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    ds.InstanceNumber = 1

    if pixels is not None:
        rows, cols = pixels.shape[:2]
        ds.Rows = rows
        ds.Columns = cols
        ds.BitsAllocated = pixels.dtype.itemsize * 8
        ds.BitsStored = pixels.dtype.itemsize * 8
        ds.HighBit = pixels.dtype.itemsize * 8 - 1
        ds.PixelRepresentation = 0
        ds.SamplesPerPixel = 1 if pixels.ndim == 2 else pixels.shape[2]
        if ds.SamplesPerPixel > 1:
            ds.PlanarConfiguration = 0
        ds.PhotometricInterpretation = photometric
        ds.PixelData = pixels.tobytes()

    ds.save_as(str(path))
    return path


@pytest.fixture
def mono_file(tmp_path) -> Path:
    """4x4 8-bit MONOCHROME2 image, explicit VR little endian."""
    pixels = np.frombuffer(MONO_4X4, dtype=np.uint8).reshape(4, 4)
    return write_synthetic_dicom(tmp_path / "mono.dcm", sop_uid="1.2.3.100", pixels=pixels)


@pytest.fixture
def implicit_file(tmp_path) -> Path:
    pixels = (np.arange(16, dtype=np.uint16) * 1000).reshape(4, 4)
    return write_synthetic_dicom(
        tmp_path / "implicit.dcm",
        sop_uid="1.2.3.200",
        transfer_syntax=ImplicitVRLittleEndian,
        pixels=pixels,
    )


@pytest.fixture
def hierarchy_directory(tmp_path) -> Path:
    """P1 / S1 with two series, SE1 holding two instances and SE2 one."""
    root = tmp_path / "study"
    root.mkdir()
    write_synthetic_dicom(root / "a.dcm", series_uid=SERIES_1, sop_uid="1.1")
    write_synthetic_dicom(root / "b.dcm", series_uid=SERIES_1, sop_uid="1.2")
    write_synthetic_dicom(root / "c.dcm", series_uid=SERIES_2, sop_uid="2.1")
    return root


@pytest.fixture
def not_dicom_file(tmp_path) -> Path:
    path = tmp_path / "notes.txt"
    path.write_text("not a DICOM file\n" * 20)
    return path
