"""VTK XML decoding for simulation output files.

``geometry_001.vti`` holds the tissue grid (ImageData); the particle files
(``*_001.vtp``) hold one vertex per cell or spore (PolyData) with per-point
fields such as ``status``, ``dead`` or ``granule_count``.

Buffers are handed to the VTK XML readers through a temporary file, which
supports every data mode the writers produce (ascii, base64, raw appended,
compressed).
"""

from __future__ import annotations

import logging
import re
import tempfile
from pathlib import Path

import numpy as np
from vtkmodules.util.misc import calldata_type
from vtkmodules.util.numpy_support import vtk_to_numpy
from vtkmodules.vtkCommonCore import VTK_STRING
from vtkmodules.vtkIOXML import vtkXMLImageDataReader, vtkXMLPolyDataReader

from simviewer.data.models import SCALE_FIELD, DatasetKind, PointSetDataset, VolumetricDataset
from simviewer.exceptions import ParseError

logger = logging.getLogger(__name__)


class _ErrorCollector:
    """Captures reader ErrorEvents instead of printing them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    @calldata_type(VTK_STRING)
    def on_error(self, caller, event, message) -> None:
        self.messages.append(str(message).strip())


_CLOSING_TAG = b"</VTKFile>"
_APPENDED_RAW = re.compile(rb'<AppendedData\b[^>]*\bencoding\s*=\s*"raw"[^>]*>')
_DATA_ARRAY = re.compile(rb"<DataArray\b[^>]*>")


def _attr(tag: bytes, name: str) -> str | None:
    match = re.search(rb"\b" + name.encode() + rb'\s*=\s*"([^"]*)"', tag)
    return match.group(1).decode() if match else None


def _check_complete(buffer: bytes, kind: str | None) -> None:
    """Reject truncated documents the VTK readers would silently zero-fill.

    Every writer closes the document with ``</VTKFile>``. For raw appended
    data, each array block's size header must also fit inside the bytes
    present between the ``_`` marker and ``</AppendedData>``.
    """
    if not buffer.rstrip().endswith(_CLOSING_TAG):
        raise ParseError("document is truncated (no closing </VTKFile>)", kind)

    appended = _APPENDED_RAW.search(buffer)
    if appended is None:
        return

    head = buffer[: appended.start()]
    vtk_file = re.search(rb"<VTKFile\b[^>]*>", head)
    if vtk_file is None:
        raise ParseError("missing <VTKFile> element", kind)
    byte_order = "<" if _attr(vtk_file.group(), "byte_order") != "BigEndian" else ">"
    header_size = 8 if _attr(vtk_file.group(), "header_type") == "UInt64" else 4
    header_dtype = np.dtype(f"{byte_order}u{header_size}")
    compressed = _attr(vtk_file.group(), "compressor") is not None

    start = buffer.find(b"_", appended.end())
    end = buffer.rfind(b"</AppendedData>")
    if start < 0 or end < start:
        raise ParseError("malformed <AppendedData> section", kind)
    data = buffer[start + 1 : end]

    for tag in _DATA_ARRAY.findall(head):
        if _attr(tag, "format") != "appended":
            continue
        offset = int(_attr(tag, "offset") or 0)
        name = _attr(tag, "Name") or "Points"
        if offset + header_size > len(data):
            raise ParseError(f"appended block of {name} is missing", kind)
        if compressed:
            n_blocks = int(np.frombuffer(data, header_dtype, count=1, offset=offset)[0])
            header_bytes = header_size * (3 + n_blocks)
            if offset + header_bytes > len(data):
                raise ParseError(f"appended block header of {name} is truncated", kind)
            sizes = np.frombuffer(data, header_dtype, count=n_blocks, offset=offset + 3 * header_size)
            block_bytes = header_bytes + int(sizes.sum())
        else:
            block_bytes = header_size + int(np.frombuffer(data, header_dtype, count=1, offset=offset)[0])
        if offset + block_bytes > len(data):
            raise ParseError(
                f"appended block of {name} needs {block_bytes} bytes, {len(data) - offset} present", kind
            )


def _read(reader, buffer: bytes, suffix: str, kind: str | None):
    """Run ``reader`` over ``buffer`` and return its output data object."""
    if not buffer:
        raise ParseError("empty buffer", kind)
    buffer = bytes(buffer)
    _check_complete(buffer, kind)

    errors = _ErrorCollector()
    reader.AddObserver("ErrorEvent", errors.on_error)
    with tempfile.TemporaryDirectory(prefix="simviewer-") as tmp:
        path = Path(tmp) / f"dataset{suffix}"
        path.write_bytes(buffer)
        if not reader.CanReadFile(str(path)):
            raise ParseError(f"not a VTK XML {suffix} document", kind)
        reader.SetFileName(str(path))
        reader.Update()

    if errors.messages:
        logger.debug("VTK reader errors: %s", errors.messages)
        message = errors.messages[-1].splitlines() or ["reader error"]
        raise ParseError(message[-1], kind)
    return reader.GetOutput()


def _point_fields(point_data) -> dict[str, np.ndarray]:
    fields: dict[str, np.ndarray] = {}
    for i in range(point_data.GetNumberOfArrays()):
        array = point_data.GetArray(i)
        if array is None:
            # non-numeric (string/variant) arrays carry no per-point values we can use
            continue
        name = array.GetName() or f"array_{i}"
        fields[name] = np.array(vtk_to_numpy(array))
    return fields


def parse_volumetric(buffer: bytes, kind: str | None = DatasetKind.GEOMETRY) -> VolumetricDataset:
    """Decode a ``.vti`` buffer into a VolumetricDataset."""
    image = _read(vtkXMLImageDataReader(), buffer, ".vti", kind)
    dimensions = tuple(int(d) for d in image.GetDimensions())
    if min(dimensions) < 1:
        raise ParseError("document contains no grid points", kind)

    point_data = image.GetPointData()
    scalars = point_data.GetScalars()
    return VolumetricDataset(
        dimensions=dimensions,
        spacing=tuple(float(s) for s in image.GetSpacing()),
        origin=tuple(float(o) for o in image.GetOrigin()),
        point_data=_point_fields(point_data),
        active_scalars=scalars.GetName() if scalars is not None else None,
    )


def parse_point_set(buffer: bytes, kind: str | None = None) -> PointSetDataset:
    """Decode a ``.vtp`` buffer into a PointSetDataset with a ``scale`` field of ones."""
    poly = _read(vtkXMLPolyDataReader(), buffer, ".vtp", kind)
    vtk_points = poly.GetPoints()
    if vtk_points is None or vtk_points.GetNumberOfPoints() == 0:
        points = np.empty((0, 3), dtype=np.float32)
    else:
        points = np.array(vtk_to_numpy(vtk_points.GetData())).reshape(-1, 3)

    dataset = PointSetDataset(points=points, point_data=_point_fields(poly.GetPointData()))
    # Rendering scales glyphs by this field; picking bumps one entry
    dataset.point_data[SCALE_FIELD] = np.ones(dataset.number_of_points, dtype=np.float32)
    return dataset
