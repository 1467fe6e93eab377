"""Shared fixtures: VTK fixture buffers and an in-memory remote store."""

import asyncio
import itertools

import numpy as np
import pytest
from vtkmodules.util.numpy_support import numpy_to_vtk
from vtkmodules.vtkCommonCore import vtkPoints
from vtkmodules.vtkCommonDataModel import vtkImageData, vtkPolyData
from vtkmodules.vtkIOXML import vtkXMLImageDataWriter, vtkXMLPolyDataWriter

from simviewer.data.models import DatasetKind
from simviewer.exceptions import FetchError, NotFoundError
from simviewer.services.girder import DataStore

GRID_DIMENSIONS = (4, 3, 2)

# Writer layouts the fixtures are produced in: inline ascii, inline base64
# binary, and raw appended data, each binary layout with and without zlib
WRITE_MODES = ("ascii", "binary", "binary-zlib", "appended", "appended-zlib", "appended-uint32")


def _named_array(values: np.ndarray, name: str):
    array = numpy_to_vtk(np.ascontiguousarray(values), deep=True)
    array.SetName(name)
    return array


def _configure(writer, mode: str) -> None:
    layout, _, option = mode.partition("-")
    if layout == "ascii":
        writer.SetDataModeToAscii()
        return
    if layout == "binary":
        writer.SetDataModeToBinary()
    else:
        writer.SetDataModeToAppended()
        writer.EncodeAppendedDataOff()
    if option == "zlib":
        writer.SetCompressorTypeToZLib()
    else:
        writer.SetCompressorTypeToNone()
    if option == "uint32":
        writer.SetHeaderTypeToUInt32()


def _write(writer, data, path, mode: str) -> bytes:
    _configure(writer, mode)
    writer.SetFileName(str(path))
    writer.SetInputData(data)
    writer.Write()
    return path.read_bytes()


@pytest.fixture(scope="session")
def vtk_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("vtk")


@pytest.fixture(scope="session", params=WRITE_MODES)
def write_mode(request) -> str:
    return request.param


@pytest.fixture(scope="session")
def geometry_vti(vtk_dir, write_mode) -> bytes:
    """4x3x2 grid: air, blood, tissue and epithelium codes cycling along x."""
    image = vtkImageData()
    image.SetDimensions(*GRID_DIMENSIONS)
    image.SetSpacing(2.0, 2.0, 2.0)
    image.SetOrigin(0.0, 0.0, 0.0)
    n = int(np.prod(GRID_DIMENSIONS))
    tissue = np.array([i % 4 for i in range(n)], dtype=np.float32)
    image.GetPointData().SetScalars(_named_array(tissue, "tissue"))
    return _write(vtkXMLImageDataWriter(), image, vtk_dir / f"geometry_{write_mode}.vti", write_mode)


@pytest.fixture(scope="session")
def vtp_writer(vtk_dir):
    """Factory building a ``.vtp`` buffer with ``n`` points and the given fields in ``mode``."""
    counter = itertools.count()

    def _make(n: int, fields: dict[str, np.ndarray] | None = None, mode: str = "ascii") -> bytes:
        poly = vtkPolyData()
        points = vtkPoints()
        if n:
            coords = np.arange(n * 3, dtype=np.float32).reshape(n, 3)
            points.SetData(numpy_to_vtk(coords, deep=True))
        poly.SetPoints(points)
        for name, values in (fields or {}).items():
            poly.GetPointData().AddArray(_named_array(values, name))
        return _write(vtkXMLPolyDataWriter(), poly, vtk_dir / f"points_{mode}_{next(counter)}.vtp", mode)

    return _make


@pytest.fixture(scope="session")
def make_vtp(vtp_writer, write_mode):
    """``vtp_writer`` bound to the current write mode."""

    def _make(n: int, fields: dict[str, np.ndarray] | None = None) -> bytes:
        return vtp_writer(n, fields, write_mode)

    return _make


@pytest.fixture(scope="session")
def spore_vtp(make_vtp) -> bytes:
    return make_vtp(3, {"status": np.array([0, 1, 2], dtype=np.int32)})


@pytest.fixture(scope="session")
def macrophage_vtp(make_vtp) -> bytes:
    return make_vtp(2, {"dead": np.array([0, 1], dtype=np.uint8)})


@pytest.fixture(scope="session")
def neutrophil_vtp(make_vtp) -> bytes:
    return make_vtp(4, {"granule_count": np.array([10, 5, 0, 7], dtype=np.int32)})


@pytest.fixture(scope="session")
def timestep_files(geometry_vti, spore_vtp, macrophage_vtp, neutrophil_vtp) -> dict[str, bytes]:
    return {
        DatasetKind.GEOMETRY.file_name: geometry_vti,
        DatasetKind.SPORE.file_name: spore_vtp,
        DatasetKind.MACROPHAGE.file_name: macrophage_vtp,
        DatasetKind.NEUTROPHIL.file_name: neutrophil_vtp,
    }


class FakeStore(DataStore):
    """In-memory Girder: folders, items with one file each, and failure injection."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.folders: dict[str, dict] = {}
        self.children: dict[str, list[str]] = {}
        self.items: dict[tuple[str, str], str] = {}
        self.item_files: dict[str, str] = {}
        self.blobs: dict[str, bytes] = {}
        self.failing_files: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    def add_folder(self, parent_id: str, name: str, meta: dict | None = None) -> str:
        folder_id = self._new_id("folder")
        self.folders[folder_id] = {"_id": folder_id, "name": name, "meta": meta or {}}
        self.children.setdefault(parent_id, []).append(folder_id)
        return folder_id

    def add_timestep(self, simulation_id: str, name: str, files: dict[str, bytes], time=None) -> str:
        folder_id = self.add_folder(simulation_id, name, {} if time is None else {"time": time})
        for file_name, body in files.items():
            item_id = self._new_id("item")
            file_id = self._new_id("file")
            self.items[(folder_id, file_name)] = item_id
            self.item_files[item_id] = file_id
            self.blobs[file_id] = body
        return folder_id

    def fail_download(self, folder_id: str, file_name: str) -> None:
        self.failing_files.add(self.item_files[self.items[(folder_id, file_name)]])

    async def list_folders(self, parent_type, parent_id, limit=0):
        self.calls.append(("list_folders", parent_id))
        await asyncio.sleep(0)
        ids = self.children.get(parent_id, [])
        if limit:
            ids = ids[:limit]
        return [dict(self.folders[i]) for i in ids]

    async def get_folder(self, folder_id):
        self.calls.append(("get_folder", folder_id))
        await asyncio.sleep(0)
        if folder_id not in self.folders:
            raise NotFoundError(folder_id, "folder")
        return dict(self.folders[folder_id])

    async def list_items(self, folder_id, name, limit=0):
        self.calls.append(("list_items", folder_id))
        await asyncio.sleep(0)
        item_id = self.items.get((folder_id, name))
        return [{"_id": item_id, "name": name}] if item_id else []

    async def list_files(self, item_id, limit=0):
        self.calls.append(("list_files", item_id))
        await asyncio.sleep(0)
        file_id = self.item_files.get(item_id)
        return [{"_id": file_id}] if file_id else []

    async def download_file(self, file_id):
        self.calls.append(("download_file", file_id))
        await asyncio.sleep(0)
        if file_id in self.failing_files:
            raise FetchError(file_id, "download", "HTTP 500")
        return self.blobs[file_id]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def populated_store(store, timestep_files):
    """Simulation ``sim1`` with timesteps "0", "1", "2" and a non-timestep folder."""
    for ordinal in range(3):
        store.add_timestep("sim1", str(ordinal), timestep_files, time=ordinal * 10.0)
    store.add_folder("sim1", "analysis")
    return store
