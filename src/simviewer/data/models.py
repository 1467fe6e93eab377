"""Dataset types produced by the parser and consumed by rendering and picking."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any

import numpy as np

SCALE_FIELD = "scale"


class DatasetKind(StrEnum):
    GEOMETRY = "geometry"
    SPORE = "spore"
    MACROPHAGE = "macrophage"
    NEUTROPHIL = "neutrophil"

    @property
    def file_name(self) -> str:
        suffix = "vti" if self is DatasetKind.GEOMETRY else "vtp"
        return f"{self.value}_001.{suffix}"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def color_field(self) -> str:
        return _COLOR_FIELDS[self]

    @classmethod
    def particles(cls) -> tuple[DatasetKind, ...]:
        return (cls.SPORE, cls.MACROPHAGE, cls.NEUTROPHIL)


_LABELS = {
    DatasetKind.GEOMETRY: "geometry",
    DatasetKind.SPORE: "A. fumigatus",
    DatasetKind.MACROPHAGE: "macrophage",
    DatasetKind.NEUTROPHIL: "neutrophil",
}

_COLOR_FIELDS = {
    DatasetKind.GEOMETRY: "",
    DatasetKind.SPORE: "status",
    DatasetKind.MACROPHAGE: "dead",
    DatasetKind.NEUTROPHIL: "granule_count",
}


class TissueType(IntEnum):
    """Discrete codes stored in the geometry grid."""

    AIR = 0
    BLOOD = 1
    REGULAR_TISSUE = 2
    EPITHELIUM = 3

    @classmethod
    def classify(cls, value: float) -> TissueType:
        """Map a (possibly interpolated) grid value to a tissue type."""
        if value >= 2.5:
            return cls.EPITHELIUM
        if value >= 1.5:
            return cls.REGULAR_TISSUE
        if value >= 0.5:
            return cls.BLOOD
        return cls.AIR


@dataclass
class VolumetricDataset:
    """Regular 3D grid with point-centred scalar fields (x varies fastest)."""

    dimensions: tuple[int, int, int]
    spacing: tuple[float, float, float] = (1.0, 1.0, 1.0)
    origin: tuple[float, float, float] = (0.0, 0.0, 0.0)
    point_data: dict[str, np.ndarray] = field(default_factory=dict)
    active_scalars: str | None = None

    @property
    def number_of_points(self) -> int:
        nx, ny, nz = self.dimensions
        return nx * ny * nz

    @property
    def scalars(self) -> np.ndarray | None:
        if self.active_scalars and self.active_scalars in self.point_data:
            return self.point_data[self.active_scalars]
        return next(iter(self.point_data.values()), None)

    def point_index(self, i: int, j: int, k: int) -> int:
        nx, ny, nz = self.dimensions
        if not (0 <= i < nx and 0 <= j < ny and 0 <= k < nz):
            raise IndexError(f"({i}, {j}, {k}) outside grid of dimensions {self.dimensions}")
        return i + nx * (j + ny * k)

    def tissue_at(self, i: int, j: int, k: int) -> TissueType:
        scalars = self.scalars
        if scalars is None:
            raise ValueError("Geometry has no scalar field")
        return TissueType.classify(float(scalars[self.point_index(i, j, k)]))


@dataclass
class PointSetDataset:
    """3D points with per-point named fields."""

    points: np.ndarray
    point_data: dict[str, np.ndarray] = field(default_factory=dict)

    @property
    def number_of_points(self) -> int:
        return int(self.points.shape[0])

    def get_array(self, name: str) -> np.ndarray:
        try:
            return self.point_data[name]
        except KeyError:
            raise KeyError(f"No point field named {name!r}") from None

    def values_at(self, point_id: int) -> dict[str, Any]:
        """Field values of one point, keyed by field name."""
        if not 0 <= point_id < self.number_of_points:
            raise IndexError(f"Point {point_id} out of range (0..{self.number_of_points - 1})")
        values: dict[str, Any] = {}
        for name, array in self.point_data.items():
            value = array[point_id]
            values[name] = value.tolist() if isinstance(value, np.ndarray) else value.item()
        return values

    def reset_scale(self) -> None:
        self.point_data[SCALE_FIELD].fill(1)
