"""Point picking on a timestep's particle populations.

The renderer reports a pick as (dataset kind, point id). The picked point's
``scale`` entry is enlarged so its glyph stands out; the previous selection
is reset to 1 first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from simviewer.data.models import SCALE_FIELD, DatasetKind, PointSetDataset
from simviewer.data.state import TimestepState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    kind: DatasetKind
    point_id: int


class Picker:
    """Tracks the selected point of one timestep."""

    def __init__(self, state: TimestepState, pick_scale: float = 10.0):
        self.state = state
        self.pick_scale = pick_scale
        self.selection: Selection | None = None

    def _point_set(self, kind: DatasetKind) -> PointSetDataset:
        kind = DatasetKind(kind)
        if kind is DatasetKind.GEOMETRY:
            raise ValueError("The tissue volume is not pickable")
        return self.state.dataset(kind)

    def clear(self) -> None:
        if self.selection is not None:
            self._point_set(self.selection.kind).reset_scale()
            self.selection = None

    def set_state(self, state: TimestepState) -> None:
        self.clear()
        self.state = state

    def pick(self, kind: DatasetKind | str, point_id: int) -> dict[str, Any]:
        """Select a point and return ``{"id", "type", <field>: value, ...}``."""
        dataset = self._point_set(kind)
        if not 0 <= point_id < dataset.number_of_points:
            raise IndexError(
                f"Point {point_id} out of range for {DatasetKind(kind).value} "
                f"({dataset.number_of_points} points)"
            )
        self.clear()

        dataset.get_array(SCALE_FIELD)[point_id] = self.pick_scale
        self.selection = Selection(DatasetKind(kind), point_id)
        logger.debug("Picked %s point %d", self.selection.kind.value, point_id)
        return {"id": point_id, "type": self.selection.kind.label, **dataset.values_at(point_id)}
