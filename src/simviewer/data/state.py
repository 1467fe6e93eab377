"""One simulation timestep: tissue geometry plus the three particle populations.

Each timestep lives in its own Girder folder holding four items
(``geometry_001.vti``, ``spore_001.vtp``, ``macrophage_001.vtp``,
``neutrophil_001.vtp``); the simulated time is stored in the folder's
``meta.time``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

from simviewer.data.models import DatasetKind, PointSetDataset, VolumetricDataset
from simviewer.data.parser import parse_point_set, parse_volumetric
from simviewer.exceptions import FetchError, NotFoundError
from simviewer.services.girder import DataStore

logger = logging.getLogger(__name__)


class TimestepState:
    """Parsed datasets of one timestep. Only the point ``scale`` arrays change after load."""

    def __init__(
        self,
        time: float | None,
        geometry: VolumetricDataset,
        spore: PointSetDataset,
        macrophage: PointSetDataset,
        neutrophil: PointSetDataset,
        folder_id: str | None = None,
    ):
        self.time = time
        self.geometry = geometry
        self.spore = spore
        self.macrophage = macrophage
        self.neutrophil = neutrophil
        self.folder_id = folder_id

    def dataset(self, kind: DatasetKind) -> VolumetricDataset | PointSetDataset:
        return getattr(self, DatasetKind(kind).value)

    def particle_counts(self) -> dict[DatasetKind, int]:
        return {kind: self.dataset(kind).number_of_points for kind in DatasetKind.particles()}

    def __repr__(self) -> str:
        counts = ", ".join(f"{k.value}={n}" for k, n in self.particle_counts().items())
        return f"TimestepState(folder_id={self.folder_id!r}, time={self.time!r}, {counts})"


async def get_time(store: DataStore, folder_id: str) -> Any:
    """Simulated time recorded on the timestep folder, or None."""
    try:
        folder = await store.get_folder(folder_id)
    except FetchError:
        logger.error("Error loading folder %s", folder_id)
        raise
    return (folder.get("meta") or {}).get("time")


async def load_file(store: DataStore, folder_id: str, name: str) -> bytes:
    """Download the first file of the item named ``name`` in a folder."""
    try:
        items = await store.list_items(folder_id, name, limit=1)
        if not items:
            raise NotFoundError(folder_id, "item", f"no item named {name}")
    except FetchError:
        logger.error("Error loading items from %s", folder_id)
        raise
    item_id = items[0]["_id"]

    try:
        files = await store.list_files(item_id, limit=1)
        if not files:
            raise NotFoundError(item_id, "file", f"item {name} has no files")
    except FetchError:
        logger.error("Error loading files from %s", item_id)
        raise
    file_id = files[0]["_id"]

    try:
        return await store.download_file(file_id)
    except FetchError:
        logger.error("Error loading data from %s", file_id)
        raise


async def _gather_or_cancel(*aws: Awaitable) -> list:
    """Like ``asyncio.gather`` but cancels the siblings of the first failure."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # let cancelled tasks unwind before the error propagates
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def load_state(store: DataStore, folder_id: str | None) -> TimestepState | None:
    """Fetch and parse one timestep. Returns None when no folder id is given."""
    if not folder_id:
        return None

    time, geometry, spore, macrophage, neutrophil = await _gather_or_cancel(
        get_time(store, folder_id),
        load_file(store, folder_id, DatasetKind.GEOMETRY.file_name),
        load_file(store, folder_id, DatasetKind.SPORE.file_name),
        load_file(store, folder_id, DatasetKind.MACROPHAGE.file_name),
        load_file(store, folder_id, DatasetKind.NEUTROPHIL.file_name),
    )

    return TimestepState(
        time,
        parse_volumetric(geometry, kind=DatasetKind.GEOMETRY),
        parse_point_set(spore, kind=DatasetKind.SPORE),
        parse_point_set(macrophage, kind=DatasetKind.MACROPHAGE),
        parse_point_set(neutrophil, kind=DatasetKind.NEUTROPHIL),
        folder_id=folder_id,
    )
