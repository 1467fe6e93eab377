"""Simulation run: an ordered, progressively loaded sequence of timesteps.

A run is a Girder folder whose child folders are the timesteps. The ordinal
of a timestep comes from the digits in its folder name (``"7"``, ``"step10"``);
folders without digits are not timesteps.
"""

from __future__ import annotations

import logging
import re
from typing import Any, AsyncIterator

from simviewer.data.state import TimestepState, load_state
from simviewer.services.girder import DataStore

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")


def folder_ordinal(name: str | None) -> int | None:
    """Ordinal encoded in a folder name: its first run of decimal digits."""
    match = _DIGITS.search(name or "")
    return int(match.group()) if match else None


def timestep_ids(folders: list[dict[str, Any]]) -> dict[int, str]:
    """Map ordinal -> folder id. Folders without digits are skipped."""
    ids: dict[int, str] = {}
    for folder in folders:
        ordinal = folder_ordinal(folder.get("name"))
        if ordinal is None:
            continue
        if ordinal in ids:
            logger.warning(
                "Folders %s and %s both map to timestep %d; using %s",
                ids[ordinal], folder["_id"], ordinal, folder["_id"],
            )
        ids[ordinal] = folder["_id"]
    return ids


class Simulation:
    """Timesteps of one run, loaded in ordinal order and only ever appended to."""

    def __init__(self, id: str):
        self.id = id
        self.time_steps: list[TimestepState] = []
        self.total_time_steps = 0

    @property
    def pending(self) -> int:
        """Timesteps known on the server but not loaded yet."""
        return max(self.total_time_steps - len(self.time_steps), 0)

    async def iter_refresh(self, store: DataStore) -> AsyncIterator[TimestepState]:
        """Load timesteps not yet present, yielding each one as it is appended.

        Timesteps load one at a time so callers can display them as they
        arrive. Loading stops at the first missing ordinal and resumes on a
        later refresh once that folder exists. Any failure propagates; states
        appended before it are kept.
        """
        folders = [
            f for f in await store.list_folders("folder", self.id, limit=0)
            if folder_ordinal(f.get("name")) is not None
        ]
        self.total_time_steps = len(folders)
        ids = timestep_ids(folders)
        if not ids:
            return

        for ordinal in range(len(self.time_steps), max(ids) + 1):
            folder_id = ids.get(ordinal)
            if folder_id is None:
                logger.warning(
                    "Simulation %s has no folder for timestep %d; %d later timestep(s) deferred",
                    self.id, ordinal, sum(1 for o in ids if o > ordinal),
                )
                return
            state = await load_state(store, folder_id)
            self.time_steps.append(state)
            logger.info(
                "Loaded timestep %d/%d of simulation %s",
                ordinal + 1, self.total_time_steps, self.id,
            )
            yield state

    async def refresh(self, store: DataStore) -> list[TimestepState]:
        """Sync with the server; returns the newly appended timesteps."""
        return [state async for state in self.iter_refresh(store)]

    update = refresh

    @classmethod
    async def load(cls, store: DataStore, id: str | None) -> Simulation | None:
        if not id:
            return None
        simulation = cls(id)
        await simulation.refresh(store)
        return simulation

    def __repr__(self) -> str:
        return f"Simulation(id={self.id!r}, loaded={len(self.time_steps)}, total={self.total_time_steps})"
