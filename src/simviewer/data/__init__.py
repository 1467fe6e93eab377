from simviewer.data.models import DatasetKind, PointSetDataset, TissueType, VolumetricDataset
from simviewer.data.parser import parse_point_set, parse_volumetric
from simviewer.data.simulation import Simulation
from simviewer.data.state import TimestepState, load_state

__all__ = [
    "DatasetKind",
    "PointSetDataset",
    "TissueType",
    "VolumetricDataset",
    "parse_point_set",
    "parse_volumetric",
    "Simulation",
    "TimestepState",
    "load_state",
]
