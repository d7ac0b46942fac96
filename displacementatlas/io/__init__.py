"""Displacement Atlas I/O package.

File read/write operations only — no business logic in this layer.
"""

from displacementatlas.io.persisted_store import PersistedEntry, PersistedStore
from displacementatlas.io.persistence import load_json, save_json
from displacementatlas.io.snapshots import SnapshotReader

__all__ = [
    "save_json",
    "load_json",
    "PersistedEntry",
    "PersistedStore",
    "SnapshotReader",
]
