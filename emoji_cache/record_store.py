from __future__ import annotations

"""
Record Store: the current dataset snapshot and its version counter.

Snapshots are immutable. A reload produces a brand new snapshot with a higher
version; the store only ever swaps the reference it holds, so readers see
either the old snapshot or the new one, never a mixture.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Tuple

from loguru import logger

from .config import Record


@dataclass(frozen=True)
class DatasetSnapshot:
    """Immutable set of records plus the dataset version it represents."""

    version: int
    records: Tuple[Record, ...] = ()
    _by_id: Dict[int, Record] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "records", tuple(self.records))
        object.__setattr__(self, "_by_id", {r.id: r for r in self.records})

    def __len__(self) -> int:
        return len(self.records)

    def get(self, record_id: int) -> Optional[Record]:
        return self._by_id.get(record_id)

    def resolve(self, record_ids: Iterable[int]) -> list[Record]:
        """Map ids to records, skipping ids this snapshot does not know."""
        out: list[Record] = []
        for rid in record_ids:
            rec = self._by_id.get(rid)
            if rec is not None:
                out.append(rec)
        return out


EMPTY_SNAPSHOT = DatasetSnapshot(version=0)


def assign_ids(records: Sequence[Record]) -> Tuple[Record, ...]:
    """Re-number records by position so ids are stable within a snapshot."""
    out = []
    for pos, rec in enumerate(records):
        out.append(rec if rec.id == pos else rec.model_copy(update={"id": pos}))
    return tuple(out)


class RecordStore:
    """
    Holds the current snapshot. Written only by the invalidation controller.
    """

    def __init__(self, snapshot: DatasetSnapshot = EMPTY_SNAPSHOT):
        self._snapshot = snapshot
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> DatasetSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def make_snapshot(self, records: Sequence[Record]) -> DatasetSnapshot:
        """
        Wrap ``records`` in a snapshot one version above the current one.

        The snapshot is not published; hand it to the invalidation controller.
        """
        with self._lock:
            return DatasetSnapshot(version=self._snapshot.version + 1, records=assign_ids(records))

    def is_newer(self, snapshot: DatasetSnapshot) -> bool:
        return snapshot.version > self._snapshot.version

    def swap(self, snapshot: DatasetSnapshot) -> DatasetSnapshot:
        """Publish ``snapshot`` and return the one it replaced."""
        with self._lock:
            if snapshot.version <= self._snapshot.version:
                raise ValueError(
                    f"snapshot version {snapshot.version} is not newer than {self._snapshot.version}"
                )
            previous = self._snapshot
            self._snapshot = snapshot
        logger.info(
            "Published dataset version {} ({} records, replaced version {})",
            snapshot.version,
            len(snapshot),
            previous.version,
        )
        return previous
