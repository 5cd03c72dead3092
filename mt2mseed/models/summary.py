"""Conversion bookkeeping: per-segment inventory and batch totals.

The driver returns a :class:`ConversionSummary` instead of mutating global
counters.  The inventory can be exported as a pandas DataFrame for audit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd


INVENTORY_COLUMNS = (
    "source",
    "network",
    "station",
    "location",
    "channel",
    "starttime",
    "samples",
    "records",
    "output",
)


@dataclass(frozen=True)
class PackedSegment:
    """One segment after packing: identifiers, counts and where the records went."""
    source: str
    network: str
    station: str
    location: str
    channel: str
    starttime: str
    samples: int
    records: int
    output: str


@dataclass
class ConversionSummary:
    """Totals and inventory of a batch run.

    failures maps an input path to the message of the error that aborted it.
    A failed file may still have contributed segments packed before the error.
    """
    packed_samples: int = 0
    packed_records: int = 0
    files_converted: int = 0
    segments: List[PackedSegment] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    def add(self, packed: PackedSegment) -> None:
        self.segments.append(packed)
        self.packed_samples += packed.samples
        self.packed_records += packed.records

    def merge(self, other: ConversionSummary) -> None:
        for packed in other.segments:
            self.add(packed)
        self.files_converted += other.files_converted
        self.failures.update(other.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_frame(self) -> pd.DataFrame:
        """Segment inventory, one row per packed segment."""
        rows = [{c: getattr(s, c) for c in INVENTORY_COLUMNS} for s in self.segments]
        return pd.DataFrame(rows, columns=list(INVENTORY_COLUMNS))

    def write_report(self, path) -> None:
        self.to_frame().to_csv(path, index=False)
