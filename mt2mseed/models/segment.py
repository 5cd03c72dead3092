from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from obspy import UTCDateTime


@dataclass(frozen=True)
class Segment:
    """
    Maximal contiguous run of valid samples for one channel.

    Notes
    - samples never contain the missing-data flag nor values >= 2147483647.
    - starttime = file start time + start_index / sample_rate.
    """
    channel_index: int
    start_index: int
    samples: np.ndarray = field(repr=False)
    starttime: UTCDateTime
    sample_rate: float

    @property
    def n_samples(self) -> int:
        return int(len(self.samples))

    @property
    def end_index(self) -> int:
        """Scan index one past the last sample."""
        return self.start_index + self.n_samples
