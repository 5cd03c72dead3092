"""Split one channel of the multiplexed block into contiguous runs.

A run ends at the first sample equal to the missing-data flag (or >= 2147483647)
and the next run starts after it.  Consecutive invalid samples never yield empty
segments.  Runs are found on the mask of a ``numpy.ma.MaskedArray``; the flag
value itself is not consulted past :func:`~mt2mseed.models.header.mask_missing`.
"""

from __future__ import annotations

from typing import Iterator, List, Tuple

import numpy as np
from obspy import UTCDateTime

from mt2mseed.errors import FormatError, UnsupportedChannelIndex
from mt2mseed.models.header import NCHANNELS, BinFile, mask_missing
from mt2mseed.models.segment import Segment


def find_runs(valid: np.ndarray) -> List[Tuple[int, int]]:
    """Return ``(start, stop)`` index pairs of the True runs in a 1D boolean array."""
    valid = np.asarray(valid, dtype=bool)
    if valid.ndim != 1:
        raise ValueError(f"Expected 1D array, got shape {valid.shape}")
    edges = np.flatnonzero(np.diff(np.concatenate(([0], valid.astype(np.int8), [0]))))
    return [(int(a), int(b)) for a, b in zip(edges[0::2], edges[1::2])]


def split_channel(
    channel: np.ma.MaskedArray,
    *,
    channel_index: int,
    starttime: UTCDateTime,
    sample_rate: float,
) -> Iterator[Segment]:
    """Yield one Segment per run of unmasked samples, in scan order."""
    if sample_rate <= 0:
        raise FormatError(f"sample rate must be > 0, got {sample_rate}")
    data = np.ma.getdata(channel)
    valid = ~np.ma.getmaskarray(channel)
    for start, stop in find_runs(valid):
        yield Segment(
            channel_index=channel_index,
            start_index=start,
            samples=np.array(data[start:stop], dtype=np.int32),
            starttime=starttime + start / sample_rate,
            sample_rate=sample_rate,
        )


def segments(
    channel_index: int,
    flat_samples: np.ndarray,
    nscans: int,
    sentinel: int,
    *,
    starttime: UTCDateTime,
    sample_rate: float,
) -> Iterator[Segment]:
    """
    Segment one channel of a flat channel-interleaved int32 array.

    Parameters
    ----------
    channel_index:
        1-based channel number (1..5).
    flat_samples:
        Multiplexed samples; scan i of channel c is at ``5*i + c - 1``.
    nscans:
        Number of scans to consider.
    sentinel:
        Missing-data flag value.
    starttime, sample_rate:
        Time of scan 0 and scans per second, used to time-stamp each run.
    """
    if not 1 <= channel_index <= NCHANNELS:
        raise UnsupportedChannelIndex(channel_index)
    flat = np.asarray(flat_samples)
    if flat.size < nscans * NCHANNELS:
        raise FormatError(f"{flat.size} samples cannot hold {nscans} scans of {NCHANNELS} channels")
    column = flat[channel_index - 1 : nscans * NCHANNELS : NCHANNELS]
    return split_channel(
        mask_missing(column, sentinel),
        channel_index=channel_index,
        starttime=starttime,
        sample_rate=sample_rate,
    )


def file_segments(binfile: BinFile, channel_index: int) -> Iterator[Segment]:
    """Segments of one channel of a parsed (and validated) file."""
    header = binfile.header
    return split_channel(
        binfile.channel(channel_index),
        channel_index=channel_index,
        starttime=header.starttime,
        sample_rate=header.sample_rate,
    )
