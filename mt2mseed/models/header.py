from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from obspy import UTCDateTime

from mt2mseed.errors import FormatError, UnsupportedChannelIndex


NCHANNELS = 5
# Values at or above this never carry data, whatever the file's missing-data flag says.
OVERFLOW_VALUE = 2147483647


@dataclass(frozen=True)
class BinHeader:
    """
    Decoded header of one NIMS bin file, in native byte order.

    Notes
    - latitude/longitude/declination/elevation are kept for diagnostics only.
    - start_time and clock_zero are (year, month, day-of-month, hour, minute, second).
    - gaps is the raw gap table, shape (ngaps, 3); its content is not interpreted.
    - swapped is True when the file was written in the other byte order than this host.
    """
    record_length: int
    latitude: float
    longitude: float
    declination: float
    dt: float
    elevation: float
    start_time: Tuple[int, ...]
    clock_zero: Tuple[int, ...]
    nscans: int
    gap_type: int
    missing_data_flag: int
    gaps: np.ndarray = field(repr=False, compare=False)
    padding_words: int = 0
    swapped: bool = field(default=False, compare=False)

    @property
    def ngaps(self) -> int:
        return int(self.gaps.shape[0])

    @property
    def sample_rate(self) -> float:
        # single precision, as the writing programs use 32-bit floats throughout
        with np.errstate(divide="ignore"):
            return float(np.float32(1.0) / np.float32(self.dt))

    @property
    def starttime(self) -> UTCDateTime:
        """Absolute start time of scan 0.

        Raises FormatError if month/day-of-month do not form a calendar date.
        """
        year, month, day, hour, minute, second = self.start_time
        try:
            return UTCDateTime(year, month, day, hour, minute, second)
        except (ValueError, TypeError) as exc:
            raise FormatError(
                f"cannot convert start time {year}-{month}-{day} {hour}:{minute}:{second}: {exc}"
            ) from exc


@dataclass(frozen=True)
class BinFile:
    """
    One parsed NIMS bin file: header plus the flat multiplexed sample block.

    samples is int32 of length data_length/4; sample i of channel c (1-based)
    sits at index 5*i + (c-1).
    """
    header: BinHeader
    samples: np.ndarray = field(repr=False)
    data_length: int = 0
    source: str = "<stream>"

    @property
    def nscans(self) -> int:
        return int(self.header.nscans)

    def validate(self) -> None:
        """Check that the file can be converted; raise FormatError otherwise."""
        rate = self.header.sample_rate
        if not np.isfinite(rate) or rate <= 0.0:
            raise FormatError(f"[{self.source}] Error with sample rate: {rate}")
        expected = self.nscans * NCHANNELS * 4
        if self.data_length != expected:
            raise FormatError(
                f"[{self.source}] Unexpected data array size ({self.data_length} bytes) "
                f"for {self.nscans} scans of {NCHANNELS} channels"
            )

    def channel(self, channel_index: int) -> np.ma.MaskedArray:
        """Samples of one channel with missing data masked out.

        Entries equal to the missing-data flag or >= 2147483647 are masked.
        """
        if not 1 <= channel_index <= NCHANNELS:
            raise UnsupportedChannelIndex(channel_index)
        column = self.samples[channel_index - 1 : self.nscans * NCHANNELS : NCHANNELS]
        return mask_missing(column, self.header.missing_data_flag)

    @property
    def valid_sample_count(self) -> int:
        """Number of entries in the whole block that carry data."""
        block = self.samples[: self.nscans * NCHANNELS]
        return int(np.count_nonzero(~mask_missing(block, self.header.missing_data_flag).mask))


def mask_missing(values: np.ndarray, missing_data_flag: int) -> np.ma.MaskedArray:
    """Wrap int32 samples in a masked array hiding the missing-data flag and overflow values."""
    values = np.asarray(values, dtype=np.int32)
    invalid = (values == np.int32(missing_data_flag)) | (values >= OVERFLOW_VALUE)
    return np.ma.MaskedArray(values, mask=invalid)
