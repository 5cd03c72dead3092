"""SEED channel naming for the five NIMS components.

The band code follows Appendix A of the SEED manual, selected from the sample
rate over half-open frequency intervals.  The instrument/orientation suffix is
fixed per channel index: three magnetic components (F) and two electric ones
(Q).

Note: the 'T' interval [1e-5, 1e-5) is empty and never matches.  It is kept
as published in the naming table; rates in [1e-6, 1e-5) therefore
have no band code.
"""

from __future__ import annotations

from typing import Dict, Tuple

from mt2mseed.errors import UnsupportedBandCode, UnsupportedChannelIndex


# (low inclusive, high exclusive, band code), checked in order.
BAND_CODES: Tuple[Tuple[float, float, str], ...] = (
    (10.0, 80.0, "B"),
    (1.01, 10.0, "M"),
    (0.5, 1.01, "L"),
    (0.05, 0.5, "V"),
    (0.001, 0.05, "U"),
    (1e-4, 1e-3, "R"),
    (1e-5, 1e-4, "P"),
    (1e-5, 1e-5, "T"),
    (float("-inf"), 1e-6, "Q"),
)

COMPONENTS: Dict[int, str] = {1: "FN", 2: "FE", 3: "FZ", 4: "QN", 5: "QE"}


def band_code(sample_rate: float) -> str:
    for low, high, code in BAND_CODES:
        if low <= sample_rate < high:
            return code
    raise UnsupportedBandCode(sample_rate)


def channel_name(sample_rate: float, channel_index: int) -> str:
    """Return the 3-character SEED channel code, e.g. ``channel_name(1.0, 3) == "LFZ"``."""
    suffix = COMPONENTS.get(channel_index)
    if suffix is None:
        raise UnsupportedChannelIndex(channel_index)
    return band_code(sample_rate) + suffix
