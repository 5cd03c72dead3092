"""Shared fixtures: synthetic NIMS bin files.

``build_bin`` writes the exact Fortran record layout read by
:class:`~mt2mseed.ingest.nims_bin.NimsBinReader`, in either byte order, with
hooks to corrupt the framing markers.
"""

from typing import Optional, Sequence

import numpy as np
import pytest

MISSING = -999999
START = (2008, 7, 8, 12, 0, 0)
PADDED_HEADER_LENGTH = 5108


def build_bin(
    samples: np.ndarray,
    *,
    byteorder: str = "<",
    dt: float = 0.125,
    start_time: Sequence[int] = START,
    clock_zero: Sequence[int] = (2008, 7, 8, 0, 0, 0),
    missing: int = MISSING,
    gap_type: int = 2005,
    gaps: Optional[np.ndarray] = None,
    nscans: Optional[int] = None,
    padded: bool = False,
    header_end_marker: Optional[int] = None,
    data_end_marker: Optional[int] = None,
) -> bytes:
    """Serialize a (nscans, 5) sample matrix into NIMS bin bytes."""
    i4 = np.dtype(byteorder + "i4")
    f4 = np.dtype(byteorder + "f4")

    mat = np.asarray(samples, dtype=np.int64)
    if nscans is None:
        nscans = mat.shape[0]
    gaps = np.zeros((0, 3), dtype=np.int64) if gaps is None else np.asarray(gaps)
    ngaps = gaps.shape[0]

    body = np.array([45.5, -123.25, 17.0, dt, 120.0], dtype=f4).tobytes()
    body += np.array(list(start_time) + list(clock_zero), dtype=i4).tobytes()
    body += np.array([nscans, gap_type, missing, ngaps], dtype=i4).tobytes()
    body += gaps.astype(i4).tobytes()
    if padded:
        rl = PADDED_HEADER_LENGTH
        body += np.zeros(rl // 4 - 21 - 3 * ngaps, dtype=i4).tobytes()
    else:
        rl = len(body)

    data = mat.reshape(-1).astype(i4).tobytes()
    out = np.array([rl], dtype=i4).tobytes() + body
    out += np.array([rl if header_end_marker is None else header_end_marker], dtype=i4).tobytes()
    out += np.array([len(data)], dtype=i4).tobytes() + data
    out += np.array([len(data) if data_end_marker is None else data_end_marker], dtype=i4).tobytes()
    return out


def ramp(nscans: int) -> np.ndarray:
    """(nscans, 5) matrix with distinct small values per channel."""
    scans = np.arange(nscans, dtype=np.int64)[:, None]
    return scans * 10 + np.arange(1, 6, dtype=np.int64)[None, :]


@pytest.fixture
def write_bin(tmp_path):
    """Write a synthetic bin file and return its path."""
    counter = {"n": 0}

    def _write(samples, name=None, **kwargs):
        counter["n"] += 1
        path = tmp_path / (name or f"site{counter['n']}.bin")
        path.write_bytes(build_bin(samples, **kwargs))
        return path

    return _write
