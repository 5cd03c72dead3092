"""Blockette surgery on encoded Mini-SEED 2 records.

obspy writes the fixed header, Blockette 1000 and (for sub-100 microsecond
start times) Blockette 1001, but has no option for the sample-rate
Blockette 100.  :func:`add_rate_blockette` appends one to the blockette chain
of an encoded record and moves the data behind it, provided the data still
fits in the shorter data section.

Record layout used here (offsets in bytes):

  30  number of samples (uint16)
  39  number of blockettes that follow (uint8)
  44  beginning of data (uint16)
  46  first blockette (uint16)
  48+ blockettes, each starting with type (uint16) and next offset (uint16)

Steim data starts on a 64-byte frame boundary; 32-bit integer data starts
right after the last blockette.
"""

from __future__ import annotations

import struct
from typing import List, Optional, Tuple

import numpy as np

from mt2mseed.errors import PackError

FIXED_HEADER_LENGTH = 48
FRAME_LENGTH = 64

BLOCKETTE_SAMPLE_RATE = 100
BLOCKETTE_TIMING = 1000
BLOCKETTE_TIMING_EXTRA = 1001
BLOCKETTE_LENGTHS = {BLOCKETTE_SAMPLE_RATE: 12, BLOCKETTE_TIMING: 8, BLOCKETTE_TIMING_EXTRA: 8}

ENCODING_INT32 = 3
ENCODING_STEIM1 = 10
ENCODING_STEIM2 = 11

# Steim-2 (nibble, dnib) -> differences packed in the word.
_STEIM2_COUNTS = {(2, 1): 1, (2, 2): 2, (2, 3): 3, (3, 0): 5, (3, 1): 6, (3, 2): 7}


def sample_count(record: bytes, byteorder: str) -> int:
    return struct.unpack_from(byteorder + "H", record, 30)[0]


def blockette_chain(record: bytes, byteorder: str) -> List[Tuple[int, int]]:
    """Return ``(type, offset)`` for every blockette, in chain order."""
    chain: List[Tuple[int, int]] = []
    offset = struct.unpack_from(byteorder + "H", record, 46)[0]
    seen = set()
    while offset:
        if offset in seen or offset < FIXED_HEADER_LENGTH or offset + 4 > len(record):
            raise PackError(f"corrupt blockette chain at offset {offset}")
        seen.add(offset)
        btype, offset_next = struct.unpack_from(byteorder + "HH", record, offset)
        chain.append((btype, offset))
        offset = offset_next
    return chain


def _steim_frame_counts(
    record: bytes, byteorder: str, data_offset: int, steim2: bool
) -> np.ndarray:
    """Cumulative number of differences held by each Steim frame of the record."""
    nframes = (len(record) - data_offset) // FRAME_LENGTH
    words = np.frombuffer(
        record, dtype=np.dtype(byteorder + "u4"), count=nframes * 16, offset=data_offset
    ).reshape(nframes, 16)
    counts = np.zeros(nframes, dtype=np.int64)
    for f, frame in enumerate(words):
        ctrl = int(frame[0])
        n = 0
        for i in range(1, 16):
            nib = (ctrl >> (30 - 2 * i)) & 0x3
            if nib == 0:
                continue
            if nib == 1:
                n += 4
            elif not steim2:
                n += 2 if nib == 2 else 1
            else:
                dnib = int(frame[i]) >> 30
                try:
                    n += _STEIM2_COUNTS[(nib, dnib)]
                except KeyError:
                    raise PackError(f"invalid Steim-2 word in frame {f}") from None
        counts[f] = n
    return np.cumsum(counts)


def add_rate_blockette(
    record: bytes, sample_rate: float, encoding: int, byteorder: str
) -> Tuple[Optional[bytes], int]:
    """
    Append a Blockette 100 carrying ``sample_rate`` to one encoded record.

    Returns
    -------
    (record, samples)
        The rewritten record and its sample count, or ``None`` and the number
        of leading samples that would fit when the data does not fit behind
        the longer header.
    """
    reclen = len(record)
    nsamples = sample_count(record, byteorder)
    data_offset = struct.unpack_from(byteorder + "H", record, 44)[0]
    chain = blockette_chain(record, byteorder)
    if not chain:
        raise PackError("encoded record carries no blockettes")

    header_end = FIXED_HEADER_LENGTH
    for btype, offset in chain:
        if btype not in BLOCKETTE_LENGTHS:
            raise PackError(f"unexpected blockette {btype} in encoded record")
        header_end = max(header_end, offset + BLOCKETTE_LENGTHS[btype])
    rate_end = header_end + BLOCKETTE_LENGTHS[BLOCKETTE_SAMPLE_RATE]

    if encoding == ENCODING_INT32:
        new_offset = rate_end
        used = 4 * nsamples
        fitting = (reclen - new_offset) // 4
    elif encoding in (ENCODING_STEIM1, ENCODING_STEIM2):
        new_offset = -(-rate_end // FRAME_LENGTH) * FRAME_LENGTH
        cumulative = _steim_frame_counts(record, byteorder, data_offset, encoding == ENCODING_STEIM2)
        nframes = int(np.searchsorted(cumulative, nsamples)) + 1
        if nframes > len(cumulative):
            raise PackError(f"record frames hold fewer than {nsamples} samples")
        used = nframes * FRAME_LENGTH
        room = (reclen - new_offset) // FRAME_LENGTH
        fitting = int(cumulative[room - 1]) if room > 0 else 0
    else:
        raise PackError(f"Unsupported encoding type: {encoding}")

    if new_offset + used > reclen:
        return None, min(fitting, nsamples)

    out = bytearray(reclen)
    out[:header_end] = record[:header_end]
    _, last_offset = chain[-1]
    struct.pack_into(byteorder + "H", out, last_offset + 2, header_end)
    struct.pack_into(
        byteorder + "HHfB3x", out, header_end, BLOCKETTE_SAMPLE_RATE, 0, float(np.float32(sample_rate)), 0
    )
    out[39] = record[39] + 1
    struct.pack_into(byteorder + "H", out, 44, new_offset)
    out[new_offset : new_offset + used] = record[data_offset : data_offset + used]
    return bytes(out), nsamples
