from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

import numpy as np

from mt2mseed.errors import BinIOError, HeaderError
from mt2mseed.models.header import BinFile, BinHeader

logger = logging.getLogger(__name__)

_NATIVE = "<" if sys.byteorder == "little" else ">"
_SWAPPED = ">" if _NATIVE == "<" else "<"


def _cdiv(a: int, b: int) -> int:
    """Integer division truncating toward zero (Fortran/C semantics)."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def _gap_count(record_length: int) -> int:
    # header words = 21 fixed + 3 per gap (+ optional padding)
    return _cdiv(_cdiv(record_length, 4) - 21, 3)


@dataclass(frozen=True)
class NimsBinReaderConfig:
    """
    Reader configuration for NIMS bin files (Fortran unformatted sequential records).

    padded_header_length:
      Byte length of the canonical fixed-size header ((256*5-3)*4); accepted as
      valid even though it does not decode to a plausible gap count.
    max_gaps:
      Upper bound on the gap count used to decide the byte order.
    expected_gap_type:
      Gap type code meaning "gaps are filled"; any other value is only warned about.
    """
    padded_header_length: int = 5108
    max_gaps: int = 100
    expected_gap_type: int = 2005

    def plausible(self, record_length: int) -> bool:
        ngaps = _gap_count(record_length)
        return 0 <= ngaps <= self.max_gaps or record_length == self.padded_header_length


class _WordReader:
    """Reads 4-byte words in a fixed byte order, naming the field on short reads."""

    def __init__(self, stream: BinaryIO, byteorder: str):
        self.stream = stream
        self.byteorder = byteorder

    def _read(self, kind: str, count: int, field: str) -> np.ndarray:
        nbytes = 4 * count
        buf = self.stream.read(nbytes) if nbytes else b""
        if len(buf) != nbytes:
            raise BinIOError(
                f"short read on {field}: expected {nbytes} bytes, got {len(buf)}", field=field
            )
        arr = np.frombuffer(buf, dtype=np.dtype(self.byteorder + kind))
        return arr.astype(np.dtype(_NATIVE + kind))

    def read_ints(self, count: int, field: str) -> np.ndarray:
        return self._read("i4", count, field)

    def read_int(self, field: str) -> int:
        return int(self.read_ints(1, field)[0])

    def read_float(self, field: str) -> float:
        return float(self._read("f4", 1, field)[0])


class NimsBinReader:
    """
    Reader for NIMS bin files as written by nimsread (Fortran, 32-bit words).

    Layout (two Fortran records, each framed by a leading and trailing
    int32 byte count):

      header: rl | lat lon decl dt elev | start_time[6] | clock_zero[6] |
              nscans gaptype missing_flag ngaps | gaps[3*ngaps] | padding | rl
      data:   rl2 | int32[rl2/4] (5 channels interleaved per scan) | rl2

    The byte order is detected from the header length record: if it does not
    decode to a plausible gap count in host order, the other order is tried and
    then applied to every word of the file.
    """

    def __init__(self, config: Optional[NimsBinReaderConfig] = None):
        self.config = config or NimsBinReaderConfig()

    def read(self, file_path: str | Path) -> BinFile:
        path = Path(file_path).expanduser()
        try:
            f = open(path, "rb")
        except OSError as exc:
            raise BinIOError(f"Cannot open input file: {path} ({exc.strerror or exc})") from exc
        with f:
            return self.read_stream(f, source=str(path))

    def read_stream(self, stream: BinaryIO, *, source: str = "<stream>") -> BinFile:
        cfg = self.config

        raw = stream.read(4)
        if len(raw) != 4:
            raise BinIOError("short read on header length record", field="header length record")

        byteorder = _NATIVE
        rl = int(np.frombuffer(raw, dtype=_NATIVE + "i4")[0])
        if not cfg.plausible(rl):
            rl = int(np.frombuffer(raw, dtype=_SWAPPED + "i4")[0])
            if not cfg.plausible(rl):
                raise HeaderError(
                    f"header length invalid: {rl} or number of gaps {_gap_count(rl)} > {cfg.max_gaps}"
                )
            logger.info("[%s] Byte swapping needed", source)
            byteorder = _SWAPPED

        words = _WordReader(stream, byteorder)

        lat = words.read_float("latitude")
        lon = words.read_float("longitude")
        decl = words.read_float("declination")
        dt = words.read_float("sampling time")
        elev = words.read_float("elevation")

        start_time = tuple(int(v) for v in words.read_ints(6, "start time"))
        clock_zero = tuple(int(v) for v in words.read_ints(6, "clock zero time"))

        nscans = words.read_int("number of data scans")
        gap_type = words.read_int("gap type")
        if gap_type != cfg.expected_gap_type:
            logger.warning(
                "[%s] the gap type in the file is %d, but we are assuming the gaps are filled",
                source,
                gap_type,
            )
        missing_flag = words.read_int("missing data flag")
        ngaps = words.read_int("number of gaps")
        if ngaps < 0:
            raise HeaderError(f"negative number of gaps: {ngaps}")
        gaps = words.read_ints(3 * ngaps, "gap information").reshape(ngaps, 3)

        nskip = 1 + _cdiv(rl, 4) - 22 - 3 * ngaps
        if nskip < 0:
            raise HeaderError(
                f"header length {rl} too short for {ngaps} gaps"
            )
        words.read_ints(nskip, "header padding")

        end_rl = words.read_int("end of header record")
        if end_rl != rl:
            raise HeaderError(f"end of header record marker {end_rl} does not match {rl}")

        data_rl = words.read_int("data length record")
        if data_rl < 0 or data_rl % 4:
            raise HeaderError(f"invalid data length record: {data_rl}")
        samples = words.read_ints(data_rl // 4, "data").astype(np.int32, copy=False)
        end_data_rl = words.read_int("end of data record")
        if end_data_rl != data_rl:
            raise HeaderError(f"end of data record marker {end_data_rl} does not match {data_rl}")

        header = BinHeader(
            record_length=rl,
            latitude=lat,
            longitude=lon,
            declination=decl,
            dt=dt,
            elevation=elev,
            start_time=start_time,
            clock_zero=clock_zero,
            nscans=nscans,
            gap_type=gap_type,
            missing_data_flag=missing_flag,
            gaps=gaps,
            padding_words=nskip,
            swapped=byteorder != _NATIVE,
        )

        logger.info("[%s] Sampling rate: %.3f Hz", source, header.sample_rate)
        logger.info("[%s] Site location: (%.3f, %.3f, %.3f)", source, lat, lon, elev)
        logger.info(
            "[%s] Time series start time: %d-%02d-%02d %d:%d:%d",
            source,
            *start_time,
        )
        logger.debug(
            "[%s] Clock zero time: %d-%02d-%02d %d:%d:%d",
            source,
            *clock_zero,
        )
        logger.info("[%s] The number of gaps in the bin file is %d", source, ngaps)

        return BinFile(header=header, samples=samples, data_length=data_rl, source=source)


def read_bin_file(file_path: str | Path, config: Optional[NimsBinReaderConfig] = None) -> BinFile:
    """Parse one NIMS bin file from disk."""
    return NimsBinReader(config).read(file_path)
