"""Output routing: which byte stream receives the records of a segment.

One router is chosen from the configuration at startup and asked for the
stream of every segment by ``(network, station, starttime, channel)``:

- :class:`SingleFileRouter`: one stream for the whole run (``"-"`` = stdout).
- :class:`ConsolidatedRouter`: one file per (network, station, start time),
  shared by all channels starting at that time.
- :class:`PerChannelRouter`: one file per (network, station, start time,
  channel), closed right after each segment.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Set, Tuple

from obspy import UTCDateTime

from mt2mseed.config import MODE_CONSOLIDATED, MODE_PER_CHANNEL, MODE_SINGLE, ConversionConfig
from mt2mseed.errors import BinIOError

logger = logging.getLogger(__name__)

STDOUT_PATH = "-"


def iso_timestamp(starttime: UTCDateTime) -> str:
    """Second-resolution ISO-8601 string used in generated file names."""
    return starttime.strftime("%Y-%m-%dT%H:%M:%S")


def segment_filename(
    network: str, station: str, starttime: UTCDateTime, channel: Optional[str] = None
) -> str:
    """``NET.STA.yyyy-mm-ddTHH:MM:SS`` with ``.CHA`` appended when a channel is given."""
    name = f"{network}.{station}.{iso_timestamp(starttime)}"
    if channel is not None:
        name = f"{name}.{channel}"
    return name


def _open(path: Path, mode: str) -> BinaryIO:
    try:
        return open(path, mode)
    except OSError as exc:
        raise BinIOError(f"Error opening output file {path}: {exc.strerror or exc}") from exc


class OutputRouter(ABC):
    """Abstract base class for output routing policies."""

    @abstractmethod
    def stream_for(
        self, network: str, station: str, starttime: UTCDateTime, channel: str
    ) -> Tuple[BinaryIO, str]:
        """
        Return the open stream for a segment and a label naming it.

        Streams are opened lazily on the first request.
        """

    def release(self, network: str, station: str, starttime: UTCDateTime, channel: str) -> None:
        """Called once the segment's records are written."""

    @abstractmethod
    def close(self) -> None:
        """Close every stream this router opened."""

    def __enter__(self) -> OutputRouter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class SingleFileRouter(OutputRouter):
    """Every record of the run goes to one stream, in call order."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        self._fp: Optional[BinaryIO] = None

    def stream_for(self, network, station, starttime, channel):
        if self._fp is None:
            if self.path == STDOUT_PATH:
                self._fp = sys.stdout.buffer
            else:
                self._fp = _open(Path(self.path), "wb")
                logger.info("Opened output file: %s", self.path)
        return self._fp, self.path

    def close(self) -> None:
        if self._fp is None:
            return
        if self.path == STDOUT_PATH:
            self._fp.flush()
        else:
            self._fp.close()
        self._fp = None


class ConsolidatedRouter(OutputRouter):
    """
    One file per (network, station, segment start time), shared by channels.

    At most ``max_open`` files are kept open; the least recently used one is
    closed when the limit is reached.  A file evicted and requested again is
    reopened for appending, so nothing written earlier in the run is lost.
    """

    def __init__(self, directory: str | Path = ".", *, max_open: int = 32) -> None:
        if max_open < 1:
            raise ValueError("max_open must be >= 1")
        self.directory = Path(directory)
        self.max_open = int(max_open)
        self._open: "OrderedDict[Path, BinaryIO]" = OrderedDict()
        self._created: Set[Path] = set()

    def stream_for(self, network, station, starttime, channel):
        path = self.directory / segment_filename(network, station, starttime)
        fp = self._open.get(path)
        if fp is not None:
            self._open.move_to_end(path)
            return fp, str(path)

        while len(self._open) >= self.max_open:
            _, old = self._open.popitem(last=False)
            old.close()
        fp = _open(path, "ab" if path in self._created else "wb")
        if path not in self._created:
            logger.info("Opened output file: %s", path)
        self._created.add(path)
        self._open[path] = fp
        return fp, str(path)

    @property
    def paths(self) -> Tuple[str, ...]:
        """Every file created during the run."""
        return tuple(sorted(str(p) for p in self._created))

    def close(self) -> None:
        while self._open:
            _, fp = self._open.popitem(last=False)
            fp.close()


class PerChannelRouter(OutputRouter):
    """
    One file per (network, station, start time, channel), closed after the segment.

    Names have second resolution, so runs of a channel starting within the
    same second share a file; a file already created in this run is reopened
    for appending.
    """

    def __init__(self, directory: str | Path = ".") -> None:
        self.directory = Path(directory)
        self._open: Dict[Tuple[str, str, str, str], BinaryIO] = {}
        self._created: Set[Path] = set()

    def _key(self, network, station, starttime, channel):
        return (network, station, iso_timestamp(starttime), channel)

    def stream_for(self, network, station, starttime, channel):
        key = self._key(network, station, starttime, channel)
        path = self.directory / segment_filename(network, station, starttime, channel)
        fp = self._open.get(key)
        if fp is None:
            fp = _open(path, "ab" if path in self._created else "wb")
            if path not in self._created:
                logger.info("Opened output file: %s", path)
            self._created.add(path)
            self._open[key] = fp
        return fp, str(path)

    def release(self, network, station, starttime, channel) -> None:
        fp = self._open.pop(self._key(network, station, starttime, channel), None)
        if fp is not None:
            fp.close()

    def close(self) -> None:
        for fp in self._open.values():
            fp.close()
        self._open.clear()


def create_router(config: ConversionConfig) -> OutputRouter:
    """Create the routing policy selected by the configuration."""
    if config.output_mode == MODE_SINGLE:
        return SingleFileRouter(config.output_path)
    if config.output_mode == MODE_PER_CHANNEL:
        return PerChannelRouter(config.output_directory)
    if config.output_mode == MODE_CONSOLIDATED:
        return ConsolidatedRouter(config.output_directory)
    raise ValueError(f"unknown output mode {config.output_mode!r}")
