"""Batch driver: convert an ordered list of NIMS bin files.

For each file: parse, validate (rate and data-block size) before any
segmentation, then for channels 1..5 name the channel, split it into runs and
pack every run.  A file whose conversion raises is logged and recorded in the
summary; the batch continues with the next file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from mt2mseed.config import ConversionConfig
from mt2mseed.conversion.channels import channel_name
from mt2mseed.conversion.packing import RecordPacker
from mt2mseed.conversion.routing import OutputRouter, create_router
from mt2mseed.conversion.segments import file_segments
from mt2mseed.errors import ConversionError
from mt2mseed.ingest.nims_bin import NimsBinReader
from mt2mseed.models.header import NCHANNELS
from mt2mseed.models.summary import ConversionSummary

logger = logging.getLogger(__name__)


class Converter:
    """Converts NIMS bin files to Mini-SEED according to one ConversionConfig."""

    def __init__(
        self,
        config: ConversionConfig,
        *,
        reader: Optional[NimsBinReader] = None,
        router: Optional[OutputRouter] = None,
        encoder=None,
    ) -> None:
        self.config = config
        self.reader = reader or NimsBinReader()
        self.router = router or create_router(config)
        self.packer = RecordPacker(config, self.router, encoder)

    def convert_file(self, path: str | Path, summary: Optional[ConversionSummary] = None) -> ConversionSummary:
        """Convert one file; errors propagate after the segments packed so far are recorded."""
        summary = summary if summary is not None else ConversionSummary()
        source = str(path)

        binfile = self.reader.read(path)
        header = binfile.header
        logger.debug("[%s] Missing data flag (value): %d", source, header.missing_data_flag)
        binfile.validate()

        starttime = header.starttime
        logger.info(
            "[%s] Start time: %d,%03d,%d:%d:%d",
            source,
            starttime.year,
            starttime.julday,
            starttime.hour,
            starttime.minute,
            starttime.second,
        )
        logger.info(
            "[%s] Sample rate is %.3f HZ for %d data scans", source, header.sample_rate, binfile.nscans
        )

        for channel_index in range(1, NCHANNELS + 1):
            channel = channel_name(header.sample_rate, channel_index)
            logger.debug("[%s] Reading data for channel %d (%s)", source, channel_index, channel)
            for segment in file_segments(binfile, channel_index):
                summary.add(self.packer.pack(segment, channel, source=source))

        summary.files_converted += 1
        return summary

    def run(self, paths: Iterable[str | Path]) -> ConversionSummary:
        """Convert every file in order, skipping (and recording) the ones that fail."""
        summary = ConversionSummary()
        try:
            for path in paths:
                logger.info("Reading %s", path)
                try:
                    self.convert_file(path, summary)
                except (ConversionError, OSError) as exc:
                    logger.error("[%s] Error converting input bin file: %s", path, exc)
                    summary.failures[str(path)] = str(exc)
        finally:
            self.router.close()

        logger.info(
            "Packed %d samples into %d records", summary.packed_samples, summary.packed_records
        )
        return summary


def convert_files(paths: Iterable[str | Path], config: ConversionConfig) -> ConversionSummary:
    """Convenience wrapper: validate the config and run a Converter over ``paths``."""
    config.validate()
    return Converter(config).run(paths)
