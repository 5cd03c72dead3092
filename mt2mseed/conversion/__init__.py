"""Conversion package.

Design principle:
  - Ingest produces a validated :class:`~mt2mseed.models.header.BinFile`.
  - Conversion names, segments and packs each of its five channels.

Missing data is represented by the mask of a ``numpy.ma.MaskedArray`` from the
parsing boundary on; segments only ever hold valid samples.
"""

from .channels import band_code, channel_name
from .driver import Converter, convert_files
from .blockettes import add_rate_blockette, blockette_chain
from .packing import ObspyRecordEncoder, RecordPacker, RecordTemplate
from .routing import (
    ConsolidatedRouter,
    OutputRouter,
    PerChannelRouter,
    SingleFileRouter,
    create_router,
)
from .segments import file_segments, find_runs, segments, split_channel

__all__ = [
    "band_code",
    "channel_name",
    "Converter",
    "convert_files",
    "ObspyRecordEncoder",
    "RecordPacker",
    "RecordTemplate",
    "add_rate_blockette",
    "blockette_chain",
    "ConsolidatedRouter",
    "OutputRouter",
    "PerChannelRouter",
    "SingleFileRouter",
    "create_router",
    "file_segments",
    "find_runs",
    "segments",
    "split_channel",
]
