"""Pack segments into Mini-SEED records and hand them to the output router.

The bit-level work (Steim-1/2 or 32-bit integer encoding, fixed header,
Blockette 1000) is delegated to obspy.  :class:`ObspyRecordEncoder` takes a
:class:`RecordTemplate` plus a sample array and calls a sink once per
encoded record; records only reach the sink after the whole run has been
encoded, so a failed encode never leaves a partial record on a stream.

Sample-rate descriptor
----------------------
Every record carries the structural Blockette 1000.  When the template asks
for the explicit sample-rate descriptor, each record also gets a
Blockette 100 with the exact single-precision rate.  obspy cannot write that
blockette, so records are encoded one at a time with enough samples to leave
room for it, and the blockette is inserted afterwards
(:func:`~mt2mseed.conversion.blockettes.add_rate_blockette`).
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import numpy as np
from obspy import Stream, Trace, UTCDateTime

from mt2mseed.config import ENCODINGS, ConversionConfig
from mt2mseed.conversion.blockettes import (
    BLOCKETTE_SAMPLE_RATE,
    BLOCKETTE_TIMING,
    add_rate_blockette,
    sample_count,
)
from mt2mseed.conversion.routing import OutputRouter
from mt2mseed.errors import BinIOError, PackError
from mt2mseed.models.segment import Segment
from mt2mseed.models.summary import PackedSegment

logger = logging.getLogger(__name__)

RecordSink = Callable[[bytes], None]


@dataclass(frozen=True)
class RecordTemplate:
    """
    Per-run record description handed to the encoder.

    descriptors lists the blockette types requested for every record.
    """
    network: str
    station: str
    location: str
    channel: str
    starttime: UTCDateTime
    sample_rate: float
    encoding: int
    record_length: int
    byte_order: int
    descriptors: Tuple[int, ...] = (BLOCKETTE_TIMING,)

    @property
    def rate_descriptor(self) -> bool:
        return BLOCKETTE_SAMPLE_RATE in self.descriptors

    @classmethod
    def for_segment(cls, config: ConversionConfig, segment: Segment, channel: str) -> RecordTemplate:
        descriptors: Tuple[int, ...] = (BLOCKETTE_TIMING,)
        if config.rate_descriptor:
            descriptors += (BLOCKETTE_SAMPLE_RATE,)
        return cls(
            network=config.network,
            station=config.station,
            location=config.location,
            channel=channel,
            starttime=segment.starttime,
            sample_rate=segment.sample_rate,
            encoding=config.encoding,
            record_length=config.record_length,
            byte_order=config.byte_order,
            descriptors=descriptors,
        )

    @property
    def byteorder(self) -> str:
        return ">" if self.byte_order == 1 else "<"

    def stats(self, starttime: UTCDateTime | None = None) -> Dict[str, object]:
        return {
            "network": self.network,
            "station": self.station,
            "location": self.location,
            "channel": self.channel,
            "starttime": self.starttime if starttime is None else starttime,
            "sampling_rate": self.sample_rate,
        }


class ObspyRecordEncoder:
    """Encodes one run of int32 samples into fixed-length Mini-SEED records."""

    def pack(self, template: RecordTemplate, samples: np.ndarray, sink: RecordSink) -> Tuple[int, int]:
        """
        Encode ``samples`` with the template's settings and feed each record to ``sink``.

        Returns
        -------
        (records, samples) packed.
        """
        if template.encoding not in ENCODINGS:
            raise PackError(f"Unsupported encoding type: {template.encoding}")
        data = np.ascontiguousarray(samples, dtype=np.int32)
        if data.size == 0:
            return 0, 0

        if template.rate_descriptor:
            records = self._encode_with_rate(template, data)
        else:
            payload = self._encode(template, data, template.starttime)
            reclen = template.record_length
            records = [payload[offset : offset + reclen] for offset in range(0, len(payload), reclen)]

        for record in records:
            sink(record)
        return len(records), int(data.size)

    def _encode(self, template: RecordTemplate, data: np.ndarray, starttime: UTCDateTime) -> bytes:
        trace = Trace(data=data, header=template.stats(starttime))
        buf = io.BytesIO()
        try:
            Stream([trace]).write(
                buf,
                format="MSEED",
                reclen=template.record_length,
                encoding=ENCODINGS[template.encoding],
                byteorder=template.byte_order,
            )
        except Exception as exc:
            raise PackError(f"Error packing data: {exc}") from exc

        payload = buf.getvalue()
        reclen = template.record_length
        if not payload or len(payload) % reclen:
            raise PackError(
                f"encoder produced {len(payload)} bytes, not a multiple of record length {reclen}"
            )
        return payload

    def _encode_with_rate(self, template: RecordTemplate, data: np.ndarray) -> List[bytes]:
        """Encode record by record, shrinking each until a Blockette 100 fits in front of the data."""
        reclen = template.record_length
        byteorder = template.byteorder
        # no record holds more than 7 samples per 4-byte word
        window = 2 * reclen
        records: List[bytes] = []
        pos = 0
        limit = window
        while pos < data.size:
            starttime = template.starttime + pos / template.sample_rate
            first = self._encode(template, data[pos : pos + limit], starttime)[:reclen]
            record, fitting = add_rate_blockette(first, template.sample_rate, template.encoding, byteorder)
            if record is None:
                nsamples = sample_count(first, byteorder)
                limit = fitting if 0 < fitting < nsamples else nsamples - 1
                if limit < 1:
                    raise PackError("no room for the sample-rate blockette")
                continue
            # obspy numbers every single-record encode 000001
            records.append(b"%06d" % (len(records) % 999999 + 1) + record[6:])
            pos += fitting
            limit = window
        return records


class RecordPacker:
    """
    Turns segments into records on the router's streams and counts them.

    The stream for a segment is requested on the first record, so a segment
    that fails to encode never opens (or creates) an output file.
    """

    def __init__(self, config: ConversionConfig, router: OutputRouter, encoder=None):
        self.config = config
        self.router = router
        self.encoder = encoder or ObspyRecordEncoder()

    def pack(self, segment: Segment, channel: str, *, source: str = "<stream>") -> PackedSegment:
        cfg = self.config
        template = RecordTemplate.for_segment(cfg, segment, channel)
        key = (cfg.network, cfg.station, segment.starttime, channel)
        fp = None
        label = ""

        def sink(record: bytes) -> None:
            nonlocal fp, label
            if fp is None:
                fp, label = self.router.stream_for(*key)
            try:
                fp.write(record)
            except OSError as exc:
                raise BinIOError(f"Error writing to output file {label}: {exc}") from exc

        logger.info(
            "[%s] %d samps @ %.6f Hz for N: '%s', S: '%s', L: '%s', C: '%s'",
            source,
            segment.n_samples,
            segment.sample_rate,
            cfg.network,
            cfg.station,
            cfg.location,
            channel,
        )
        try:
            records, samples = self.encoder.pack(template, segment.samples, sink)
        finally:
            self.router.release(*key)
        if records < 0:
            raise PackError(f"[{source}] Error packing Mini-SEED for channel {channel}")

        return PackedSegment(
            source=source,
            network=cfg.network,
            station=cfg.station,
            location=cfg.location,
            channel=channel,
            starttime=str(segment.starttime),
            samples=samples,
            records=records,
            output=label,
        )
