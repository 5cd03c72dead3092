"""Tests for Mini-SEED packing through obspy."""

from __future__ import annotations

import io
import struct
from dataclasses import replace

import numpy as np
import pytest
from obspy import Stream, UTCDateTime, read

from mt2mseed.config import ConversionConfig
from mt2mseed.conversion.blockettes import add_rate_blockette, blockette_chain, sample_count
from mt2mseed.conversion.packing import (
    BLOCKETTE_SAMPLE_RATE,
    BLOCKETTE_TIMING,
    ObspyRecordEncoder,
    RecordPacker,
    RecordTemplate,
)
from mt2mseed.conversion.routing import PerChannelRouter, SingleFileRouter
from mt2mseed.errors import PackError
from mt2mseed.models.segment import Segment

T0 = UTCDateTime(2008, 7, 8, 12, 0, 0)


def _template(**overrides) -> RecordTemplate:
    base = dict(
        network="EM",
        station="SITE",
        location="",
        channel="MFN",
        starttime=T0,
        sample_rate=8.0,
        encoding=11,
        record_length=512,
        byte_order=1,
    )
    base.update(overrides)
    return RecordTemplate(**base)


def _segment(n: int = 2000, start_index: int = 0, rate: float = 8.0) -> Segment:
    rng = np.random.default_rng(42)
    samples = np.cumsum(rng.integers(-50, 50, size=n)).astype(np.int32)
    return Segment(
        channel_index=1,
        start_index=start_index,
        samples=samples,
        starttime=T0 + start_index / rate,
        sample_rate=rate,
    )


# -----------------------------------------------------------------------
# RecordTemplate
# -----------------------------------------------------------------------


def test_template_descriptors_follow_config() -> None:
    seg = _segment(10)
    plain = RecordTemplate.for_segment(ConversionConfig(), seg, "MFN")
    assert plain.descriptors == (BLOCKETTE_TIMING,)
    assert not plain.rate_descriptor

    cfg = replace(ConversionConfig(), rate_descriptor=True)
    with_rate = RecordTemplate.for_segment(cfg, seg, "MFN")
    assert with_rate.descriptors == (BLOCKETTE_TIMING, BLOCKETTE_SAMPLE_RATE)
    assert with_rate.rate_descriptor


def test_template_stats_carry_exact_rate() -> None:
    rate = float(np.float32(1.0) / np.float32(0.3))
    assert _template(sample_rate=rate).stats()["sampling_rate"] == rate
    exact = _template(sample_rate=rate, descriptors=(BLOCKETTE_TIMING, BLOCKETTE_SAMPLE_RATE))
    assert exact.stats()["sampling_rate"] == rate
    assert exact.stats(T0 + 3.0)["starttime"] == T0 + 3.0


# -----------------------------------------------------------------------
# ObspyRecordEncoder
# -----------------------------------------------------------------------


@pytest.mark.parametrize("encoding, name", [(3, "INT32"), (10, "STEIM1"), (11, "STEIM2")])
@pytest.mark.parametrize("byte_order, order_char", [(1, ">"), (0, "<")])
def test_encoder_roundtrip(encoding: int, name: str, byte_order: int, order_char: str) -> None:
    seg = _segment(3000)
    records = []
    n_rec, n_samp = ObspyRecordEncoder().pack(
        _template(encoding=encoding, byte_order=byte_order), seg.samples, records.append
    )

    assert n_samp == 3000
    assert n_rec == len(records) > 1
    assert all(len(r) == 512 for r in records)

    st = read(io.BytesIO(b"".join(records)), format="MSEED")
    st.merge()
    assert len(st) == 1
    tr = st[0]
    np.testing.assert_array_equal(tr.data, seg.samples)
    assert tr.id == "EM.SITE..MFN"
    assert tr.stats.starttime == T0
    assert tr.stats.sampling_rate == 8.0
    assert tr.stats.mseed.encoding == name
    assert tr.stats.mseed.byteorder == order_char
    assert tr.stats.mseed.record_length == 512


def test_encoder_failure_is_pack_error(monkeypatch) -> None:
    def boom(self, *args, **kwargs):
        raise RuntimeError("libmseed exploded")

    monkeypatch.setattr(Stream, "write", boom)
    sink_calls = []
    with pytest.raises(PackError):
        ObspyRecordEncoder().pack(_template(), _segment(100).samples, sink_calls.append)
    assert sink_calls == []


def test_encoder_rejects_unknown_encoding() -> None:
    with pytest.raises(PackError):
        ObspyRecordEncoder().pack(_template(encoding=4), _segment(10).samples, lambda r: None)


# -----------------------------------------------------------------------
# Blockettes
# -----------------------------------------------------------------------

IRRATIONAL_RATE = float(np.float32(1.0) / np.float32(0.3))


def _chain_types(record: bytes, byteorder: str) -> list:
    return [btype for btype, _ in blockette_chain(record, byteorder)]


def _rate_blockette_value(record: bytes, byteorder: str) -> float:
    (offset,) = [off for btype, off in blockette_chain(record, byteorder) if btype == 100]
    return struct.unpack_from(byteorder + "f", record, offset + 4)[0]


@pytest.mark.parametrize("rate", [8.0, IRRATIONAL_RATE])
@pytest.mark.parametrize("encoding", [3, 10, 11])
@pytest.mark.parametrize("byte_order, order_char", [(1, ">"), (0, "<")])
def test_rate_blockette_only_when_requested(rate, encoding, byte_order, order_char) -> None:
    seg = _segment(3000, rate=rate)
    for descriptors in ((BLOCKETTE_TIMING,), (BLOCKETTE_TIMING, BLOCKETTE_SAMPLE_RATE)):
        template = _template(
            sample_rate=rate, encoding=encoding, byte_order=byte_order, descriptors=descriptors
        )
        records = []
        n_rec, n_samp = ObspyRecordEncoder().pack(template, seg.samples, records.append)

        assert n_rec == len(records) > 1
        assert n_samp == 3000
        assert all(len(r) == 512 for r in records)
        assert sum(sample_count(r, order_char) for r in records) == 3000
        for record in records:
            types = _chain_types(record, order_char)
            assert 1000 in types
            assert (100 in types) == template.rate_descriptor
            if template.rate_descriptor:
                assert _rate_blockette_value(record, order_char) == np.float32(rate)


@pytest.mark.parametrize("encoding", [3, 10, 11])
def test_rate_blockette_records_decode(encoding) -> None:
    seg = _segment(3000, rate=IRRATIONAL_RATE)
    template = _template(
        sample_rate=IRRATIONAL_RATE,
        encoding=encoding,
        descriptors=(BLOCKETTE_TIMING, BLOCKETTE_SAMPLE_RATE),
    )
    records = []
    ObspyRecordEncoder().pack(template, seg.samples, records.append)

    assert [r[:6] for r in records[:3]] == [b"000001", b"000002", b"000003"]
    st = read(io.BytesIO(b"".join(records)), format="MSEED")
    traces = sorted(st, key=lambda tr: tr.stats.starttime)
    np.testing.assert_array_equal(np.concatenate([tr.data for tr in traces]), seg.samples)
    assert traces[0].stats.starttime == T0
    assert traces[0].stats.sampling_rate == pytest.approx(IRRATIONAL_RATE, rel=1e-6)
    assert traces[0].stats.mseed.record_length == 512


def test_full_record_has_no_room_for_rate_blockette() -> None:
    payload = ObspyRecordEncoder()._encode(_template(), _segment(3000).samples, T0)
    first = payload[:512]
    nsamples = sample_count(first, ">")

    record, fitting = add_rate_blockette(first, 8.0, 11, ">")

    assert record is None
    assert 0 < fitting < nsamples


# -----------------------------------------------------------------------
# RecordPacker
# -----------------------------------------------------------------------


def test_packer_counts_and_output(tmp_path) -> None:
    out = tmp_path / "all.mseed"
    cfg = ConversionConfig.create(station="SITE", record_length=512, output_path=str(out))
    router = SingleFileRouter(out)
    packer = RecordPacker(cfg, router)

    first = packer.pack(_segment(1000), "MFN", source="a.bin")
    second = packer.pack(_segment(500, start_index=1200), "MFE", source="a.bin")
    router.close()

    assert first.samples == 1000 and second.samples == 500
    assert first.output == str(out)
    assert out.stat().st_size == 512 * (first.records + second.records)

    st = read(str(out))
    assert sorted(tr.stats.channel for tr in st) == ["MFE", "MFN"]
    assert sum(tr.stats.npts for tr in st) == 1500
    mfe = st.select(channel="MFE")[0]
    assert mfe.stats.starttime == T0 + 150.0


def test_packer_failure_opens_no_file(tmp_path, monkeypatch) -> None:
    def boom(self, *args, **kwargs):
        raise RuntimeError("no")

    monkeypatch.setattr(Stream, "write", boom)
    cfg = ConversionConfig.create(station="SITE", output_mode="per_channel", output_dir=str(tmp_path))
    packer = RecordPacker(cfg, PerChannelRouter(tmp_path))
    with pytest.raises(PackError):
        packer.pack(_segment(100), "MFN")
    assert list(tmp_path.iterdir()) == []


def test_packer_negative_count_is_pack_error(tmp_path) -> None:
    class BrokenEncoder:
        def pack(self, template, samples, sink):
            return -1, 0

    cfg = ConversionConfig.create(output_path=str(tmp_path / "x"))
    packer = RecordPacker(cfg, SingleFileRouter(tmp_path / "x"), BrokenEncoder())
    with pytest.raises(PackError):
        packer.pack(_segment(10), "MFN")
