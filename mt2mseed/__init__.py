"""mt2mseed -- convert magnetotelluric NIMS bin time series to Mini-SEED.

This package provides tools for:
- Parsing NIMS bin files (Fortran records, automatic byte-order detection,
  framing self-consistency checks)
- Naming the five MT channels by SEED band code and component
- Splitting each channel into contiguous runs at missing-data boundaries
- Packing runs into Mini-SEED records (via obspy) and routing them to
  output files

Main subpackages:
- ingest: NIMS bin reader and list-file expansion
- models: Data models (BinHeader, BinFile, Segment, ConversionSummary)
- conversion: Channel naming, segmentation, packing, routing and the batch driver
"""

__version__ = "1.1"

__all__ = ["__version__"]
