"""Ingest package - NIMS bin parsing and input list resolution.

This package handles:
- Reading NIMS bin files (Fortran records, either byte order)
- Expanding '@' list files into the ordered input list

Key classes:
- NimsBinReader: parses one file into a BinFile (header + multiplexed samples)

Design principle:
- Byte order is resolved once per file and applied to every word
- Framing markers are checked; inconsistent files raise HeaderError
"""
from .listfile import expand_inputs, read_list_file
from .nims_bin import NimsBinReader, NimsBinReaderConfig, read_bin_file

__all__ = [
    "expand_inputs",
    "read_list_file",
    "NimsBinReader",
    "NimsBinReaderConfig",
    "read_bin_file",
]
