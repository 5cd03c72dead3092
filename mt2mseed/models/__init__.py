from .header import NCHANNELS, OVERFLOW_VALUE, BinFile, BinHeader, mask_missing
from .segment import Segment
from .summary import ConversionSummary, PackedSegment

__all__ = [
    "NCHANNELS",
    "OVERFLOW_VALUE",
    "BinFile",
    "BinHeader",
    "mask_missing",
    "Segment",
    "ConversionSummary",
    "PackedSegment",
]
