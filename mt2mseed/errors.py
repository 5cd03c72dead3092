"""Exception hierarchy for NIMS bin to Mini-SEED conversion.

Every failure that aborts the conversion of a single input file derives from
:class:`ConversionError`, so the batch driver can catch one type, log it and
move on to the next file.  The concrete classes also inherit from the matching
builtin (``OSError`` / ``ValueError``) so callers that only know the builtins
still see sensible types.
"""

from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """Base class for all conversion failures."""


class BinIOError(ConversionError, OSError):
    """Open, read or write failure on an input or output stream.

    ``field`` names the header/data field whose read came up short, when known.
    """

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class HeaderError(ConversionError, ValueError):
    """Malformed or self-inconsistent binary header or data-block framing."""


class FormatError(ConversionError, ValueError):
    """Header decoded but its content cannot be converted (rate, size, naming)."""


class UnsupportedBandCode(FormatError):
    """No SEED band code is defined for the sample rate."""

    def __init__(self, sample_rate: float) -> None:
        super().__init__(
            f"no SEED band code for sample rate {sample_rate:g} Hz "
            "(see Appendix A of the SEED manual)"
        )
        self.sample_rate = sample_rate


class UnsupportedChannelIndex(FormatError):
    """Channel index outside the five known MT components."""

    def __init__(self, channel_index: int) -> None:
        super().__init__(f"channel names are only known for channels 1-5, got {channel_index}")
        self.channel_index = channel_index


class PackError(ConversionError):
    """The waveform encoder failed to produce records."""


class ConfigError(ConversionError, ValueError):
    """Invalid run configuration, detected before any input is opened."""
