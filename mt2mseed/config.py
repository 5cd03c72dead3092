"""Run configuration -- the explicit context threaded through a conversion.

A :class:`ConversionConfig` bundles every option that affects the output
(SEED identifiers, packing parameters, output routing) into one frozen
dataclass.  It can be:

- Constructed directly or from parsed command-line arguments
- Overridden field-by-field via ``dataclasses.replace()``
- Serialized to/from a dict for provenance
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from mt2mseed.errors import ConfigError


# SEED data encoding formats accepted for packing.
ENCODINGS: Dict[int, str] = {3: "INT32", 10: "STEIM1", 11: "STEIM2"}

# Output routing modes.
MODE_SINGLE = "single"
MODE_CONSOLIDATED = "consolidated"
MODE_PER_CHANNEL = "per_channel"
OUTPUT_MODES = (MODE_SINGLE, MODE_CONSOLIDATED, MODE_PER_CHANNEL)

DEFAULT_RECORD_LENGTH = 4096
_MIN_RECORD_LENGTH = 256
_MAX_RECORD_LENGTH = 1048576

# SEED fixed header field widths.
_CODE_WIDTHS = {"network": 2, "station": 5, "location": 2}


def clean_code(value: Optional[str], width: int) -> str:
    """Strip whitespace from a SEED code and truncate it to ``width`` characters."""
    if not value:
        return ""
    return "".join(value.split())[:width]


def parse_encoding(value: Union[int, str]) -> int:
    """Map an encoding given as number or name (``"STEIM2"``, ``"11"``) to its SEED number."""
    if isinstance(value, str):
        token = value.strip().upper()
        for number, name in ENCODINGS.items():
            if token == name:
                return number
        try:
            value = int(token)
        except ValueError:
            raise ConfigError(f"Unsupported encoding type: {value}") from None
    number = int(value)
    if number not in ENCODINGS:
        raise ConfigError(f"Unsupported encoding type: {number}")
    return number


@dataclass(frozen=True)
class ConversionConfig:
    """Frozen configuration for converting NIMS bin files to Mini-SEED.

    SEED identifiers
    ----------------
    network, station, location : str
        Codes stamped on every record.  Cleaned of whitespace and truncated to
        the fixed-header widths (2, 5, 2).

    Packing
    -------
    record_length : int
        Record length in bytes, power of two in [256, 1048576].
    encoding : int
        3 (32-bit integers), 10 (Steim-1) or 11 (Steim-2).
    byte_order : int
        1 for big-endian (MSBF), 0 for little-endian (LSBF).
    rate_descriptor : bool
        Add a Blockette 100 with the exact sample rate to every record, for
        rates the fixed header factor/multiplier can only approximate.

    Output routing
    --------------
    output_mode : str
        ``"single"``, ``"consolidated"`` or ``"per_channel"``.
    output_path : str or None
        Target of single mode; ``"-"`` is standard output.
    output_dir : str
        Directory receiving generated file names in the other two modes.
    """

    network: str = "EM"
    station: str = ""
    location: str = ""

    record_length: int = DEFAULT_RECORD_LENGTH
    encoding: int = 11
    byte_order: int = 1
    rate_descriptor: bool = False

    output_mode: str = MODE_CONSOLIDATED
    output_path: Optional[str] = None
    output_dir: str = "."

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, **values: Any) -> ConversionConfig:
        """Build a validated config, cleaning codes and normalizing the encoding.

        ``output_path`` given without ``output_mode`` selects single mode.
        """
        base: Dict[str, Any] = dict(values)
        for key, width in _CODE_WIDTHS.items():
            if key in base:
                base[key] = clean_code(base[key], width)
        if "encoding" in base:
            base["encoding"] = parse_encoding(base["encoding"])
        if base.get("output_path") and "output_mode" not in base:
            base["output_mode"] = MODE_SINGLE
        if "output_dir" in base and base["output_dir"] is not None:
            base["output_dir"] = str(base["output_dir"])
        cfg = cls(**base)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Raise :class:`ConfigError` if any field is out of range."""
        if self.encoding not in ENCODINGS:
            raise ConfigError(f"Unsupported encoding type: {self.encoding}")
        reclen = int(self.record_length)
        if not (_MIN_RECORD_LENGTH <= reclen <= _MAX_RECORD_LENGTH) or reclen & (reclen - 1):
            raise ConfigError(
                f"record length must be a power of two in [{_MIN_RECORD_LENGTH}, {_MAX_RECORD_LENGTH}], got {reclen}"
            )
        if self.byte_order not in (0, 1):
            raise ConfigError(f"byte order must be 0 (LSBF) or 1 (MSBF), got {self.byte_order}")
        if self.output_mode not in OUTPUT_MODES:
            raise ConfigError(f"unknown output mode {self.output_mode!r}")
        if self.output_mode == MODE_SINGLE and not self.output_path:
            raise ConfigError("single output mode requires an output path")
        for key, width in _CODE_WIDTHS.items():
            if len(getattr(self, key)) > width:
                raise ConfigError(f"{key} code longer than {width} characters: {getattr(self, key)!r}")

    @property
    def encoding_name(self) -> str:
        return ENCODINGS[self.encoding]

    @property
    def output_directory(self) -> Path:
        return Path(self.output_dir)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> ConversionConfig:
        """Reconstruct from a dict (e.g. loaded from JSON)."""
        return cls.create(**dict(d))
