"""Human-readable numbers for the UI."""

from typing import Optional, Sequence

SI_SUFFIXES = ["", "K", "M", "B", "T"]
BYTE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB"]
SPARK_BLOCKS = "▁▂▃▄▅▆▇█"


def format_number(value: float) -> str:
    """1234 -> '1.2K', 5 -> '5.0'."""
    magnitude = 0
    while abs(value) >= 1000 and magnitude < len(SI_SUFFIXES) - 1:
        value /= 1000.0
        magnitude += 1
    return f"{value:.1f}{SI_SUFFIXES[magnitude]}"


def format_bytes(size: float) -> str:
    """Binary units: 1536 -> '1.5 KiB'."""
    unit = 0
    while abs(size) >= 1024 and unit < len(BYTE_UNITS) - 1:
        size /= 1024.0
        unit += 1
    return f"{size:.1f} {BYTE_UNITS[unit]}"


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "-"
    return f"{seconds:.1f}s"


def sparkline(values: Sequence[float], width: Optional[int] = None) -> str:
    """Block-character sparkline scaled to the max of ``values`` (zero baseline)."""
    if width is not None:
        values = values[-width:]
    if not values:
        return ""
    top = max(values)
    if top <= 0:
        return SPARK_BLOCKS[0] * len(values)
    last = len(SPARK_BLOCKS) - 1
    return "".join(SPARK_BLOCKS[round(max(v, 0.0) / top * last)] for v in values)
