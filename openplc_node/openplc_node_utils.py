"""OpenPLC node utility functions."""

from typing import Any

# Seconds per supported rate unit
_RATE_UNIT_SECONDS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def calc_rate_by_unit(rate: Any, rate_unit: str) -> float:
    """
    Convert a poll rate and its unit into a period in seconds.

    Args:
        rate: Poll rate value, number or numeric string (e.g. 500, "2")
        rate_unit: One of 'ms', 's', 'm', 'h'

    Returns:
        Poll period in seconds

    Raises:
        ValueError: If the unit is unknown or the rate is not a positive number
    """
    if rate_unit not in _RATE_UNIT_SECONDS:
        raise ValueError(f"Unsupported rate unit: {rate_unit!r} (expected one of ms, s, m, h)")

    if isinstance(rate, bool):
        raise ValueError(f"Rate must be a number, got: {rate!r}")
    try:
        value = float(rate)
    except (TypeError, ValueError) as conv_err:
        raise ValueError(f"Cannot convert rate {rate!r} to a number: {conv_err}")

    if value <= 0:
        raise ValueError(f"Rate must be positive, got: {value}")

    return value * _RATE_UNIT_SECONDS[rate_unit]


def parse_modbus_offset(offset: Any) -> int:
    """
    Parse a Modbus offset given as an int or a decimal / 0x hexadecimal string.

    Raises:
        ValueError: If the offset cannot be parsed or is negative
    """
    if isinstance(offset, bool):
        raise ValueError(f"Offset must be an integer, got: {offset!r}")
    if isinstance(offset, int):
        address = offset
    elif isinstance(offset, str) and offset.strip():
        offset_str = offset.strip()
        try:
            if offset_str.lower().startswith("0x"):
                address = int(offset_str, 16)
            else:
                address = int(offset_str, 10)
        except ValueError as conv_err:
            raise ValueError(
                f"Cannot convert offset '{offset_str}' to integer (supports decimal or 0x hex): {conv_err}"
            )
    else:
        raise ValueError(f"Offset must be an integer or a non-empty string, got: {offset!r}")

    if address < 0:
        raise ValueError(f"Offset must be non-negative, got: {address}")

    return address


def parse_count(count: Any) -> int:
    """Parse a non-negative output count given as an int or decimal string."""
    if isinstance(count, bool):
        raise ValueError(f"Count must be an integer, got: {count!r}")
    try:
        value = int(count)
    except (TypeError, ValueError) as conv_err:
        raise ValueError(f"Cannot convert count {count!r} to integer: {conv_err}")
    if isinstance(count, float) and count != value:
        raise ValueError(f"Count must be a whole number, got: {count}")
    if value < 0:
        raise ValueError(f"Count must be non-negative, got: {value}")
    return value
