"""
OpenPLC node response transformer.

Digital and analog values share one output stream addressed by position:
positions [0, digital_count) are coils, positions
[digital_count, digital_count + analog_count) are holding registers. Each
read completion produces its own batch, so an analog batch carries null
placeholders in the digital positions.
"""

from typing import Any, Sequence

from .openplc_node_types import OutputBatch, OutputEvent


def _fit(values: Sequence[Any], count: int) -> OutputBatch:
    """One event per value, truncated or padded with placeholders to count."""
    events = [OutputEvent(payload=value) for value in list(values)[:count]]
    events.extend(OutputEvent() for _ in range(count - len(events)))
    return events


def digital_batch(values: Sequence[Any], digital_count: int) -> OutputBatch:
    """Batch for a completed coil read: exactly digital_count events."""
    return _fit(values, digital_count)


def analog_batch(values: Sequence[Any], digital_count: int, analog_count: int) -> OutputBatch:
    """Batch for a completed register read: digital_count placeholders, then the analog values."""
    return [OutputEvent() for _ in range(digital_count)] + _fit(values, analog_count)
