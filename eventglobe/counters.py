"""Running totals derived from elapsed playback time."""

from __future__ import annotations

import math
from typing import Dict, Mapping

from eventglobe.constants import COUNTER_RATES


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def derived_counters(
    display_elapsed: float,
    rates: Mapping[str, float] = COUNTER_RATES,
) -> Dict[str, int]:
    """Per-category totals for the (already capped) elapsed value."""
    return {name: round_half_up(display_elapsed * rate) for name, rate in rates.items()}


def format_timer(display_elapsed: float) -> str:
    # The dataset's time column is in minutes of real time, played back one
    # minute per second.
    return f"Elapsed Time: {display_elapsed:.1f} minutes"


def format_counter(name: str, value: int) -> str:
    return f"{name}: {value}"
