"""Monotonic simulation clock."""

from __future__ import annotations

import time
from typing import Callable

from eventglobe.constants import CLOCK_DISPLAY_CAP_S


class SimulationClock:
    """Elapsed seconds since :meth:`start` or the last :meth:`reset`.

    The display cap only affects :meth:`display_elapsed`; the underlying
    elapsed value keeps growing.
    """

    def __init__(
        self,
        time_source: Callable[[], float] = time.perf_counter,
        display_cap_s: float = CLOCK_DISPLAY_CAP_S,
    ) -> None:
        self._time_source = time_source
        self.display_cap_s = float(display_cap_s)
        self._zero: float | None = None

    @property
    def running(self) -> bool:
        return self._zero is not None

    def start(self) -> None:
        if self._zero is None:
            self._zero = self._time_source()

    def reset(self) -> None:
        self._zero = self._time_source()

    def elapsed(self) -> float:
        # Reading an unstarted clock starts it.
        if self._zero is None:
            self.start()
            return 0.0
        return max(0.0, self._time_source() - self._zero)

    def display_elapsed(self) -> float:
        return cap_elapsed(self.elapsed(), self.display_cap_s)


def cap_elapsed(elapsed: float, cap: float) -> float:
    return cap if elapsed >= cap else elapsed
