"""Monotonic clock and sleep primitives used by every polling loop."""

import time


class Clock:
    """Wall-clock independent timing source.

    All driver components take a clock so that timing can be simulated.
    """

    def now_ms(self) -> float:
        """Return monotonic time in milliseconds."""
        return time.monotonic() * 1e3

    def sleep_ms(self, milliseconds: float):
        time.sleep(milliseconds * 1e-3)

    def sleep_us(self, microseconds: float):
        time.sleep(microseconds * 1e-6)
