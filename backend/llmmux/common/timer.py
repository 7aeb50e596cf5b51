"""
Timer Module

Measures request latency for usage metrics.
"""

import time
from typing import Optional


class Timer:
    """
    Monotonic request timer

    Example:
        timer = Timer().start()
        # ... dispatch request ...
        timer.stop()
        print(f"Total: {timer.elapsed_ms}ms")
    """

    def __init__(self):
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None

    def start(self) -> "Timer":
        self._start_time = time.perf_counter()
        self._end_time = None
        return self

    def stop(self) -> "Timer":
        self._end_time = time.perf_counter()
        return self

    @property
    def elapsed_ms(self) -> int:
        """
        Milliseconds since start()

        Reads the running time while the timer has not been stopped yet.
        """
        if self._start_time is None:
            return 0
        end = self._end_time if self._end_time is not None else time.perf_counter()
        return int((end - self._start_time) * 1000)
