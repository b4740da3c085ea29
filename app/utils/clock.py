"""Wall-clock source shared by the record store and the services."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND


def epoch_ms() -> int:
    """Return the current UNIX time in whole milliseconds."""
    return int(time.time() * MS_PER_SECOND)
