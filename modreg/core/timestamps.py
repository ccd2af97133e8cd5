from __future__ import annotations

import time
from typing import Callable, Optional

Clock = Callable[[], float]


def iso_utc(ts: Optional[float] = None) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time() if ts is None else ts))
