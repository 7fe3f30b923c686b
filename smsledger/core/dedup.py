import time
from typing import Callable, Dict


class RecentBodyGuard:
    """
    Drops a body seen again within `window_s` (native broadcasts sometimes
    fire twice). Remembers at most `max_entries` bodies.
    """

    def __init__(self, window_s: float = 3.0, max_entries: int = 50, clock: Callable[[], float] = time.monotonic) -> None:
        self.window_s = window_s
        self.max_entries = max_entries
        self._clock = clock
        self._seen: Dict[str, float] = {}

    def is_duplicate(self, body: str) -> bool:
        key = (body or "")[:80]
        now = self._clock()
        last = self._seen.get(key)
        self._seen[key] = now
        if len(self._seen) > self.max_entries:
            oldest = min(self._seen, key=self._seen.get)
            del self._seen[oldest]
        return last is not None and now - last < self.window_s
