"""Bounded admission gate for concurrent requests."""

import threading


class ConcurrencyLimiter:
    """Lock-guarded counter of in-flight tasks with a fixed capacity."""

    def __init__(self, capacity: int):
        """
        Initialize limiter.

        Args:
            capacity: Maximum number of tasks allowed in flight (0 = admit nothing)
        """
        self.capacity = max(0, capacity)
        self.live = 0
        self.lock = threading.Lock()

    def try_admit(self) -> bool:
        """Take a slot if one is free. Never waits."""
        with self.lock:
            if self.live < self.capacity:
                self.live += 1
                return True
            return False

    def release(self) -> None:
        """Give back a slot taken by a successful try_admit()."""
        with self.lock:
            if self.live <= 0:
                raise RuntimeError("release() called without a matching try_admit()")
            self.live -= 1

    def in_flight(self) -> int:
        """Get the number of slots currently held."""
        with self.lock:
            return self.live
