from __future__ import annotations


class Backoff:
    """Endless retry schedule that doubles the wait up to ``limit`` seconds."""

    def __init__(self, initial: float, limit: float) -> None:
        if initial <= 0 or limit < initial:
            raise ValueError("Backoff requires 0 < initial <= limit")
        self._initial = initial
        self._limit = limit
        self._current = initial
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    def reset(self) -> None:
        self._current = self._initial
        self._attempts = 0

    def wait_seconds(self) -> float:
        return self._current

    def failed(self) -> float:
        """Records a failed attempt and returns how long to wait before the next one."""
        wait = self._current
        self._attempts += 1
        self._current = min(self._current * 2, self._limit)
        return wait

    def __repr__(self) -> str:
        return f"{self._current}s"
