"""
Per-object progress reporting.

Copy strategies report byte-count deltas to a ProgressObserver instead of
drawing anything themselves. One observer is created per record through a
ProgressFactory, so the terminal output can be swapped for a no-op (or a
recorder in tests) without touching the transfer code.

Contract for every strategy, dry-run included: updates are monotonic,
add up to the object size, and close() is called exactly once.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from tqdm import tqdm


@runtime_checkable
class ProgressObserver(Protocol):
    """Receives byte-count deltas for one object transfer."""

    def update(self, delta: int) -> None: ...

    def close(self) -> None: ...


# Called as factory(key, total_bytes) once per copied record
ProgressFactory = Callable[[str, int], ProgressObserver]


class NullProgress:
    """Observer that ignores every update."""

    def update(self, delta: int) -> None:
        pass

    def close(self) -> None:
        pass


def null_progress(key: str, total: int) -> ProgressObserver:
    return NullProgress()


class TqdmProgress:
    """
    Byte-unit tqdm bar for one object.

    Bars are not left on screen once the object finishes, so concurrent
    workers do not flood the terminal.
    """

    def __init__(self, key: str, total: int, *, leave: bool = False) -> None:
        self._bar = tqdm(
            total=total,
            desc=f"Copying {key}",
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            leave=leave,
            dynamic_ncols=True,
        )

    def update(self, delta: int) -> None:
        if delta > 0:
            self._bar.update(delta)

    def close(self) -> None:
        self._bar.close()


def tqdm_progress(key: str, total: int) -> ProgressObserver:
    return TqdmProgress(key, total)


__all__ = [
    "ProgressObserver",
    "ProgressFactory",
    "NullProgress",
    "null_progress",
    "TqdmProgress",
    "tqdm_progress",
]
