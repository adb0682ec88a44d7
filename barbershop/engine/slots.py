# barbershop/engine/slots.py

from typing import Iterator, Optional, Sequence, Tuple

from ..core import contains, overlaps, slot_grid
from .resolver import BlockedInterval


def generate_slots(
    window: Tuple[int, int],
    blocked: Sequence[BlockedInterval],
    total_duration: int,
    step: int,
    *,
    is_today: bool = False,
    now_minutes: Optional[int] = None,
    buffer_minutes: int = 0,
) -> Iterator[int]:
    """
    Yield start minutes able to host a contiguous block of total_duration.

    A candidate is dropped when the block would run past the window end or
    touch any blocked interval (no starting inside, nor straddling, a break).
    For today, candidates before now + buffer_minutes are dropped as well.
    """
    if total_duration <= 0:
        raise ValueError("total_duration must be > 0")
    if step <= 0:
        raise ValueError("step must be > 0")

    window_start, window_end = window
    earliest = None
    if is_today and now_minutes is not None:
        earliest = now_minutes + buffer_minutes

    for start in slot_grid(window_start, window_end, step):
        end = start + total_duration
        if not contains(window_start, window_end, start, end):
            # every later start ends later still
            break
        if earliest is not None and start < earliest:
            continue
        if any(overlaps(start, end, b.start, b.end) for b in blocked):
            continue
        yield start
