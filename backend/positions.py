# positions.py — Fractional ordering keys for lists, cards and checklist items
"""
Items are ordered by a float ``position``. New items are appended one GAP past
the current maximum; drag-and-drop lands an item halfway between its new
neighbours, so no other row has to change.

Repeated bisection at the same spot halves the gap every time. Once two
neighbours are closer than MIN_GAP the whole sequence is renumbered to
GAP, 2*GAP, 3*GAP, ... in its current order.
"""

from typing import List, Optional, Sequence

GAP = 65535.0
MIN_GAP = 1.0


def append(last_position: Optional[float]) -> float:
    """Position for an item added after ``last_position`` (None for an empty sequence)"""
    if last_position is None:
        return GAP
    return last_position + GAP


def between(prev: Optional[float], next: Optional[float]) -> float:
    """Position strictly between two neighbours; either side may be absent"""
    if prev is None and next is None:
        return GAP
    if prev is None:
        return next / 2
    if next is None:
        return prev + GAP
    if prev > next:
        raise ValueError(f"prev position {prev} is after next position {next}")
    return (prev + next) / 2


def needs_rebalance(positions: Sequence[float], min_gap: float = MIN_GAP) -> bool:
    """True when any two adjacent positions (in sorted order) are closer than min_gap"""
    ordered = sorted(positions)
    return any(b - a < min_gap for a, b in zip(ordered, ordered[1:]))


def rebalanced(count: int) -> List[float]:
    """Fresh positions for a sequence of ``count`` items, produced by repeated append"""
    positions = []
    last = None
    for _ in range(count):
        last = append(last)
        positions.append(last)
    return positions
