"""
Repeat marker resolution.

A RepeatEnd cell jumps back to the nearest RepeatBegin to its left in the same
row (column 0 when there is none). RepeatEnds stacked in several rows of one
column with the same start loop that region once per row.
"""

import copy
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class RepeatMarker:
    """Raw RepeatEnd found while scanning one grid row."""
    start_pos: int  # Column to jump back to
    row: int


@dataclass
class RepeatAction:
    """A countable jump back to `start_pos`, attached to one column."""
    start_pos: int
    use_counter: int = 0
    max_use: int = 1

    def is_exhausted(self) -> bool:
        return self.use_counter >= self.max_use


def resolve_column(markers: List[RepeatMarker]) -> List[RepeatAction]:
    """Collapse one column's markers into actions ordered by start column."""
    actions: List[RepeatAction] = []
    for marker in sorted(markers, key=lambda m: m.start_pos):
        if actions and actions[-1].start_pos == marker.start_pos:
            actions[-1].max_use += 1
        else:
            actions.append(RepeatAction(start_pos=marker.start_pos))
    return actions


def resolve_repeats(repeat_markers: List[List[RepeatMarker]]) -> List[List[RepeatAction]]:
    """Resolve the raw markers of every column.

    Args:
        repeat_markers: One list of markers per grid column

    Returns:
        One list of RepeatAction per grid column, counters at zero
    """
    return [resolve_column(markers) for markers in repeat_markers]


def fresh_actions(actions: List[List[RepeatAction]]) -> List[List[RepeatAction]]:
    """Copy of resolved actions with independent counters, for one track walk."""
    return copy.deepcopy(actions)
