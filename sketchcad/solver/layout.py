"""Slot layout of the augmented ``[multipliers, coordinate increments]`` vector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UnknownLayout:
    """Names every slot of the Newton system.

    Multiplier rows occupy ``[0, row_count)``; the coordinate increment of
    point ``i`` along ``axis`` (0 for x, 1 for y) sits at
    ``row_count + 2 * i + axis``.
    """

    row_count: int
    point_count: int

    @property
    def coordinate_count(self) -> int:
        return 2 * self.point_count

    @property
    def size(self) -> int:
        return self.row_count + self.coordinate_count

    @property
    def multipliers(self) -> slice:
        return slice(0, self.row_count)

    @property
    def coordinates(self) -> slice:
        return slice(self.row_count, self.size)

    def multiplier(self, row: int) -> int:
        if not 0 <= row < self.row_count:
            raise IndexError(f"multiplier row {row} outside [0, {self.row_count})")
        return row

    def coordinate(self, point_index: int, axis: int) -> int:
        if not 0 <= point_index < self.point_count:
            raise IndexError(f"point index {point_index} outside [0, {self.point_count})")
        if axis not in (0, 1):
            raise IndexError(f"axis must be 0 or 1, got {axis}")
        return self.row_count + 2 * point_index + axis

    def coordinate_offset(self, slot: int) -> int:
        """Translate a coordinate slot to its position in the packed point vector."""

        return slot - self.row_count

    def point_slots(self, point_index: Optional[int]) -> tuple:
        """Return ``(x_slot, y_slot)``; ``None`` entries mark a constant stand-in."""

        if point_index is None:
            return (None, None)
        return (self.coordinate(point_index, 0), self.coordinate(point_index, 1))


__all__ = ["UnknownLayout"]
