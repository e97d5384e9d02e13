"""Plain entity records shared by the solver pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Optional, Tuple

PointId = str
SegmentId = str
Point2D = Tuple[float, float]


@dataclass(frozen=True)
class Point:
    """A sketch point; ``fixed`` is advisory and never read by the solver."""

    id: PointId
    x: float
    y: float
    fixed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))

    @property
    def coords(self) -> Point2D:
        return (self.x, self.y)

    def moved_to(self, x: float, y: float) -> "Point":
        return replace(self, x=float(x), y=float(y))


@dataclass(frozen=True)
class Segment:
    """A line segment defined by two point ids."""

    id: SegmentId
    p1: PointId
    p2: PointId

    @property
    def endpoints(self) -> Tuple[PointId, PointId]:
        return (self.p1, self.p2)


@dataclass(frozen=True)
class SketchModel:
    """Points and segments; the unit of input and output for a solve."""

    points: Tuple[Point, ...] = ()
    segments: Tuple[Segment, ...] = ()
    _points_by_id: Dict[PointId, Point] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )
    _segments_by_id: Dict[SegmentId, Segment] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))
        object.__setattr__(self, "segments", tuple(self.segments))
        points_by_id: Dict[PointId, Point] = {}
        for point in self.points:
            points_by_id.setdefault(point.id, point)
        segments_by_id: Dict[SegmentId, Segment] = {}
        for segment in self.segments:
            segments_by_id.setdefault(segment.id, segment)
        object.__setattr__(self, "_points_by_id", points_by_id)
        object.__setattr__(self, "_segments_by_id", segments_by_id)

    @classmethod
    def build(
        cls,
        points: Iterable[Point],
        segments: Iterable[Segment] = (),
    ) -> "SketchModel":
        return cls(points=tuple(points), segments=tuple(segments))

    def point(self, point_id: PointId) -> Optional[Point]:
        return self._points_by_id.get(point_id)

    def segment(self, segment_id: SegmentId) -> Optional[Segment]:
        return self._segments_by_id.get(segment_id)

    def has_point(self, point_id: PointId) -> bool:
        return point_id in self._points_by_id

    def has_segment(self, segment_id: SegmentId) -> bool:
        return segment_id in self._segments_by_id

    def point_coords(self) -> Dict[PointId, Point2D]:
        return {point.id: point.coords for point in self.points}

    def with_points(self, points: Iterable[Point]) -> "SketchModel":
        return SketchModel(points=tuple(points), segments=self.segments)


__all__ = [
    "Point",
    "Point2D",
    "PointId",
    "Segment",
    "SegmentId",
    "SketchModel",
]
