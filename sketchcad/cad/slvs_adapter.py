"""SolveSpace backend used to cross-check the Newton solver."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Union

from python_solvespace import slvs

from ..solver.constraints import (
    Angle,
    Coincident,
    Constraint,
    Distance,
    FixPoint,
    Horizontal,
    Parallel,
    Perpendicular,
    PointOnLine,
    Vertical,
)
from ..solver.math_utils import wrap_to_pi
from ..solver.model import DanglingReferenceError
from ..solver.types import PointId, SegmentId, SketchModel

logger = logging.getLogger(__name__)

# How each constraint type is emitted into a SolveSpace system.
CAD_MAPPING_TABLE: Mapping[str, str] = {
    "coincident": "coincident(A, B) → coincident(pointA, pointB)",
    "distance": "distance(A, B, d) → distance(pointA, pointB, d)",
    "fix_point": "fix_point(A, x, y) → point placed at (x, y) + dragged(pointA)",
    "parallel": "parallel(s, t) → parallel(line_s, line_t)",
    "perpendicular": "perpendicular(s, t) → perpendicular(line_s, line_t)",
    "vertical": "vertical(s) → vertical(line_s, wp)",
    "horizontal": "horizontal(s) → horizontal(line_s, wp)",
    "angle": "angle(s, t, θ) → angle(line_s, line_t, |θ| in degrees) (sign is not enforced)",
    "point_on_line": "point_on_line(P, s) → coincident(pointP, line_s)",
}


@dataclass
class SlvsAdapterOptions:
    """Options controlling the SolveSpace adapter."""

    # also drag points whose advisory ``fixed`` flag is set
    honor_fixed_hint: bool = False


@dataclass
class AdapterOK:
    """Successful SolveSpace solve."""

    model: SketchModel
    dof: int
    system: slvs.SolverSystem


@dataclass
class AdapterFail:
    """Failure information when SolveSpace cannot satisfy the constraints."""

    failures: List[int]
    dof: int


AdapterResult = Union[AdapterOK, AdapterFail]


class _LineRegistry:
    """Create at most one SolveSpace line per sketch segment."""

    def __init__(self, system: slvs.SolverSystem, wp: slvs.Entity, model: SketchModel, points: Mapping[str, slvs.Entity]):
        self._system = system
        self._wp = wp
        self._model = model
        self._points = points
        self._lines: Dict[SegmentId, slvs.Entity] = {}

    def line(self, constraint: Constraint, segment_id: SegmentId) -> slvs.Entity:
        if segment_id in self._lines:
            return self._lines[segment_id]
        segment = self._model.segment(segment_id)
        if segment is None:
            raise DanglingReferenceError(constraint.id, segment_id, "segment")
        for end in segment.endpoints:
            if end not in self._points:
                raise DanglingReferenceError(constraint.id, end, "point")
        entity = self._system.add_line_2d(wp=self._wp, p1=self._points[segment.p1], p2=self._points[segment.p2])
        self._lines[segment_id] = entity
        return entity


class SlvsAdapter:
    """Adapter bridging sketches with SolveSpace."""

    def solve(
        self,
        model: SketchModel,
        constraints: Iterable[Constraint],
        options: Optional[SlvsAdapterOptions] = None,
    ) -> AdapterResult:
        options = options or SlvsAdapterOptions()
        constraints = list(constraints)
        system = slvs.SolverSystem()
        wp = system.create_2d_base()
        # sketch entities live in their own group so the base workplane stays fixed
        system.set_group(2)

        # fix_point targets replace the starting position of their point
        start = model.point_coords()
        for constraint in constraints:
            if isinstance(constraint, FixPoint) and constraint.point in start:
                bx, by = start[constraint.point]
                start[constraint.point] = (
                    constraint.x if constraint.x is not None else bx,
                    constraint.y if constraint.y is not None else by,
                )

        point_entities: Dict[PointId, slvs.Entity] = {}
        for point in model.points:
            if point.id in point_entities:
                continue
            u, v = start[point.id]
            point_entities[point.id] = system.add_point_2d(wp=wp, u=u, v=v)

        def point_of(constraint: Constraint, point_id: PointId) -> slvs.Entity:
            entity = point_entities.get(point_id)
            if entity is None:
                raise DanglingReferenceError(constraint.id, point_id, "point")
            return entity

        lines = _LineRegistry(system, wp, model, point_entities)
        dragged: List[PointId] = []

        for constraint in constraints:
            if isinstance(constraint, Coincident):
                system.coincident(point_of(constraint, constraint.a), point_of(constraint, constraint.b))
            elif isinstance(constraint, Distance):
                system.distance(
                    point_of(constraint, constraint.a),
                    point_of(constraint, constraint.b),
                    constraint.distance,
                )
            elif isinstance(constraint, FixPoint):
                point_of(constraint, constraint.point)
                dragged.append(constraint.point)
            elif isinstance(constraint, Parallel):
                system.parallel(lines.line(constraint, constraint.first), lines.line(constraint, constraint.second))
            elif isinstance(constraint, Perpendicular):
                system.perpendicular(lines.line(constraint, constraint.first), lines.line(constraint, constraint.second))
            elif isinstance(constraint, Vertical):
                system.vertical(lines.line(constraint, constraint.segment), wp)
            elif isinstance(constraint, Horizontal):
                system.horizontal(lines.line(constraint, constraint.segment), wp)
            elif isinstance(constraint, Angle):
                degrees = abs(math.degrees(wrap_to_pi(constraint.angle)))
                system.angle(lines.line(constraint, constraint.first), lines.line(constraint, constraint.second), degrees)
            elif isinstance(constraint, PointOnLine):
                system.coincident(point_of(constraint, constraint.point), lines.line(constraint, constraint.segment))
            else:
                raise TypeError(f"unsupported constraint {constraint!r}")

        if options.honor_fixed_hint:
            dragged.extend(p.id for p in model.points if p.fixed)
        for point_id in dict.fromkeys(dragged):
            system.dragged(point_entities[point_id], wp)

        result = system.solve()
        failures = list(system.failures())
        if failures or result == slvs.ResultFlag.TOO_MANY_UNKNOWNS:
            if not failures and result == slvs.ResultFlag.TOO_MANY_UNKNOWNS:
                failures = [-1]
            logger.info("SolveSpace failed with %d failing constraint(s), dof=%d", len(failures), system.dof())
            return AdapterFail(failures, system.dof())

        solved = []
        for point in model.points:
            params = system.params(point_entities[point.id].params)
            solved.append(point.moved_to(float(params[0]), float(params[1])))
        logger.debug("SolveSpace solved %d point(s), dof=%d", len(solved), system.dof())
        return AdapterOK(model=model.with_points(solved), dof=system.dof(), system=system)


def solve_with_slvs(
    model: SketchModel,
    constraints: Iterable[Constraint],
    options: Optional[SlvsAdapterOptions] = None,
) -> AdapterResult:
    return SlvsAdapter().solve(model, constraints, options)
