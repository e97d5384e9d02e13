"""Constraint residual rows with exact first and second derivatives.

Every constraint type is evaluated on a small *local* coordinate vector made
of the coordinates of the points it touches (segment references expand to
their two endpoints).  A kernel returns, per residual row, the value together
with its gradient and Hessian with respect to that local vector; the
assembler scatters them into the global system.

Parallel, perpendicular, vertical, horizontal and point-on-line residuals
are quotients over floored norms, ``cross(u, v) / (|u| |v|)``,
``dot(u, v) / (|u| |v|)``, ``u_x / |u|``, ``u_y / |u|`` and
``cross(u, w) / |u|``, and are differentiated as such; below the floor the
norm is constant.  The angle residual is ``wrap(φ - θ)`` with
``φ = atan2(cross(u, v), dot(u, v))``.  It is undefined for a zero-length
segment, where its derivatives are zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .constraints import (
    POINT,
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
from .math_utils import (
    POINT_DIFFERENCE,
    SEGMENT_AND_OFFSET,
    SEGMENT_DIRECTION,
    SEGMENT_PAIR_DIRECTIONS,
    _cross_2d,
    _direction_angle_derivatives,
    _dot_2d,
    _inverse_norm_derivatives,
    _pull_back,
    _safe_norm,
    wrap_to_pi,
)
from .model import DanglingReferenceError
from .packing import VariablePacking
from .types import PointId, SketchModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowDerivatives:
    value: float
    gradient: np.ndarray
    hessian: np.ndarray
    linear: bool = False


Kernel = Callable[[np.ndarray], List[RowDerivatives]]


def _linear_row(value: float, gradient: Sequence[float]) -> RowDerivatives:
    grad = np.asarray(gradient, dtype=float)
    return RowDerivatives(value, grad, np.zeros((grad.size, grad.size)), linear=True)


def _coincident_rows(z: np.ndarray) -> List[RowDerivatives]:
    return [
        _linear_row(z[0] - z[2], [1.0, 0.0, -1.0, 0.0]),
        _linear_row(z[1] - z[3], [0.0, 1.0, 0.0, -1.0]),
    ]


def _fix_point_rows(z: np.ndarray, *, x0: float, y0: float) -> List[RowDerivatives]:
    return [
        _linear_row(z[0] - x0, [1.0, 0.0]),
        _linear_row(z[1] - y0, [0.0, 1.0]),
    ]


def _distance_rows(z: np.ndarray, *, distance: float) -> List[RowDerivatives]:
    d = POINT_DIFFERENCE @ z
    r = _safe_norm(d)
    grad_d = d / r
    hess_d = (np.eye(2) - np.outer(d, d) / (r * r)) / r
    grad, hess = _pull_back(grad_d, hess_d, POINT_DIFFERENCE)
    return [RowDerivatives(r - distance, grad, hess)]


def _relative_angle_terms(z: np.ndarray):
    """Return ``(u, v, grad_phi, hess_phi)`` over the 8 endpoint coordinates."""

    y = SEGMENT_PAIR_DIRECTIONS @ z
    u = y[0:2]
    v = y[2:4]
    grad_u, hess_u = _direction_angle_derivatives(u)
    grad_v, hess_v = _direction_angle_derivatives(v)
    grad_phi = np.concatenate([-grad_u, grad_v])
    hess_phi = np.zeros((4, 4))
    hess_phi[0:2, 0:2] = -hess_u
    hess_phi[2:4, 2:4] = hess_v
    return u, v, grad_phi, hess_phi


_SKEW = np.array([[0.0, 1.0], [-1.0, 0.0]])

# second derivatives of cross(u, v) and dot(u, v) over [u, v]
_CROSS_HESSIAN = np.block([[np.zeros((2, 2)), _SKEW], [_SKEW.T, np.zeros((2, 2))]])
_DOT_HESSIAN = np.block([[np.zeros((2, 2)), np.eye(2)], [np.eye(2), np.zeros((2, 2))]])


def _normalized_pair_row(
    z: np.ndarray,
    numerator: float,
    grad_n: np.ndarray,
    hess_n: np.ndarray,
) -> RowDerivatives:
    """Row for ``numerator(u, v) / (|u| |v|)`` with both norms floored."""

    y = SEGMENT_PAIR_DIRECTIONS @ z
    s_u, grad_su, hess_su = _inverse_norm_derivatives(y[0:2])
    s_v, grad_sv, hess_sv = _inverse_norm_derivatives(y[2:4])
    scale = s_u * s_v
    grad_scale = np.concatenate([s_v * grad_su, s_u * grad_sv])
    hess_scale = np.zeros((4, 4))
    hess_scale[0:2, 0:2] = s_v * hess_su
    hess_scale[2:4, 2:4] = s_u * hess_sv
    hess_scale[0:2, 2:4] = np.outer(grad_su, grad_sv)
    hess_scale[2:4, 0:2] = hess_scale[0:2, 2:4].T

    grad_y = scale * grad_n + numerator * grad_scale
    hess_y = (
        scale * hess_n
        + np.outer(grad_n, grad_scale)
        + np.outer(grad_scale, grad_n)
        + numerator * hess_scale
    )
    grad, hess = _pull_back(grad_y, hess_y, SEGMENT_PAIR_DIRECTIONS)
    return RowDerivatives(numerator * scale, grad, hess)


def _parallel_rows(z: np.ndarray) -> List[RowDerivatives]:
    y = SEGMENT_PAIR_DIRECTIONS @ z
    u = y[0:2]
    v = y[2:4]
    grad_n = np.array([v[1], -v[0], -u[1], u[0]])
    return [_normalized_pair_row(z, _cross_2d(u, v), grad_n, _CROSS_HESSIAN)]


def _perpendicular_rows(z: np.ndarray) -> List[RowDerivatives]:
    y = SEGMENT_PAIR_DIRECTIONS @ z
    u = y[0:2]
    v = y[2:4]
    grad_n = np.array([v[0], v[1], u[0], u[1]])
    return [_normalized_pair_row(z, _dot_2d(u, v), grad_n, _DOT_HESSIAN)]


def _angle_rows(z: np.ndarray, *, angle: float) -> List[RowDerivatives]:
    u, v, grad_phi, hess_phi = _relative_angle_terms(z)
    phi = math.atan2(_cross_2d(u, v), _dot_2d(u, v))
    grad, hess = _pull_back(grad_phi, hess_phi, SEGMENT_PAIR_DIRECTIONS)
    return [RowDerivatives(wrap_to_pi(phi - angle), grad, hess)]


def _axis_rows(z: np.ndarray, *, vertical: bool) -> List[RowDerivatives]:
    u = SEGMENT_DIRECTION @ z
    s, grad_s, hess_s = _inverse_norm_derivatives(u)
    # vertical: u_x / |u|, horizontal: u_y / |u|
    axis = 0 if vertical else 1
    unit = np.zeros(2)
    unit[axis] = 1.0
    component = float(u[axis])
    grad_u = s * unit + component * grad_s
    hess_u = np.outer(unit, grad_s) + np.outer(grad_s, unit) + component * hess_s
    grad, hess = _pull_back(grad_u, hess_u, SEGMENT_DIRECTION)
    return [RowDerivatives(component * s, grad, hess)]


def _point_on_line_rows(z: np.ndarray) -> List[RowDerivatives]:
    y = SEGMENT_AND_OFFSET @ z
    u = y[0:2]
    w = y[2:4]
    s, grad_s, hess_s = _inverse_norm_derivatives(u)
    c = _cross_2d(u, w)
    dc_du = np.array([w[1], -w[0]])
    dc_dw = np.array([-u[1], u[0]])

    grad_y = np.concatenate([s * dc_du + c * grad_s, s * dc_dw])
    hess_y = np.zeros((4, 4))
    hess_y[0:2, 0:2] = np.outer(dc_du, grad_s) + np.outer(grad_s, dc_du) + c * hess_s
    cross_block = s * _SKEW + np.outer(grad_s, dc_dw)
    hess_y[0:2, 2:4] = cross_block
    hess_y[2:4, 0:2] = cross_block.T
    grad, hess = _pull_back(grad_y, hess_y, SEGMENT_AND_OFFSET)
    return [RowDerivatives(c * s, grad, hess)]


@dataclass(frozen=True)
class CompiledConstraint:
    """A constraint bound to point indices of one packing."""

    constraint: Constraint
    row_offset: int
    point_indices: Tuple[Optional[int], ...]
    kernel: Kernel

    @property
    def row_count(self) -> int:
        return type(self.constraint).rows

    def local_coordinates(self, coords: np.ndarray) -> np.ndarray:
        z = np.zeros(2 * len(self.point_indices), dtype=float)
        for slot, index in enumerate(self.point_indices):
            if index is None:
                continue
            z[2 * slot] = coords[2 * index]
            z[2 * slot + 1] = coords[2 * index + 1]
        return z

    def evaluate(self, coords: np.ndarray) -> List[RowDerivatives]:
        rows = self.kernel(self.local_coordinates(coords))
        weight = self.constraint.weight
        if weight == 1.0:
            return rows
        return [
            RowDerivatives(row.value * weight, row.gradient * weight, row.hessian * weight, row.linear)
            for row in rows
        ]


@dataclass
class CompiledSystem:
    packing: VariablePacking
    constraints: List[CompiledConstraint]
    row_count: int
    warnings: List[str] = field(default_factory=list)

    def residual_vector(self, coords: np.ndarray) -> np.ndarray:
        values = np.zeros(self.row_count, dtype=float)
        for compiled in self.constraints:
            for offset, row in enumerate(compiled.evaluate(coords)):
                values[compiled.row_offset + offset] = row.value
        return values

    def breakdown(self, coords: np.ndarray) -> List[Dict[str, object]]:
        report: List[Dict[str, object]] = []
        for compiled in self.constraints:
            values = [row.value for row in compiled.evaluate(coords)]
            report.append(
                {
                    "id": compiled.constraint.id,
                    "type": compiled.constraint.kind,
                    "values": values,
                    "max_abs": max((abs(v) for v in values), default=0.0),
                }
            )
        return report


class _ReferenceResolver:
    def __init__(self, model: SketchModel, packing: VariablePacking, strict: bool):
        self._model = model
        self._packing = packing
        self._strict = strict
        self.warnings: List[str] = []

    def _missing(self, constraint: Constraint, reference: str, kind: str) -> None:
        if self._strict:
            raise DanglingReferenceError(constraint.id, reference, kind)
        message = (
            f"constraint '{constraint.id}' references missing {kind} '{reference}'; "
            "using the origin instead"
        )
        logger.warning(message)
        self.warnings.append(message)

    def point(self, constraint: Constraint, point_id: PointId) -> Optional[int]:
        index = self._packing.index_of(point_id)
        if index is None:
            self._missing(constraint, point_id, "point")
        return index

    def segment(self, constraint: Constraint, segment_id: str) -> Tuple[Optional[int], Optional[int]]:
        segment = self._model.segment(segment_id)
        if segment is None:
            self._missing(constraint, segment_id, "segment")
            return (None, None)
        return (self.point(constraint, segment.p1), self.point(constraint, segment.p2))

    def indices(self, constraint: Constraint) -> Tuple[Optional[int], ...]:
        out: List[Optional[int]] = []
        for role, ref in constraint.typed_refs():
            if role == POINT:
                out.append(self.point(constraint, ref))
            else:
                out.extend(self.segment(constraint, ref))
        return tuple(out)


def _kernel_for(constraint: Constraint, model: SketchModel) -> Kernel:
    if isinstance(constraint, Coincident):
        return _coincident_rows
    if isinstance(constraint, Distance):
        return partial(_distance_rows, distance=constraint.distance)
    if isinstance(constraint, FixPoint):
        base = model.point(constraint.point)
        base_x, base_y = base.coords if base is not None else (0.0, 0.0)
        x0 = constraint.x if constraint.x is not None else base_x
        y0 = constraint.y if constraint.y is not None else base_y
        return partial(_fix_point_rows, x0=x0, y0=y0)
    if isinstance(constraint, Parallel):
        return _parallel_rows
    if isinstance(constraint, Perpendicular):
        return _perpendicular_rows
    if isinstance(constraint, Vertical):
        return partial(_axis_rows, vertical=True)
    if isinstance(constraint, Horizontal):
        return partial(_axis_rows, vertical=False)
    if isinstance(constraint, Angle):
        return partial(_angle_rows, angle=constraint.angle)
    if isinstance(constraint, PointOnLine):
        return _point_on_line_rows
    raise TypeError(f"unsupported constraint {constraint!r}")


def compile_constraints(
    model: SketchModel,
    constraints: Sequence[Constraint],
    *,
    packing: Optional[VariablePacking] = None,
    strict: bool = True,
) -> CompiledSystem:
    """Bind ``constraints`` to the point layout of ``model``.

    With ``strict`` a reference to a missing point or segment raises
    :class:`DanglingReferenceError`; otherwise the missing entity is treated
    as a constant point at the origin and a warning is recorded.
    """

    packing = packing or VariablePacking.from_model(model)
    resolver = _ReferenceResolver(model, packing, strict)
    compiled: List[CompiledConstraint] = []
    offset = 0
    for constraint in constraints:
        indices = resolver.indices(constraint)
        compiled.append(
            CompiledConstraint(
                constraint=constraint,
                row_offset=offset,
                point_indices=indices,
                kernel=_kernel_for(constraint, model),
            )
        )
        offset += type(constraint).rows
    logger.debug("Compiled %d constraint(s) into %d residual row(s)", len(compiled), offset)
    return CompiledSystem(packing=packing, constraints=compiled, row_count=offset, warnings=resolver.warnings)


def evaluate_residuals(
    model: SketchModel,
    constraints: Sequence[Constraint],
    *,
    strict: bool = True,
) -> Tuple[np.ndarray, List[int]]:
    """Return the weighted residual vector of ``model`` and each constraint's first row."""

    system = compile_constraints(model, constraints, strict=strict)
    coords = system.packing.to_vector(model)
    return system.residual_vector(coords), [c.row_offset for c in system.constraints]


def residual_breakdown(
    model: SketchModel,
    constraints: Sequence[Constraint],
    *,
    strict: bool = True,
) -> List[Dict[str, object]]:
    system = compile_constraints(model, constraints, strict=strict)
    return system.breakdown(system.packing.to_vector(model))


__all__ = [
    "CompiledConstraint",
    "CompiledSystem",
    "RowDerivatives",
    "compile_constraints",
    "evaluate_residuals",
    "residual_breakdown",
]
