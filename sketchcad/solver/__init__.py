"""Newton solver for 2D sketch constraints."""

from __future__ import annotations

from .config import get_default_solve_options, reset_default_solve_options, set_default_solve_options
from .constraints import (
    CONSTRAINT_TYPES,
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
    constraint_from_dict,
    constraint_to_dict,
    total_rows,
)
from .layout import UnknownLayout
from .math_utils import wrap_to_pi
from .model import (
    ConstraintShapeError,
    DanglingReferenceError,
    SingularSystemError,
    SketchSolverError,
    SolveOptions,
    SolveResult,
)
from .packing import VariablePacking
from .residuals import compile_constraints, evaluate_residuals, residual_breakdown
from .solver_core import solve
from .types import Point, Point2D, PointId, Segment, SegmentId, SketchModel

__all__ = [
    "Angle",
    "CONSTRAINT_TYPES",
    "Coincident",
    "Constraint",
    "ConstraintShapeError",
    "DanglingReferenceError",
    "Distance",
    "FixPoint",
    "Horizontal",
    "Parallel",
    "Perpendicular",
    "Point",
    "Point2D",
    "PointId",
    "PointOnLine",
    "Segment",
    "SegmentId",
    "SingularSystemError",
    "SketchModel",
    "SketchSolverError",
    "SolveOptions",
    "SolveResult",
    "UnknownLayout",
    "VariablePacking",
    "Vertical",
    "compile_constraints",
    "constraint_from_dict",
    "constraint_to_dict",
    "evaluate_residuals",
    "get_default_solve_options",
    "reset_default_solve_options",
    "residual_breakdown",
    "set_default_solve_options",
    "solve",
    "total_rows",
    "wrap_to_pi",
]
