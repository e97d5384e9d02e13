import json
import math
from typing import Any, Dict, Iterable, Optional

from .solver.constraints import Angle, Constraint, constraint_to_dict
from .solver.model import SolveOptions, SolveResult
from .solver.types import Point, Segment, SketchModel


def _num(value: float) -> str:
    return f"{value:g}"


def format_point(point: Point) -> str:
    suffix = " [fixed]" if point.fixed else ""
    return f"point {point.id} ({_num(point.x)}, {_num(point.y)}){suffix}"


def format_segment(segment: Segment) -> str:
    return f"segment {segment.id} {segment.p1}-{segment.p2}"


def format_constraint(constraint: Constraint) -> str:
    head = f"{constraint.kind} {constraint.id}: {', '.join(constraint.refs)}"
    params = constraint.params()
    parts = []
    for key in sorted(params):
        value = params[key]
        if isinstance(constraint, Angle) and key == "angle":
            parts.append(f"angle={_num(value)} ({_num(math.degrees(value))}°)")
        else:
            parts.append(f"{key}={_num(value)}")
    if constraint.weight != 1.0:
        parts.append(f"weight={_num(constraint.weight)}")
    if parts:
        head += " [" + " ".join(parts) + "]"
    return head


def print_sketch(model: SketchModel, constraints: Iterable[Constraint] = ()) -> str:
    lines = [format_point(p) for p in model.points]
    lines.extend(format_segment(s) for s in model.segments)
    lines.extend(format_constraint(c) for c in constraints)
    return "\n".join(lines)


def format_result(result: SolveResult) -> str:
    lines = [
        f"Converged: {result.converged}",
        f"Iterations: {result.iterations}",
        f"Cost: {result.cost:.3e}",
        f"Max residual: {result.max_residual:.3e}",
        "Coordinates:",
    ]
    for point in result.model.points:
        lines.append(f"  {point.id}: ({point.x:.6f}, {point.y:.6f})")
    if result.residual_breakdown:
        lines.append("Residuals:")
        for entry in result.residual_breakdown:
            lines.append(f"  {entry['id']} ({entry['type']}): {entry['max_abs']:.3e}")
    if result.warnings:
        lines.append("Warnings:")
        for warning in result.warnings:
            lines.append(f"  - {warning}")
    return "\n".join(lines)


def sketch_to_dict(
    model: SketchModel,
    constraints: Iterable[Constraint] = (),
    options: Optional[SolveOptions] = None,
) -> Dict[str, Any]:
    """Inverse of :func:`sketchcad.parser.parse_sketch`."""

    points = []
    for p in model.points:
        entry: Dict[str, Any] = {"id": p.id, "x": p.x, "y": p.y}
        if p.fixed:
            entry["fixed"] = True
        points.append(entry)
    payload: Dict[str, Any] = {
        "points": points,
        "segments": [{"id": s.id, "p1": s.p1, "p2": s.p2} for s in model.segments],
        "constraints": [constraint_to_dict(c) for c in constraints],
    }
    if options is not None:
        payload["options"] = {
            "max_iterations": options.max_iterations,
            "tolerance": options.tolerance,
            "regularization": options.regularization,
            "fallback_damping": options.fallback_damping,
            "strict_references": options.strict_references,
        }
    return payload


def dump_sketch(
    model: SketchModel,
    constraints: Iterable[Constraint] = (),
    options: Optional[SolveOptions] = None,
    *,
    indent: int = 2,
) -> str:
    return json.dumps(sketch_to_dict(model, constraints, options), indent=indent)
