from __future__ import annotations

import logging
from typing import Iterable, Optional

import numpy as np

from ..logging_utils import apply_debug_logging
from .assembler import assemble, stationarity_cost
from .config import get_default_solve_options
from .constraints import Constraint
from .layout import UnknownLayout
from .linalg import solve_linear_system
from .model import SolveOptions, SolveResult
from .residuals import compile_constraints
from .types import SketchModel

logger = logging.getLogger(__name__)


def solve(
    model: SketchModel,
    constraints: Iterable[Constraint],
    options: Optional[SolveOptions] = None,
) -> SolveResult:
    """Move the points of ``model`` as little as possible so that ``constraints`` hold.

    Runs Newton's method on the Lagrangian stationarity system (see
    :mod:`sketchcad.solver.assembler`) until the squared norm of the
    coordinate part of a step drops below ``options.tolerance`` or
    ``options.max_iterations`` is reached.  ``model`` is left untouched; the
    solved geometry is returned in a new :class:`SketchModel`.
    """

    options = options or get_default_solve_options()
    constraints = list(constraints)
    system = compile_constraints(model, constraints, strict=options.strict_references)
    packing = system.packing
    layout = UnknownLayout(row_count=system.row_count, point_count=packing.point_count)
    base = packing.to_vector(model)
    unknowns = np.zeros(layout.size, dtype=float)
    warnings = list(system.warnings)

    logger.debug(
        "solve: %d point(s), %d constraint(s), %d row(s), system size %d",
        packing.point_count,
        len(constraints),
        layout.row_count,
        layout.size,
    )

    converged = False
    iterations = 0
    regularized_steps = 0
    for iteration in range(1, options.max_iterations + 1):
        current = assemble(
            system,
            layout,
            base,
            unknowns,
            regularization=options.regularization,
        )
        step = solve_linear_system(
            current.jacobian,
            -current.residual,
            damping=options.fallback_damping,
        )
        if step.regularized:
            regularized_steps += 1
        unknowns = unknowns + step.solution
        iterations = iteration

        step_sq = float(np.dot(step.solution[layout.coordinates], step.solution[layout.coordinates]))
        logger.debug(
            "solve: iteration=%d cost=%.6g step_sq=%.6g regularized=%s",
            iteration,
            stationarity_cost(current.residual),
            step_sq,
            step.regularized,
        )
        if step_sq < options.tolerance:
            converged = True
            break

    final = assemble(system, layout, base, unknowns, with_jacobian=False)
    cost = stationarity_cost(final.residual)
    coords = base + unknowns[layout.coordinates]
    solved = packing.from_vector(model, coords)
    values = final.constraint_values
    max_residual = float(np.max(np.abs(values))) if values.size else 0.0

    if regularized_steps:
        warnings.append(
            f"{regularized_steps} Newton step(s) needed diagonal damping {options.fallback_damping:.1e}"
        )
    if not converged:
        warnings.append(
            f"solver did not converge within {options.max_iterations} iteration(s); "
            f"max residual {max_residual:.3e}"
        )
        logger.info(
            "solve: stopped after %d iteration(s) without converging (cost=%.3e)", iterations, cost
        )
    else:
        logger.debug("solve: converged after %d iteration(s) cost=%.3e", iterations, cost)

    return SolveResult(
        model=solved,
        iterations=iterations,
        cost=cost,
        converged=converged,
        max_residual=max_residual,
        residual_breakdown=system.breakdown(coords),
        warnings=warnings,
    )


apply_debug_logging(globals(), logger=logger)


__all__ = ["solve"]
