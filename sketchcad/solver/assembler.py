"""Assembly of the Lagrangian stationarity system solved at every Newton step.

For base coordinates ``x0`` and the unknown vector ``[λ, dx]`` the system is

    g_k(x0 + dx)                        = 0   for every residual row k
    Σ_k λ_k ∂g_k/∂x_p (x0 + dx) + dx_p  = 0   for every coordinate p

i.e. the KKT conditions of ``min ½‖dx‖²`` subject to ``g(x0 + dx) = 0``.
Its Jacobian is the symmetric saddle-point matrix

    [ 0    G                      ]
    [ Gᵀ   I + Σ_k λ_k H_k + ε I ]

with ``G`` the constraint gradients and ``H_k`` the row Hessians.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .layout import UnknownLayout
from .residuals import CompiledConstraint, CompiledSystem

logger = logging.getLogger(__name__)


@dataclass
class StationaritySystem:
    residual: np.ndarray
    jacobian: np.ndarray
    constraint_values: np.ndarray


def _local_slots(compiled: CompiledConstraint, layout: UnknownLayout) -> Tuple[np.ndarray, np.ndarray]:
    """Return layout slots of the variable local coordinates and their local positions."""

    slots: List[int] = []
    positions: List[int] = []
    for local, point_index in enumerate(compiled.point_indices):
        for axis, slot in enumerate(layout.point_slots(point_index)):
            if slot is None:
                continue
            slots.append(slot)
            positions.append(2 * local + axis)
    return np.asarray(slots, dtype=int), np.asarray(positions, dtype=int)


def assemble(
    system: CompiledSystem,
    layout: UnknownLayout,
    base: np.ndarray,
    unknowns: np.ndarray,
    *,
    regularization: float = 1e-12,
    with_jacobian: bool = True,
) -> StationaritySystem:
    """Evaluate the stationarity residual (and Jacobian) at ``unknowns``."""

    size = layout.size
    multipliers = unknowns[layout.multipliers]
    dx = unknowns[layout.coordinates]
    trial = base + dx

    residual = np.zeros(size, dtype=float)
    residual[layout.coordinates] = dx
    jacobian = np.zeros((size, size), dtype=float) if with_jacobian else np.zeros((0, 0))
    values = np.zeros(layout.row_count, dtype=float)

    for compiled in system.constraints:
        slots, positions = _local_slots(compiled, layout)
        rows = compiled.evaluate(trial)
        for offset, row in enumerate(rows):
            k = layout.multiplier(compiled.row_offset + offset)
            values[k] = row.value
            residual[k] = row.value
            if slots.size == 0:
                continue
            grad = row.gradient[positions]
            lam = multipliers[k]
            # repeated slots (shared endpoints) must accumulate
            np.add.at(residual, slots, lam * grad)
            if not with_jacobian:
                continue
            np.add.at(jacobian, (k, slots), grad)
            np.add.at(jacobian, (slots, k), grad)
            if row.linear or lam == 0.0:
                continue
            curvature = lam * row.hessian[np.ix_(positions, positions)]
            np.add.at(jacobian, (slots[:, None], slots[None, :]), curvature)

    if with_jacobian and layout.coordinate_count:
        diag = np.arange(layout.row_count, size)
        jacobian[diag, diag] += 1.0 + regularization

    logger.debug(
        "Assembled stationarity system size=%d rows=%d |F|=%.3e",
        size,
        layout.row_count,
        float(np.linalg.norm(residual)) if size else 0.0,
    )
    return StationaritySystem(residual=residual, jacobian=jacobian, constraint_values=values)


def stationarity_cost(residual: np.ndarray) -> float:
    return 0.5 * float(np.dot(residual, residual))


__all__ = ["StationaritySystem", "assemble", "stationarity_cost"]
