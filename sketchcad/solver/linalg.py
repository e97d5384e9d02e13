"""Dense LU solve of the Newton system with one regularized retry."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.linalg import LinAlgError, LinAlgWarning, lu_factor, lu_solve

from .model import SingularSystemError

logger = logging.getLogger(__name__)

# pivots this small relative to the largest one count as a failed factorization
_PIVOT_RTOL = 1e-13


@dataclass(frozen=True)
class LinearSolveResult:
    solution: np.ndarray
    regularized: bool = False


def _try_lu_solve(matrix: np.ndarray, rhs: np.ndarray) -> Optional[np.ndarray]:
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", LinAlgWarning)
            lu, piv = lu_factor(matrix, check_finite=True)
    except (LinAlgError, LinAlgWarning, ValueError) as exc:
        logger.debug("LU factorization failed: %s", exc)
        return None

    pivots = np.abs(np.diag(lu))
    largest = float(pivots.max())
    if largest == 0.0 or float(pivots.min()) <= _PIVOT_RTOL * largest:
        logger.debug("LU factorization is singular (min pivot %.3e, max %.3e)", float(pivots.min()), largest)
        return None

    solution = lu_solve((lu, piv), rhs, check_finite=False)
    if not np.all(np.isfinite(solution)):
        logger.debug("LU solve produced non-finite values")
        return None
    return solution


def solve_linear_system(matrix: np.ndarray, rhs: np.ndarray, *, damping: float = 1e-8) -> LinearSolveResult:
    """Solve ``matrix @ x = rhs``.

    The matrix is square but indefinite, so a general LU factorization is
    used.  When it fails, ``damping`` is added to the whole diagonal and the
    solve is retried once; a second failure raises
    :class:`SingularSystemError`.
    """

    matrix = np.asarray(matrix, dtype=float)
    rhs = np.asarray(rhs, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"expected a square matrix, got shape {matrix.shape}")
    if matrix.shape[0] != rhs.shape[0]:
        raise ValueError(f"right-hand side of length {rhs.shape[0]} does not match matrix {matrix.shape}")
    if matrix.shape[0] == 0:
        return LinearSolveResult(solution=np.zeros(0, dtype=float))

    solution = _try_lu_solve(matrix, rhs)
    if solution is not None:
        return LinearSolveResult(solution=solution)

    logger.debug("Newton system is singular; retrying with diagonal damping %.1e", damping)
    damped = matrix + damping * np.eye(matrix.shape[0])
    solution = _try_lu_solve(damped, rhs)
    if solution is None:
        raise SingularSystemError(
            f"Newton system of size {matrix.shape[0]} is singular even with damping {damping:.1e}"
        )
    return LinearSolveResult(solution=solution, regularized=True)


__all__ = ["LinearSolveResult", "solve_linear_system"]
