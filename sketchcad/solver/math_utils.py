from __future__ import annotations

import math
from typing import Tuple

import numpy as np

_DENOM_EPS = 1e-12
_TWO_PI = 2.0 * math.pi


def _cross_2d(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[1] - a[1] * b[0])


def _dot_2d(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[0] + a[1] * b[1])


def _safe_norm(vec: np.ndarray) -> float:
    return max(math.hypot(float(vec[0]), float(vec[1])), _DENOM_EPS)


def _inverse_norm_derivatives(vec: np.ndarray) -> Tuple[float, np.ndarray, np.ndarray]:
    """Value, gradient and Hessian of ``1 / _safe_norm(vec)``.

    Below the floor the norm is the constant ``_DENOM_EPS``, so both
    derivatives vanish there.
    """

    r = math.hypot(float(vec[0]), float(vec[1]))
    if r < _DENOM_EPS:
        return 1.0 / _DENOM_EPS, np.zeros(2), np.zeros((2, 2))
    grad = -np.asarray(vec, dtype=float) / r**3
    hess = (3.0 * np.outer(vec, vec) - r * r * np.eye(2)) / r**5
    return 1.0 / r, grad, hess


def wrap_to_pi(angle: float) -> float:
    """Shift ``angle`` by multiples of 2π into ``(-π, π]``."""

    if not math.isfinite(angle):
        return angle
    wrapped = float(angle)
    while wrapped > math.pi:
        wrapped -= _TWO_PI
    while wrapped <= -math.pi:
        wrapped += _TWO_PI
    return wrapped


def _direction_angle_derivatives(vec: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Gradient and Hessian of ``atan2(vy, vx)`` with respect to ``vec``."""

    vx = float(vec[0])
    vy = float(vec[1])
    r2 = max(vx * vx + vy * vy, _DENOM_EPS * _DENOM_EPS)
    r4 = r2 * r2
    grad = np.array([-vy / r2, vx / r2], dtype=float)
    off = (vy * vy - vx * vx) / r4
    hess = np.array(
        [
            [2.0 * vx * vy / r4, off],
            [off, -2.0 * vx * vy / r4],
        ],
        dtype=float,
    )
    return grad, hess


def _pull_back(grad: np.ndarray, hess: np.ndarray, jac: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Chain rule through the linear map ``y = jac @ z``."""

    return jac.T @ grad, jac.T @ hess @ jac


# u = B - A over [ax, ay, bx, by]
SEGMENT_DIRECTION = np.array(
    [
        [-1.0, 0.0, 1.0, 0.0],
        [0.0, -1.0, 0.0, 1.0],
    ]
)

# d = A - B over [ax, ay, bx, by]
POINT_DIFFERENCE = -SEGMENT_DIRECTION

# (u, v) over the endpoints of two segments [a1, a2, b1, b2]
SEGMENT_PAIR_DIRECTIONS = np.block(
    [
        [SEGMENT_DIRECTION, np.zeros((2, 4))],
        [np.zeros((2, 4)), SEGMENT_DIRECTION],
    ]
)

# (u, w) = (B - A, P - A) over [px, py, ax, ay, bx, by]
SEGMENT_AND_OFFSET = np.array(
    [
        [0.0, 0.0, -1.0, 0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, -1.0, 0.0, 1.0],
        [1.0, 0.0, -1.0, 0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0, -1.0, 0.0, 0.0],
    ]
)


__all__ = [
    "POINT_DIFFERENCE",
    "SEGMENT_AND_OFFSET",
    "SEGMENT_DIRECTION",
    "SEGMENT_PAIR_DIRECTIONS",
    "_DENOM_EPS",
    "_cross_2d",
    "_direction_angle_derivatives",
    "_dot_2d",
    "_inverse_norm_derivatives",
    "_pull_back",
    "_safe_norm",
    "wrap_to_pi",
]
