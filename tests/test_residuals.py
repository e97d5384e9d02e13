import math
from functools import partial

import numpy as np
import pytest

from sketchcad.solver import (
    Angle,
    Coincident,
    Distance,
    FixPoint,
    Point,
    Segment,
    SketchModel,
    evaluate_residuals,
    residual_breakdown,
    wrap_to_pi,
)
from sketchcad.solver.residuals import (
    _angle_rows,
    _axis_rows,
    _coincident_rows,
    _distance_rows,
    _fix_point_rows,
    _parallel_rows,
    _perpendicular_rows,
    _point_on_line_rows,
)

TWO_SEGMENTS = np.array([0.1, 0.2, 3.0, 1.1, -0.5, 0.4, 0.7, 2.9])


def _numeric_derivatives(kernel, z, row, h=1e-6):
    n = z.size
    grad = np.zeros(n)
    hess = np.zeros((n, n))
    for i in range(n):
        step = np.zeros(n)
        step[i] = h
        plus = kernel(z + step)[row]
        minus = kernel(z - step)[row]
        grad[i] = (plus.value - minus.value) / (2 * h)
        hess[:, i] = (plus.gradient - minus.gradient) / (2 * h)
    return grad, hess


@pytest.mark.parametrize(
    "kernel, z",
    [
        (_coincident_rows, np.array([1.0, 2.0, -0.5, 3.0])),
        (partial(_fix_point_rows, x0=1.5, y0=-2.0), np.array([0.3, 0.4])),
        (partial(_distance_rows, distance=2.0), np.array([0.3, -1.2, 2.5, 0.7])),
        (_parallel_rows, TWO_SEGMENTS),
        (_perpendicular_rows, TWO_SEGMENTS),
        (partial(_angle_rows, angle=0.4), TWO_SEGMENTS),
        (partial(_axis_rows, vertical=True), np.array([0.2, -0.3, 1.7, 2.2])),
        (partial(_axis_rows, vertical=False), np.array([0.2, -0.3, 1.7, 2.2])),
        (_point_on_line_rows, np.array([1.5, 2.0, 0.2, -0.3, 4.0, 1.0])),
    ],
    ids=[
        "coincident",
        "fix_point",
        "distance",
        "parallel",
        "perpendicular",
        "angle",
        "vertical",
        "horizontal",
        "point_on_line",
    ],
)
def test_analytic_derivatives_match_finite_differences(kernel, z):
    rows = kernel(z)
    for k, row in enumerate(rows):
        grad_fd, hess_fd = _numeric_derivatives(kernel, z, k)
        np.testing.assert_allclose(row.gradient, grad_fd, atol=1e-6)
        np.testing.assert_allclose(row.hessian, hess_fd, atol=1e-5)
        np.testing.assert_allclose(row.hessian, row.hessian.T, atol=1e-12)


def test_residual_formulas_on_reference_geometry():
    z = np.array([0.0, 0.0, 4.0, 0.0, 0.0, 0.0, 0.0, 3.0])

    assert _parallel_rows(z)[0].value == pytest.approx(1.0)
    assert _perpendicular_rows(z)[0].value == pytest.approx(0.0, abs=1e-12)
    assert _angle_rows(z, angle=math.pi / 2)[0].value == pytest.approx(0.0, abs=1e-12)
    assert _axis_rows(z[:4], vertical=False)[0].value == pytest.approx(0.0)
    assert _axis_rows(z[:4], vertical=True)[0].value == pytest.approx(1.0)
    assert _distance_rows(np.array([0.0, 0.0, 3.0, 4.0]), distance=1.0)[0].value == pytest.approx(4.0)
    # P above the x-axis segment gives a positive signed distance
    assert _point_on_line_rows(np.array([5.0, 2.0, 0.0, 0.0, 10.0, 0.0]))[0].value == pytest.approx(2.0)


def test_angle_residual_wraps_across_pi():
    # u points along +x, v just below -x: phi is close to -pi
    z = np.array([0.0, 0.0, 1.0, 0.0, 0.0, 0.0, -1.0, -0.01])
    value = _angle_rows(z, angle=math.pi)[0].value

    assert -math.pi < value <= math.pi
    assert value == pytest.approx(0.01, abs=1e-4)


@pytest.mark.parametrize(
    "kernel, z",
    [
        (partial(_distance_rows, distance=1.0), np.zeros(4)),
        (_parallel_rows, np.zeros(8)),
        (_perpendicular_rows, np.zeros(8)),
        (partial(_angle_rows, angle=1.0), np.zeros(8)),
        (partial(_axis_rows, vertical=True), np.zeros(4)),
        (partial(_axis_rows, vertical=False), np.zeros(4)),
        (_point_on_line_rows, np.array([1.0, 1.0, 2.0, 2.0, 2.0, 2.0])),
    ],
)
def test_degenerate_geometry_stays_finite(kernel, z):
    for row in kernel(z):
        assert math.isfinite(row.value)
        assert np.all(np.isfinite(row.gradient))
        assert np.all(np.isfinite(row.hessian))


@pytest.mark.parametrize(
    "vertical, z, value, gradient",
    [
        (False, np.array([0.0, 0.0, 0.0, 1e-14]), 0.01, [0.0, -1e12, 0.0, 1e12]),
        (True, np.array([0.0, 0.0, 1e-14, 0.0]), 0.01, [-1e12, 0.0, 1e12, 0.0]),
    ],
)
def test_axis_rows_below_norm_floor_use_constant_denominator(vertical, z, value, gradient):
    (row,) = _axis_rows(z, vertical=vertical)

    assert row.value == pytest.approx(value)
    np.testing.assert_allclose(row.gradient, gradient, rtol=1e-9, atol=1e-6)
    np.testing.assert_allclose(row.hessian, np.zeros((4, 4)), atol=1e-6)


def test_parallel_rows_below_norm_floor_use_constant_denominator():
    # u = (1e-14, 0) is below the floor, v = (0, 2)
    z = np.array([0.0, 0.0, 1e-14, 0.0, 0.0, 0.0, 0.0, 2.0])

    (row,) = _parallel_rows(z)

    assert row.value == pytest.approx(0.01)
    np.testing.assert_allclose(row.gradient, [-1e12, 0.0, 1e12, 0.0, 0.0, 0.0, 0.0, 0.0], rtol=1e-9, atol=1e-6)


def test_point_on_line_rows_below_norm_floor_use_constant_denominator():
    # P = (0, 1), A = (0, 0), B = (1e-14, 0)
    z = np.array([0.0, 1.0, 0.0, 0.0, 1e-14, 0.0])

    (row,) = _point_on_line_rows(z)

    assert row.value == pytest.approx(0.01)
    np.testing.assert_allclose(row.gradient, [0.0, 0.01, -1e12, -0.01, 1e12, 0.0], rtol=1e-9, atol=1e-6)
    np.testing.assert_allclose(row.hessian, row.hessian.T)


@pytest.mark.parametrize(
    "angle, expected",
    [
        (0.0, 0.0),
        (math.pi, math.pi),
        (-math.pi, math.pi),
        (4.0, 4.0 - 2 * math.pi),
        (2.5 * math.pi, 0.5 * math.pi),
        (-2.5 * math.pi, -0.5 * math.pi),
    ],
)
def test_wrap_to_pi(angle, expected):
    assert wrap_to_pi(angle) == pytest.approx(expected)


def test_evaluate_residuals_applies_weight_and_reports_offsets():
    model = SketchModel.build(
        [Point("A", 0, 0), Point("B", 2, 0)],
    )
    constraints = [
        FixPoint("fixA", "A", x=1.0, y=0.0),
        Distance("dist", "A", "B", distance=1.0, weight=3.0),
        Coincident("co", "A", "B"),
    ]

    values, offsets = evaluate_residuals(model, constraints)

    assert offsets == [0, 2, 3]
    np.testing.assert_allclose(values, [-1.0, 0.0, 3.0, -2.0, 0.0])


def test_residual_breakdown_lists_every_constraint():
    model = SketchModel.build(
        [Point("A", 0, 0), Point("B", 4, 0), Point("C", 0, 0), Point("D", 0, 3)],
        [Segment("s1", "A", "B"), Segment("s2", "C", "D")],
    )
    report = residual_breakdown(model, [Angle("ang", "s1", "s2", angle=0.5 * math.pi)])

    assert [entry["id"] for entry in report] == ["ang"]
    assert report[0]["type"] == "angle"
    assert report[0]["max_abs"] == pytest.approx(0.0, abs=1e-12)
