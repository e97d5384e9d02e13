import math

import numpy as np
import pytest

from sketchcad.solver import (
    Angle,
    Coincident,
    DanglingReferenceError,
    Distance,
    FixPoint,
    Horizontal,
    Parallel,
    Perpendicular,
    Point,
    PointOnLine,
    Segment,
    SketchModel,
    SolveOptions,
    Vertical,
    evaluate_residuals,
    solve,
)


def _base_model() -> SketchModel:
    return SketchModel.build(
        [
            Point("A", 0, 0),
            Point("B", 10, 0),
            Point("C", 0, 0),
            Point("D", 0, 10),
            Point("P", 5, 2),
        ],
        [Segment("s1", "A", "B"), Segment("s2", "C", "D")],
    )


def _moved(model: SketchModel, point_id: str, x: float, y: float) -> SketchModel:
    return model.with_points(p.moved_to(x, y) if p.id == point_id else p for p in model.points)


def _coords(result, point_id):
    return result.model.point(point_id).coords


def test_distance_with_fixed_point_converges():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 2, 0)])
    constraints = [
        FixPoint("fixA", "A", x=0.0, y=0.0),
        Distance("dist", "A", "B", distance=1.0),
    ]

    result = solve(model, constraints, SolveOptions(max_iterations=50))

    assert result.converged
    bx, by = _coords(result, "B")
    assert math.hypot(bx, by) == pytest.approx(1.0, abs=1e-3)
    # minimal displacement keeps B on the x-axis
    assert (bx, by) == pytest.approx((1.0, 0.0), abs=1e-6)
    assert _coords(result, "A") == pytest.approx((0.0, 0.0), abs=1e-9)
    assert result.max_residual == pytest.approx(0.0, abs=1e-9)


def test_solve_does_not_mutate_input():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 2, 0)])
    before = model.point_coords()

    result = solve(model, [Distance("dist", "A", "B", distance=1.0)])

    assert model.point_coords() == before
    assert result.model is not model


def test_coincident_moves_free_point_onto_fixed_one():
    model = SketchModel.build([Point("A", 1, 1), Point("B", 4, -3)])
    constraints = [FixPoint("fixA", "A"), Coincident("co", "A", "B")]

    result = solve(model, constraints)

    assert result.converged
    assert _coords(result, "B") == pytest.approx((1.0, 1.0), abs=1e-9)


def test_coincident_without_fix_meets_halfway():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 2, 2)])

    result = solve(model, [Coincident("co", "A", "B")])

    assert result.converged
    assert _coords(result, "A") == pytest.approx((1.0, 1.0), abs=1e-9)
    assert _coords(result, "B") == pytest.approx((1.0, 1.0), abs=1e-9)


def test_fix_point_defaults_to_base_coordinates():
    model = SketchModel.build([Point("A", 1, 2), Point("B", 4, 6)])
    constraints = [FixPoint("fixA", "A"), Distance("dist", "A", "B", distance=10.0)]

    result = solve(model, constraints)

    assert result.converged
    assert _coords(result, "A") == pytest.approx((1.0, 2.0), abs=1e-9)
    assert _coords(result, "B") == pytest.approx((7.0, 10.0), abs=1e-6)


def test_perpendicular_horizontal_vertical_on_satisfied_sketch():
    model = _base_model()
    constraints = [
        FixPoint("fixA", "A", x=0.0, y=0.0),
        FixPoint("fixC", "C", x=0.0, y=0.0),
        Horizontal("horizontal", "s1"),
        Vertical("vertical", "s2"),
        Perpendicular("perp", "s1", "s2"),
    ]

    result = solve(model, constraints)

    assert result.converged
    assert result.max_residual == pytest.approx(0.0, abs=1e-9)
    for point in model.points:
        assert _coords(result, point.id) == pytest.approx(point.coords, abs=1e-9)


def test_perpendicular_horizontal_vertical_from_perturbed_start():
    model = _moved(_moved(_base_model(), "B", 10.0, 0.7), "D", 0.6, 10.0)
    constraints = [
        FixPoint("fixA", "A", x=0.0, y=0.0),
        FixPoint("fixC", "C", x=0.0, y=0.0),
        Horizontal("horizontal", "s1"),
        Vertical("vertical", "s2"),
        Perpendicular("perp", "s1", "s2"),
    ]

    result = solve(model, constraints)

    assert result.converged
    assert result.max_residual == pytest.approx(0.0, abs=1e-9)
    bx, by = _coords(result, "B")
    dx, dy = _coords(result, "D")
    assert by == pytest.approx(0.0, abs=1e-6)
    assert dx == pytest.approx(0.0, abs=1e-6)
    assert bx > 0.0 and dy > 0.0


def test_horizontal_rotates_segment_about_fixed_end():
    model = _moved(_base_model(), "B", 10.0, 0.5)
    constraints = [FixPoint("fixA", "A"), Horizontal("h", "s1")]

    result = solve(model, constraints)

    assert result.converged
    assert _coords(result, "B") == pytest.approx((10.0, 0.0), abs=1e-6)


def test_vertical_moves_free_end_onto_axis():
    model = _moved(_base_model(), "D", 0.5, 10.0)
    constraints = [FixPoint("fixC", "C"), Vertical("v", "s2")]

    result = solve(model, constraints)

    assert result.converged
    assert _coords(result, "D") == pytest.approx((0.0, 10.0), abs=1e-6)


def test_perpendicular_moves_free_end():
    model = _moved(_base_model(), "D", 0.5, 10.0)
    constraints = [
        FixPoint("fixA", "A"),
        FixPoint("fixB", "B"),
        FixPoint("fixC", "C"),
        Perpendicular("perp", "s1", "s2"),
    ]

    result = solve(model, constraints)

    assert result.converged
    assert _coords(result, "D") == pytest.approx((0.0, 10.0), abs=1e-6)


def test_parallel_constraint_keeps_segments_parallel():
    model = _moved(_base_model(), "D", 10.0, 1.0)
    constraints = [
        FixPoint("fixA", "A"),
        FixPoint("fixB", "B"),
        FixPoint("fixC", "C"),
        Parallel("parallel", "s1", "s2"),
    ]

    result = solve(model, constraints)

    assert result.converged
    assert _coords(result, "D") == pytest.approx((10.0, 0.0), abs=1e-6)


def test_point_on_line_projects_point():
    model = _base_model()
    constraints = [
        FixPoint("fixA", "A", x=0.0, y=0.0),
        FixPoint("fixB", "B", x=10.0, y=0.0),
        PointOnLine("pol", "P", "s1"),
    ]

    result = solve(model, constraints, SolveOptions(max_iterations=20))

    assert result.converged
    px, py = _coords(result, "P")
    assert abs(py) < 1e-3
    assert px == pytest.approx(5.0, abs=1e-6)


def test_angle_constraint_aligns_segments():
    model = _moved(_base_model(), "D", 3.0, 10.0)
    constraints = [
        FixPoint("fixA", "A"),
        FixPoint("fixB", "B"),
        FixPoint("fixC", "C"),
        Angle("angle90", "s1", "s2", angle=math.pi / 2),
    ]

    result = solve(model, constraints)

    assert result.converged
    dx, dy = _coords(result, "D")
    assert math.atan2(dy, dx) == pytest.approx(math.pi / 2, abs=1e-6)
    assert (dx, dy) == pytest.approx((0.0, 10.0), abs=1e-4)


def test_resolving_a_solved_model_is_idempotent():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 2, 0)])
    constraints = [FixPoint("fixA", "A"), Distance("dist", "A", "B", distance=1.0)]

    first = solve(model, constraints)
    second = solve(first.model, constraints)

    assert second.converged
    assert second.iterations <= 2
    for point in first.model.points:
        assert _coords(second, point.id) == pytest.approx(point.coords, abs=1e-9)


def test_solve_is_deterministic():
    model = _moved(_base_model(), "D", 3.0, 10.0)
    constraints = [
        FixPoint("fixA", "A"),
        FixPoint("fixC", "C"),
        Angle("angle", "s1", "s2", angle=1.2),
        PointOnLine("pol", "P", "s1"),
    ]

    first = solve(model, constraints)
    second = solve(model, constraints)

    assert first.model.point_coords() == second.model.point_coords()
    assert first.iterations == second.iterations
    assert first.cost == second.cost


def test_strict_references_reject_missing_point():
    model = SketchModel.build([Point("A", 6, 8)])

    with pytest.raises(DanglingReferenceError) as exc:
        solve(model, [Distance("dist", "A", "Z", distance=5.0)])

    assert exc.value.constraint_id == "dist"
    assert exc.value.reference == "Z"
    assert isinstance(exc.value, KeyError)


def test_lenient_references_use_origin_stand_in():
    model = SketchModel.build([Point("A", 6, 8)])
    options = SolveOptions(strict_references=False)

    result = solve(model, [Distance("dist", "A", "Z", distance=5.0)], options)

    assert result.converged
    assert _coords(result, "A") == pytest.approx((3.0, 4.0), abs=1e-6)
    assert any("missing point 'Z'" in warning for warning in result.warnings)


def test_lenient_references_accept_missing_segment():
    model = SketchModel.build([Point("P", 1, 1)])
    options = SolveOptions(strict_references=False)

    result = solve(model, [PointOnLine("pol", "P", "nope")], options)

    assert any("missing segment 'nope'" in warning for warning in result.warnings)
    assert all(np.isfinite(_coords(result, "P")))


def test_zero_iterations_reports_initial_state():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 2, 0)])
    constraints = [Distance("dist", "A", "B", distance=1.0)]

    result = solve(model, constraints, SolveOptions(max_iterations=0))

    assert not result.converged
    assert result.iterations == 0
    assert result.model.point_coords() == model.point_coords()
    assert result.cost == pytest.approx(0.5)
    assert result.max_residual == pytest.approx(1.0)
    assert any("did not converge" in warning for warning in result.warnings)


def test_empty_sketch_converges_immediately():
    result = solve(SketchModel(), [])

    assert result.converged
    assert result.iterations == 1
    assert result.cost == 0.0


def test_result_breakdown_matches_final_residuals():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 2, 0)])
    constraints = [FixPoint("fixA", "A"), Distance("dist", "A", "B", distance=1.0)]

    result = solve(model, constraints)
    values, _ = evaluate_residuals(result.model, constraints)

    assert [entry["id"] for entry in result.residual_breakdown] == ["fixA", "dist"]
    assert result.max_residual == pytest.approx(float(np.max(np.abs(values))), abs=1e-12)


def test_redundant_constraints_fall_back_to_damping():
    model = SketchModel.build([Point("A", 0, 0), Point("B", 1, 0)])
    constraints = [
        FixPoint("fixA", "A"),
        Distance("d1", "A", "B", distance=1.0),
        Distance("d2", "A", "B", distance=1.0),
    ]

    result = solve(model, constraints)

    assert result.max_residual == pytest.approx(0.0, abs=1e-9)
    assert any("damping" in warning for warning in result.warnings)


@pytest.mark.parametrize(
    "values, expected",
    [
        (None, SolveOptions()),
        ({"maxIterations": 7, "tolerance": 1e-8}, SolveOptions(max_iterations=7, tolerance=1e-8)),
        ({"fallbackDamping": 1e-6}, SolveOptions(fallback_damping=1e-6)),
        ({"strictReferences": False}, SolveOptions(strict_references=False)),
        ({"fallback_damping": 1e-6}, SolveOptions(fallback_damping=1e-6)),
    ],
)
def test_solve_options_from_mapping(values, expected):
    assert SolveOptions.from_mapping(values) == expected


@pytest.mark.parametrize(
    "kwargs",
    [{"max_iterations": -1}, {"tolerance": 0.0}, {"fallback_damping": -1.0}],
)
def test_solve_options_reject_invalid_values(kwargs):
    with pytest.raises(ValueError):
        SolveOptions(**kwargs)


def test_solve_options_reject_unknown_keys():
    with pytest.raises(ValueError, match="unknown solve option"):
        SolveOptions.from_mapping({"lambda": 1.0})


@pytest.mark.parametrize("key", ["tol", "convergenceTolerance", "regularisation"])
def test_solve_options_accept_only_editor_aliases(key):
    with pytest.raises(ValueError, match="unknown solve option"):
        SolveOptions.from_mapping({key: 1e-8})
