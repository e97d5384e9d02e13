import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from sketchcad import (
    DocumentError,
    SketchSolverError,
    ValidationError,
    dump_sketch,
    format_result,
    generate_tikz_document,
    load_sketch,
    print_sketch,
    solve,
    validate,
    validate_model,
)
from sketchcad.cad import AdapterOK, solve_with_slvs
from sketchcad.solver import get_default_solve_options

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _fail(message: str, *args: object) -> None:
    logger.error(message, *args)
    raise SystemExit(1)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Solve 2D sketch constraints")
    parser.add_argument("path", help="Path to the JSON sketch document")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        help="Newton iteration cap (default: from the document, else 50)",
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        help="Squared step-norm convergence threshold (default: from the document, else 1e-6)",
    )
    parser.add_argument(
        "--lenient-references",
        action="store_true",
        help="Treat references to missing points/segments as the origin instead of failing",
    )
    parser.add_argument(
        "--cad",
        choices=["slvs"],
        help="Solve with the SolveSpace backend instead of the Newton solver",
    )
    parser.add_argument(
        "--output",
        help="Write the solved sketch document to the given path",
    )
    parser.add_argument(
        "--tikz-output-path",
        help="Write a standalone TikZ document of the solved sketch to the given path",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    logger.info("Loading sketch from %s", args.path)
    try:
        document = load_sketch(args.path)
    except (OSError, DocumentError) as exc:
        _fail("Cannot load %s: %s", args.path, exc)

    model = document.model
    constraints = document.constraints
    try:
        if args.lenient_references:
            validate_model(model)
        else:
            validate(model, constraints)
    except ValidationError as exc:
        _fail("Validation failed: %s", exc)
    logger.info(
        "Validation succeeded: %d point(s), %d segment(s), %d constraint(s)",
        len(model.points),
        len(model.segments),
        len(constraints),
    )
    logger.debug("Sketch:\n%s", print_sketch(model, constraints))

    if args.cad:
        try:
            result = solve_with_slvs(model, constraints)
        except SketchSolverError as exc:
            _fail("SolveSpace failed: %s", exc)
        if not isinstance(result, AdapterOK):
            _fail("SolveSpace failed: failures=%s dof=%s", result.failures, result.dof)
        solved = result.model
        print("CAD status:")
        print("  ok: True")
        print(f"  dof: {result.dof}")
        print("Coordinates:")
        for point in solved.points:
            print(f"  {point.id}: ({point.x:.6f}, {point.y:.6f})")
    else:
        options = document.options or get_default_solve_options()
        overrides = {}
        if args.max_iterations is not None:
            overrides["max_iterations"] = args.max_iterations
        if args.tolerance is not None:
            overrides["tolerance"] = args.tolerance
        if args.lenient_references:
            overrides["strict_references"] = False
        try:
            options = dataclasses.replace(options, **overrides)
            result = solve(model, constraints, options)
        except (ValueError, SketchSolverError) as exc:
            _fail("Solve failed: %s", exc)
        logger.info(
            "Solver result: converged=%s, iterations=%d, max_residual=%.3e",
            result.converged,
            result.iterations,
            result.max_residual,
        )
        for warning in result.warnings:
            logger.warning("Solver warning: %s", warning)
        solved = result.model
        print(format_result(result))

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing solved sketch to %s", output_path)
        output_path.write_text(dump_sketch(solved, constraints) + "\n", encoding="utf-8")
        print(f"Solved sketch written to {output_path}")

    if args.tikz_output_path:
        output_path = Path(args.tikz_output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing TikZ document to %s", output_path)
        tikz_document = generate_tikz_document(solved, constraints)
        output_path.write_text(tikz_document, encoding="utf-8")
        print(f"TikZ document written to {output_path}")


if __name__ == "__main__":
    main(sys.argv[1:])
