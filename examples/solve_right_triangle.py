"""Example pipeline: load a sketch document and solve it with the Newton solver."""

from pathlib import Path

from sketchcad import format_result, load_sketch, solve, validate

SKETCH_PATH = Path(__file__).with_name("right_triangle.json")


def main() -> None:
    document = load_sketch(SKETCH_PATH)
    validate(document.model, document.constraints)
    result = solve(document.model, document.constraints, document.options)
    print(format_result(result))


if __name__ == "__main__":
    main()
