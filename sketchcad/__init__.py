from .parser import DocumentError, SketchDocument, load_sketch, parse_sketch
from .validate import validate, validate_model, ValidationError
from .printer import dump_sketch, format_constraint, format_result, print_sketch, sketch_to_dict
from .tikz_codegen import TikzOptions, generate_tikz_code, generate_tikz_document
from .solver import (
    solve,
    evaluate_residuals,
    residual_breakdown,
    constraint_from_dict,
    constraint_to_dict,
    SolveOptions,
    SolveResult,
    SketchModel,
    Point,
    Segment,
    Coincident,
    Distance,
    FixPoint,
    Parallel,
    Perpendicular,
    Vertical,
    Horizontal,
    Angle,
    PointOnLine,
    SketchSolverError,
    ConstraintShapeError,
    DanglingReferenceError,
    SingularSystemError,
    get_default_solve_options,
    set_default_solve_options,
)

__all__ = [
    'parse_sketch',
    'load_sketch',
    'SketchDocument',
    'DocumentError',
    'validate',
    'validate_model',
    'ValidationError',
    'print_sketch',
    'format_constraint',
    'format_result',
    'sketch_to_dict',
    'dump_sketch',
    'TikzOptions',
    'generate_tikz_code',
    'generate_tikz_document',
    'solve',
    'evaluate_residuals',
    'residual_breakdown',
    'constraint_from_dict',
    'constraint_to_dict',
    'SolveOptions',
    'SolveResult',
    'SketchModel',
    'Point',
    'Segment',
    'Coincident',
    'Distance',
    'FixPoint',
    'Parallel',
    'Perpendicular',
    'Vertical',
    'Horizontal',
    'Angle',
    'PointOnLine',
    'SketchSolverError',
    'ConstraintShapeError',
    'DanglingReferenceError',
    'SingularSystemError',
    'get_default_solve_options',
    'set_default_solve_options',
]
