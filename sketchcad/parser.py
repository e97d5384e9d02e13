"""Reading sketch documents in the editor's JSON wire shape."""

import json
import math
import numbers
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from .solver.constraints import Constraint, constraint_from_dict
from .solver.model import ConstraintShapeError, SolveOptions
from .solver.types import Point, Segment, SketchModel


class DocumentError(ValueError):
    """Raised when a sketch document does not have the expected shape."""


@dataclass
class SketchDocument:
    model: SketchModel
    constraints: List[Constraint] = field(default_factory=list)
    options: Optional[SolveOptions] = None


def _number(raw: Any, where: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, numbers.Real):
        raise DocumentError(f'{where} must be a number, got {raw!r}')
    value = float(raw)
    if not math.isfinite(value):
        raise DocumentError(f'{where} must be finite')
    return value


def _entries(payload: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    raw = payload.get(key, [])
    if not isinstance(raw, list):
        raise DocumentError(f'"{key}" must be a list')
    for idx, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            raise DocumentError(f'{key}[{idx}] must be an object')
    return raw


def _parse_point(entry: Mapping[str, Any], idx: int) -> Point:
    pid = entry.get('id')
    if not isinstance(pid, str) or not pid:
        raise DocumentError(f'points[{idx}] needs a non-empty "id"')
    return Point(
        id=pid,
        x=_number(entry.get('x'), f'point "{pid}" x'),
        y=_number(entry.get('y'), f'point "{pid}" y'),
        fixed=bool(entry.get('fixed', False)),
    )


def _parse_segment(entry: Mapping[str, Any], idx: int) -> Segment:
    values = [entry.get(key) for key in ('id', 'p1', 'p2')]
    if not all(isinstance(v, str) and v for v in values):
        raise DocumentError(f'segments[{idx}] needs string "id", "p1" and "p2"')
    return Segment(*values)


def parse_sketch(payload: Union[str, Mapping[str, Any]]) -> SketchDocument:
    """Build a :class:`SketchDocument` from JSON text or an already decoded mapping."""

    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise DocumentError(f'invalid JSON at line {exc.lineno}, col {exc.colno}: {exc.msg}') from exc
    if not isinstance(payload, Mapping):
        raise DocumentError('sketch document must be a JSON object')

    points = [_parse_point(entry, i) for i, entry in enumerate(_entries(payload, 'points'))]
    segments = [_parse_segment(entry, i) for i, entry in enumerate(_entries(payload, 'segments'))]
    constraints: List[Constraint] = []
    for idx, entry in enumerate(_entries(payload, 'constraints')):
        try:
            constraints.append(constraint_from_dict(entry))
        except ConstraintShapeError as exc:
            raise DocumentError(f'constraints[{idx}]: {exc}') from exc

    options = None
    raw_options = payload.get('options')
    if raw_options is not None:
        if not isinstance(raw_options, Mapping):
            raise DocumentError('"options" must be an object')
        try:
            options = SolveOptions.from_mapping(raw_options)
        except (TypeError, ValueError) as exc:
            raise DocumentError(f'options: {exc}') from exc

    return SketchDocument(
        model=SketchModel.build(points, segments),
        constraints=constraints,
        options=options,
    )


def load_sketch(path: Union[str, Path]) -> SketchDocument:
    text = Path(path).read_text(encoding='utf-8')
    return parse_sketch(text)
