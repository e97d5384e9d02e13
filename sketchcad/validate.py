from typing import Iterable, Set

from .solver.constraints import POINT, Constraint
from .solver.types import SketchModel


class ValidationError(Exception):
    pass


def _ensure_unique(ids: Iterable[str], what: str) -> Set[str]:
    seen: Set[str] = set()
    for ident in ids:
        if not isinstance(ident, str) or not ident:
            raise ValidationError(f'{what} ids must be non-empty strings, got {ident!r}')
        if ident in seen:
            raise ValidationError(f'duplicate {what} id "{ident}"')
        seen.add(ident)
    return seen


def validate_model(model: SketchModel) -> None:
    point_ids = _ensure_unique((p.id for p in model.points), 'point')
    _ensure_unique((s.id for s in model.segments), 'segment')
    for seg in model.segments:
        if seg.p1 == seg.p2:
            raise ValidationError(f'segment "{seg.id}" needs two distinct endpoints, got "{seg.p1}" twice')
        for end in seg.endpoints:
            if end not in point_ids:
                raise ValidationError(f'segment "{seg.id}" references missing point "{end}"')


def validate(model: SketchModel, constraints: Iterable[Constraint]) -> None:
    """Reject malformed sketches before they reach the solver."""

    validate_model(model)
    constraint_ids: Set[str] = set()
    for c in constraints:
        if c.id in constraint_ids:
            raise ValidationError(f'duplicate constraint id "{c.id}"')
        constraint_ids.add(c.id)
        for role, ref in c.typed_refs():
            if role == POINT:
                if model.has_point(ref):
                    continue
                if model.has_segment(ref):
                    raise ValidationError(f'{c.kind} "{c.id}": "{ref}" is a segment, expected a point')
                raise ValidationError(f'{c.kind} "{c.id}" references missing point "{ref}"')
            if model.has_segment(ref):
                continue
            if model.has_point(ref):
                raise ValidationError(f'{c.kind} "{c.id}": "{ref}" is a point, expected a segment')
            raise ValidationError(f'{c.kind} "{c.id}" references missing segment "{ref}"')
