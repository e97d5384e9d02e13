"""Tagged constraint variants and their conversion from the editor wire shape."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

from .model import ConstraintShapeError
from .types import PointId, SegmentId

POINT = "point"
SEGMENT = "segment"


def _require_id(value: object, *, role: str, constraint_id: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConstraintShapeError(
            f"constraint '{constraint_id}': {role} reference must be a non-empty string, got {value!r}"
        )
    return value


def _require_number(value: object, *, name: str, constraint_id: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConstraintShapeError(
            f"constraint '{constraint_id}': parameter '{name}' must be a number, got {value!r}"
        )
    number = float(value)
    if not math.isfinite(number):
        raise ConstraintShapeError(f"constraint '{constraint_id}': parameter '{name}' must be finite")
    return number


@dataclass(frozen=True)
class _ConstraintBase:
    id: str

    kind: ClassVar[str] = ""
    rows: ClassVar[int] = 1
    ref_fields: ClassVar[Tuple[Tuple[str, str], ...]] = ()
    param_fields: ClassVar[Tuple[str, ...]] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ConstraintShapeError(f"{self.kind} constraint needs a non-empty id")
        for name, role in self.ref_fields:
            _require_id(getattr(self, name), role=role, constraint_id=self.id)
        for name in self.param_fields:
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _require_number(value, name=name, constraint_id=self.id))
        weight = _require_number(self.weight, name="weight", constraint_id=self.id)
        object.__setattr__(self, "weight", weight)

    @property
    def refs(self) -> Tuple[str, ...]:
        return tuple(getattr(self, name) for name, _ in self.ref_fields)

    def typed_refs(self) -> Tuple[Tuple[str, str], ...]:
        """Return ``(role, id)`` pairs in declaration order."""

        return tuple((role, getattr(self, name)) for name, role in self.ref_fields)

    def params(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for name in self.param_fields:
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


@dataclass(frozen=True)
class Coincident(_ConstraintBase):
    a: PointId
    b: PointId
    weight: float = 1.0

    kind = "coincident"
    rows = 2
    ref_fields = (("a", POINT), ("b", POINT))


@dataclass(frozen=True)
class Distance(_ConstraintBase):
    a: PointId
    b: PointId
    distance: float = 0.0
    weight: float = 1.0

    kind = "distance"
    ref_fields = (("a", POINT), ("b", POINT))
    param_fields = ("distance",)


@dataclass(frozen=True)
class FixPoint(_ConstraintBase):
    """Pin a point; missing ``x``/``y`` default to its coordinates in the base model."""

    point: PointId
    x: Optional[float] = None
    y: Optional[float] = None
    weight: float = 1.0

    kind = "fix_point"
    rows = 2
    ref_fields = (("point", POINT),)
    param_fields = ("x", "y")


@dataclass(frozen=True)
class Parallel(_ConstraintBase):
    first: SegmentId
    second: SegmentId
    weight: float = 1.0

    kind = "parallel"
    ref_fields = (("first", SEGMENT), ("second", SEGMENT))


@dataclass(frozen=True)
class Perpendicular(_ConstraintBase):
    first: SegmentId
    second: SegmentId
    weight: float = 1.0

    kind = "perpendicular"
    ref_fields = (("first", SEGMENT), ("second", SEGMENT))


@dataclass(frozen=True)
class Vertical(_ConstraintBase):
    segment: SegmentId
    weight: float = 1.0

    kind = "vertical"
    ref_fields = (("segment", SEGMENT),)


@dataclass(frozen=True)
class Horizontal(_ConstraintBase):
    segment: SegmentId
    weight: float = 1.0

    kind = "horizontal"
    ref_fields = (("segment", SEGMENT),)


@dataclass(frozen=True)
class Angle(_ConstraintBase):
    """Signed angle from ``first`` to ``second`` in radians."""

    first: SegmentId
    second: SegmentId
    angle: float = 0.0
    weight: float = 1.0

    kind = "angle"
    ref_fields = (("first", SEGMENT), ("second", SEGMENT))
    param_fields = ("angle",)


@dataclass(frozen=True)
class PointOnLine(_ConstraintBase):
    point: PointId
    segment: SegmentId
    weight: float = 1.0

    kind = "point_on_line"
    ref_fields = (("point", POINT), ("segment", SEGMENT))


Constraint = Union[
    Coincident,
    Distance,
    FixPoint,
    Parallel,
    Perpendicular,
    Vertical,
    Horizontal,
    Angle,
    PointOnLine,
]

CONSTRAINT_TYPES: Dict[str, type] = {
    cls.kind: cls
    for cls in (
        Coincident,
        Distance,
        FixPoint,
        Parallel,
        Perpendicular,
        Vertical,
        Horizontal,
        Angle,
        PointOnLine,
    )
}


def row_count(constraint: Constraint) -> int:
    return type(constraint).rows


def total_rows(constraints: List[Constraint]) -> int:
    return sum(row_count(constraint) for constraint in constraints)


def constraint_from_dict(payload: Mapping[str, Any]) -> Constraint:
    """Build a typed constraint from ``{"id", "type", "refs", "params", "weight"}``."""

    if not isinstance(payload, Mapping):
        raise ConstraintShapeError(f"constraint payload must be a mapping, got {payload!r}")
    constraint_id = payload.get("id")
    kind = payload.get("type")
    cls = CONSTRAINT_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise ConstraintShapeError(f"constraint '{constraint_id}': unknown type {kind!r}")

    refs = payload.get("refs", [])
    if not isinstance(refs, (list, tuple)):
        raise ConstraintShapeError(f"constraint '{constraint_id}': refs must be a list")
    if len(refs) != len(cls.ref_fields):
        raise ConstraintShapeError(
            f"constraint '{constraint_id}': {kind} expects {len(cls.ref_fields)} reference(s), got {len(refs)}"
        )

    params = payload.get("params") or {}
    if not isinstance(params, Mapping):
        raise ConstraintShapeError(f"constraint '{constraint_id}': params must be a mapping")
    unknown = set(params) - set(cls.param_fields)
    if unknown:
        raise ConstraintShapeError(
            f"constraint '{constraint_id}': unsupported parameter(s) {sorted(unknown)} for {kind}"
        )

    kwargs: Dict[str, Any] = {"id": constraint_id}
    for (name, _role), ref in zip(cls.ref_fields, refs):
        kwargs[name] = ref
    for name in cls.param_fields:
        if params.get(name) is not None:
            kwargs[name] = params[name]
    weight = payload.get("weight")
    if weight is not None:
        kwargs["weight"] = weight
    return cls(**kwargs)


def constraint_to_dict(constraint: Constraint) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": constraint.id,
        "type": constraint.kind,
        "refs": list(constraint.refs),
    }
    params = constraint.params()
    if params:
        payload["params"] = params
    if constraint.weight != 1.0:
        payload["weight"] = constraint.weight
    return payload


__all__ = [
    "Angle",
    "CONSTRAINT_TYPES",
    "Coincident",
    "Constraint",
    "Distance",
    "FixPoint",
    "Horizontal",
    "POINT",
    "Parallel",
    "Perpendicular",
    "PointOnLine",
    "SEGMENT",
    "Vertical",
    "constraint_from_dict",
    "constraint_to_dict",
    "row_count",
    "total_rows",
]
