"""Option, result and error records for the solver pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

from .types import SketchModel


class SketchSolverError(RuntimeError):
    """Base class for failures raised by a solve call."""


class ConstraintShapeError(ValueError):
    """Raised when a constraint is built with the wrong references or parameters."""


class DanglingReferenceError(SketchSolverError, KeyError):
    """Raised when a constraint references an entity missing from the model."""

    def __init__(self, constraint_id: str, reference: str, kind: str):
        self.constraint_id = constraint_id
        self.reference = reference
        self.kind = kind
        super().__init__(
            f"constraint '{constraint_id}' references missing {kind} '{reference}'"
        )

    def __str__(self) -> str:
        return str(self.args[0])


class SingularSystemError(SketchSolverError):
    """Raised when the Newton system cannot be factorized even after regularization."""


_OPTION_ALIASES = {
    "maxIterations": "max_iterations",
    "fallbackDamping": "fallback_damping",
    "strictReferences": "strict_references",
}


@dataclass
class SolveOptions:
    """Knobs for the Newton solver."""

    max_iterations: int = 50
    tolerance: float = 1e-6
    regularization: float = 1e-12
    fallback_damping: float = 1e-8
    strict_references: bool = True

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if self.tolerance <= 0.0:
            raise ValueError("tolerance must be positive")
        if self.regularization < 0.0 or self.fallback_damping < 0.0:
            raise ValueError("regularization and fallback_damping must be non-negative")

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "SolveOptions":
        """Build options from snake_case or editor-style camelCase keys."""

        if not values:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"unknown solve option '{key}'")
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class SolveResult:
    model: SketchModel
    iterations: int
    cost: float
    converged: bool
    max_residual: float = 0.0
    residual_breakdown: List[Dict[str, object]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


__all__ = [
    "ConstraintShapeError",
    "DanglingReferenceError",
    "SingularSystemError",
    "SketchSolverError",
    "SolveOptions",
    "SolveResult",
]
