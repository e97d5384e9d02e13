"""Mapping between sketch point coordinates and a flat unknown vector."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from .types import PointId, SketchModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariablePacking:
    """Stable point index; coordinates are interleaved as ``x0, y0, x1, y1, ...``."""

    point_index_by_id: Dict[PointId, int]
    point_count: int

    @classmethod
    def from_model(cls, model: SketchModel) -> "VariablePacking":
        index: Dict[PointId, int] = {}
        for idx, point in enumerate(model.points):
            # first appearance wins so duplicated ids cannot shift the layout
            index.setdefault(point.id, idx)
        logger.debug("Built packing for %d point(s)", len(model.points))
        return cls(point_index_by_id=index, point_count=len(model.points))

    @property
    def size(self) -> int:
        return 2 * self.point_count

    def index_of(self, point_id: PointId) -> Optional[int]:
        return self.point_index_by_id.get(point_id)

    def to_vector(self, model: SketchModel) -> np.ndarray:
        vec = np.zeros(2 * len(model.points), dtype=float)
        for idx, point in enumerate(model.points):
            vec[2 * idx] = point.x
            vec[2 * idx + 1] = point.y
        return vec

    def from_vector(self, model: SketchModel, x: np.ndarray) -> SketchModel:
        """Return a new model whose points take coordinates from ``x``.

        Entries past the end of ``x`` leave the corresponding coordinate
        untouched.
        """

        values = np.asarray(x, dtype=float)
        size = values.shape[0]
        points = []
        for idx, point in enumerate(model.points):
            ix = 2 * idx
            iy = ix + 1
            new_x = float(values[ix]) if ix < size else point.x
            new_y = float(values[iy]) if iy < size else point.y
            points.append(point.moved_to(new_x, new_y))
        return model.with_points(points)


__all__ = ["VariablePacking"]
