"""TikZ rendering of solved sketches."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..solver.constraints import Angle, Constraint, Distance, Perpendicular
from ..solver.types import Point2D, SketchModel
from .utils import latex_escape_keep_math, tikz_name

GS_DOT_RADIUS_PT = 1.4

standalone_tpl = r"""\documentclass[border=2pt]{standalone}
\usepackage[utf8]{inputenc}
\usepackage{tikz}
\usetikzlibrary{calc,angles,quotes}
\tikzset{
  gs/dot radius/.store in=\gsDotR,       gs/dot radius=1.4pt,
  gs/line width/.store in=\gsLW,         gs/line width=0.8pt,
  gs/angle radius/.store in=\gsAngR,     gs/angle radius=8pt,
  ptlabel/.style={font=\footnotesize, inner sep=1pt},
  carrier/.style={line width=\gsLW},
}
\pgfdeclarelayer{fg}\pgfsetlayers{main,fg}
\begin{document}
%s
%s
\end{document}
"""


@dataclass
class TikzOptions:
    """Rendering switches for :func:`generate_tikz_code`."""

    normalize: bool = False
    scale: float = 1.0
    label_points: bool = True
    show_dimensions: bool = True
    mark_angles: bool = True


def generate_tikz_document(
    model: SketchModel,
    constraints: Iterable[Constraint] = (),
    *,
    title: Optional[str] = None,
    options: Optional[TikzOptions] = None,
) -> str:
    """Render a standalone document using the minimal TikZ preamble."""

    header = ""
    if title:
        header = "\\noindent\\textbf{" + latex_escape_keep_math(title.strip()) + "}\\par\\vspace{4pt}\n"
    return standalone_tpl % (header, generate_tikz_code(model, constraints, options=options))


def generate_tikz_code(
    model: SketchModel,
    constraints: Iterable[Constraint] = (),
    *,
    options: Optional[TikzOptions] = None,
) -> str:
    options = options or TikzOptions()
    coords = _prepare_coordinates(model.point_coords(), normalize=options.normalize)
    names = _coordinate_names(coords.keys())
    constraints = list(constraints)

    lines: List[str] = [f"\\begin{{tikzpicture}}[scale={_format_float(options.scale)}]"]
    for pid in sorted(coords):
        x, y = coords[pid]
        lines.append(f"  \\coordinate ({names[pid]}) at ({_format_float(x)}, {_format_float(y)});")
    lines.append("")

    drawn: Dict[str, Tuple[str, str]] = {}
    for seg in model.segments:
        if seg.p1 not in coords or seg.p2 not in coords:
            continue
        drawn[seg.id] = (seg.p1, seg.p2)
        lines.append(f"  \\draw[carrier] ({names[seg.p1]}) -- ({names[seg.p2]});")

    fg: List[str] = []
    if options.mark_angles:
        fg.extend(_angle_marks(model, constraints, coords, names))
    if options.show_dimensions:
        fg.extend(_dimension_labels(constraints, coords, names))

    bbox = _coords_bbox(coords.values())
    for pid in sorted(coords):
        fg.append(f"\\fill ({names[pid]}) circle (\\gsDotR);")
        if options.label_points:
            anchor = _default_point_anchor(coords[pid], bbox)
            fg.append(f"\\node[ptlabel,{anchor}] at ({names[pid]}) {{{_format_label_text(pid)}}};")

    lines.append("  \\begin{pgfonlayer}{fg}")
    lines.extend("    " + entry for entry in fg)
    lines.append("  \\end{pgfonlayer}")
    lines.append("\\end{tikzpicture}")
    return "\n".join(lines)


def _prepare_coordinates(point_coords: Mapping[str, Point2D], *, normalize: bool) -> Dict[str, Point2D]:
    coords = {key: (float(v[0]), float(v[1])) for key, v in point_coords.items()}
    if not coords or not normalize:
        return coords
    xs = [pt[0] for pt in coords.values()]
    ys = [pt[1] for pt in coords.values()]
    span = max(max(xs) - min(xs), max(ys) - min(ys), 1e-9)
    cx = 0.5 * (min(xs) + max(xs))
    cy = 0.5 * (min(ys) + max(ys))
    scale = 8.0 / span
    return {key: ((pt[0] - cx) * scale, (pt[1] - cy) * scale) for key, pt in coords.items()}


def _coordinate_names(point_ids: Iterable[str]) -> Dict[str, str]:
    names: Dict[str, str] = {}
    used: set = set()
    for pid in sorted(point_ids):
        base = tikz_name(pid)
        name = base
        suffix = 1
        while name in used:
            suffix += 1
            name = f"{base}-{suffix}"
        used.add(name)
        names[pid] = name
    return names


def _shared_vertex(
    first: Tuple[str, str], second: Tuple[str, str]
) -> Optional[Tuple[str, str, str]]:
    """Return ``(a, vertex, c)`` when the two segments share an endpoint."""

    for vertex in first:
        if vertex in second:
            a = first[1] if first[0] == vertex else first[0]
            c = second[1] if second[0] == vertex else second[0]
            if a != c:
                return (a, vertex, c)
    return None


def _angle_marks(
    model: SketchModel,
    constraints: Sequence[Constraint],
    coords: Mapping[str, Point2D],
    names: Mapping[str, str],
) -> List[str]:
    marks: List[str] = []
    for c in constraints:
        if not isinstance(c, (Angle, Perpendicular)):
            continue
        first = model.segment(c.first)
        second = model.segment(c.second)
        if first is None or second is None:
            continue
        triple = _shared_vertex(first.endpoints, second.endpoints)
        if triple is None or not all(p in coords for p in triple):
            continue
        a, b, cc = triple
        if _oriented_angle_degrees(coords, a, b, cc) is None:
            continue
        # pic angle sweeps counter-clockwise from the first ray
        if _oriented_angle_degrees(coords, a, b, cc) > 180.0:
            a, cc = cc, a
        if isinstance(c, Perpendicular):
            marks.append(f"\\path pic[draw, angle radius=\\gsAngR] {{right angle={names[a]}--{names[b]}--{names[cc]}}};")
        else:
            label = _format_float(abs(math.degrees(c.angle)))
            marks.append(
                f"\\path pic[draw, angle radius=\\gsAngR, \"${label}^\\circ$\", angle eccentricity=1.8] "
                f"{{angle={names[a]}--{names[b]}--{names[cc]}}};"
            )
    return marks


def _dimension_labels(
    constraints: Sequence[Constraint],
    coords: Mapping[str, Point2D],
    names: Mapping[str, str],
) -> List[str]:
    labels: List[str] = []
    for c in constraints:
        if not isinstance(c, Distance) or c.a not in coords or c.b not in coords:
            continue
        labels.append(
            f"\\path ({names[c.a]}) -- ({names[c.b]}) node[ptlabel, midway, sloped, above] "
            f"{{${_format_float(c.distance)}$}};"
        )
    return labels


def _coords_bbox(points: Iterable[Point2D]) -> Tuple[float, float, float, float]:
    xs = [pt[0] for pt in points]
    ys = [pt[1] for pt in points]
    if not xs:
        return (0.0, 0.0, 0.0, 0.0)
    return (min(xs), max(xs), min(ys), max(ys))


def _default_point_anchor(point: Point2D, bbox: Tuple[float, float, float, float]) -> str:
    min_x, max_x, min_y, max_y = bbox
    mid_x = 0.5 * (min_x + max_x)
    mid_y = 0.5 * (min_y + max_y)
    x, y = point
    if y < mid_y - 1e-6:
        return "below"
    if y > mid_y + 1e-6:
        return "above"
    return "right" if x > mid_x else "left"


def _oriented_angle_degrees(coords: Mapping[str, Point2D], a: str, b: str, c: str) -> Optional[float]:
    origin = coords[b]
    v1 = (coords[a][0] - origin[0], coords[a][1] - origin[1])
    v2 = (coords[c][0] - origin[0], coords[c][1] - origin[1])
    if math.hypot(*v1) <= 1e-9 or math.hypot(*v2) <= 1e-9:
        return None
    angle = math.degrees(math.atan2(v1[0] * v2[1] - v1[1] * v2[0], v1[0] * v2[0] + v1[1] * v2[1]))
    return angle + 360.0 if angle < 0 else angle


def _format_label_text(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("$") and stripped.endswith("$"):
        return stripped
    return latex_escape_keep_math(stripped)


def _format_float(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        raise ValueError("Cannot format non-finite float for TikZ output")
    formatted = f"{value:.4f}".rstrip("0").rstrip(".")
    if formatted in ("", "-0"):
        return "0"
    return formatted
