import re
import unicodedata
from typing import List

_MATH_DELIM_RE = re.compile(r'(?<!\\)(\$\$|\$)')  # unescaped $ or $$

_TEXT_ESCAPES = {
    '\\': r'\textbackslash{}',
    '&': r'\&',
    '%': r'\%',
    '#': r'\#',
    '_': r'\_',
    '{': r'\{',
    '}': r'\}',
    '~': r'\textasciitilde{}',
    '^': r'\textasciicircum{}',
}


def _escape_text_segment(text: str) -> str:
    text = unicodedata.normalize('NFC', text)
    text = ''.join(ch for ch in text if unicodedata.category(ch) != 'Mn')
    return ''.join(_TEXT_ESCAPES.get(c, c) for c in text)


def latex_escape_keep_math(s: str) -> str:
    """Escape LaTeX specials outside ``$...$`` / ``$$...$$`` and keep math untouched."""

    parts: List[str] = []
    pos = 0
    current_delim = None

    for m in _MATH_DELIM_RE.finditer(s):
        delim = m.group(1)
        start, end = m.span()
        chunk = s[pos:start]
        parts.append(chunk if current_delim else _escape_text_segment(chunk))
        parts.append(delim)
        if current_delim is None:
            current_delim = delim
        elif delim == current_delim:
            current_delim = None
        pos = end

    tail = s[pos:]
    parts.append(tail if current_delim else _escape_text_segment(tail))
    return ''.join(parts)


def tikz_name(point_id: str) -> str:
    """Coordinate name safe for ``\\coordinate``: TikZ chokes on parentheses, commas and dots."""

    cleaned = re.sub(r'[^A-Za-z0-9]+', '-', point_id).strip('-')
    return f"p-{cleaned}" if cleaned else "p"
