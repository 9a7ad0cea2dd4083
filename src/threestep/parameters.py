"""
Parameter recovery from rendered input text.

Reads a rendered Mplus input back into:
    - labelled parameters per latent class  {(class_index, label)}
    - fixed logits per latent class          {class_index: {category: value}}
    - NEW parameters of MODEL CONSTRAINT
    - identifiers referenced by constraint/test equations

Used to check that what was injected into the per-class blocks is what
the engine will actually see.
"""

import re
from typing import Dict, List, Set, Tuple

_SECTION_RE = re.compile(r"^([A-Z][A-Z ]*[A-Z]):\s*(.*)$")
_CLASS_HEADER_RE = re.compile(r"^%\s*([A-Za-z_][A-Za-z0-9_]*)\s*#\s*(\d+)\s*%$")
_OVERALL_RE = re.compile(r"^%\s*OVERALL\s*%$", re.IGNORECASE)
_LABEL_RE = re.compile(r"\(\s*([A-Za-z_][A-Za-z0-9_]*)\s*\)\s*$")
_FIXED_RE = re.compile(
    r"\[\s*([A-Za-z_][A-Za-z0-9_]*)\s*#\s*(\d+)\s*@\s*(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\s*\]"
)
_FREE_MEAN_RE = re.compile(r"\[\s*([A-Za-z_][A-Za-z0-9_]*)\s*#\s*(\d+)\s*\]")
_NEW_RE = re.compile(r"^\s*NEW\s*\(([^)]*)\)\s*$", re.IGNORECASE)
_IDENTIFIER_RE = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\b")


def section_lines(text: str, section: str) -> List[str]:
    """Raw lines of one section (e.g., "MODEL", "MODEL CONSTRAINT"), header excluded."""
    out: List[str] = []
    inside = False
    for line in text.splitlines():
        m = _SECTION_RE.match(line)
        if m and not line.startswith(" "):
            inside = m.group(1).upper() == section.upper()
            if inside and m.group(2).strip():
                out.append(m.group(2))
            continue
        if inside:
            out.append(line)
    return out


def _statements(lines: List[str]) -> List[str]:
    joined = " ".join(line.strip() for line in lines)
    return [s.strip() for s in joined.split(";") if s.strip()]


def split_model_blocks(text: str) -> Tuple[List[str], Dict[int, List[str]]]:
    """
    Split the MODEL section into overall and per-class statements.

    Returns:
        (overall statements, {class_index: statements})
    """
    overall_lines: List[str] = []
    class_lines: Dict[int, List[str]] = {}
    current = None

    for line in section_lines(text, "MODEL"):
        stripped = line.strip()
        if _OVERALL_RE.match(stripped):
            current = None
            continue
        m = _CLASS_HEADER_RE.match(stripped)
        if m:
            current = int(m.group(2))
            class_lines.setdefault(current, [])
            continue
        if current is None:
            overall_lines.append(line)
        else:
            class_lines[current].append(line)

    return _statements(overall_lines), {k: _statements(v) for k, v in class_lines.items()}


def extract_labeled_parameters(text: str) -> Set[Tuple[int, str]]:
    """(class_index, label) pairs of every labelled class-specific statement."""
    _, blocks = split_model_blocks(text)
    found: Set[Tuple[int, str]] = set()
    for k, statements in blocks.items():
        for stmt in statements:
            m = _LABEL_RE.search(stmt)
            if m:
                found.add((k, m.group(1)))
    return found


def extract_fixed_logits(text: str) -> Dict[int, Dict[int, float]]:
    """{class_index: {category: fixed value}} for every [X#j@v] in class blocks."""
    _, blocks = split_model_blocks(text)
    found: Dict[int, Dict[int, float]] = {}
    for k, statements in blocks.items():
        values: Dict[int, float] = {}
        for stmt in statements:
            for m in _FIXED_RE.finditer(stmt):
                values[int(m.group(2))] = float(m.group(3))
        found[k] = values
    return found


def extract_free_logits(text: str) -> Dict[int, List[int]]:
    """{class_index: [category, ...]} for estimated [X#j] means in class blocks."""
    _, blocks = split_model_blocks(text)
    return {
        k: [int(m.group(2)) for stmt in statements for m in _FREE_MEAN_RE.finditer(stmt)]
        for k, statements in blocks.items()
    }


def extract_new_parameters(text: str) -> List[str]:
    """Names declared with NEW(...) in MODEL CONSTRAINT, in order."""
    names: List[str] = []
    for stmt in _statements(section_lines(text, "MODEL CONSTRAINT")):
        m = _NEW_RE.match(stmt)
        if m:
            names.extend(m.group(1).split())
    return names


def referenced_identifiers(equations: List[str]) -> Set[str]:
    """Identifiers used in constraint/test equations (numbers excluded)."""
    found: Set[str] = set()
    for eq in equations:
        if _NEW_RE.match(eq):
            continue
        for m in _IDENTIFIER_RE.finditer(eq):
            found.add(m.group(1))
    return found


__all__ = [
    "section_lines",
    "split_model_blocks",
    "extract_labeled_parameters",
    "extract_fixed_logits",
    "extract_free_logits",
    "extract_new_parameters",
    "referenced_identifiers",
]
