"""
Output parser (engine .out text → RunResult).

Reads the parts of an Mplus output file the three-step procedure needs:

    - Normal termination flag
    - *** ERROR / *** WARNING / WARNING: paragraphs
    - Fit summaries (LL, Parameters, AIC, BIC, aBIC, Entropy)
    - Final class counts (estimated model and most likely membership)
    - Logits for the classification probabilities of most likely membership
    - SAVEDATA INFORMATION (save file name, variable order)

Sections that are absent are left as None/empty; deciding whether an
absent section is an error is the extractor's job.
"""

import re
import warnings
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .errors import OutputParseError
from .model import DEFAULT_MISSING_VALUE
from .results import ClassCounts, ClassProportion, RunResult, SaveDataInfo


TERMINATED_NORMALLY = "THE MODEL ESTIMATION TERMINATED NORMALLY"

_NUMBER = r"-?\d+(?:\.\d*)?(?:[DEde][-+]?\d+)?"
_COUNT_ROW_RE = re.compile(rf"^\s*(\d+)\s+({_NUMBER})\s+({_NUMBER})\s*$")
_LOGIT_ROW_RE = re.compile(r"^\s*(\d+)((?:\s+-?\d+\.\d+)+)\s*$")
_SAVE_VAR_RE = re.compile(r"^\s+([A-Za-z_][A-Za-z0-9_#.]*)\s+[FI]\d+(?:\.\d+)?\s*$")

_SUMMARY_PATTERNS = [
    ("Parameters", re.compile(r"^\s*Number of Free Parameters\s+(\d+)\s*$")),
    ("LL", re.compile(rf"^\s*H0 Value\s+({_NUMBER})\s*$")),
    ("AIC", re.compile(rf"^\s*Akaike \(AIC\)\s+({_NUMBER})\s*$")),
    ("BIC", re.compile(rf"^\s*Bayesian \(BIC\)\s+({_NUMBER})\s*$")),
    ("aBIC", re.compile(rf"^\s*Sample-Size Adjusted BIC\s+({_NUMBER})\s*$")),
    ("Entropy", re.compile(rf"^\s*Entropy\s+({_NUMBER})\s*$")),
]

_ESTIMATED_HEADER = "BASED ON THE ESTIMATED MODEL"
_MOST_LIKELY_HEADER = "BASED ON THEIR MOST LIKELY LATENT CLASS MEMBERSHIP"
_LOGITS_HEADER = re.compile(
    r"^\s*Logits for the Classification Probabilities for the Most Likely Latent Class Membership"
)

# Count tables sit a few header lines below their title.
_MAX_TABLE_LEAD = 12


def _to_float(token: str) -> float:
    # Fortran-style exponents (1.0D-03) appear in some engine versions.
    return float(token.replace("D", "E").replace("d", "e"))


def _find(lines: Sequence[str], needle: Union[str, re.Pattern], start: int = 0) -> Optional[int]:
    for i in range(start, len(lines)):
        line = lines[i]
        if isinstance(needle, str):
            if needle in line:
                return i
        elif needle.search(line):
            return i
    return None


def _paragraph(lines: Sequence[str], start: int) -> str:
    """Lines from start up to (not including) the next blank line."""
    out = []
    for line in lines[start:]:
        if not line.strip():
            break
        out.append(line.rstrip())
    return "\n".join(out)


def _parse_diagnostics(lines: Sequence[str]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    errors: List[str] = []
    found_warnings: List[str] = []
    i = 0
    while i < len(lines):
        stripped = lines[i].strip()
        if stripped.startswith("*** ERROR") or stripped.startswith("*** FATAL ERROR"):
            para = _paragraph(lines, i)
            errors.append(para)
            i += para.count("\n") + 1
        elif "DID NOT TERMINATE NORMALLY" in stripped:
            para = _paragraph(lines, i)
            errors.append(para)
            i += para.count("\n") + 1
        elif stripped.startswith("*** WARNING") or stripped.startswith("WARNING:"):
            para = _paragraph(lines, i)
            found_warnings.append(para)
            i += para.count("\n") + 1
        else:
            i += 1
    return tuple(errors), tuple(found_warnings)


def _parse_summaries(lines: Sequence[str]) -> Dict[str, float]:
    summaries: Dict[str, float] = {}
    for line in lines:
        for key, pattern in _SUMMARY_PATTERNS:
            if key in summaries:
                continue
            m = pattern.match(line)
            if m:
                summaries[key] = _to_float(m.group(1))
    return summaries


def _parse_count_table(lines: Sequence[str], header: str) -> Tuple[ClassProportion, ...]:
    start = _find(lines, header)
    if start is None:
        return ()

    rows: List[ClassProportion] = []
    for offset, line in enumerate(lines[start + 1:]):
        m = _COUNT_ROW_RE.match(line)
        if m:
            rows.append(
                ClassProportion(
                    class_index=int(m.group(1)),
                    count=_to_float(m.group(2)),
                    proportion=_to_float(m.group(3)),
                )
            )
            continue
        if rows and line.strip():
            break
        if not rows and offset > _MAX_TABLE_LEAD:
            break

    if not rows:
        warnings.warn(f"Class counts header found but no rows parsed: {header}", UserWarning)
    return tuple(rows)


def _parse_logits(lines: Sequence[str]) -> Optional[Tuple[Tuple[float, ...], ...]]:
    start = _find(lines, _LOGITS_HEADER)
    if start is None:
        return None

    rows: List[Tuple[float, ...]] = []
    for offset, line in enumerate(lines[start + 1:]):
        m = _LOGIT_ROW_RE.match(line)
        if m:
            if int(m.group(1)) != len(rows) + 1:
                raise OutputParseError(
                    f"Logits table row {m.group(1)} out of order (expected {len(rows) + 1})"
                )
            rows.append(tuple(_to_float(t) for t in m.group(2).split()))
            continue
        if rows and line.strip():
            break
        if not rows and offset > _MAX_TABLE_LEAD:
            break

    if not rows:
        raise OutputParseError("Logits table header found but no rows parsed")
    k = len(rows)
    for i, row in enumerate(rows, start=1):
        if len(row) != k:
            raise OutputParseError(
                f"Logits table is not square: row {i} has {len(row)} values, expected {k}"
            )
    return tuple(rows)


def _parse_savedata_info(lines: Sequence[str]) -> Optional[SaveDataInfo]:
    start = _find(lines, "SAVEDATA INFORMATION")
    if start is None:
        return None

    variables: List[str] = []
    order = _find(lines, "Order and format of variables", start)
    if order is not None:
        for line in lines[order + 1:]:
            m = _SAVE_VAR_RE.match(line)
            if m:
                variables.append(m.group(1))
            elif variables and line.strip():
                break

    file_name = None
    save_file = _find(lines, re.compile(r"^\s*Save file\s*$"), start)
    if save_file is not None:
        for line in lines[save_file + 1:]:
            if line.strip():
                file_name = line.strip()
                break

    if not variables or file_name is None:
        raise OutputParseError(
            "SAVEDATA INFORMATION section lacks a variable order or save file name"
        )
    return SaveDataInfo(file=file_name, variables=tuple(variables))


def parse_output_text(
    text: str,
    input_path: Optional[Path] = None,
    output_path: Optional[Path] = None,
) -> RunResult:
    """
    Parse engine output text into a RunResult.

    Args:
        text: Full .out file content
        input_path / output_path: Recorded on the result

    Returns:
        RunResult without saved data loaded (see read_savedata)

    Raises:
        OutputParseError: If a requested section is present but malformed
    """
    lines = text.splitlines()
    errors, found_warnings = _parse_diagnostics(lines)

    estimated = _parse_count_table(lines, _ESTIMATED_HEADER)
    most_likely = _parse_count_table(lines, _MOST_LIKELY_HEADER)
    logits = _parse_logits(lines)
    class_counts = None
    if estimated or most_likely or logits is not None:
        class_counts = ClassCounts(
            estimated=estimated,
            most_likely=most_likely,
            logits_most_likely=logits,
        )

    return RunResult(
        input_path=input_path,
        output_path=output_path,
        terminated_normally=TERMINATED_NORMALLY in text,
        summaries=_parse_summaries(lines),
        class_counts=class_counts,
        savedata_info=_parse_savedata_info(lines),
        warnings=found_warnings,
        errors=errors,
        output_text=text,
    )


def parse_output_file(filepath: Union[str, Path], input_path: Optional[Path] = None) -> RunResult:
    """
    Parse an engine .out file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        OutputParseError: If parsing fails
    """
    filepath = Path(filepath)
    with open(filepath, "r", encoding="utf-8", errors="replace") as f:
        content = f.read()
    return parse_output_text(content, input_path=input_path, output_path=filepath)


def read_savedata(
    filepath: Union[str, Path],
    variables: Sequence[str],
    missing_value: Optional[float] = DEFAULT_MISSING_VALUE,
) -> pd.DataFrame:
    """
    Load the engine's saved per-case file.

    Args:
        filepath: Save file written by the engine
        variables: Column names in engine order (SaveDataInfo.variables)
        missing_value: Missing flag written by the engine (becomes NaN)

    Raises:
        FileNotFoundError: If the save file doesn't exist
        OutputParseError: If the column count disagrees with `variables`
    """
    frame = pd.read_csv(
        filepath,
        sep=r"\s+",
        header=None,
        na_values=["*"],
    )
    if frame.shape[1] != len(variables):
        raise OutputParseError(
            f"Save file {filepath} has {frame.shape[1]} columns, "
            f"output lists {len(variables)} variables"
        )
    frame.columns = list(variables)
    if missing_value is not None:
        frame = frame.mask(frame == missing_value)
    return frame


__all__ = [
    "TERMINATED_NORMALLY",
    "parse_output_text",
    "parse_output_file",
    "read_savedata",
]
