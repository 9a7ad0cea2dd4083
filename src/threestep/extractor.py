"""
Result Extractor: pulls the next stage's inputs out of a RunResult.

    extract_logit_matrix       K x (K-1) logits relative to the reference class
    extract_saved_data         per-case table with the class column renamed
    extract_class_proportions  class proportions for stage comparisons

IMPORTANT:
    Extraction never returns partial or default values. A RunResult
    from a spec that did not request an output raises
    MissingRequestedOutput.
"""

from typing import Dict, Mapping, Optional

from .errors import ConfigurationMismatch, MissingRequestedOutput, OutputParseError
from .model import DEFAULT_MISSING_VALUE
from .results import LogitMatrix, RunResult, SavedData


def _raw_logits(result: RunResult):
    if result.class_counts is None or result.class_counts.logits_most_likely is None:
        raise MissingRequestedOutput(
            "Run result has no logits table for most likely class membership "
            "(was the run a mixture model?)"
        )
    return result.class_counts.logits_most_likely


def extract_logit_matrix(result: RunResult, reference_class: Optional[int] = None) -> LogitMatrix:
    """
    Extract classification logits relative to a reference class.

    The engine prints a K x K table whose last column is 0 (its own
    reference). Each row is re-expressed relative to `reference_class`
    and the reference column is dropped.

    Args:
        result: Stage-1 RunResult
        reference_class: 1-based reference class (defaults to K)

    Raises:
        MissingRequestedOutput: If the logits table is absent
        ConfigurationMismatch: If reference_class is out of range
    """
    raw = _raw_logits(result)
    k = len(raw)
    ref = reference_class if reference_class is not None else k
    if not 1 <= ref <= k:
        raise ConfigurationMismatch(f"Reference class {ref} outside 1..{k}")

    values = []
    for row in raw:
        base = row[ref - 1]
        values.append(tuple(row[j] - base for j in range(k) if j != ref - 1))

    return LogitMatrix(
        values=tuple(values),
        reference_class=ref,
        categories=tuple(c for c in range(1, k + 1) if c != ref),
    )


def reference_last_mapping(class_count: int, reference_class: int) -> Dict[int, int]:
    """
    Map original class numbers to categories with the reference class last.

    Example (K=3, reference 1): {2: 1, 3: 2, 1: 3}
    """
    others = [c for c in range(1, class_count + 1) if c != reference_class]
    mapping = {c: i for i, c in enumerate(others, start=1)}
    mapping[reference_class] = class_count
    return mapping


def extract_saved_data(
    result: RunResult,
    class_column: str = "C",
    rename_to: str = "N",
    reference_class: Optional[int] = None,
    missing_value: float = DEFAULT_MISSING_VALUE,
) -> SavedData:
    """
    Extract the per-case saved data for the next stage.

    Args:
        result: RunResult whose spec requested SAVEDATA
        class_column: Engine-reserved most-likely class column (case-insensitive)
        rename_to: Name the next stage's spec uses for that column
        reference_class: Reference class; when not K the column is recoded
                         so the reference becomes the last category
        missing_value: Sentinel the next stage declares missing

    Raises:
        MissingRequestedOutput: If no saved data or no class column
        ConfigurationMismatch: If rename_to collides with an existing column
        OutputParseError: If the class column has missing values
    """
    if result.savedata is None:
        raise MissingRequestedOutput(
            "Run result has no saved per-case data (SAVEDATA was not requested "
            "or the save file was not loaded)"
        )

    frame = result.savedata.copy()
    matches = [c for c in frame.columns if str(c).upper() == class_column.upper()]
    if not matches:
        raise MissingRequestedOutput(
            f"Saved data has no most likely class column {class_column!r} "
            f"(columns: {', '.join(str(c) for c in frame.columns)})"
        )
    source = matches[0]
    if rename_to != source and rename_to in frame.columns:
        raise ConfigurationMismatch(f"Saved data already has a column named {rename_to!r}")

    if frame[source].isna().any():
        raise OutputParseError(f"Most likely class column {source!r} has missing values")
    classes = frame[source].round().astype("int64")

    if result.class_counts is not None and result.class_counts.logits_most_likely is not None:
        k = len(result.class_counts.logits_most_likely)
    else:
        k = int(classes.max())
    ref = reference_class if reference_class is not None else k
    if not 1 <= ref <= k:
        raise ConfigurationMismatch(f"Reference class {ref} outside 1..{k}")

    mapping = reference_last_mapping(k, ref)
    if ref != k:
        classes = classes.map(mapping)

    frame[source] = classes
    frame = frame.rename(columns={source: rename_to})

    return SavedData(
        frame=frame,
        class_column=rename_to,
        missing_value=missing_value,
        category_map=mapping,
    )


def extract_class_proportions(result: RunResult, basis: str = "most_likely") -> Dict[int, float]:
    """
    Class proportions keyed by class index.

    Args:
        basis: "most_likely" or "estimated"

    Raises:
        MissingRequestedOutput: If the requested class counts table is absent
        ValueError: On an unknown basis
    """
    if basis not in ("most_likely", "estimated"):
        raise ValueError(f"Unknown class proportion basis: {basis!r}")
    if result.class_counts is None:
        raise MissingRequestedOutput("Run result has no class counts section")
    table = getattr(result.class_counts, basis)
    if not table:
        raise MissingRequestedOutput(f"Run result has no {basis} class counts table")
    return {row.class_index: row.proportion for row in table}


def proportion_shift(before: Mapping[int, float], after: Mapping[int, float]) -> float:
    """Largest absolute change in class proportion between two runs."""
    if set(before) != set(after):
        raise ConfigurationMismatch(
            f"Cannot compare class proportions over classes {sorted(before)} and {sorted(after)}"
        )
    return max(abs(before[k] - after[k]) for k in before)


__all__ = [
    "extract_logit_matrix",
    "extract_saved_data",
    "extract_class_proportions",
    "proportion_shift",
    "reference_last_mapping",
]
