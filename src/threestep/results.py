"""
Result objects read back from the engine.

RunResult is created by the runner and is read-only afterwards.
LogitMatrix and SavedData are produced by the extractor and consumed
by the builder/interpolator of the next stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .errors import ConfigurationMismatch
from .model import DEFAULT_MISSING_VALUE


@dataclass(frozen=True)
class ClassProportion:
    """One row of a class counts table."""

    class_index: int
    count: float
    proportion: float


@dataclass(frozen=True)
class ClassCounts:
    """
    Class count summaries of a mixture run.

    Properties:
        estimated: Counts based on the estimated model
        most_likely: Counts based on most likely class membership
        logits_most_likely: Raw logits table for most likely class
            membership (rows = latent class 1..K, columns = most likely
            class 1..K, last column is the engine's reference and is 0)
    """

    estimated: Tuple[ClassProportion, ...] = ()
    most_likely: Tuple[ClassProportion, ...] = ()
    logits_most_likely: Optional[Tuple[Tuple[float, ...], ...]] = None


@dataclass(frozen=True)
class SaveDataInfo:
    """What the engine says it saved: file name and column order."""

    file: str
    variables: Tuple[str, ...]


@dataclass(frozen=True)
class RunResult:
    """
    Structured result of one engine run.

    Properties:
        input_path / output_path: Files of this run
        terminated_normally: Engine reported normal termination
        summaries: Fit statistics keyed by name (e.g., "LL", "BIC")
        class_counts: None when the output has no class counts section
        savedata_info: None when the output has no SAVEDATA INFORMATION
        savedata: Per-case table loaded by the runner, None when absent
        warnings / errors: Engine diagnostic paragraphs
    """

    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    terminated_normally: bool = False
    summaries: Dict[str, float] = field(default_factory=dict)
    class_counts: Optional[ClassCounts] = None
    savedata_info: Optional[SaveDataInfo] = None
    savedata: Optional[pd.DataFrame] = field(default=None, compare=False, repr=False)
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    output_text: str = field(default="", compare=False, repr=False)

    def diagnostics(self, limit: int = 4000) -> str:
        """Errors followed by warnings, truncated from the front to `limit` characters."""
        text = "\n\n".join(list(self.errors) + list(self.warnings))
        return text[-limit:]


@dataclass(frozen=True)
class LogitMatrix:
    """
    Classification logits for most-likely class membership.

    Rows are latent classes 1..K. Columns are the K-1 non-reference
    categories of the most-likely class indicator, in ascending class
    order with the reference class removed.

    Example (K=3, reference_class=3):
        values = ((3.245, 1.012),
                  (-1.234, 2.567),
                  (-4.123, -2.001))
        categories = (1, 2)

    Properties:
        values: K x (K-1) logits relative to the reference class
        reference_class: Class whose logit is 0 and is omitted
        categories: Original class numbers of the columns
    """

    values: Tuple[Tuple[float, ...], ...]
    reference_class: int
    categories: Tuple[int, ...]

    def __post_init__(self):
        k = len(self.values)
        if k < 2:
            raise ConfigurationMismatch(f"LogitMatrix needs at least 2 classes, got {k}")
        for i, row in enumerate(self.values, start=1):
            if len(row) != k - 1:
                raise ConfigurationMismatch(
                    f"LogitMatrix row {i} has {len(row)} columns, expected {k - 1}"
                )
        if not 1 <= self.reference_class <= k:
            raise ConfigurationMismatch(
                f"Reference class {self.reference_class} outside 1..{k}"
            )
        expected = tuple(c for c in range(1, k + 1) if c != self.reference_class)
        if tuple(self.categories) != expected:
            raise ConfigurationMismatch(
                f"LogitMatrix categories {self.categories} do not match reference "
                f"class {self.reference_class} (expected {expected})"
            )

    @property
    def class_count(self) -> int:
        return len(self.values)

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.values), len(self.values[0]))

    def value(self, class_index: int, column_index: int) -> float:
        """Logit at 1-based [class_index, column_index]."""
        if not 1 <= class_index <= self.class_count:
            raise IndexError(f"class_index {class_index} outside 1..{self.class_count}")
        if not 1 <= column_index <= self.class_count - 1:
            raise IndexError(f"column_index {column_index} outside 1..{self.class_count - 1}")
        return self.values[class_index - 1][column_index - 1]

    def row(self, class_index: int) -> Tuple[float, ...]:
        """Logits of 1-based class_index."""
        if not 1 <= class_index <= self.class_count:
            raise IndexError(f"class_index {class_index} outside 1..{self.class_count}")
        return self.values[class_index - 1]

    def to_frame(self) -> pd.DataFrame:
        """Tabular view for logging/inspection."""
        return pd.DataFrame(
            [list(r) for r in self.values],
            index=pd.Index(range(1, self.class_count + 1), name="class"),
            columns=[f"N#{i}" for i in range(1, self.class_count)],
        )


@dataclass(frozen=True)
class SavedData:
    """
    Per-case table saved by the engine, ready to feed the next stage.

    Properties:
        frame: One row per case; missing values are NaN
        class_column: Name of the most-likely class column (renamed)
        missing_value: Sentinel the next stage declares missing
        category_map: Original class number -> recoded category
                      (identity unless the reference class is not K)
    """

    frame: pd.DataFrame = field(compare=False, repr=False)
    class_column: str = "N"
    missing_value: float = DEFAULT_MISSING_VALUE
    category_map: Dict[int, int] = field(default_factory=dict)

    @property
    def columns(self) -> List[str]:
        return [str(c) for c in self.frame.columns]

    def class_domain(self) -> List[int]:
        """Sorted distinct values of the class column."""
        values = self.frame[self.class_column].dropna().astype(int).unique()
        return sorted(int(v) for v in values)
