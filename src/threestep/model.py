"""
Core Model Specification Objects

Defines the typed sections of an engine input specification.

These are pure data classes representing:
    - Variable declarations (which columns, which measurement level)
    - Analysis options
    - MODEL statements, overall and per latent class
    - Constraint/test blocks referring to labelled parameters
    - Output, plot and save-data requests
    - ModelSpec (root container)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about engine syntax
        - Are immutable (frozen, tuple-valued)
        - Perform no I/O
        - Represent structure, not behavior
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .statements import Statement


DEFAULT_MISSING_VALUE = 999


@dataclass(frozen=True)
class LatentClasses:
    """
    Declares the categorical latent variable.

    Properties:
        name: Latent variable name (e.g., "c")
        count: Number of latent classes K
    """

    name: str
    count: int


@dataclass(frozen=True)
class VariableBlock:
    """
    Variable declarations.

    NAMES is not stored here: it is always derived from the dataset
    columns at render time, in column order.

    Properties:
        usevariables: Subset of columns the model actually uses
        categorical: Binary/ordinal indicators
        nominal: Unordered categorical variables (the most-likely class N)
        auxiliary: Columns carried into saved data without being modelled
        idvariable: Optional case identifier column
        missing_value: Sentinel declared missing for ALL columns
        classes: Latent class declaration (None for non-mixture models)
    """

    usevariables: Tuple[str, ...] = ()
    categorical: Tuple[str, ...] = ()
    nominal: Tuple[str, ...] = ()
    auxiliary: Tuple[str, ...] = ()
    idvariable: Optional[str] = None
    missing_value: Optional[float] = DEFAULT_MISSING_VALUE
    classes: Optional[LatentClasses] = None


@dataclass(frozen=True)
class DefineBlock:
    """Data transformations, one engine statement per entry."""

    statements: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AnalysisBlock:
    """
    Analysis options.

    Properties:
        type: Analysis type (e.g., "MIXTURE")
        estimator: Optional estimator name (e.g., "MLR")
        starts: Optional (initial, final) random-start counts
        processors: Optional processor count
        options: Extra KEY = VALUE options, rendered in insertion order
    """

    type: str = "MIXTURE"
    estimator: Optional[str] = None
    starts: Optional[Tuple[int, int]] = None
    processors: Optional[int] = None
    options: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ClassBlock:
    """
    Statements specific to one latent class (rendered under %c#k%).

    Properties:
        class_index: 1-based latent class number
        statements: Class-local statements, in render order
    """

    class_index: int
    statements: Tuple[Statement, ...] = ()


@dataclass(frozen=True)
class ModelBlock:
    """
    MODEL section.

    Properties:
        overall: Statements under %OVERALL% (or the whole model when
                 there are no class blocks)
        class_blocks: One block per latent class, ordered 1..K
    """

    overall: Tuple[Statement, ...] = ()
    class_blocks: Tuple[ClassBlock, ...] = ()

    def get_class_block(self, class_index: int) -> Optional[ClassBlock]:
        for block in self.class_blocks:
            if block.class_index == class_index:
                return block
        return None


@dataclass(frozen=True)
class ModelConstraintBlock:
    """
    MODEL CONSTRAINT section.

    Properties:
        new_parameters: Names introduced with NEW(...)
        statements: Constraint equations (e.g., "diff12 = m1_1 - m1_2")
    """

    new_parameters: Tuple[str, ...] = ()
    statements: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ModelTestBlock:
    """MODEL TEST section (one omnibus Wald test per run)."""

    statements: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OutputBlock:
    """OUTPUT requests (e.g., "SAMPSTAT", "TECH11")."""

    options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PlotBlock:
    """
    PLOT requests.

    Properties:
        type: Plot type (e.g., "PLOT3")
        series: Optional SERIES specification (e.g., "u1-u5 (*)")
    """

    type: Optional[str] = None
    series: Optional[str] = None


@dataclass(frozen=True)
class SaveDataBlock:
    """
    SAVEDATA requests.

    Properties:
        file: Name of the per-case file the engine writes
        save: SAVE options (e.g., ("CPROB",))
        missflag: Value the engine writes for missing data
    """

    file: str
    save: Tuple[str, ...] = ("CPROB",)
    missflag: Optional[float] = DEFAULT_MISSING_VALUE


@dataclass(frozen=True)
class ModelSpec:
    """
    Root container for one engine run.

    Everything in the rendered input file MUST be derivable from this
    object alone.

    Properties:
        name:
            File stem for the rendered input/data files (e.g., "step1")

        title:
            TITLE text

        dataset:
            Input table; its column order defines NAMES.
            Not compared or hashed.

        variables, define, analysis, model, constraint, test,
        output, plot, savedata:
            Typed sections. None/empty sections are not rendered.

    INVARIANTS:
        - Column names referenced in any block should exist in the dataset.
          NOT validated here; analyzer.analyze_spec reports it and the
          engine rejects it at run time.
        - ModelSpec is never mutated. Later stages build a new one.
    """

    name: str
    title: str = ""
    dataset: Optional[pd.DataFrame] = field(default=None, compare=False, repr=False)
    variables: VariableBlock = field(default_factory=VariableBlock)
    define: DefineBlock = field(default_factory=DefineBlock)
    analysis: Optional[AnalysisBlock] = None
    model: ModelBlock = field(default_factory=ModelBlock)
    constraint: ModelConstraintBlock = field(default_factory=ModelConstraintBlock)
    test: ModelTestBlock = field(default_factory=ModelTestBlock)
    output: OutputBlock = field(default_factory=OutputBlock)
    plot: Optional[PlotBlock] = None
    savedata: Optional[SaveDataBlock] = None

    @property
    def column_names(self) -> List[str]:
        """Dataset column names in order (empty when no dataset is attached)."""
        if self.dataset is None:
            return []
        return [str(c) for c in self.dataset.columns]

    @property
    def class_count(self) -> Optional[int]:
        if self.variables.classes is None:
            return None
        return self.variables.classes.count

    def metadata(self) -> Dict[str, str]:
        """Small summary used in log lines."""
        return {
            "name": self.name,
            "classes": str(self.class_count),
            "columns": str(len(self.column_names)),
        }
