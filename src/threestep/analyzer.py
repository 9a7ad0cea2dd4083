"""
Spec Analyzer: early diagnostics of a ModelSpec before submission.

This module provides lightweight analysis of ModelSpec objects:
    - Column inventory (referenced vs dataset columns)
    - Model variables missing from USEVARIABLES
    - Labelled parameters and their use in MODEL CONSTRAINT / MODEL TEST
    - Class block coverage against CLASSES

IMPORTANT: This is a read-only report. It does NOT modify the spec and
does NOT raise; the engine remains the authority on whether a spec runs.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .model import ModelSpec
from .parameters import referenced_identifiers
from .statements import FixedMean, Mean, Regression, Statement, Variance

_ENGINE_FUNCTIONS = {"EXP", "LOG", "LOG10", "SQRT", "ABS", "SIN", "COS", "TAN", "ASIN", "ACOS", "ATAN"}


def _statement_variables(stmt: Statement) -> Set[str]:
    if isinstance(stmt, (FixedMean, Mean, Variance)):
        return {stmt.variable}
    if isinstance(stmt, Regression):
        return {stmt.dependent, *stmt.predictors}
    return set()


def _statement_label(stmt: Statement):
    if isinstance(stmt, (Mean, Variance, Regression)):
        return stmt.label
    return None


@dataclass
class SpecReport:
    """Analysis report for one ModelSpec."""

    spec_name: str
    total_columns: int = 0
    total_class_blocks: int = 0

    # Column usage (upper-cased names)
    referenced_variables: Set[str] = field(default_factory=set)
    undefined_variables: Set[str] = field(default_factory=set)
    unused_columns: Set[str] = field(default_factory=set)
    not_in_usevariables: Set[str] = field(default_factory=set)

    # Labels
    labels_by_class: Dict[int, Set[str]] = field(default_factory=dict)
    duplicate_labels: Set[str] = field(default_factory=set)
    undefined_labels: Set[str] = field(default_factory=set)

    # Class blocks
    missing_class_blocks: List[int] = field(default_factory=list)
    unexpected_class_blocks: List[int] = field(default_factory=list)

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)

    @property
    def labels(self) -> Set[str]:
        out: Set[str] = set()
        for names in self.labels_by_class.values():
            out.update(names)
        return out


def analyze_spec(spec: ModelSpec) -> SpecReport:
    """
    Analyze a ModelSpec.

    Variable names are compared case-insensitively, as the engine does.
    """
    report = SpecReport(spec_name=spec.name)
    columns = {c.upper() for c in spec.column_names}
    report.total_columns = len(columns)
    report.total_class_blocks = len(spec.model.class_blocks)

    v = spec.variables
    latent = v.classes.name.upper() if v.classes else None

    # =========================================================================
    # 1. VARIABLE ANALYSIS
    # =========================================================================

    declared = set(v.usevariables) | set(v.categorical) | set(v.nominal) | set(v.auxiliary)
    if v.idvariable:
        declared.add(v.idvariable)

    model_vars: Set[str] = set()
    for stmt in spec.model.overall:
        model_vars |= _statement_variables(stmt)
    for block in spec.model.class_blocks:
        for stmt in block.statements:
            model_vars |= _statement_variables(stmt)

    referenced = {n.upper() for n in declared | model_vars}
    referenced.discard(latent)
    report.referenced_variables = referenced

    if columns:
        report.undefined_variables = referenced - columns
        report.unused_columns = columns - referenced

    usevars = {n.upper() for n in v.usevariables}
    if usevars:
        report.not_in_usevariables = {n.upper() for n in model_vars} - usevars - {latent}

    # =========================================================================
    # 2. LABELS
    # =========================================================================

    seen: Dict[str, int] = defaultdict(int)
    for stmt in spec.model.overall:
        label = _statement_label(stmt)
        if label:
            seen[label.upper()] += 1
            report.labels_by_class.setdefault(0, set()).add(label)
    for block in spec.model.class_blocks:
        for stmt in block.statements:
            label = _statement_label(stmt)
            if label:
                seen[label.upper()] += 1
                report.labels_by_class.setdefault(block.class_index, set()).add(label)
    report.duplicate_labels = {name for name, count in seen.items() if count > 1}

    defined = set(seen) | {p.upper() for p in spec.constraint.new_parameters}
    used = referenced_identifiers(list(spec.constraint.statements) + list(spec.test.statements))
    report.undefined_labels = {u.upper() for u in used} - defined - _ENGINE_FUNCTIONS

    # =========================================================================
    # 3. CLASS BLOCKS
    # =========================================================================

    indices = [b.class_index for b in spec.model.class_blocks]
    if v.classes is not None and indices:
        expected = set(range(1, v.classes.count + 1))
        report.missing_class_blocks = sorted(expected - set(indices))
        report.unexpected_class_blocks = sorted(set(indices) - expected)

    # =========================================================================
    # 4. WARNING FLAGS
    # =========================================================================

    if report.undefined_variables:
        report.add_warning(
            f"Variables not in dataset: {', '.join(sorted(report.undefined_variables))}"
        )
    if report.not_in_usevariables:
        report.add_warning(
            f"Model variables missing from USEVARIABLES: {', '.join(sorted(report.not_in_usevariables))}"
        )
    if report.duplicate_labels:
        report.add_warning(
            f"Labels used more than once (parameters constrained equal): "
            f"{', '.join(sorted(report.duplicate_labels))}"
        )
    if report.undefined_labels:
        report.add_warning(
            f"Constraint/test references undefined labels: {', '.join(sorted(report.undefined_labels))}"
        )
    if report.missing_class_blocks:
        report.add_warning(
            f"No class-specific block for classes: {', '.join(map(str, report.missing_class_blocks))}"
        )
    if report.unexpected_class_blocks:
        report.add_warning(
            f"Class blocks beyond CLASSES count: {', '.join(map(str, report.unexpected_class_blocks))}"
        )

    return report
