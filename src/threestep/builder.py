"""
Spec Builder: assembles the ModelSpec of each of the three stages.

    Stage 1  step1  Measurement model: LCA over the categorical indicators,
                    auxiliaries carried along, CPROB saved per case.
    Stage 2  step2  Covariate model: most-likely class N as a nominal
                    indicator with pinned logits, c ON covariates.
    Stage 3  step3  Distal outcome model: pinned logits, labelled
                    class-specific means/variances, pairwise differences
                    and an omnibus equality test.

No I/O happens here. Builders return new ModelSpec values and never
modify a previous stage's objects.
"""

from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd

from .config import PipelineConfig
from .errors import ConfigurationMismatch
from .interpolator import interpolate_logits
from .model import (
    AnalysisBlock,
    ClassBlock,
    LatentClasses,
    ModelBlock,
    ModelConstraintBlock,
    ModelSpec,
    ModelTestBlock,
    OutputBlock,
    PlotBlock,
    SaveDataBlock,
    VariableBlock,
)
from .results import LogitMatrix, SavedData
from .statements import Mean, Regression, Statement, Variance


STEP1_NAME = "step1"
STEP2_NAME = "step2"
STEP3_NAME = "step3"


def _unique(names: Sequence[str]) -> Tuple[str, ...]:
    out: List[str] = []
    for name in names:
        if name not in out:
            out.append(name)
    return tuple(out)


def build_class_blocks(
    class_count: int,
    logits: LogitMatrix,
    indicator: str = "N",
    declarations: Optional[Callable[[int], Sequence[Statement]]] = None,
) -> Tuple[ClassBlock, ...]:
    """
    Generate one ClassBlock per latent class 1..K.

    Each block holds the pinned logits of class k followed by whatever
    declarations(k) returns (distal means, regressions, labels, ...).

    Raises:
        ConfigurationMismatch: If class_count disagrees with the LogitMatrix
    """
    fixed = interpolate_logits(logits, class_count, indicator=indicator)
    blocks = []
    for k in range(1, class_count + 1):
        statements = list(fixed[k])
        if declarations is not None:
            statements.extend(declarations(k))
        blocks.append(ClassBlock(class_index=k, statements=tuple(statements)))
    return tuple(blocks)


def _check_logits(config: PipelineConfig, logits: LogitMatrix) -> None:
    if logits.class_count != config.class_count:
        raise ConfigurationMismatch(
            f"Configured {config.class_count} classes but LogitMatrix has "
            f"{logits.class_count} rows"
        )
    if logits.reference_class != config.reference:
        raise ConfigurationMismatch(
            f"LogitMatrix uses reference class {logits.reference_class}, "
            f"configuration expects {config.reference}"
        )


def build_measurement_spec(config: PipelineConfig, data: pd.DataFrame) -> ModelSpec:
    """
    Stage 1: unconditional LCA with auxiliaries carried into the saved data.

    The engine prints the most-likely class logits table for every
    mixture run; SAVE = CPROB adds posterior probabilities and the
    most-likely class to the saved file.
    """
    k = config.class_count
    plot = None
    if config.plot:
        plot = PlotBlock(type="PLOT3", series=f"{' '.join(config.indicators)} (*)")

    return ModelSpec(
        name=STEP1_NAME,
        title=f"Step 1 - {k}-class measurement model",
        dataset=data,
        variables=VariableBlock(
            usevariables=tuple(config.indicators),
            categorical=tuple(config.indicators),
            auxiliary=config.auxiliaries,
            idvariable=config.idvariable,
            missing_value=config.missing_value,
            classes=LatentClasses(name=config.latent_name, count=k),
        ),
        analysis=AnalysisBlock(
            type="MIXTURE",
            estimator=config.estimator,
            starts=tuple(config.starts) if config.starts else None,
            processors=config.processors,
        ),
        output=OutputBlock(options=tuple(config.output_options)),
        plot=plot,
        savedata=SaveDataBlock(
            file=f"{STEP1_NAME}_save.dat",
            save=("CPROB",),
            missflag=config.missing_value,
        ),
    )


def _auxiliary_analysis(config: PipelineConfig) -> AnalysisBlock:
    # Classes are anchored by the pinned logits; random starts add nothing.
    return AnalysisBlock(
        type="MIXTURE",
        estimator=config.estimator,
        processors=config.processors,
        options=(("STARTS", "0"),),
    )


def build_covariate_spec(
    config: PipelineConfig, logits: LogitMatrix, saved: SavedData
) -> ModelSpec:
    """
    Stage 2: class membership regressed on covariates.

    Raises:
        ConfigurationMismatch: On class count/reference disagreement
    """
    _check_logits(config, logits)
    n = saved.class_column
    k = config.class_count

    overall: Tuple[Statement, ...] = ()
    if config.covariates:
        overall = (Regression(dependent=config.latent_name, predictors=tuple(config.covariates)),)

    return ModelSpec(
        name=STEP2_NAME,
        title=f"Step 2 - {k}-class model with fixed classification logits and covariates",
        dataset=saved.frame,
        variables=VariableBlock(
            usevariables=_unique((n, *config.covariates)),
            nominal=(n,),
            idvariable=config.idvariable,
            missing_value=saved.missing_value,
            classes=LatentClasses(name=config.latent_name, count=k),
        ),
        analysis=_auxiliary_analysis(config),
        model=ModelBlock(
            overall=overall,
            class_blocks=build_class_blocks(k, logits, indicator=n),
        ),
        output=OutputBlock(options=tuple(config.output_options)),
    )


def distal_mean_label(outcome_index: int, class_index: int) -> str:
    return f"m{outcome_index}_{class_index}"


def distal_variance_label(outcome_index: int, class_index: int) -> str:
    return f"v{outcome_index}_{class_index}"


def distal_slope_label(outcome_index: int, predictor_index: int, class_index: int) -> str:
    return f"b{outcome_index}{predictor_index}_{class_index}"


def distal_declarations(config: PipelineConfig) -> Callable[[int], Tuple[Statement, ...]]:
    """Class-specific distal outcome statements, as a function of class index."""

    def declarations(k: int) -> Tuple[Statement, ...]:
        statements: List[Statement] = []
        for i, outcome in enumerate(config.distal_outcomes, start=1):
            statements.append(Mean(variable=outcome, label=distal_mean_label(i, k)))
            statements.append(Variance(variable=outcome, label=distal_variance_label(i, k)))
            for j, predictor in enumerate(config.distal_predictors, start=1):
                statements.append(
                    Regression(
                        dependent=outcome,
                        predictors=(predictor,),
                        label=distal_slope_label(i, j, k),
                    )
                )
        return tuple(statements)

    return declarations


def distal_constraints(config: PipelineConfig) -> ModelConstraintBlock:
    """Pairwise class differences of every distal mean."""
    k = config.class_count
    new = []
    equations = []
    for i, _ in enumerate(config.distal_outcomes, start=1):
        for a in range(1, k + 1):
            for b in range(a + 1, k + 1):
                name = f"diff{i}_{a}{b}"
                new.append(name)
                equations.append(
                    f"{name} = {distal_mean_label(i, a)} - {distal_mean_label(i, b)}"
                )
    return ModelConstraintBlock(new_parameters=tuple(new), statements=tuple(equations))


def distal_test(config: PipelineConfig) -> ModelTestBlock:
    """Omnibus test that the test outcome's mean is equal across classes."""
    if not config.distal_outcomes:
        return ModelTestBlock()
    outcome = config.test_outcome or config.distal_outcomes[0]
    i = config.distal_outcomes.index(outcome) + 1
    return ModelTestBlock(
        statements=tuple(
            f"{distal_mean_label(i, k)} = {distal_mean_label(i, k + 1)}"
            for k in range(1, config.class_count)
        )
    )


def build_distal_spec(
    config: PipelineConfig, logits: LogitMatrix, saved: SavedData
) -> ModelSpec:
    """
    Stage 3: distal outcomes with class-specific labelled parameters.

    Raises:
        ConfigurationMismatch: On class count/reference disagreement,
                               or when no distal outcomes are configured
    """
    _check_logits(config, logits)
    if not config.distal_outcomes:
        raise ConfigurationMismatch("Stage 3 needs at least one distal outcome")
    n = saved.class_column
    k = config.class_count

    overall: Tuple[Statement, ...] = ()
    if config.covariates:
        overall = (Regression(dependent=config.latent_name, predictors=tuple(config.covariates)),)

    return ModelSpec(
        name=STEP3_NAME,
        title=f"Step 3 - {k}-class model with fixed classification logits and distal outcomes",
        dataset=saved.frame,
        variables=VariableBlock(
            usevariables=_unique(
                (n, *config.covariates, *config.distal_outcomes, *config.distal_predictors)
            ),
            nominal=(n,),
            idvariable=config.idvariable,
            missing_value=saved.missing_value,
            classes=LatentClasses(name=config.latent_name, count=k),
        ),
        analysis=_auxiliary_analysis(config),
        model=ModelBlock(
            overall=overall,
            class_blocks=build_class_blocks(
                k, logits, indicator=n, declarations=distal_declarations(config)
            ),
        ),
        constraint=distal_constraints(config),
        test=distal_test(config),
        output=OutputBlock(options=tuple(config.output_options)),
    )


__all__ = [
    "STEP1_NAME",
    "STEP2_NAME",
    "STEP3_NAME",
    "build_class_blocks",
    "build_measurement_spec",
    "build_covariate_spec",
    "build_distal_spec",
    "distal_declarations",
    "distal_constraints",
    "distal_test",
]
