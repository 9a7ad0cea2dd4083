"""
Three-step pipeline: Builder → Renderer → Runner → Extractor → Interpolator.

    step1  measurement model          → LogitMatrix + SavedData
    step2  fixed logits + covariates  → class proportions checked against step1
    step3  fixed logits + distals     → labelled class means, constraints, test

Stages run strictly in sequence. Any error stops the pipeline and
propagates; nothing is retried, because each stage's diagnostics are
meant to be inspected before the next one is trusted.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import pandas as pd

from .analyzer import analyze_spec
from .backends.mplus_generator import RenderedSpec, save_input_file
from .builder import build_covariate_spec, build_distal_spec, build_measurement_spec
from .config import PipelineConfig
from .extractor import (
    extract_class_proportions,
    extract_logit_matrix,
    extract_saved_data,
    proportion_shift,
)
from .model import ModelSpec
from .results import LogitMatrix, RunResult, SavedData
from .runner import MplusRunner
from .serialization import logits_to_yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageOutcome:
    """Everything one stage produced."""

    spec: ModelSpec
    rendered: RenderedSpec
    result: RunResult
    proportions: Dict[int, float]


@dataclass(frozen=True)
class MeasurementOutcome(StageOutcome):
    """Stage-1 outcome plus what later stages consume."""

    logits: Optional[LogitMatrix] = None
    saved: Optional[SavedData] = None


@dataclass(frozen=True)
class PipelineResult:
    step1: MeasurementOutcome
    step2: StageOutcome
    step3: Optional[StageOutcome]
    proportion_shift: float


class ThreeStepPipeline:
    """
    Runs the three stages against one configuration.

    Properties:
        config: Validated PipelineConfig
        runner: Engine runner (MplusRunner unless injected)
    """

    def __init__(self, config: PipelineConfig, runner: Optional[MplusRunner] = None):
        self.config = config.validate()
        self.runner = runner or MplusRunner(config.engine_command, missing_value=config.missing_value)

    def _submit(self, spec: ModelSpec) -> Tuple[RenderedSpec, RunResult]:
        meta = spec.metadata()
        logger.info("Submitting %s (%s classes, %s columns)", meta["name"], meta["classes"], meta["columns"])

        report = analyze_spec(spec)
        for warning in report.warnings:
            logger.warning("%s: %s", spec.name, warning)

        rendered = save_input_file(spec, self.config.output_dir)
        logger.info("Rendered %s -> %s", spec.name, rendered.input_path)
        return rendered, self.runner.run(rendered)

    def run_step1(self, data: pd.DataFrame) -> MeasurementOutcome:
        spec = build_measurement_spec(self.config, data)
        rendered, result = self._submit(spec)

        logits = extract_logit_matrix(result, reference_class=self.config.reference)
        saved = extract_saved_data(
            result,
            class_column=self.config.engine_class_column,
            rename_to=self.config.indicator_name,
            reference_class=self.config.reference,
            missing_value=self.config.missing_value,
        )
        proportions = extract_class_proportions(result, basis="estimated")

        logits_path = self.config.output_dir / f"{spec.name}_logits.yaml"
        with open(logits_path, "w", encoding="utf-8") as f:
            f.write(logits_to_yaml(logits))

        logger.info("Step 1 classification logits (reference class %d):\n%s",
                    logits.reference_class, logits.to_frame().to_string())
        logger.info("Step 1 class proportions: %s", _format_proportions(proportions))

        return MeasurementOutcome(
            spec=spec,
            rendered=rendered,
            result=result,
            proportions=proportions,
            logits=logits,
            saved=saved,
        )

    def run_step2(self, step1: MeasurementOutcome) -> StageOutcome:
        spec = build_covariate_spec(self.config, step1.logits, step1.saved)
        rendered, result = self._submit(spec)
        proportions = extract_class_proportions(result, basis="estimated")
        logger.info("Step 2 class proportions: %s", _format_proportions(proportions))
        return StageOutcome(spec=spec, rendered=rendered, result=result, proportions=proportions)

    def run_step3(self, step1: MeasurementOutcome) -> StageOutcome:
        spec = build_distal_spec(self.config, step1.logits, step1.saved)
        rendered, result = self._submit(spec)
        proportions = extract_class_proportions(result, basis="estimated")
        logger.info("Step 3 class proportions: %s", _format_proportions(proportions))
        return StageOutcome(spec=spec, rendered=rendered, result=result, proportions=proportions)

    def check_proportions(self, step1: StageOutcome, later: StageOutcome) -> float:
        """Log and return the largest class proportion shift between two stages."""
        shift = proportion_shift(step1.proportions, later.proportions)
        if shift > self.config.proportion_tolerance:
            logger.warning(
                "Class proportions moved by %.3f between %s and %s (tolerance %.3f); "
                "the auxiliary model may be redefining the classes",
                shift, step1.spec.name, later.spec.name, self.config.proportion_tolerance,
            )
        else:
            logger.info("Largest class proportion shift %s -> %s: %.3f",
                        step1.spec.name, later.spec.name, shift)
        return shift

    def run(self, data: pd.DataFrame) -> PipelineResult:
        step1 = self.run_step1(data)
        step2 = self.run_step2(step1)
        shift = self.check_proportions(step1, step2)

        step3 = None
        if self.config.distal_outcomes:
            step3 = self.run_step3(step1)
            self.check_proportions(step1, step3)
        else:
            logger.info("No distal outcomes configured; skipping step 3")

        return PipelineResult(step1=step1, step2=step2, step3=step3, proportion_shift=shift)


def _format_proportions(proportions: Dict[int, float]) -> str:
    return ", ".join(f"{k}: {v:.3f}" for k, v in sorted(proportions.items()))


__all__ = ["StageOutcome", "MeasurementOutcome", "PipelineResult", "ThreeStepPipeline"]
