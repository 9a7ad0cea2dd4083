"""
Pipeline configuration.

All paths are explicit: the output directory is resolved once, when the
configuration is loaded, and passed to every stage. Nothing depends on
the current working directory after that.

Example YAML:

    output_dir: runs/lca3
    class_count: 3
    indicators: [u1, u2, u3, u4, u5]
    covariates: [x1, x2]
    distal_outcomes: [d1]
    starts: [500, 100]
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigError, ConfigurationMismatch
from .model import DEFAULT_MISSING_VALUE


@dataclass(frozen=True)
class PipelineConfig:
    """
    Settings shared by the three stages.

    Properties:
        output_dir: Directory receiving every rendered/engine file
        indicators: Categorical class indicators of the measurement model
        class_count: Number of latent classes K
        reference_class: Class whose classification logit is omitted
                         (defaults to K, the engine's own convention)
        covariates: Predictors of class membership (stage 2)
        distal_outcomes: Outcomes with class-specific means (stage 3)
        distal_predictors: Covariates regressed within class in stage 3
        test_outcome: Distal outcome used in MODEL TEST (defaults to the first)
        idvariable: Optional case identifier column
        latent_name: Latent class variable name in the model
        class_column: Name the engine gives the most-likely class column
                      (defaults to latent_name upper-cased)
        indicator_name: Name of the most-likely class indicator in stages 2-3
        missing_value: Sentinel declared missing in every stage
        starts: Random starts (initial, final) for stage 1
        processors / estimator: Optional analysis options
        output_options: OUTPUT requests for every stage
        plot: Request PLOT3 profile plots in stage 1
        engine_command: Engine executable
        proportion_tolerance: Largest acceptable class proportion shift
                              between stage 1 and stage 2
    """

    output_dir: Path
    indicators: Tuple[str, ...]
    class_count: int = 3
    reference_class: Optional[int] = None
    covariates: Tuple[str, ...] = ()
    distal_outcomes: Tuple[str, ...] = ()
    distal_predictors: Tuple[str, ...] = ()
    test_outcome: Optional[str] = None
    idvariable: Optional[str] = None
    latent_name: str = "c"
    class_column: Optional[str] = None
    indicator_name: str = "N"
    missing_value: float = DEFAULT_MISSING_VALUE
    starts: Optional[Tuple[int, int]] = (500, 100)
    processors: Optional[int] = None
    estimator: Optional[str] = None
    output_options: Tuple[str, ...] = ("SAMPSTAT",)
    plot: bool = True
    engine_command: str = "mplus"
    proportion_tolerance: float = 0.05

    @property
    def reference(self) -> int:
        return self.reference_class if self.reference_class is not None else self.class_count

    @property
    def engine_class_column(self) -> str:
        return self.class_column or self.latent_name.upper()

    @property
    def auxiliaries(self) -> Tuple[str, ...]:
        """Every non-indicator column carried from stage 1 into saved data, in order."""
        seen: List[str] = []
        for name in (*self.covariates, *self.distal_outcomes, *self.distal_predictors):
            if name not in seen:
                seen.append(name)
        return tuple(seen)

    def validate(self) -> "PipelineConfig":
        """
        Check internal consistency.

        Raises:
            ConfigurationMismatch: On an impossible class/reference setup
        """
        if self.class_count < 2:
            raise ConfigurationMismatch(f"class_count must be at least 2, got {self.class_count}")
        if not 1 <= self.reference <= self.class_count:
            raise ConfigurationMismatch(
                f"reference_class {self.reference} outside 1..{self.class_count}"
            )
        if not self.indicators:
            raise ConfigurationMismatch("At least one class indicator is required")
        overlap = set(self.indicators) & set(self.auxiliaries)
        if overlap:
            raise ConfigurationMismatch(
                f"Columns used both as indicators and auxiliaries: {sorted(overlap)}"
            )
        if self.test_outcome is not None and self.test_outcome not in self.distal_outcomes:
            raise ConfigurationMismatch(
                f"test_outcome {self.test_outcome!r} is not a distal outcome"
            )
        if self.starts is not None and len(self.starts) != 2:
            raise ConfigurationMismatch(f"starts must be (initial, final), got {self.starts}")
        return self


_TUPLE_FIELDS = {
    "indicators",
    "covariates",
    "distal_outcomes",
    "distal_predictors",
    "starts",
    "output_options",
}


def _as_tuple(key: str, value: Any) -> tuple:
    # A bare YAML scalar names a single item
    if isinstance(value, (str, int, float)):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"{key} must be a list, got {type(value).__name__}")
    return tuple(value)


def config_from_dict(d: Dict[str, Any], base_dir: Union[str, Path, None] = None) -> PipelineConfig:
    """
    Build a PipelineConfig from a plain dict.

    Args:
        d: Parsed configuration mapping
        base_dir: Directory relative output_dir values are resolved against

    Raises:
        ConfigError: Unknown keys, missing required keys, or non-list values
        ConfigurationMismatch: Inconsistent class setup
    """
    if not isinstance(d, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(d).__name__}")

    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(d) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {unknown}")
    for required in ("output_dir", "indicators"):
        if required not in d:
            raise ConfigError(f"Missing required configuration key: {required}")

    values: Dict[str, Any] = {}
    for key, value in d.items():
        if key in _TUPLE_FIELDS and value is not None:
            value = _as_tuple(key, value)
        values[key] = value

    output_dir = Path(values["output_dir"])
    if not output_dir.is_absolute() and base_dir is not None:
        output_dir = Path(base_dir) / output_dir
    values["output_dir"] = output_dir.resolve()

    return PipelineConfig(**values).validate()


def config_to_dict(config: PipelineConfig) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(PipelineConfig):
        value = getattr(config, f.name)
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, Path):
            value = str(value)
        out[f.name] = value
    return out


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """
    Load a PipelineConfig from a YAML file.

    Relative output_dir values are resolved against the file's directory.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    return config_from_dict(data or {}, base_dir=path.parent)


__all__ = ["PipelineConfig", "config_from_dict", "config_to_dict", "load_config"]
