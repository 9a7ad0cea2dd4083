"""
Spec Interpolator: carries stage-1 classification logits forward.

For every latent class k, each non-reference logit of the most-likely
class indicator is pinned at its stage-1 value:

    %c#1%
    [N#1@3.245];
    [N#2@1.012];

Nothing here is estimated. Re-estimating these parameters jointly with
the auxiliary model would let the auxiliary variables redefine the
classes, which is exactly what the three-step procedure avoids.
"""

from typing import Dict, Tuple

from .errors import ConfigurationMismatch
from .results import LogitMatrix
from .statements import FixedMean


def fixed_logit_statements(
    logits: LogitMatrix, class_index: int, indicator: str = "N"
) -> Tuple[FixedMean, ...]:
    """
    Fixed-value assignments for one latent class.

    Args:
        logits: Stage-1 LogitMatrix (K x K-1)
        class_index: 1-based latent class
        indicator: Name of the most-likely class variable

    Returns:
        K-1 FixedMean statements, category 1..K-1

    Raises:
        IndexError: class_index outside 1..K
    """
    row = logits.row(class_index)
    return tuple(
        FixedMean(variable=indicator, category=j, value=float(v))
        for j, v in enumerate(row, start=1)
    )


def interpolate_logits(
    logits: LogitMatrix, class_count: int, indicator: str = "N"
) -> Dict[int, Tuple[FixedMean, ...]]:
    """
    Fixed-value assignments for every latent class 1..K.

    Args:
        logits: Stage-1 LogitMatrix
        class_count: K from configuration
        indicator: Most-likely class variable name

    Returns:
        {class_index: FixedMean statements}, keys in ascending order

    Raises:
        ConfigurationMismatch: If class_count < 2 or != logits.class_count
    """
    if class_count < 2:
        raise ConfigurationMismatch(f"Class count must be at least 2, got {class_count}")
    if logits.class_count != class_count:
        raise ConfigurationMismatch(
            f"Configured {class_count} classes but LogitMatrix has "
            f"{logits.class_count} rows"
        )
    return {
        k: fixed_logit_statements(logits, k, indicator=indicator)
        for k in range(1, class_count + 1)
    }


__all__ = ["fixed_logit_statements", "interpolate_logits"]
