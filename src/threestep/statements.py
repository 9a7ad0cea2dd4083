"""
Statement System for threestep

Every line of a MODEL section (overall or class-specific) is represented
as a typed statement object, never as a pre-rendered string.

This ensures:
    - Class-specific blocks can be generated for any class count
    - Labelled parameters can be recovered for MODEL CONSTRAINT / MODEL TEST
    - Fixed constants stay numbers until the renderer formats them

ARCHITECTURAL RULE:
    Statements are structure only.
    Engine syntax lives in backends/mplus_generator.py.
"""

from abc import ABC
from dataclasses import dataclass
from typing import Optional, Tuple


class Statement(ABC):
    """
    Base class for all MODEL statements.

    DO NOT:
        - Add rendering logic here (belongs in backends)
        - Add validation against datasets (belongs in analyzer)
    """
    pass


@dataclass(frozen=True)
class FixedMean(Statement):
    """
    Pins the mean/logit of one category of a nominal variable.

    Example:
        [N#1@3.245];

    Becomes:
        FixedMean(variable="N", category=1, value=3.245)

    Properties:
        variable: Nominal variable name (the most-likely class indicator)
        category: 1-based non-reference category index
        value: Constant the parameter is fixed at (not estimated)
    """

    variable: str
    category: int
    value: float


@dataclass(frozen=True)
class Mean(Statement):
    """
    A freely estimated mean or intercept, optionally labelled.

    Example:
        [d1] (m1_2);
    """

    variable: str
    label: Optional[str] = None


@dataclass(frozen=True)
class Variance(Statement):
    """
    A freely estimated (residual) variance, optionally labelled.

    Example:
        d1 (v1_2);
    """

    variable: str
    label: Optional[str] = None


@dataclass(frozen=True)
class Regression(Statement):
    """
    Regression of a dependent variable on one or more predictors.

    Example:
        c ON x1 x2;
        d1 ON x1 (b1_2);

    IMPORTANT:
        A label applies to every predictor slope in the statement.
        Use one predictor per statement when slopes need distinct labels.
    """

    dependent: str
    predictors: Tuple[str, ...]
    label: Optional[str] = None


@dataclass(frozen=True)
class RawStatement(Statement):
    """
    Free-form engine syntax, passed through untouched.

    The trailing semicolon is added by the renderer when missing.
    """

    text: str
