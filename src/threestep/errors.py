"""
Error taxonomy for the three-step pipeline.

Nothing in the pipeline retries. Every error propagates to the caller,
who is expected to inspect intermediate diagnostics before re-running.
"""


class ThreeStepError(Exception):
    """Base class for all pipeline errors."""
    pass


class ConfigurationMismatch(ThreeStepError, ValueError):
    """Class count, reference class or logit shape disagree before submission."""
    pass


class ConfigError(ThreeStepError):
    """Raised when a pipeline configuration file cannot be loaded."""
    pass


class EngineUnavailable(ThreeStepError):
    """The engine executable is not installed or cannot be started."""
    pass


class EstimationFailure(ThreeStepError):
    """
    The engine ran but reported an error or did not terminate normally.

    Properties:
        diagnostics: Engine error/warning text (possibly truncated)
        output_path: Path of the engine output file, if one was written
    """

    def __init__(self, message: str, diagnostics: str = "", output_path=None):
        super().__init__(message)
        self.diagnostics = diagnostics
        self.output_path = output_path

    def __str__(self) -> str:
        base = super().__str__()
        if self.diagnostics:
            return f"{base}\n{self.diagnostics}"
        return base


class MissingRequestedOutput(ThreeStepError):
    """Extraction attempted on a result that never requested that output."""
    pass


class OutputParseError(ThreeStepError):
    """Raised when an engine output section is present but malformed."""
    pass


__all__ = [
    "ThreeStepError",
    "ConfigurationMismatch",
    "ConfigError",
    "EngineUnavailable",
    "EstimationFailure",
    "MissingRequestedOutput",
    "OutputParseError",
]
