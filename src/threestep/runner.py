"""
Runner: invokes the Mplus executable on a rendered spec.

Every run is a single, blocking attempt:

    <command> <name>.inp <name>.out      (cwd = output directory)

There is no retry, backoff or timeout. A run either returns a RunResult
or raises EngineUnavailable / EstimationFailure to the caller, who
decides whether to adjust starts or seeds and run again.
"""

import logging
import subprocess
from dataclasses import replace
from typing import List, Optional

from .backends.mplus_generator import RenderedSpec
from .errors import EngineUnavailable, EstimationFailure
from .model import DEFAULT_MISSING_VALUE
from .output_parser import parse_output_file, read_savedata
from .results import RunResult

logger = logging.getLogger(__name__)

# Keep failure messages readable; full text stays in the .out file.
_DIAGNOSTIC_LIMIT = 4000


class MplusRunner:
    """
    Runs the engine and parses its output.

    Properties:
        command: Executable name or path (e.g., "mplus", "/opt/mplus/mplus")
        missing_value: Missing flag the engine writes into saved data
    """

    def __init__(self, command: str = "mplus", missing_value: Optional[float] = DEFAULT_MISSING_VALUE):
        self.command = command
        self.missing_value = missing_value

    def command_line(self, rendered: RenderedSpec) -> List[str]:
        return [self.command, rendered.input_path.name, rendered.output_path.name]

    def _invoke(self, rendered: RenderedSpec) -> subprocess.CompletedProcess:
        cmd = self.command_line(rendered)
        logger.info("Running %s in %s", " ".join(cmd), rendered.input_path.parent)
        try:
            return subprocess.run(
                cmd,
                cwd=str(rendered.input_path.parent),
                check=False,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            raise EngineUnavailable(f"Engine executable not found on PATH: {self.command!r}")
        except PermissionError:
            raise EngineUnavailable(f"Engine executable is not runnable: {self.command!r}")
        except OSError as exc:
            raise EngineUnavailable(
                f"Engine executable could not be started: {self.command!r} ({exc})"
            )

    def run(self, rendered: RenderedSpec) -> RunResult:
        """
        Run the engine on a RenderedSpec.

        Returns:
            RunResult with saved data loaded when SAVEDATA was requested

        Raises:
            EngineUnavailable: Executable missing or not runnable
            EstimationFailure: No output file, engine errors, or abnormal termination
        """
        # Outputs of an earlier run of the same spec must not be mistaken for this one.
        for stale in (rendered.output_path, rendered.savedata_path):
            if stale is not None and stale.exists():
                stale.unlink()

        proc = self._invoke(rendered)

        if not rendered.output_path.exists():
            raise EstimationFailure(
                f"Engine produced no output file for {rendered.name} "
                f"(exit code {proc.returncode})",
                diagnostics=(proc.stderr or proc.stdout or "")[-_DIAGNOSTIC_LIMIT:],
            )

        result = parse_output_file(rendered.output_path, input_path=rendered.input_path)

        for warning in result.warnings:
            logger.warning("%s: %s", rendered.name, " ".join(warning.split()))

        if result.errors:
            raise EstimationFailure(
                f"Engine reported errors for {rendered.name}",
                diagnostics=result.diagnostics(_DIAGNOSTIC_LIMIT),
                output_path=rendered.output_path,
            )
        if not result.terminated_normally:
            raise EstimationFailure(
                f"Model estimation for {rendered.name} did not terminate normally",
                diagnostics=result.diagnostics(_DIAGNOSTIC_LIMIT),
                output_path=rendered.output_path,
            )

        if result.savedata_info is not None:
            save_path = rendered.input_path.parent / result.savedata_info.file
            try:
                frame = read_savedata(save_path, result.savedata_info.variables, self.missing_value)
            except FileNotFoundError:
                raise EstimationFailure(
                    f"Engine listed save file {result.savedata_info.file} but did not write it",
                    output_path=rendered.output_path,
                )
            result = replace(result, savedata=frame)

        logger.info(
            "%s finished: %s",
            rendered.name,
            ", ".join(f"{k}={v:g}" for k, v in sorted(result.summaries.items())) or "no fit summaries",
        )
        return result


__all__ = ["MplusRunner"]
