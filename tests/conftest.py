"""
Shared fixtures: sample data, realistic engine output text and a fake
Mplus executable patched in place of subprocess.run.
"""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import pytest

from threestep.config import PipelineConfig
from threestep.parameters import section_lines

# Engine-style logits table: rows = latent class, last column is the reference.
SAMPLE_LOGITS = (
    (3.245, 1.012, 0.000),
    (-1.234, 2.567, 0.000),
    (-4.123, -2.001, 0.000),
)
SAMPLE_PROPORTIONS = (0.35, 0.40, 0.25)


def _statements(text: str, section: str) -> Dict[str, str]:
    joined = " ".join(line.strip() for line in section_lines(text, section))
    out = {}
    for stmt in joined.split(";"):
        if "=" in stmt:
            key, value = stmt.split("=", 1)
            out[key.strip().upper()] = value.strip()
    return out


def make_output_text(
    logits: Sequence[Sequence[float]] = SAMPLE_LOGITS,
    proportions: Sequence[float] = SAMPLE_PROPORTIONS,
    n: int = 600,
    save_file: Optional[str] = None,
    save_variables: Sequence[str] = (),
    errors: Sequence[str] = (),
    warnings: Sequence[str] = (),
    terminated: bool = True,
    include_logits: bool = True,
) -> str:
    """Build .out text laid out the way Mplus prints a mixture run."""
    k = len(proportions)
    lines: List[str] = [
        "Mplus VERSION 8.8",
        "MUTHEN & MUTHEN",
        "",
        "INPUT READING TERMINATED NORMALLY",
        "",
    ]
    for w in warnings:
        lines += ["*** WARNING in OUTPUT command", f"  {w}", ""]
    for e in errors:
        lines += ["*** ERROR in MODEL command", f"  {e}", ""]
    if not terminated:
        lines += ["THE MODEL ESTIMATION DID NOT TERMINATE NORMALLY DUE TO AN ERROR", ""]
        return "\n".join(lines) + "\n"

    lines += [
        "THE MODEL ESTIMATION TERMINATED NORMALLY",
        "",
        "MODEL FIT INFORMATION",
        "",
        "Number of Free Parameters                       17",
        "",
        "Loglikelihood",
        "",
        "          H0 Value                       -1869.335",
        "          H0 Scaling Correction Factor      1.0000",
        "            for MLR",
        "",
        "Information Criteria",
        "",
        "          Akaike (AIC)                    3772.670",
        "          Bayesian (BIC)                  3847.418",
        "          Sample-Size Adjusted BIC        3793.448",
        "            (n* = (n + 2) / 24)",
        "",
        "FINAL CLASS COUNTS AND PROPORTIONS FOR THE LATENT CLASSES",
        "BASED ON THE ESTIMATED MODEL",
        "",
        "    Latent",
        "   Classes",
        "",
    ]
    for i, p in enumerate(proportions, start=1):
        lines.append(f"       {i}        {p * n:.5f}          {p:.5f}")
    lines += [
        "",
        "",
        "FINAL CLASS COUNTS AND PROPORTIONS FOR THE LATENT CLASSES",
        "BASED ON THEIR MOST LIKELY LATENT CLASS MEMBERSHIP",
        "",
        "Class Counts and Proportions",
        "",
        "    Latent",
        "   Classes",
        "",
    ]
    for i, p in enumerate(proportions, start=1):
        lines.append(f"       {i}              {round(p * n)}          {p:.5f}")
    lines += [
        "",
        "",
        "CLASSIFICATION QUALITY",
        "",
        "     Entropy                         0.812",
        "",
    ]
    if include_logits:
        header = "".join(f"{c:>9}" for c in range(1, k + 1))
        lines += [
            "Logits for the Classification Probabilities for the Most Likely Latent Class Membership (Column)",
            "by Latent Class (Row)",
            "",
            f"        {header}",
            "",
        ]
        for i, row in enumerate(logits, start=1):
            lines.append(f"    {i}  " + "".join(f"{v:>9.3f}" for v in row))
        lines.append("")
    if save_file is not None:
        lines += [
            "",
            "SAVEDATA INFORMATION",
            "",
            "",
            "  Order and format of variables",
            "",
        ]
        for name in save_variables:
            lines.append(f"    {name:<15}F10.3")
        lines += [
            "",
            "  Save file",
            f"    {save_file}",
            "",
            "  Save file format",
            f"    {len(save_variables)}F10.3",
            "",
        ]
    lines += ["", "     Beginning Time:  10:00:00", "        Ending Time:  10:00:02", "", "MUTHEN & MUTHEN"]
    return "\n".join(lines) + "\n"


def assigned_classes(n: int, k: int) -> np.ndarray:
    """Deterministic most-likely class per case: 1, 2, ..., K, 1, 2, ..."""
    return np.arange(n) % k + 1


class FakeMplus:
    """
    Stands in for subprocess.run when the runner calls the engine.

    Reads the rendered .inp and .dat like the engine would, writes a .out
    file and, when SAVEDATA is requested, a whitespace-separated save file
    with CPROB columns and the most likely class C.
    """

    def __init__(
        self,
        logits=SAMPLE_LOGITS,
        proportions: Optional[Dict[str, Sequence[float]]] = None,
        errors: Sequence[str] = (),
        warnings: Sequence[str] = (),
        terminated: bool = True,
        write_output: bool = True,
        write_savedata: bool = True,
    ):
        self.logits = logits
        self.proportions = proportions or {}
        self.errors = errors
        self.warnings = warnings
        self.terminated = terminated
        self.write_output = write_output
        self.write_savedata = write_savedata
        self.calls: List[List[str]] = []

    def __call__(self, cmd, cwd=None, check=False, capture_output=False, text=False):
        self.calls.append(list(cmd))
        workdir = Path(cwd)
        input_path = workdir / cmd[1]
        output_path = workdir / cmd[2]
        input_text = input_path.read_text(encoding="utf-8")
        k = int(_statements(input_text, "VARIABLE")["CLASSES"].split("(")[1].rstrip(")"))
        proportions = self.proportions.get(input_path.stem, SAMPLE_PROPORTIONS[:k])

        save = _statements(input_text, "SAVEDATA")
        save_file = save.get("FILE")
        save_variables: List[str] = []
        if save_file and self.terminated and not self.errors:
            save_variables = self._write_savedata(input_text, workdir, input_path.stem, save_file, k)

        if self.write_output:
            output_path.write_text(
                make_output_text(
                    logits=self.logits,
                    proportions=proportions,
                    save_file=save_file if save_variables else None,
                    save_variables=save_variables,
                    errors=self.errors,
                    warnings=self.warnings,
                    terminated=self.terminated,
                ),
                encoding="utf-8",
            )
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def _write_savedata(self, input_text, workdir, stem, save_file, k) -> List[str]:
        variables = _statements(input_text, "VARIABLE")
        names = variables["NAMES"].split()
        data = pd.read_csv(workdir / f"{stem}.dat", sep="\t", header=None, names=names)
        keep = variables.get("USEVARIABLES", "").split() + variables.get("AUXILIARY", "").split()

        saved = pd.DataFrame({name.upper(): data[name] for name in keep})
        classes = assigned_classes(len(saved), k)
        for c in range(1, k + 1):
            saved[f"CPROB{c}"] = np.where(classes == c, 0.8, 0.2 / (k - 1)).round(3)
        saved["C"] = classes.astype(float)

        if self.write_savedata:
            saved.to_csv(workdir / save_file, sep=" ", header=False, index=False, float_format="%.3f")
        return list(saved.columns)


@pytest.fixture
def sample_data() -> pd.DataFrame:
    rng = np.random.default_rng(7)
    n = 60
    data = pd.DataFrame(
        {
            "u1": rng.binomial(1, 0.5, size=n).astype(float),
            "u2": rng.binomial(1, 0.5, size=n).astype(float),
            "u3": rng.binomial(1, 0.5, size=n).astype(float),
            "x1": rng.normal(size=n).round(3),
            "d1": rng.normal(size=n).round(3),
        }
    )
    data.loc[[3, 17], "d1"] = np.nan
    return data


@pytest.fixture
def sample_config(tmp_path) -> PipelineConfig:
    return PipelineConfig(
        output_dir=tmp_path / "runs",
        indicators=("u1", "u2", "u3"),
        class_count=3,
        covariates=("x1",),
        distal_outcomes=("d1",),
        starts=(100, 20),
    ).validate()


@pytest.fixture
def fake_mplus(monkeypatch) -> FakeMplus:
    engine = FakeMplus()
    monkeypatch.setattr("threestep.runner.subprocess.run", engine)
    return engine
