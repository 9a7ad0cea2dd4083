"""
Mplus input generator for threestep model specifications.

Converts a ModelSpec into Mplus input syntax and exports its dataset
as a headerless, tab-separated data file.

Output is deterministic: identical ModelSpecs render to identical bytes.
The data file is referenced by bare file name, so the rendered input does
not depend on the output directory.
"""

import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from threestep.errors import ConfigurationMismatch
from threestep.model import ModelSpec
from threestep.statements import (
    FixedMean,
    Mean,
    RawStatement,
    Regression,
    Statement,
    Variance,
)


# Mplus rejects input lines longer than 90 characters.
MAX_LINE_LENGTH = 90

_INDENT = "  "
_CONTINUATION = "    "


@dataclass(frozen=True)
class RenderedSpec:
    """
    A ModelSpec written to disk.

    Properties:
        name: Spec name (file stem)
        input_path: Rendered .inp file
        data_path: Exported .dat file
        output_path: Where the engine writes its .out file
        savedata_path: Where the engine writes saved data (None if not requested)
        text: Rendered input text
    """

    name: str
    input_path: Path
    data_path: Path
    output_path: Path
    savedata_path: Optional[Path]
    text: str


def format_constant(value: Union[int, float]) -> str:
    """Format a number for Mplus syntax: fixed point, at most 6 decimals, no trailing zeros."""
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text


def _label_suffix(label: Optional[str]) -> str:
    return f" ({label})" if label else ""


def render_statement(stmt: Statement) -> str:
    """Render a single MODEL statement, including the terminating semicolon."""
    if isinstance(stmt, FixedMean):
        body = f"[{stmt.variable}#{stmt.category}@{format_constant(stmt.value)}]"
    elif isinstance(stmt, Mean):
        body = f"[{stmt.variable}]{_label_suffix(stmt.label)}"
    elif isinstance(stmt, Variance):
        body = f"{stmt.variable}{_label_suffix(stmt.label)}"
    elif isinstance(stmt, Regression):
        if not stmt.predictors:
            raise ConfigurationMismatch(f"Regression of {stmt.dependent} has no predictors")
        body = f"{stmt.dependent} ON {' '.join(stmt.predictors)}{_label_suffix(stmt.label)}"
    elif isinstance(stmt, RawStatement):
        body = stmt.text.strip().rstrip(";").rstrip()
    else:
        raise TypeError(f"Unsupported Statement type: {type(stmt)}")
    return f"{body};"


def _wrap(line: str, indent: str = _INDENT) -> List[str]:
    """Wrap one logical line to the Mplus line limit without splitting tokens."""
    if len(indent) + len(line) <= MAX_LINE_LENGTH:
        return [indent + line]
    return textwrap.wrap(
        line,
        width=MAX_LINE_LENGTH,
        initial_indent=indent,
        subsequent_indent=indent + _CONTINUATION,
        break_long_words=False,
        break_on_hyphens=False,
    )


def _section(header: str, lines: List[str]) -> List[str]:
    if not lines:
        return []
    out = [f"{header}:"]
    for line in lines:
        out.extend(_wrap(line))
    return out


def _join(names) -> str:
    return " ".join(str(n) for n in names)


def _title_lines(spec: ModelSpec) -> List[str]:
    return [spec.title] if spec.title else []


def _data_lines(spec: ModelSpec, data_file: Optional[str]) -> List[str]:
    if data_file is None:
        return []
    return [f"FILE = {data_file};"]


def _variable_lines(spec: ModelSpec) -> List[str]:
    v = spec.variables
    lines = []
    if spec.column_names:
        lines.append(f"NAMES = {_join(spec.column_names)};")
    if v.usevariables:
        lines.append(f"USEVARIABLES = {_join(v.usevariables)};")
    if v.categorical:
        lines.append(f"CATEGORICAL = {_join(v.categorical)};")
    if v.nominal:
        lines.append(f"NOMINAL = {_join(v.nominal)};")
    if v.auxiliary:
        lines.append(f"AUXILIARY = {_join(v.auxiliary)};")
    if v.idvariable:
        lines.append(f"IDVARIABLE = {v.idvariable};")
    if v.missing_value is not None:
        lines.append(f"MISSING = ALL ({format_constant(v.missing_value)});")
    if v.classes is not None:
        lines.append(f"CLASSES = {v.classes.name} ({v.classes.count});")
    return lines


def _analysis_lines(spec: ModelSpec) -> List[str]:
    a = spec.analysis
    if a is None:
        return []
    lines = []
    if a.type:
        lines.append(f"TYPE = {a.type};")
    if a.estimator:
        lines.append(f"ESTIMATOR = {a.estimator};")
    if a.starts is not None:
        lines.append(f"STARTS = {a.starts[0]} {a.starts[1]};")
    if a.processors is not None:
        lines.append(f"PROCESSORS = {a.processors};")
    for key, value in a.options:
        lines.append(f"{key} = {value};")
    return lines


def _model_lines(spec: ModelSpec) -> List[str]:
    m = spec.model
    if not m.overall and not m.class_blocks:
        return []
    latent = spec.variables.classes.name if spec.variables.classes else "c"

    lines = []
    if m.class_blocks:
        lines.append("%OVERALL%")
    lines.extend(render_statement(s) for s in m.overall)

    for block in m.class_blocks:
        lines.append(f"%{latent}#{block.class_index}%")
        lines.extend(render_statement(s) for s in block.statements)
    return lines


def _constraint_lines(spec: ModelSpec) -> List[str]:
    c = spec.constraint
    lines = []
    if c.new_parameters:
        lines.append(f"NEW ({_join(c.new_parameters)});")
    lines.extend(f"{s.rstrip(';')};" for s in c.statements)
    return lines


def _test_lines(spec: ModelSpec) -> List[str]:
    return [f"{s.rstrip(';')};" for s in spec.test.statements]


def _output_lines(spec: ModelSpec) -> List[str]:
    if not spec.output.options:
        return []
    return [f"{_join(spec.output.options)};"]


def _savedata_lines(spec: ModelSpec) -> List[str]:
    s = spec.savedata
    if s is None:
        return []
    lines = [f"FILE = {s.file};"]
    if s.save:
        lines.append(f"SAVE = {_join(s.save)};")
    if s.missflag is not None:
        lines.append(f"MISSFLAG = {format_constant(s.missflag)};")
    return lines


def _plot_lines(spec: ModelSpec) -> List[str]:
    p = spec.plot
    if p is None:
        return []
    lines = []
    if p.type:
        lines.append(f"TYPE = {p.type};")
    if p.series:
        lines.append(f"SERIES = {p.series};")
    return lines


def generate_input(spec: ModelSpec, data_file: Optional[str] = None) -> str:
    """
    Generate Mplus input syntax for a ModelSpec.

    Args:
        spec: ModelSpec to render
        data_file: Data file name for the DATA section.
                   Defaults to "<spec.name>.dat" when a dataset is attached.

    Returns:
        Input file text, newline-terminated
    """
    if data_file is None and spec.dataset is not None:
        data_file = f"{spec.name}.dat"

    lines: List[str] = []
    lines += _section("TITLE", _title_lines(spec))
    lines += _section("DATA", _data_lines(spec, data_file))
    lines += _section("VARIABLE", _variable_lines(spec))
    lines += _section("DEFINE", [f"{s.rstrip(';')};" for s in spec.define.statements])
    lines += _section("ANALYSIS", _analysis_lines(spec))
    lines += _section("MODEL", _model_lines(spec))
    lines += _section("MODEL CONSTRAINT", _constraint_lines(spec))
    lines += _section("MODEL TEST", _test_lines(spec))
    lines += _section("OUTPUT", _output_lines(spec))
    lines += _section("SAVEDATA", _savedata_lines(spec))
    lines += _section("PLOT", _plot_lines(spec))

    return "\n".join(lines) + "\n"


def export_dataset(spec: ModelSpec) -> str:
    """
    Serialize the spec's dataset to Mplus free format.

    No header, tab separated, missing values written as the declared
    sentinel, "\\n" line endings.
    """
    if spec.dataset is None:
        raise ConfigurationMismatch(f"Spec '{spec.name}' has no dataset to export")
    missing = spec.variables.missing_value
    na_rep = format_constant(missing) if missing is not None else "."
    return spec.dataset.to_csv(
        sep="\t",
        header=False,
        index=False,
        na_rep=na_rep,
        lineterminator="\n",
    )


def save_input_file(spec: ModelSpec, output_dir: Union[str, Path]) -> RenderedSpec:
    """
    Write "<name>.inp" and "<name>.dat" into output_dir, overwriting.

    Args:
        spec: ModelSpec with a dataset attached
        output_dir: Resolved output directory (created if needed)

    Returns:
        RenderedSpec describing the written files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    data_file = f"{spec.name}.dat"
    data_text = export_dataset(spec)
    text = generate_input(spec, data_file=data_file)

    input_path = output_dir / f"{spec.name}.inp"
    data_path = output_dir / data_file
    with open(data_path, "w", encoding="utf-8", newline="") as f:
        f.write(data_text)
    with open(input_path, "w", encoding="utf-8", newline="") as f:
        f.write(text)

    savedata_path = output_dir / spec.savedata.file if spec.savedata else None
    return RenderedSpec(
        name=spec.name,
        input_path=input_path,
        data_path=data_path,
        output_path=output_dir / f"{spec.name}.out",
        savedata_path=savedata_path,
        text=text,
    )


__all__ = [
    "MAX_LINE_LENGTH",
    "RenderedSpec",
    "format_constant",
    "render_statement",
    "generate_input",
    "export_dataset",
    "save_input_file",
]
