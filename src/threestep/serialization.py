"""
Serialization helpers for threestep objects (ModelSpec, Statement, LogitMatrix).

Provides JSON/YAML round-trip via an intermediate dict representation.
Datasets are not serialized; only their column names are recorded, and a
dataset can be re-attached when a spec is restored.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import pandas as pd
import yaml

from threestep.model import (
    AnalysisBlock,
    ClassBlock,
    DefineBlock,
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
from threestep.results import LogitMatrix
from threestep.statements import (
    FixedMean,
    Mean,
    RawStatement,
    Regression,
    Statement,
    Variance,
)


def statement_to_dict(stmt: Statement) -> Dict[str, Any]:
    if isinstance(stmt, FixedMean):
        return {"type": "fixed_mean", "variable": stmt.variable, "category": stmt.category, "value": stmt.value}
    if isinstance(stmt, Mean):
        return {"type": "mean", "variable": stmt.variable, "label": stmt.label}
    if isinstance(stmt, Variance):
        return {"type": "variance", "variable": stmt.variable, "label": stmt.label}
    if isinstance(stmt, Regression):
        return {
            "type": "regression",
            "dependent": stmt.dependent,
            "predictors": list(stmt.predictors),
            "label": stmt.label,
        }
    if isinstance(stmt, RawStatement):
        return {"type": "raw", "text": stmt.text}
    raise TypeError(f"Unsupported Statement type: {type(stmt)}")


def statement_from_dict(d: Dict[str, Any]) -> Statement:
    t = d.get("type")
    if t == "fixed_mean":
        return FixedMean(variable=d["variable"], category=int(d["category"]), value=float(d["value"]))
    if t == "mean":
        return Mean(variable=d["variable"], label=d.get("label"))
    if t == "variance":
        return Variance(variable=d["variable"], label=d.get("label"))
    if t == "regression":
        return Regression(dependent=d["dependent"], predictors=tuple(d["predictors"]), label=d.get("label"))
    if t == "raw":
        return RawStatement(text=d["text"])
    raise TypeError(f"Unsupported statement dict type: {t}")


def variables_to_dict(v: VariableBlock) -> Dict[str, Any]:
    return {
        "usevariables": list(v.usevariables),
        "categorical": list(v.categorical),
        "nominal": list(v.nominal),
        "auxiliary": list(v.auxiliary),
        "idvariable": v.idvariable,
        "missing_value": v.missing_value,
        "classes": None if v.classes is None else {"name": v.classes.name, "count": v.classes.count},
    }


def variables_from_dict(d: Dict[str, Any]) -> VariableBlock:
    classes = d.get("classes")
    return VariableBlock(
        usevariables=tuple(d.get("usevariables", [])),
        categorical=tuple(d.get("categorical", [])),
        nominal=tuple(d.get("nominal", [])),
        auxiliary=tuple(d.get("auxiliary", [])),
        idvariable=d.get("idvariable"),
        missing_value=d.get("missing_value"),
        classes=None if classes is None else LatentClasses(name=classes["name"], count=int(classes["count"])),
    )


def analysis_to_dict(a: AnalysisBlock | None) -> Dict[str, Any] | None:
    if a is None:
        return None
    return {
        "type": a.type,
        "estimator": a.estimator,
        "starts": None if a.starts is None else list(a.starts),
        "processors": a.processors,
        "options": [[k, v] for k, v in a.options],
    }


def analysis_from_dict(d: Dict[str, Any] | None) -> AnalysisBlock | None:
    if d is None:
        return None
    starts = d.get("starts")
    return AnalysisBlock(
        type=d.get("type", "MIXTURE"),
        estimator=d.get("estimator"),
        starts=None if starts is None else (int(starts[0]), int(starts[1])),
        processors=d.get("processors"),
        options=tuple((k, v) for k, v in d.get("options", [])),
    )


def model_to_dict(m: ModelBlock) -> Dict[str, Any]:
    return {
        "overall": [statement_to_dict(s) for s in m.overall],
        "class_blocks": [
            {"class_index": b.class_index, "statements": [statement_to_dict(s) for s in b.statements]}
            for b in m.class_blocks
        ],
    }


def model_from_dict(d: Dict[str, Any]) -> ModelBlock:
    return ModelBlock(
        overall=tuple(statement_from_dict(s) for s in d.get("overall", [])),
        class_blocks=tuple(
            ClassBlock(
                class_index=int(b["class_index"]),
                statements=tuple(statement_from_dict(s) for s in b.get("statements", [])),
            )
            for b in d.get("class_blocks", [])
        ),
    )


def spec_to_dict(s: ModelSpec) -> Dict[str, Any]:
    return {
        "name": s.name,
        "title": s.title,
        "columns": s.column_names,
        "variables": variables_to_dict(s.variables),
        "define": list(s.define.statements),
        "analysis": analysis_to_dict(s.analysis),
        "model": model_to_dict(s.model),
        "constraint": {
            "new_parameters": list(s.constraint.new_parameters),
            "statements": list(s.constraint.statements),
        },
        "test": list(s.test.statements),
        "output": list(s.output.options),
        "plot": None if s.plot is None else {"type": s.plot.type, "series": s.plot.series},
        "savedata": None
        if s.savedata is None
        else {"file": s.savedata.file, "save": list(s.savedata.save), "missflag": s.savedata.missflag},
    }


def spec_from_dict(d: Dict[str, Any], dataset: Optional[pd.DataFrame] = None) -> ModelSpec:
    """Rebuild a ModelSpec; `dataset` re-attaches the table the columns came from."""
    constraint = d.get("constraint") or {}
    plot = d.get("plot")
    savedata = d.get("savedata")
    return ModelSpec(
        name=d["name"],
        title=d.get("title", ""),
        dataset=dataset,
        variables=variables_from_dict(d.get("variables", {})),
        define=DefineBlock(statements=tuple(d.get("define", []))),
        analysis=analysis_from_dict(d.get("analysis")),
        model=model_from_dict(d.get("model", {})),
        constraint=ModelConstraintBlock(
            new_parameters=tuple(constraint.get("new_parameters", [])),
            statements=tuple(constraint.get("statements", [])),
        ),
        test=ModelTestBlock(statements=tuple(d.get("test", []))),
        output=OutputBlock(options=tuple(d.get("output", []))),
        plot=None if plot is None else PlotBlock(type=plot.get("type"), series=plot.get("series")),
        savedata=None
        if savedata is None
        else SaveDataBlock(
            file=savedata["file"],
            save=tuple(savedata.get("save", [])),
            missflag=savedata.get("missflag"),
        ),
    )


def logits_to_dict(m: LogitMatrix) -> Dict[str, Any]:
    return {
        "values": [list(r) for r in m.values],
        "reference_class": m.reference_class,
        "categories": list(m.categories),
    }


def logits_from_dict(d: Dict[str, Any]) -> LogitMatrix:
    return LogitMatrix(
        values=tuple(tuple(float(v) for v in r) for r in d["values"]),
        reference_class=int(d["reference_class"]),
        categories=tuple(int(c) for c in d["categories"]),
    )


def spec_to_json(s: ModelSpec) -> str:
    return json.dumps(spec_to_dict(s), sort_keys=True)


def spec_from_json(s: str, dataset: Optional[pd.DataFrame] = None) -> ModelSpec:
    d = json.loads(s)
    return spec_from_dict(d, dataset=dataset)


def spec_to_yaml(s: ModelSpec) -> str:
    return yaml.safe_dump(spec_to_dict(s), sort_keys=False)


def spec_from_yaml(s: str, dataset: Optional[pd.DataFrame] = None) -> ModelSpec:
    d = yaml.safe_load(s)
    return spec_from_dict(d, dataset=dataset)


def logits_to_yaml(m: LogitMatrix) -> str:
    return yaml.safe_dump(logits_to_dict(m), sort_keys=False)


def logits_from_yaml(s: str) -> LogitMatrix:
    return logits_from_dict(yaml.safe_load(s))
