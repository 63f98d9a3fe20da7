from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import pandas as pd

from .fitting import ModelSpec

logger = logging.getLogger(__name__)

DEGREE_NAMES = {1: "linear", 2: "quadratic"}


@dataclass
class CalibrationConfig:
    """Inputs for one calibration run.

    Every combination of ``predictors`` x ``covariate_sets`` x ``degrees``
    becomes a candidate model. When the table holds several probes or sensors
    in long form, ``probe_col`` names the identifying column and ``probe``
    picks the one treated as authoritative; there is no default choice.
    """

    name: str = "calibration"
    predictors: List[str] = field(default_factory=lambda: ["predictor"])
    reference: str = "reference"
    degrees: List[int] = field(default_factory=lambda: [1, 2])
    covariate_sets: List[List[str]] = field(default_factory=lambda: [[]])
    time_col: Optional[str] = None
    probe_col: Optional[str] = None
    probe: Optional[str] = None
    rename: Dict[str, str] = field(default_factory=dict)
    prediction_prefix: str = "pred_"
    apply: str = "best"    # "best" | "all"

    def __post_init__(self):
        if isinstance(self.predictors, str):
            self.predictors = [self.predictors]
        if not self.predictors:
            raise ValueError("At least one predictor is required")
        bad = [d for d in self.degrees if d not in DEGREE_NAMES]
        if bad or not self.degrees:
            raise ValueError(f"degrees must be drawn from 1, 2; got {self.degrees}")
        if not self.covariate_sets:
            self.covariate_sets = [[]]
        if self.apply not in ("best", "all"):
            raise ValueError("apply must be 'best' or 'all'")

    def specs(self) -> List[ModelSpec]:
        out = []
        for predictor in self.predictors:
            for covs in self.covariate_sets:
                for degree in self.degrees:
                    name = f"{predictor}_{DEGREE_NAMES[degree]}" + "".join(f"_{c}" for c in covs)
                    out.append(
                        ModelSpec(
                            predictor=predictor,
                            reference=self.reference,
                            degree=degree,
                            covariates=tuple(covs),
                            name=name,
                        )
                    )
        return out

    def numeric_columns(self) -> List[str]:
        cols: List[str] = []
        for spec in self.specs():
            cols.extend(c for c in spec.columns if c not in cols)
        return cols


def config_from_dict(data: Dict[str, Any]) -> CalibrationConfig:
    known = {f.name for f in fields(CalibrationConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown calibration config key(s): {', '.join(unknown)}")
    return CalibrationConfig(**data)


def load_config(path: Path) -> CalibrationConfig:
    return config_from_dict(json.loads(Path(path).read_text()))


def probe_key(value: Any) -> str:
    """Probe id as text; integral numbers lose their ".0" so 2, 2.0 and "2" match."""
    s = str(value).strip()
    try:
        num = float(s)
    except ValueError:
        return s
    return str(int(num)) if num.is_integer() else s


def select_probe(df: pd.DataFrame, cfg: CalibrationConfig) -> pd.DataFrame:
    """Keep only the rows of the configured probe (no-op without ``probe_col``)."""
    if not cfg.probe_col:
        return df
    if cfg.probe is None:
        raise ValueError(
            f"'{cfg.name}' has probe column '{cfg.probe_col}' but no probe selected"
        )
    if cfg.probe_col not in df.columns:
        raise ValueError(f"Table must contain '{cfg.probe_col}' column")
    ids = df[cfg.probe_col].map(probe_key)
    sel = df.loc[(ids == probe_key(cfg.probe)).to_numpy()]
    if sel.empty:
        available = ", ".join(sorted(ids.unique()))
        raise ValueError(f"Probe '{cfg.probe}' not found; available: {available}")
    logger.info("%s: using probe %s (%d of %d rows)", cfg.name, cfg.probe, len(sel), len(df))
    return sel


__all__ = [
    "CalibrationConfig",
    "config_from_dict",
    "load_config",
    "select_probe",
    "probe_key",
]
