"""Single-pass calibration run (load → fit → rank → apply → write)."""


from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging
import pandas as pd

from .config import CalibrationConfig, select_probe
from .errors import CalibrationError
from .fitting import FittedModel, ModelSpec, fit_candidates
from .io import load_sensor_table, unify_schema
from .predict import apply_models
from .report import write_summary_tables
from .selection import ModelRanking, rank

logger = logging.getLogger(__name__)


@dataclass
class CalibrationResult:
    config: CalibrationConfig
    models: List[FittedModel]
    ranking: Optional[ModelRanking]
    calibrated: pd.DataFrame
    skipped: List[Tuple[ModelSpec, CalibrationError]] = field(default_factory=list)

    @property
    def best(self) -> Optional[FittedModel]:
        return self.ranking.best if self.ranking is not None else None

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.config.name,
            "n_rows": int(len(self.calibrated)),
            "models": [m.name for m in self.models],
            "best": self.best.name if self.best is not None else None,
            "skipped": [{"model": s.label, "reason": str(e)} for s, e in self.skipped],
        }


def run_calibration(frame: pd.DataFrame, cfg: CalibrationConfig) -> CalibrationResult:
    """Fit every candidate in ``cfg`` on a shared row subset, rank, and apply.

    Candidates that cannot be fit are reported in ``skipped``. If the ranking
    itself is undefined (e.g. too few rows for the AICc correction) the run
    continues without one and, with ``apply="best"``, nothing is applied.
    """
    df = select_probe(frame, cfg)
    models, skipped = fit_candidates(df, cfg.specs())
    ranking: Optional[ModelRanking] = None
    if models:
        try:
            ranking = rank(models)
        except CalibrationError as e:
            logger.warning("%s: models not ranked: %s", cfg.name, e)
    else:
        logger.warning("%s: no candidate model could be fit", cfg.name)

    if cfg.apply == "all":
        to_apply = models
    else:
        to_apply = [ranking.best] if ranking is not None else []
    calibrated = apply_models(df, to_apply, prefix=cfg.prediction_prefix)
    if ranking is not None:
        logger.info("%s: best model %s (AICc %.3f)", cfg.name, ranking.best.name, ranking[0].aicc)
    return CalibrationResult(
        config=cfg, models=models, ranking=ranking, calibrated=calibrated, skipped=skipped
    )


def run_calibration_file(path: Path, cfg: CalibrationConfig, out_dir: Path) -> Dict[str, Any]:
    """Load a logger table, run the calibration and write csv/json artifacts."""
    raw = load_sensor_table(Path(path))
    numeric = list(cfg.numeric_columns())
    df = unify_schema(raw, rename=cfg.rename, numeric=numeric, time_col=cfg.time_col)
    res = run_calibration(df, cfg)
    files = write_summary_tables(
        Path(out_dir), res.ranking, res.calibrated, models=res.models, stem=cfg.name
    )
    out = res.summary()
    out["inputs"] = {"path": str(path)}
    out["outputs"] = files
    return out


__all__ = ["CalibrationResult", "run_calibration", "run_calibration_file"]
