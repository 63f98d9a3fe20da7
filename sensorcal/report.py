from __future__ import annotations
import json
import math
import pandas as pd
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .fitting import FittedModel
from .selection import ModelRanking


def _clean(v: Any) -> Any:
    if isinstance(v, float) and not math.isfinite(v):
        return None
    return v


def write_summary_tables(
    outdir: Path,
    ranking: Optional[ModelRanking],
    calibrated: Optional[pd.DataFrame] = None,
    *,
    models: Sequence[FittedModel] = (),
    stem: str = "calibration",
) -> Dict[str, str]:
    """Write ranking CSV, model records JSON and the calibrated table.

    Models outside ``ranking`` (e.g. fit but not compared) can be passed via
    ``models`` so their records are kept too.
    """
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    files: Dict[str, str] = {}

    all_models: List[FittedModel] = list(ranking.models) if ranking is not None else []
    all_models += [m for m in models if m not in all_models]

    payload: Dict[str, Any] = {"ranking": [], "models": [m.to_record() for m in all_models]}
    if ranking is not None:
        tbl = ranking.to_frame()
        p = outdir / f"{stem}_ranking.csv"
        tbl.to_csv(p, index=False)
        files["ranking_csv"] = str(p)
        payload["ranking"] = [
            {k: _clean(v) for k, v in row.items()} for row in tbl.to_dict(orient="records")
        ]
        payload["best"] = ranking.best.name

    p = outdir / f"{stem}_models.json"
    p.write_text(json.dumps(payload, indent=2))
    files["models_json"] = str(p)

    if calibrated is not None:
        p = outdir / f"{stem}_calibrated.csv"
        calibrated.to_csv(p, index=False)
        files["calibrated_csv"] = str(p)
    return files


def read_model_records(path: Path) -> List[FittedModel]:
    """Models from a ``*_models.json`` written by :func:`write_summary_tables`."""
    data = json.loads(Path(path).read_text())
    return [FittedModel.from_record(rec) for rec in data.get("models", [])]


__all__ = ["write_summary_tables", "read_model_records"]
