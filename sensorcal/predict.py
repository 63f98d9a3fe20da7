from __future__ import annotations
from typing import Dict, List, Mapping, Optional, Sequence, Union
import logging
import numpy as np
import pandas as pd

from .errors import MissingTermError
from .fitting import FittedModel, term_frame
from .observations import Observation, ObservationSet, to_frame

logger = logging.getLogger(__name__)

# Marker for rows that cannot be evaluated.
UNDEFINED = float("nan")


def predict_one(model: FittedModel, row: Union[Mapping, Observation], label=None) -> float:
    """Evaluate ``model`` on a single row; raises :class:`MissingTermError`."""
    if isinstance(row, Observation):
        row = row.as_row()
    df = pd.DataFrame([dict(row)], index=[label])
    terms = term_frame(model.spec, df).iloc[0]
    bad = [t for t, v in terms.items() if not np.isfinite(v)]
    if bad:
        raise MissingTermError(label, bad, model.name)
    return float(model.intercept + np.dot(model.params[1:], terms.to_numpy(float)))


def predict(
    model: FittedModel,
    observations: ObservationSet,
    *,
    errors: Optional[List[MissingTermError]] = None,
) -> pd.Series:
    """Calibrated values for every row, aligned with the input order.

    Rows with an undefined term get :data:`UNDEFINED` instead of aborting the
    batch; pass a list as ``errors`` to collect one :class:`MissingTermError`
    per such row.
    """
    df = to_frame(observations)
    terms = term_frame(model.spec, df)
    X = np.column_stack([np.ones(len(df)), terms.to_numpy(float)])
    ok = np.isfinite(X).all(axis=1)
    out = np.full(len(df), UNDEFINED)
    if ok.any():
        out[ok] = X[ok] @ model.params
    if not ok.all():
        n_bad = int((~ok).sum())
        logger.info("%s: %d of %d row(s) undefined", model.name, n_bad, len(df))
        if errors is not None:
            for label, vals in terms.loc[~ok].iterrows():
                missing = [t for t, v in vals.items() if not np.isfinite(v)]
                errors.append(MissingTermError(label, missing, model.name))
    return pd.Series(out, index=df.index, name=model.name)


def apply_models(
    observations: ObservationSet,
    models: Sequence[FittedModel],
    *,
    prefix: str = "pred_",
    names: Optional[Dict[str, str]] = None,
) -> pd.DataFrame:
    """Calibrated Dataset: the input table plus one prediction column per model.

    Column names default to ``prefix + model.name``; ``names`` maps a model
    name to an explicit column. Raw columns are never overwritten.
    """
    out = to_frame(observations)
    names = names or {}
    for model in models:
        col = names.get(model.name, f"{prefix}{model.name}")
        if col in out.columns:
            raise ValueError(f"Prediction column '{col}' already exists")
        out[col] = predict(model, out).to_numpy(float)
    return out


__all__ = ["UNDEFINED", "predict", "predict_one", "apply_models"]
