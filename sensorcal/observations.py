from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
import numpy as np
import pandas as pd

PREDICTOR = "predictor"
REFERENCE = "reference"
TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class Observation:
    """One paired reading: raw sensor value against ground truth.

    ``covariates`` holds secondary predictors such as temperature, keyed by
    the column name models refer to them by.
    """

    predictor: Optional[float]
    reference: Optional[float]
    covariates: Mapping[str, Optional[float]] = field(default_factory=dict)
    timestamp: Any = None

    def as_row(self) -> dict:
        row = {PREDICTOR: self.predictor, REFERENCE: self.reference}
        row.update(self.covariates)
        if self.timestamp is not None:
            row[TIMESTAMP] = self.timestamp
        return row


ObservationSet = Union[pd.DataFrame, Iterable[Observation]]


def to_frame(observations: ObservationSet) -> pd.DataFrame:
    """Normalise an observation set to a DataFrame, preserving order.

    DataFrames are copied as-is so callers keep their own column names;
    sequences of :class:`Observation` (or plain mappings) become the
    ``predictor``/``reference`` schema plus one column per covariate.
    """
    if isinstance(observations, pd.DataFrame):
        return observations.copy()
    rows = []
    for obs in observations:
        if isinstance(obs, Observation):
            rows.append(obs.as_row())
        elif isinstance(obs, Mapping):
            rows.append(dict(obs))
        else:
            raise TypeError(f"Unsupported observation type: {type(obs).__name__}")
    df = pd.DataFrame(rows)
    for col in df.columns:
        if col != TIMESTAMP:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def numeric_column(df: pd.DataFrame, col: str) -> np.ndarray:
    return pd.to_numeric(df[col], errors="coerce").to_numpy(float)


def complete_mask(df: pd.DataFrame, columns: Sequence[str]) -> pd.Series:
    """Boolean mask of rows where every column in ``columns`` is finite."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Observation set lacks column(s): {', '.join(missing)}")
    mask = np.ones(len(df), dtype=bool)
    for col in columns:
        mask &= np.isfinite(numeric_column(df, col))
    return pd.Series(mask, index=df.index)


__all__ = [
    "Observation",
    "ObservationSet",
    "to_frame",
    "numeric_column",
    "complete_mask",
    "PREDICTOR",
    "REFERENCE",
    "TIMESTAMP",
]
