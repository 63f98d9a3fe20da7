from __future__ import annotations
import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, Iterable, Optional

TIME_COLS = ["Timestamp", "timestamp", "Time", "time", "DateTime", "Date Time"]


def load_sensor_table(path: Path, *, sep: Optional[str] = None, sheet=0) -> pd.DataFrame:
    """Read a logger export: ``.xlsx``/``.xls`` via pandas, otherwise delimited text.

    ``sep=None`` sniffs the delimiter (comma, tab, semicolon).
    """
    path = Path(path)
    if path.suffix.lower() in (".xlsx", ".xlsm", ".xls"):
        return pd.read_excel(path, sheet_name=sheet)
    if sep is None:
        if path.suffix.lower() in (".tsv", ".tab"):
            return pd.read_csv(path, sep="\t")
        return pd.read_csv(path, sep=None, engine="python")
    return pd.read_csv(path, sep=sep)


def unify_schema(
    df: pd.DataFrame,
    rename: Optional[Dict[str, str]] = None,
    numeric: Iterable[str] = (),
    time_col: Optional[str] = None,
) -> pd.DataFrame:
    """Rename columns, coerce measurement columns to float, parse timestamps.

    Unparseable numbers become NaN so the fitter can drop them as incomplete.
    If ``time_col`` is not given, the first of :data:`TIME_COLS` present is used.
    """
    out = df.rename(columns=rename or {}).copy()
    for col in numeric:
        if col not in out.columns:
            raise ValueError(f"Table must contain '{col}' column")
        out[col] = pd.to_numeric(out[col], errors="coerce")
    if time_col is None:
        time_col = next((c for c in TIME_COLS if c in out.columns), None)
    if time_col and time_col in out.columns:
        t = pd.to_datetime(out[time_col], errors="coerce")
        if t.notna().sum() >= len(out) // 2:
            out[time_col] = t
            t0 = t.dropna().iloc[0] if t.notna().any() else None
            out["Time_s"] = (t - t0).dt.total_seconds() if t0 is not None else np.nan
    return out
