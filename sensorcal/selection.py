from __future__ import annotations
"""
Model selection by small-sample corrected AIC.

    AIC  = -2·logLik + 2k
    AICc = AIC + 2k(k + 1) / (n - k - 1)

k counts every estimated parameter: the coefficients (intercept included)
plus the residual variance. Lower AICc is better; ties go to the model with
fewer parameters, then to the earlier input position, so the ordering is
total and repeatable.
"""

from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple
import math
import numpy as np
import pandas as pd

from .errors import DegenerateModelError, IncomparableModelsError
from .fitting import FittedModel


def aicc(log_likelihood: float, k: int, n: int) -> float:
    if math.isnan(log_likelihood):
        raise DegenerateModelError("AICc undefined: log-likelihood is NaN")
    denom = n - k - 1
    if denom <= 0:
        raise DegenerateModelError(
            f"AICc undefined: n - k - 1 = {denom} (n={n}, k={k})"
        )
    aic = -2.0 * log_likelihood + 2.0 * k
    return aic + (2.0 * k * (k + 1)) / denom


@dataclass(frozen=True)
class RankedModel:
    model: FittedModel
    k: int
    aicc: float
    delta_aicc: float
    weight: float          # Akaike weight exp(-Δ/2) / Σ exp(-Δ/2)


class ModelRanking(Sequence[RankedModel]):
    """Ascending-AICc ranking of models fit on one shared sample."""

    def __init__(self, entries: Sequence[RankedModel]):
        self._entries: Tuple[RankedModel, ...] = tuple(entries)

    def __getitem__(self, i):
        return self._entries[i]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RankedModel]:
        return iter(self._entries)

    def __repr__(self) -> str:
        names = ", ".join(f"{e.model.name}={e.aicc:.3f}" for e in self._entries)
        return f"ModelRanking([{names}])"

    @property
    def best(self) -> FittedModel:
        return self._entries[0].model

    @property
    def models(self) -> List[FittedModel]:
        return [e.model for e in self._entries]

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for pos, e in enumerate(self._entries, start=1):
            m = e.model
            rows.append(
                dict(
                    rank=pos,
                    model=m.name,
                    formula=m.spec.formula,
                    degree=m.spec.degree,
                    k=e.k,
                    n=m.n_obs,
                    log_likelihood=m.log_likelihood,
                    r2=m.r2,
                    adj_r2=m.adj_r2,
                    aicc=e.aicc,
                    delta_aicc=e.delta_aicc,
                    weight=e.weight,
                )
            )
        return pd.DataFrame(rows)


def _check_comparable(models: Sequence[FittedModel]) -> None:
    first = models[0]
    for m in models[1:]:
        if m.n_obs != first.n_obs:
            raise IncomparableModelsError(
                f"{m.name} used n={m.n_obs}, {first.name} used n={first.n_obs}"
            )
        if m.spec.reference != first.spec.reference:
            raise IncomparableModelsError(
                f"{m.name} models '{m.spec.reference}', {first.name} models '{first.spec.reference}'"
            )
        if m.sample_key and first.sample_key and m.sample_key != first.sample_key:
            raise IncomparableModelsError(
                f"{m.name} and {first.name} were fit on different rows"
            )


def _delta(score: float, best: float) -> float:
    if score == best:
        return 0.0
    return score - best


def rank(models: Sequence[FittedModel]) -> ModelRanking:
    """Rank ``models`` by AICc (ascending)."""
    models = list(models)
    if not models:
        raise ValueError("Need at least one model to rank")
    _check_comparable(models)

    scored = [(aicc(m.log_likelihood, m.k, m.n_obs), m.k, pos, m) for pos, m in enumerate(models)]
    scored.sort(key=lambda t: (t[0], t[1], t[2]))
    best = scored[0][0]
    deltas = np.array([_delta(s, best) for s, _, _, _ in scored], dtype=float)
    # -inf best (exact fit) leaves every other delta at +inf
    rel = np.exp(-0.5 * deltas)
    total = float(rel.sum())
    weights = rel / total if total > 0 and math.isfinite(total) else np.full(len(rel), math.nan)
    return ModelRanking(
        RankedModel(model=m, k=k, aicc=float(s), delta_aicc=float(d), weight=float(w))
        for (s, k, _, m), d, w in zip(scored, deltas, weights)
    )


__all__ = ["aicc", "rank", "RankedModel", "ModelRanking"]
