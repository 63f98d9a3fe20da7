from __future__ import annotations
"""
Polynomial calibration fitter.

Algorithm
---------
1) Keep complete rows only (predictor, reference and every covariate finite).
2) Build the design matrix [1, x, x^2?, covariates...]; the square term is the
   exact square of the raw predictor, never a rescaled version.
3) Solve least squares with a column-pivoted QR factorisation:
       X P = Q R,   b_P = R^-1 Q^T y
   and read the coefficient covariance from sigma^2 (R^T R)^-1.
4) Report R², adjusted R², residual standard error, per-coefficient
   estimate / SE / t / p and the Gaussian log-likelihood
       logLik = -n/2 (log 2π + log(RSS/n) + 1).

Numerical guards:
- Columns are scaled to unit norm before the QR, so raw readings in the
  1e4..1e5 range do not swamp the rank test; designs with |R_kk| tiny
  relative to |R_00| of the scaled matrix are rejected.
- R² = 0 when TSS ≤ 0 (constant reference).
- Zero residual degrees of freedom leave SE / t / p / RSE undefined (NaN).
- An exact fit (RSS = 0) has logLik = +inf.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import hashlib
import logging
import math
import numpy as np
import pandas as pd
from scipy import linalg, stats

from .errors import CalibrationError, DegenerateModelError, InsufficientDataError
from .observations import (
    PREDICTOR,
    REFERENCE,
    ObservationSet,
    complete_mask,
    numeric_column,
    to_frame,
)

logger = logging.getLogger(__name__)

INTERCEPT = "(Intercept)"
RANK_TOL = 1e-10


def square_term(predictor: str) -> str:
    return f"{predictor}^2"


@dataclass(frozen=True)
class ModelSpec:
    """Functional form of a calibration model: reference ~ terms."""

    predictor: str = PREDICTOR
    reference: str = REFERENCE
    degree: int = 1
    covariates: Tuple[str, ...] = ()
    name: Optional[str] = None

    def __post_init__(self):
        if self.degree not in (1, 2):
            raise ValueError(f"degree must be 1 or 2, got {self.degree!r}")
        object.__setattr__(self, "covariates", tuple(self.covariates))
        clash = {self.predictor, self.reference} & set(self.covariates)
        if clash:
            raise ValueError(f"Covariate(s) repeat predictor/reference: {', '.join(sorted(clash))}")
        if self.predictor == self.reference:
            raise ValueError("predictor and reference must be different columns")

    @property
    def terms(self) -> Tuple[str, ...]:
        out = [self.predictor]
        if self.degree == 2:
            out.append(square_term(self.predictor))
        out.extend(self.covariates)
        return tuple(out)

    @property
    def columns(self) -> Tuple[str, ...]:
        """Input columns that must be present and finite for a row to be used."""
        return (self.predictor, self.reference) + self.covariates

    @property
    def formula(self) -> str:
        return f"{self.reference} ~ {' + '.join(self.terms)}"

    @property
    def label(self) -> str:
        return self.name or self.formula


def term_frame(spec: ModelSpec, df: pd.DataFrame) -> pd.DataFrame:
    """Term values per row (NaN where undefined, including absent columns)."""
    def col(name: str) -> np.ndarray:
        if name in df.columns:
            return numeric_column(df, name)
        return np.full(len(df), np.nan)

    x = col(spec.predictor)
    values: Dict[str, np.ndarray] = {spec.predictor: x}
    if spec.degree == 2:
        values[square_term(spec.predictor)] = x * x
    for c in spec.covariates:
        values[c] = col(c)
    return pd.DataFrame(values, index=df.index, columns=list(spec.terms))


def design_matrix(spec: ModelSpec, df: pd.DataFrame) -> np.ndarray:
    terms = term_frame(spec, df).to_numpy(float)
    return np.column_stack([np.ones(len(df)), terms])


def gaussian_loglik(rss: float, n: int) -> float:
    if rss <= 0:
        return math.inf
    return -0.5 * n * (math.log(2.0 * math.pi) + math.log(rss / n) + 1.0)


def sample_key(index: pd.Index) -> str:
    """Fingerprint of the row labels a model was fit on."""
    return hashlib.sha1(repr(list(index)).encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class Coefficient:
    term: str
    estimate: float
    std_error: float = math.nan
    t_value: float = math.nan
    p_value: float = math.nan


@dataclass(frozen=True)
class FittedModel:
    spec: ModelSpec
    coefficients: Tuple[Coefficient, ...]
    rss: float
    sigma2: float          # residual variance RSS/(n - p)
    r2: float
    adj_r2: float
    rse: float             # residual standard error sqrt(sigma2)
    log_likelihood: float
    n_obs: int
    df_resid: int
    sample_key: str = ""

    @property
    def name(self) -> str:
        return self.spec.label

    @property
    def terms(self) -> Tuple[str, ...]:
        return self.spec.terms

    @property
    def params(self) -> np.ndarray:
        return np.array([c.estimate for c in self.coefficients], dtype=float)

    @property
    def intercept(self) -> float:
        return self.coefficients[0].estimate

    @property
    def k(self) -> int:
        """Estimated parameters: coefficients incl. intercept, plus residual variance."""
        return len(self.coefficients) + 1

    def coef(self, term: str) -> float:
        for c in self.coefficients:
            if c.term == term:
                return c.estimate
        raise KeyError(term)

    def summary_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "term": c.term,
                    "estimate": c.estimate,
                    "std_error": c.std_error,
                    "t_value": c.t_value,
                    "p_value": c.p_value,
                }
                for c in self.coefficients
            ]
        )

    def to_record(self) -> Dict[str, Any]:
        """Small JSON-safe record; non-finite numbers become ``None``, except an
        exact-fit log-likelihood, kept as the string ``"inf"``."""
        from .selection import aicc

        try:
            score: Optional[float] = aicc(self.log_likelihood, self.k, self.n_obs)
        except CalibrationError:
            score = None
        return {
            "name": self.name,
            "predictor": self.spec.predictor,
            "reference": self.spec.reference,
            "degree": self.spec.degree,
            "covariates": list(self.spec.covariates),
            "terms": [c.term for c in self.coefficients],
            "coefficients": [_finite(c.estimate) for c in self.coefficients],
            "std_errors": [_finite(c.std_error) for c in self.coefficients],
            "r2": _finite(self.r2),
            "adj_r2": _finite(self.adj_r2),
            "rse": _finite(self.rse),
            "rss": _finite(self.rss),
            "log_likelihood": _loglik_out(self.log_likelihood),
            "aicc": _finite(score),
            "n_obs": self.n_obs,
            "df_resid": self.df_resid,
            "sample_key": self.sample_key,
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "FittedModel":
        spec = ModelSpec(
            predictor=rec["predictor"],
            reference=rec["reference"],
            degree=int(rec["degree"]),
            covariates=tuple(rec.get("covariates") or ()),
            name=rec.get("name"),
        )
        terms = (INTERCEPT,) + spec.terms
        est = rec["coefficients"]
        if len(est) != len(terms):
            raise ValueError(f"Record has {len(est)} coefficients, model needs {len(terms)}")
        ses = rec.get("std_errors") or [None] * len(est)
        coefs = tuple(
            Coefficient(term=t, estimate=_num(e), std_error=_num(s))
            for t, e, s in zip(terms, est, ses)
        )
        n = int(rec.get("n_obs", 0))
        df_resid = int(rec.get("df_resid", n - len(terms)))
        rse = _num(rec.get("rse"))
        return cls(
            spec=spec,
            coefficients=coefs,
            rss=_num(rec.get("rss")),
            sigma2=rse * rse,
            r2=_num(rec.get("r2")),
            adj_r2=_num(rec.get("adj_r2")),
            rse=rse,
            log_likelihood=_num(rec.get("log_likelihood")),
            n_obs=n,
            df_resid=df_resid,
            sample_key=rec.get("sample_key", ""),
        )


def _finite(v: Optional[float]) -> Optional[float]:
    if v is None or not np.isfinite(v):
        return None
    return float(v)


def _loglik_out(v: float) -> Any:
    if v == math.inf:
        return "inf"
    return _finite(v)


def _num(v: Any) -> float:
    # float() also parses the "inf" written by _loglik_out
    return math.nan if v is None else float(v)


def _ols(spec: ModelSpec, X: np.ndarray, y: np.ndarray, key: str) -> FittedModel:
    n, p = X.shape
    # unit-norm columns so the rank test compares like with like
    scale = np.linalg.norm(X, axis=0)
    scale[scale == 0] = 1.0
    Xs = X / scale
    Q, R, piv = linalg.qr(Xs, mode="economic", pivoting=True)
    diag = np.abs(np.diag(R))
    if diag[0] == 0 or diag[-1] <= RANK_TOL * diag[0]:
        raise DegenerateModelError(f"Design matrix for {spec.label} is rank deficient")

    beta_s = np.empty(p)
    beta_s[piv] = linalg.solve_triangular(R, Q.T @ y)
    beta = beta_s / scale
    resid = y - X @ beta
    rss = float(resid @ resid)
    tss = float(np.sum((y - y.mean()) ** 2))
    r2 = 1.0 - rss / tss if tss > 0 else 0.0
    df_resid = n - p

    if df_resid > 0:
        sigma2 = rss / df_resid
        adj_r2 = 1.0 - (1.0 - r2) * (n - 1) / df_resid
        r_inv = linalg.solve_triangular(R, np.eye(p))
        cov = np.empty((p, p))
        cov[np.ix_(piv, piv)] = (r_inv @ r_inv.T) * sigma2
        cov /= np.outer(scale, scale)
        se = np.sqrt(np.clip(np.diag(cov), 0.0, None))
        with np.errstate(divide="ignore", invalid="ignore"):
            t = beta / se
        pv = 2.0 * stats.t.sf(np.abs(t), df_resid)
    else:
        sigma2 = adj_r2 = math.nan
        se = t = pv = np.full(p, np.nan)

    names = (INTERCEPT,) + spec.terms
    coefs = tuple(
        Coefficient(term=nm, estimate=float(b), std_error=float(s), t_value=float(tv), p_value=float(pp))
        for nm, b, s, tv, pp in zip(names, beta, se, t, pv)
    )
    return FittedModel(
        spec=spec,
        coefficients=coefs,
        rss=rss,
        sigma2=float(sigma2),
        r2=float(r2),
        adj_r2=float(adj_r2),
        rse=float(math.sqrt(sigma2)) if np.isfinite(sigma2) else math.nan,
        log_likelihood=gaussian_loglik(rss, n),
        n_obs=n,
        df_resid=df_resid,
        sample_key=key,
    )


def fit_spec(observations: ObservationSet, spec: ModelSpec) -> FittedModel:
    """Fit ``spec`` by ordinary least squares on the complete rows."""
    df = to_frame(observations)
    mask = complete_mask(df, spec.columns).to_numpy()
    used = df.loc[mask]
    n_required = len(spec.terms) + 1
    if len(used) < n_required:
        raise InsufficientDataError(len(used), n_required, spec.label)
    if len(used) < len(df):
        logger.debug("%s: dropped %d incomplete row(s)", spec.label, len(df) - len(used))
    X = design_matrix(spec, used)
    y = numeric_column(used, spec.reference)
    return _ols(spec, X, y, sample_key(used.index))


def fit(
    observations: ObservationSet,
    degree: int,
    covariates: Sequence[str] = (),
    *,
    predictor: str = PREDICTOR,
    reference: str = REFERENCE,
    name: Optional[str] = None,
) -> FittedModel:
    """Fit a degree-1 or degree-2 calibration polynomial (plus linear covariates)."""
    spec = ModelSpec(
        predictor=predictor,
        reference=reference,
        degree=degree,
        covariates=tuple(covariates),
        name=name,
    )
    return fit_spec(observations, spec)


def fit_candidates(
    observations: ObservationSet, specs: Iterable[ModelSpec]
) -> Tuple[List[FittedModel], List[Tuple[ModelSpec, CalibrationError]]]:
    """Fit every spec on the rows complete for *all* of them.

    Sharing one row subset keeps the resulting models comparable by AICc.
    A spec that cannot be fit is skipped and returned with its error; the
    remaining candidates are unaffected.
    """
    specs = list(specs)
    df = to_frame(observations)
    columns: List[str] = []
    for spec in specs:
        columns.extend(c for c in spec.columns if c not in columns)
    common = df.loc[complete_mask(df, columns).to_numpy()]
    if len(common) < len(df):
        logger.info("Candidate set uses %d of %d row(s) (complete cases)", len(common), len(df))

    models: List[FittedModel] = []
    skipped: List[Tuple[ModelSpec, CalibrationError]] = []
    for spec in specs:
        try:
            models.append(fit_spec(common, spec))
        except CalibrationError as e:
            logger.warning("Skipping candidate %s: %s", spec.label, e)
            skipped.append((spec, e))
    return models, skipped


__all__ = [
    "INTERCEPT",
    "ModelSpec",
    "Coefficient",
    "FittedModel",
    "square_term",
    "term_frame",
    "design_matrix",
    "gaussian_loglik",
    "fit",
    "fit_spec",
    "fit_candidates",
]
