from __future__ import annotations
from typing import Any, Iterable


class CalibrationError(ValueError):
    """Base class for failures of a single fit, ranking or prediction."""


class InsufficientDataError(CalibrationError):
    """Fewer complete rows than the model has parameters to estimate."""

    def __init__(self, n_complete: int, n_required: int, label: str = ""):
        self.n_complete = int(n_complete)
        self.n_required = int(n_required)
        what = f" for {label}" if label else ""
        super().__init__(
            f"Need at least {self.n_required} complete observations{what}, got {self.n_complete}"
        )


class IncomparableModelsError(CalibrationError):
    """Models were not fit on the same sample / response."""


class DegenerateModelError(CalibrationError):
    """AICc correction undefined or design matrix rank deficient."""


class MissingTermError(CalibrationError):
    """A single row cannot be evaluated under a model."""

    def __init__(self, row: Any, terms: Iterable[str], model: str = ""):
        self.row = row
        self.terms = tuple(terms)
        where = f" under {model}" if model else ""
        super().__init__(f"Row {row!r}: undefined term(s) {', '.join(self.terms)}{where}")


__all__ = [
    "CalibrationError",
    "InsufficientDataError",
    "IncomparableModelsError",
    "DegenerateModelError",
    "MissingTermError",
]
