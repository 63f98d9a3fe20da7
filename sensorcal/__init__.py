"""
sensorcal - polynomial calibration of environmental sensors with AICc model selection.
"""

__version__ = "0.1.0"

from .errors import (
    CalibrationError,
    InsufficientDataError,
    IncomparableModelsError,
    DegenerateModelError,
    MissingTermError,
)
from .observations import Observation, to_frame, complete_mask
from .fitting import ModelSpec, Coefficient, FittedModel, fit, fit_spec, fit_candidates
from .selection import aicc, rank, RankedModel, ModelRanking
from .predict import UNDEFINED, predict, predict_one, apply_models
from .io import load_sensor_table, unify_schema
from .config import CalibrationConfig, load_config, config_from_dict, select_probe
from .presets import PRESETS
from .report import write_summary_tables, read_model_records
from .pipeline import CalibrationResult, run_calibration, run_calibration_file

__all__ = [
    "__version__",
    "CalibrationError", "InsufficientDataError", "IncomparableModelsError",
    "DegenerateModelError", "MissingTermError",
    "Observation", "to_frame", "complete_mask",
    "ModelSpec", "Coefficient", "FittedModel", "fit", "fit_spec", "fit_candidates",
    "aicc", "rank", "RankedModel", "ModelRanking",
    "UNDEFINED", "predict", "predict_one", "apply_models",
    "load_sensor_table", "unify_schema",
    "CalibrationConfig", "load_config", "config_from_dict", "select_probe",
    "PRESETS",
    "write_summary_tables", "read_model_records",
    "CalibrationResult", "run_calibration", "run_calibration_file",
]
