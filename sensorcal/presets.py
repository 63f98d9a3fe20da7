from .config import CalibrationConfig

# Starting points; copy with dataclasses.replace() to override per run.
# The soil preset deliberately leaves ``probe`` unset: which probe is
# authoritative is a per-deployment decision.
PRESETS: dict[str, CalibrationConfig] = {
    "light": CalibrationConfig(
        name="light",
        predictors=["lux"],
        reference="pfd",
        degrees=[1, 2],
        covariate_sets=[[], ["temp"]],
        time_col="timestamp",
    ),
    "soil": CalibrationConfig(
        name="soil",
        predictors=["resistance"],
        reference="vwc",
        degrees=[1, 2],
        covariate_sets=[[], ["temp"]],
        time_col="timestamp",
        probe_col="probe",
    ),
}
