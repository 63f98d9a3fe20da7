import dataclasses
import json
from pathlib import Path

import pandas as pd
import pytest

from sensorcal.config import CalibrationConfig, config_from_dict, load_config, select_probe
from sensorcal.presets import PRESETS


def test_load_config_from_json(tmp_path: Path):
    cfg = {
        "name": "emu_light",
        "predictors": ["lux"],
        "reference": "pfd",
        "degrees": [1, 2],
        "covariate_sets": [[], ["temp"]],
    }
    f = tmp_path / "cfg.json"
    f.write_text(json.dumps(cfg))
    res = load_config(f)
    assert res.name == "emu_light"
    names = [s.name for s in res.specs()]
    assert names == ["lux_linear", "lux_quadratic", "lux_linear_temp", "lux_quadratic_temp"]
    assert res.numeric_columns() == ["lux", "pfd", "temp"]


def test_config_rejects_unknown_keys_and_bad_degrees():
    with pytest.raises(ValueError):
        config_from_dict({"predictor": "lux"})
    with pytest.raises(ValueError):
        CalibrationConfig(degrees=[3])
    with pytest.raises(ValueError):
        CalibrationConfig(predictors=[])


def test_single_predictor_string_is_accepted():
    cfg = CalibrationConfig(predictors="lux", reference="pfd", degrees=[1])
    assert [s.predictor for s in cfg.specs()] == ["lux"]


def test_select_probe_keeps_only_configured_probe():
    df = pd.DataFrame({
        "probe": ["gold1", "gold2", "gold2", "copper"],
        "resistance": [1.0, 2.0, 3.0, 4.0],
    })
    cfg = dataclasses.replace(PRESETS["soil"], probe="gold2")
    out = select_probe(df, cfg)
    assert out["resistance"].tolist() == [2.0, 3.0]


def test_soil_preset_requires_explicit_probe():
    df = pd.DataFrame({"probe": ["gold1"], "resistance": [1.0]})
    assert PRESETS["soil"].probe is None
    with pytest.raises(ValueError):
        select_probe(df, PRESETS["soil"])
    with pytest.raises(ValueError):
        select_probe(df, dataclasses.replace(PRESETS["soil"], probe="gold9"))


def test_light_preset_ignores_probe():
    df = pd.DataFrame({"lux": [1.0, 2.0]})
    assert select_probe(df, PRESETS["light"]) is df


def test_numeric_probe_ids_match_configured_text():
    df = pd.DataFrame({"probe": [1.0, 2.0, 2.0, 3.0], "resistance": [1.0, 2.0, 3.0, 4.0]})
    for probe in ("2", 2, 2.0, " 2 "):
        out = select_probe(df, dataclasses.replace(PRESETS["soil"], probe=probe))
        assert out["resistance"].tolist() == [2.0, 3.0]
