import math

import numpy as np
import pandas as pd
import pytest

from sensorcal.errors import MissingTermError
from sensorcal.fitting import FittedModel, fit
from sensorcal.observations import Observation
from sensorcal.predict import apply_models, predict, predict_one


def _light():
    return [
        Observation(100.0, 50.0),
        Observation(200.0, 110.0),
        Observation(300.0, 180.0),
        Observation(400.0, 260.0),
    ]


def test_missing_predictor_marks_only_that_row():
    model = fit(_light(), degree=1)
    rows = [
        Observation(150.0, None),
        Observation(250.0, None),
        Observation(None, None),
        Observation(350.0, None),
    ]
    errors = []
    out = predict(model, rows, errors=errors)
    assert len(out) == 4
    assert np.isfinite(out.to_numpy()[[0, 1, 3]]).all()
    assert math.isnan(out.iloc[2])
    assert len(errors) == 1
    assert isinstance(errors[0], MissingTermError)
    assert errors[0].row == 2
    assert errors[0].terms == ("predictor",)


def test_prediction_is_linear_combination_of_terms():
    rng = np.random.default_rng(5)
    df = pd.DataFrame({"lux": rng.uniform(0, 1000, 30), "temp": rng.uniform(0, 30, 30)})
    df["pfd"] = 1.0 + 0.3 * df["lux"] + 1e-4 * df["lux"] ** 2 + 0.2 * df["temp"] + rng.normal(size=30)
    m = fit(df, 2, ["temp"], predictor="lux", reference="pfd")
    out = predict(m, df)
    b = m.params
    expected = b[0] + b[1] * df["lux"] + b[2] * df["lux"] ** 2 + b[3] * df["temp"]
    assert np.allclose(out.to_numpy(), expected.to_numpy(), rtol=1e-9)
    assert out.name == m.name
    assert predict_one(m, {"lux": 500.0, "temp": 10.0}) == pytest.approx(
        b[0] + b[1] * 500.0 + b[2] * 250000.0 + b[3] * 10.0, rel=1e-9
    )


def test_predict_is_idempotent():
    model = fit(_light(), degree=2)
    a = predict(model, _light())
    b = predict(model, _light())
    assert a.equals(b)


def test_predict_one_raises_for_undefined_term():
    model = fit(_light(), degree=2)
    with pytest.raises(MissingTermError) as exc:
        predict_one(model, {"predictor": float("nan")}, label="row-7")
    assert exc.value.row == "row-7"
    assert set(exc.value.terms) == {"predictor", "predictor^2"}


def test_absent_covariate_column_leaves_every_row_undefined():
    df = pd.DataFrame({"lux": [1.0, 2.0, 3.0, 4.0, 5.0], "temp": [3.0, 1.0, 4.0, 1.0, 5.0]})
    df["pfd"] = 2 * df["lux"] + df["temp"]
    m = fit(df, 1, ["temp"], predictor="lux", reference="pfd")
    errors = []
    out = predict(m, df[["lux"]], errors=errors)
    assert out.isna().all()
    assert [e.terms for e in errors] == [("temp",)] * 5


def test_apply_models_adds_columns_without_touching_raw():
    lin = fit(_light(), degree=1, name="linear")
    quad = fit(_light(), degree=2, name="quadratic")
    raw = pd.DataFrame({"predictor": [100.0, None, 300.0], "reference": [50.0, 111.0, 180.0]})
    before = raw.copy()
    out = apply_models(raw, [lin, quad])
    assert list(out.columns) == ["predictor", "reference", "pred_linear", "pred_quadratic"]
    pd.testing.assert_frame_equal(out[["predictor", "reference"]], before)
    pd.testing.assert_frame_equal(raw, before)
    assert out["pred_linear"].isna().tolist() == [False, True, False]

    named = apply_models(raw, [lin], names={"linear": "pfd_cal"})
    assert "pfd_cal" in named.columns
    with pytest.raises(ValueError):
        apply_models(raw, [lin], names={"linear": "reference"})


def test_record_round_trip_predicts_the_same():
    model = fit(_light(), degree=2, name="quadratic")
    rec = model.to_record()
    assert rec["name"] == "quadratic"
    assert rec["degree"] == 2
    assert rec["terms"] == ["(Intercept)", "predictor", "predictor^2"]
    assert rec["aicc"] is None  # n=4, k=4: correction undefined
    back = FittedModel.from_record(rec)
    assert np.allclose(predict(back, _light()), predict(model, _light()), rtol=1e-12)
    assert back.n_obs == 4


def test_predict_one_accepts_observation():
    model = fit(_light(), degree=1)
    expected = model.intercept + model.coef("predictor") * 250.0
    assert predict_one(model, Observation(250.0, None)) == pytest.approx(expected)
    with pytest.raises(MissingTermError):
        predict_one(model, Observation(None, 120.0), label=0)
