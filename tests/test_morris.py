import os
import warnings

import numpy as np
import pandas as pd
import pytest
from odesens import FunctionModel, MorrisAnalysis, OscillatorNetwork, ode_morris
from odesens.sa import MorrisConfig, SensitivityWarning
from odesens.sa.diagnostics import INTEGRATION_FAILED, SIGMA_NEEDS_REPETITIONS
from odesens.config import DesignConfig


TIMES = np.array([1.0, 2.0, 5.0])
PARS = ["a", "b"]
STATE = {"x": 0.0, "y": 0.0}
COARSE = {"type": "oat", "levels": 4, "grid_jump": 2}


def linear(t, y, p):
    # x(t) = a t, y(t) = 2 b t
    return [p["a"], 2 * p["b"]]


def fhn(t, y, p):
    voltage, current = y
    return [
        p["s"] * (voltage - voltage**3 / 3 + current),
        -1 / p["s"] * (voltage - p["a"] + p["b"] * current),
    ]


def run_linear(**kwargs):
    options = dict(state_init=STATE, binf=[0.0, 1.0], bsup=[2.0, 3.0], r=5, design=COARSE)
    options.update(kwargs)
    return ode_morris(linear, PARS, TIMES, **options)


def sensitivity_warnings(record) -> list[str]:
    return [str(w.message) for w in record if issubclass(w.category, SensitivityWarning)]


def test_linear_model_scaled_effects():
    with warnings.catch_warnings():
        warnings.simplefilter("error", SensitivityWarning)
        res = run_linear()

    assert list(res.keys()) == ["x", "y"]
    assert res.kind == "morrisRes"

    x, y = res["x"], res["y"]
    assert list(x.index) == [
        "time", "mu_a", "mu_b", "mu.star_a", "mu.star_b", "sigma_a", "sigma_b"
    ]
    assert x.shape == (7, TIMES.size)

    np.testing.assert_allclose(x.loc["mu_a"], 2 * TIMES, rtol=1e-5)
    np.testing.assert_allclose(x.loc["mu.star_a"], 2 * TIMES, rtol=1e-5)
    np.testing.assert_allclose(x.loc[["mu_b", "mu.star_b"]], 0.0, atol=1e-6)
    np.testing.assert_allclose(y.loc["mu_b"], 4 * TIMES, rtol=1e-5)
    np.testing.assert_allclose(y.loc[["mu_a", "mu.star_a"]], 0.0, atol=1e-6)
    np.testing.assert_allclose(x.loc[["sigma_a", "sigma_b"]], 0.0, atol=1e-6)
    np.testing.assert_allclose(y.loc[["sigma_a", "sigma_b"]], 0.0, atol=1e-6)


def test_linear_model_unscaled_effects():
    res = run_linear(scale=False)
    np.testing.assert_allclose(res["x"].loc["mu_a"], TIMES, rtol=1e-5)
    np.testing.assert_allclose(res["y"].loc["mu_b"], 2 * TIMES, rtol=1e-5)


def test_time_row_holds_sorted_grid():
    res = ode_morris(
        linear, PARS, [5.0, 1.0, 2.0], state_init=STATE, r=3, design=COARSE
    )
    for frame in res.values():
        np.testing.assert_array_equal(frame.loc["time"], TIMES)
    np.testing.assert_array_equal(res.times, TIMES)


def test_single_timepoint():
    res = run_linear()
    single = ode_morris(linear, PARS, [2.0], state_init=STATE, binf=[0.0, 1.0], bsup=[2.0, 3.0], r=5, design=COARSE)
    assert single["x"].shape == (7, 1)
    assert single["x"].loc["mu_a", 0] == pytest.approx(res["x"].loc["mu_a", 1], rel=1e-5)


def test_mu_star_bounds_absolute_mu():
    res = ode_morris(
        fhn, ["a", "b", "s"], np.arange(0.1, 20, 5),
        state_init={"Voltage": -1.0, "Current": 1.0},
        binf=[0.18, 0.18, 2.8], bsup=[0.22, 0.22, 3.2],
        r=6, ode_method="radau"
    )
    for state in ("Voltage", "Current"):
        mu = res.mu(state).to_numpy()
        mu_star = res.mu_star(state).to_numpy()
        assert np.isfinite(mu_star).all()
        assert (mu_star >= np.abs(mu) - 1e-12).all()
        assert (res.sigma(state).to_numpy() >= 0).all()


def test_single_repetition_warns_about_sigma():
    with warnings.catch_warnings(record=True) as record:
        warnings.simplefilter("always")
        res = run_linear(r=1)

    assert sensitivity_warnings(record) == [SIGMA_NEEDS_REPETITIONS]
    assert res.r == 1
    for frame in res.values():
        assert frame.loc[["sigma_a", "sigma_b"]].isna().all().all()
        assert frame.loc[["mu_a", "mu_b"]].notna().all().all()


def test_failed_integrations_warn_once():
    def fragile(t, y, p):
        if p["a"] > 1.0:
            raise ValueError("parameter out of the feasible region")
        return linear(t, y, p)

    # With 4 levels and a jump of 2 every trajectory visits a >= 4/3
    with warnings.catch_warnings(record=True) as record:
        warnings.simplefilter("always")
        res = ode_morris(
            fragile, PARS, TIMES, state_init=STATE,
            binf=[0.0, 1.0], bsup=[2.0, 3.0], r=4, design=COARSE
        )

    assert sensitivity_warnings(record) == [INTEGRATION_FAILED]
    assert res["x"].loc[["mu_a", "mu_b"]].isna().any().any()
    # Failures never reach the time row
    np.testing.assert_array_equal(res["x"].loc["time"], TIMES)


def test_parallel_matches_sequential():
    sequential = run_linear(seed=7)
    parallel = run_linear(seed=7, parallel=True, workers=3)

    for state in ("x", "y"):
        pd.testing.assert_frame_equal(sequential[state], parallel[state])


def test_seed_controls_design():
    first = run_linear(seed=1, design=None, r=3)
    second = run_linear(seed=1, design=None, r=3)
    pd.testing.assert_frame_equal(first["x"], second["x"])


def test_design_config_object_is_accepted():
    res = run_linear(design=DesignConfig(type="oat", levels=6, grid_jump=3))
    np.testing.assert_allclose(res["x"].loc["mu_a"], 2 * TIMES, rtol=1e-5)


def test_salib_design_type():
    res = run_linear(design={"type": "salib", "levels": 4}, r=4)
    np.testing.assert_allclose(res["x"].loc["mu_a"], 2 * TIMES, rtol=1e-5)
    np.testing.assert_allclose(res["y"].loc["mu_b"], 4 * TIMES, rtol=1e-5)


@pytest.mark.parametrize("kwargs", [
    {"times": [0.0, 1.0]},
    {"times": [1.0, 1.0]},
    {"times": []},
    {"binf": [0.0, 1.0, 2.0]},
    {"bsup": [0.0, 1.0]},
    {"r": 0},
    {"r": 2.5},
    {"ode_method": "euler"},
    {"pars": ["a", "a"]},
    {"seed": "2015"},
    {"design": {"type": "simplex"}},
    {"workers": 0, "parallel": True},
])
def test_invalid_input_raises_before_solving(kwargs):
    calls = []

    def counting(t, y, p):
        calls.append(t)
        return linear(t, y, p)

    options = dict(
        mod=counting, pars=PARS, times=TIMES, state_init=STATE,
        binf=0.0, bsup=1.0, r=3, design=COARSE
    )
    options.update(kwargs)
    with pytest.raises(ValueError):
        ode_morris(**options)
    assert calls == []


def test_function_model_requires_initial_state():
    with pytest.raises(ValueError):
        ode_morris(linear, PARS, TIMES)


def test_network_screening():
    network = OscillatorNetwork(masses=[1.0], dampers=[0.5], springs=[2.0], position=[1.0])
    res = ode_morris(
        network, ["k.1", "d.1"], [0.5, 1.0],
        binf=[1.0, 0.1], bsup=[3.0, 1.0], r=3, design=COARSE
    )

    assert list(res.keys()) == ["x.1", "v.1"]
    assert res["x.1"].shape == (7, 2)
    assert np.isfinite(res["x.1"].to_numpy()).all()


def test_network_screening_rejects_unknown_parameter():
    network = OscillatorNetwork(masses=[1.0], dampers=[0.5], springs=[2.0])
    with pytest.raises(ValueError):
        ode_morris(network, ["m.2"], [1.0])


def test_analysis_saves_results(tmp_path):
    out_dir = tmp_path / "morris"
    config = MorrisConfig(
        binf=[0.0, 1.0], bsup=[2.0, 3.0], r=3, design=DesignConfig(**COARSE)
    )
    sa = MorrisAnalysis(FunctionModel(linear, STATE), PARS, config)
    res = sa.run(TIMES, out_dir=str(out_dir))

    assert sorted(os.listdir(out_dir)) == ["design.npy", "x.csv", "y.csv"]
    loaded = pd.read_csv(out_dir / "x.csv", index_col="row")
    np.testing.assert_allclose(loaded.to_numpy(), res["x"].to_numpy())
    assert list(loaded.index) == list(res["x"].index)
    assert np.load(out_dir / "design.npy").shape == (3 * 3, 2)


def test_result_accessors():
    res = run_linear()

    mu_star = res.mu_star("x")
    assert list(mu_star.index) == PARS
    assert mu_star.index.name == "parameter"
    np.testing.assert_allclose(mu_star.loc["a"], 2 * TIMES, rtol=1e-5)
    assert res.sigma("y").shape == (2, TIMES.size)

    as_dict = res.to_dict()
    assert as_dict["x"]["index"][0] == "time"
    assert len(as_dict["y"]["data"]) == 7


def bilinear(t, y, p):
    # x(t) = a b t, y(t) = a^2 t
    return [p["a"] * p["b"], p["a"] ** 2]


def reference_statistics(X, lower, upper, times):
    """mu, mu.star and sigma of x(t) = a b t and y(t) = a^2 t from a design."""
    solution = {
        "x": lambda p: p[0] * p[1] * times,
        "y": lambda p: p[0] ** 2 * times,
    }
    k = X.shape[1]
    r = X.shape[0] // (k + 1)
    ee = {name: np.empty((k, r, times.size)) for name in solution}
    for m in range(r):
        for step in range(k):
            before, after = X[m * (k + 1) + step], X[m * (k + 1) + step + 1]
            du = (after - before) / (upper - lower)
            j = int(np.argmax(np.abs(du)))
            for name, f in solution.items():
                ee[name][j, m] = (f(after) - f(before)) / du[j]
    return {
        name: (e.mean(axis=1), np.abs(e).mean(axis=1), e.std(axis=1, ddof=1))
        for name, e in ee.items()
    }


def test_golden_values_of_bilinear_model(tmp_path):
    lower, upper = np.array([1.0, 0.0]), np.array([3.0, 2.0])
    config = MorrisConfig(
        seed=2015, binf=lower.tolist(), bsup=upper.tolist(), r=6,
        design=DesignConfig(type="oat", levels=10, grid_jump=3)
    )
    sa = MorrisAnalysis(FunctionModel(bilinear, STATE), PARS, config)
    res = sa.run(TIMES, out_dir=str(tmp_path))

    X = np.load(tmp_path / "design.npy")
    assert X.shape == (6 * 3, 2)
    expected = reference_statistics(X, lower, upper, TIMES)

    for state, (mu, mu_star, sigma) in expected.items():
        np.testing.assert_allclose(res.mu(state).to_numpy(), mu, rtol=1e-6, atol=1e-8)
        np.testing.assert_allclose(res.mu_star(state).to_numpy(), mu_star, rtol=1e-6, atol=1e-8)
        np.testing.assert_allclose(res.sigma(state).to_numpy(), sigma, rtol=1e-6, atol=1e-8)

    # d(a b t)/db scaled by the range of b is 2 a t with a in [1, 3]
    per_time = res.mu("x").loc["b"].to_numpy() / TIMES
    assert ((per_time >= 2.0 - 1e-9) & (per_time <= 6.0 + 1e-9)).all()
    np.testing.assert_allclose(res.mu("y").loc["b"], 0.0, atol=1e-8)
    # Effects vary across trajectories
    assert (res.sigma("x").loc["b"] > 0).all()
    assert (res.sigma("y").loc["a"] > 0).all()


def test_seed_drives_nonlinear_results():
    options = dict(
        state_init=STATE, binf=[1.0, 0.0], bsup=[3.0, 2.0], r=6,
        design={"type": "oat", "levels": 10, "grid_jump": 3}
    )
    first = ode_morris(bilinear, PARS, TIMES, seed=2015, **options)
    again = ode_morris(bilinear, PARS, TIMES, seed=2015, **options)
    other = ode_morris(bilinear, PARS, TIMES, seed=2016, **options)

    pd.testing.assert_frame_equal(first["x"], again["x"])
    assert not np.allclose(first["x"].to_numpy(), other["x"].to_numpy())


def test_fhn_results_are_reproducible():
    options = dict(
        state_init={"Voltage": -1.0, "Current": 1.0},
        binf=[0.18, 0.18, 2.8], bsup=[0.22, 0.22, 3.2], r=4,
        design={"type": "oat", "levels": 10, "grid_jump": 3}, ode_method="radau"
    )
    first = ode_morris(fhn, ["a", "b", "s"], [0.1, 5.1], seed=2015, **options)
    second = ode_morris(fhn, ["a", "b", "s"], [0.1, 5.1], seed=2015, **options)

    for state in ("Voltage", "Current"):
        pd.testing.assert_frame_equal(first[state], second[state])
        assert (first.sigma(state).to_numpy() > 0).any()


def test_wrong_derivative_length_raises_before_solving():
    calls = []

    def short(t, y, p):
        calls.append(t)
        return [p["a"]]

    with pytest.raises(ValueError, match="1 derivatives for 2 state variables"):
        ode_morris(short, PARS, TIMES, state_init=STATE, r=3, design=COARSE)
    assert len(calls) == 1
