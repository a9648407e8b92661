import time

import numpy as np
import pytest
from odesens.model import FunctionModel, Model
from odesens.sa.batch import (
    BatchModelFunction,
    deinterleave_by_state_variable,
    stack_trajectories,
)


N_ROWS = 8
STATES = ["s0", "s1", "s2"]
TIMES = [1.0, 2.0, 3.0, 4.0]


def encoded(i: int, j: int, m: int) -> float:
    return i * 1000 + j * 10 + m


class IndexModel(Model):
    """Trajectory value at timepoint j, state m is row * 1000 + j * 10 + m."""

    def __init__(self, delay: float = 0.0):
        super().__init__(state_init={name: 0.0 for name in STATES})
        self.delay = delay

    def launch_model(self, parameters, times, method="LSODA"):
        row = int(parameters["row"])
        # Later rows finish first
        time.sleep(self.delay * (N_ROWS - row))
        out = np.empty((times.size, 1 + len(STATES)))
        out[:, 0] = times
        for j in range(times.size):
            for m in range(len(STATES)):
                out[j, 1 + m] = encoded(row, j - 1, m)
        return out


class CrashingModel(IndexModel):

    def evaluate_trajectory(self, parameters, times, method="LSODA"):
        if int(parameters["row"]) == 2:
            raise RuntimeError("worker crashed")
        return super().evaluate_trajectory(parameters, times, method)


def get_design(n: int = N_ROWS) -> np.ndarray:
    return np.column_stack([np.arange(n), np.zeros(n)])


def test_deinterleave_recovers_every_entry():
    T, z = len(TIMES), len(STATES)
    trajectories = [
        np.array([[encoded(i, j, m) for m in range(z)] for j in range(T)])
        for i in range(N_ROWS)
    ]

    stacked = stack_trajectories(trajectories, T, z)
    assert stacked.shape == (T * z, N_ROWS)

    out = deinterleave_by_state_variable(stacked, STATES)
    assert list(out.keys()) == STATES
    for m, name in enumerate(STATES):
        assert out[name].shape == (T, N_ROWS)
        for i in range(N_ROWS):
            for j in range(T):
                assert out[name][j, i] == encoded(i, j, m)


def test_deinterleave_single_timepoint():
    z = len(STATES)
    trajectories = [np.array([encoded(i, 0, m) for m in range(z)]) for i in range(5)]

    out = deinterleave_by_state_variable(stack_trajectories(trajectories, 1, z), STATES)
    for m, name in enumerate(STATES):
        assert out[name].shape == (1, 5)
        np.testing.assert_array_equal(out[name][0], [encoded(i, 0, m) for i in range(5)])


def test_deinterleave_single_state_variable():
    trajectories = [np.array([encoded(i, j, 0) for j in range(3)]) for i in range(4)]

    out = deinterleave_by_state_variable(stack_trajectories(trajectories, 3, 1), ["only"])
    assert out["only"].shape == (3, 4)
    assert out["only"][2, 3] == encoded(3, 2, 0)


def test_deinterleave_rejects_mismatched_rows():
    with pytest.raises(ValueError):
        deinterleave_by_state_variable(np.zeros((7, 2)), STATES)


@pytest.mark.parametrize("parallel,workers", [(False, None), (True, 4)])
def test_batch_preserves_design_row_order(parallel, workers):
    batch = BatchModelFunction(
        IndexModel(delay=0.002),
        ["row", "unused"],
        TIMES,
        parallel=parallel,
        workers=workers
    )
    out = batch(get_design())

    for m, name in enumerate(STATES):
        assert out[name].shape == (len(TIMES), N_ROWS)
        for i in range(N_ROWS):
            for j in range(len(TIMES)):
                assert out[name][j, i] == encoded(i, j, m)


def test_batch_single_timepoint():
    batch = BatchModelFunction(IndexModel(), ["row", "unused"], [5.0])
    out = batch(get_design(3))
    assert out["s1"].shape == (1, 3)
    np.testing.assert_array_equal(out["s1"][0], [encoded(i, 0, 1) for i in range(3)])


@pytest.mark.parametrize("parallel,workers", [(False, None), (True, 3)])
def test_crashed_row_is_treated_as_failed_row(parallel, workers):
    batch = BatchModelFunction(
        CrashingModel(), ["row", "unused"], TIMES, parallel=parallel, workers=workers
    )
    out = batch(get_design())

    for name in STATES:
        assert np.isnan(out[name][:, 2]).all()
        assert np.isfinite(np.delete(out[name], 2, axis=1)).all()


def test_failed_integration_does_not_abort_batch():
    def rhs(t, y, p):
        if p["a"] > 0.5:
            raise ValueError("infeasible")
        return [p["a"]]

    batch = BatchModelFunction(FunctionModel(rhs, {"y": 0.0}), ["a"], [1.0, 2.0])
    out = batch(np.array([[0.1], [0.9], [0.2]]))["y"]

    np.testing.assert_allclose(out[:, 0], [0.1, 0.2], atol=1e-8)
    assert np.isnan(out[:, 1]).all()
    np.testing.assert_allclose(out[:, 2], [0.2, 0.4], atol=1e-8)


def test_batch_validates_inputs():
    model = IndexModel()
    with pytest.raises(ValueError):
        BatchModelFunction(model, ["row"], [0.0, 1.0])
    with pytest.raises(ValueError):
        BatchModelFunction(model, ["row"], TIMES, method="rk4")
    with pytest.raises(ValueError):
        BatchModelFunction(model, ["row"], TIMES, parallel=True, workers=0)

    batch = BatchModelFunction(model, ["row", "unused"], TIMES)
    with pytest.raises(ValueError):
        batch(np.zeros((3, 3)))
