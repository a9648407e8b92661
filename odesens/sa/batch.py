"""Batch evaluation of an ODE model over a design matrix.

This module turns a `Model` into the function the Morris design driver
calls: it takes a whole design matrix (one parameter vector per row),
integrates the ODE for every row, sequentially or on a thread pool, and
returns one (timepoints x design rows) matrix per state variable.

The reshaping is done by two named transformations:

    trajectories (n x T x z)
        -> stack_trajectories              -> (T*z) x n, row t*z + j is
                                              state j at timepoint t
        -> deinterleave_by_state_variable  -> {state j: T x n}

Typical usage example:

    batch = BatchModelFunction(model, ["a", "b"], times, method="LSODA")
    outputs = batch(X)          # X has shape (n, 2)
    outputs["Voltage"].shape    # (len(times), n)
"""

from ..model import Model
from ..utils.validation import check_method, check_parameter_names, check_times

# Parallel runs
from tqdm import tqdm
from concurrent.futures import ThreadPoolExecutor, as_completed

from numpy.typing import ArrayLike
import numpy as np
import logging


def stack_trajectories(trajectories: list[np.ndarray], n_times: int, n_states: int) -> np.ndarray:
    """Stack per-row trajectories into a single (T*z) x n matrix.

    Column i holds design row i. Within a column, entries are ordered
    timepoint-major and state-minor, so row `t * z + j` is state variable
    j at timepoint t.

    Args:
        trajectories (list[np.ndarray]): n trajectories, each reshapeable
            to (T, z). A single timepoint or a single state variable may be
            given as a 1-D array.
        n_times (int): Number of timepoints T.
        n_states (int): Number of state variables z.

    Returns:
        np.ndarray: Matrix of shape (T * z, n).
    """
    stacked = np.empty((n_times * n_states, len(trajectories)))
    for i, trajectory in enumerate(trajectories):
        stacked[:, i] = np.asarray(trajectory, dtype=float).reshape(n_times, n_states).ravel()
    return stacked


def deinterleave_by_state_variable(stacked: np.ndarray, state_names: list[str]) -> dict[str, np.ndarray]:
    """Split a stacked (T*z) x n matrix into one T x n matrix per state.

    State variable j is recovered by taking every z-th row starting at
    row j. The result keeps two dimensions even for a single timepoint or
    a single design row.

    Args:
        stacked (np.ndarray): Output of `stack_trajectories`.
        state_names (list[str]): The z state variable names, in order.

    Returns:
        dict[str, np.ndarray]: State variable name mapped to a T x n matrix.
    """
    z = len(state_names)
    if stacked.shape[0] % z != 0:
        raise ValueError(
            f"Cannot split {stacked.shape[0]} rows into {z} state variables."
        )
    return {
        name: stacked[j::z, :]
        for j, name in enumerate(state_names)
    }


class BatchModelFunction:
    """Model function evaluating whole design matrices.

    The model, time grid and integration method are fixed on construction
    and shared read-only by all row evaluations. Rows are independent, so
    they can run on a thread pool; results are always put back in design
    row order.

    Attributes:
        model (Model): The ODE model.
        parameters (list[str]): Parameter names, one per design column.
        times (np.ndarray): Observation timepoints (without 0).
        method (str): Integration method.
        parallel (bool): Whether to evaluate rows on a thread pool.
        workers (int): Number of worker threads when `parallel` is True.
        progress (bool): Show a tqdm progress bar for each batch.
    """

    def __init__(
        self,
        model: Model,
        parameters: list[str],
        times: ArrayLike,
        method: str = "LSODA",
        parallel: bool = False,
        workers: int = None,
        progress: bool = False
    ):
        self.model = model
        self.parameters = check_parameter_names(parameters)
        self.times = check_times(times)
        self.method = check_method(method)
        self.parallel = parallel
        self.workers = 1 if workers is None else int(workers)
        self.progress = progress

        if self.workers < 1:
            raise ValueError("workers must be at least 1.")

        # Integration always starts at 0
        self._grid = np.concatenate([[0.0], self.times])

    @property
    def state_names(self) -> list[str]:
        return self.model.state_names

    def _row_to_parameters(self, row: np.ndarray) -> dict[str, float]:
        return {name: float(value) for name, value in zip(self.parameters, row)}

    def evaluate_row(self, row: np.ndarray) -> np.ndarray:
        return self.model.evaluate_trajectory(
            self._row_to_parameters(row),
            self._grid,
            self.method
        )

    def _failed_row(self) -> np.ndarray:
        return np.full((self.times.size, len(self.state_names)), np.nan)

    def _safe_row(self, idx: int, row: np.ndarray) -> np.ndarray:
        try:
            return self.evaluate_row(row)
        except Exception as e:
            # A crashed row counts as a failed integration
            logging.warning(f"Evaluation of design row {idx} failed: {e}")
            return self._failed_row()

    def _run_sequential(self, X: np.ndarray) -> list[np.ndarray]:
        rows = tqdm(X, disable=not self.progress)
        return [self._safe_row(i, row) for i, row in enumerate(rows)]

    def _run_parallel(self, X: np.ndarray) -> list[np.ndarray]:
        N = X.shape[0]
        res = [None for _ in range(N)]  # Ensure that we have an accessible index

        pbar = tqdm(total=N, disable=not self.progress)

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = {
                executor.submit(self._safe_row, i, X[i]): i
                for i in range(N)  # Store corresponding design row
            }

            for future in as_completed(futures):
                pbar.update(1)
                idx = futures[future]
                res[idx] = future.result()

        pbar.close()

        return res

    def evaluate(self, X: ArrayLike) -> list[np.ndarray]:
        """Evaluate every design row, returning the trajectories in row order."""
        X = np.atleast_2d(np.asarray(X, dtype=float))
        if X.shape[1] != len(self.parameters):
            raise ValueError(
                f"Design matrix has {X.shape[1]} columns, expected {len(self.parameters)}."
            )

        if self.parallel and self.workers > 1:
            trajectories = self._run_parallel(X)
        else:
            trajectories = self._run_sequential(X)

        failed = sum(bool(np.isnan(t).any()) for t in trajectories)
        if failed:
            logging.warning(f"Integration failed for {failed} of {len(trajectories)} design rows.")

        return trajectories

    def __call__(self, X: ArrayLike) -> dict[str, np.ndarray]:
        """Evaluate a design matrix.

        Args:
            X (ArrayLike): Design matrix of shape (n, k), columns in the
                order of `parameters`.

        Returns:
            dict[str, np.ndarray]: State variable name mapped to a T x n
                matrix; column i belongs to design row i.
        """
        trajectories = self.evaluate(X)
        stacked = stack_trajectories(trajectories, self.times.size, len(self.state_names))
        return deinterleave_by_state_variable(stacked, self.state_names)
