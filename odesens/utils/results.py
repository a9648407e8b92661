"""
# Results Management

This module provides the data structure holding the outcome of a Morris
screening of an ODE model.

## Classes

- `MorrisResult`: One labeled result frame per state variable

## Layout

Each frame has 1 + 3k rows and one column per timepoint:

- `time`: the observation timepoints
- `mu_<p>`: mean elementary effect of parameter p
- `mu.star_<p>`: mean absolute elementary effect of parameter p
- `sigma_<p>`: standard deviation of the elementary effects of parameter p

## Example Usage

```python
res = ode_morris(model, ["a", "b"], times, state_init={...})

res["Voltage"]                 # full (1 + 3k) x T frame
res.mu_star("Voltage")         # k x T frame indexed by parameter
res.save("/results/morris/")   # Voltage.csv, Current.csv
```
"""

import pandas as pd
import numpy as np
import os


def row_labels(parameters: list[str]) -> list[str]:
    return (
        ["time"]
        + [f"mu_{p}" for p in parameters]
        + [f"mu.star_{p}" for p in parameters]
        + [f"sigma_{p}" for p in parameters]
    )


class MorrisResult(dict[str, pd.DataFrame]):
    """
    Morris screening results for all state variables.

    This class extends dict: keys are state variable names (in the order of
    the initial state), values are (1 + 3k) x T DataFrames as described in
    the module documentation. The `kind` tag identifies the result type for
    code that handles results of several analysis methods.

    Attributes:
        kind (str): Result type tag, always "morrisRes".
        parameters (list[str]): Parameter names in analysis order.
        times (np.ndarray): Observation timepoints.
        r (int): Number of repetitions (trajectories) of the design.

    Example:
        ```python
        result = MorrisResult(frames, parameters=["a", "b"], times=times, r=25)

        most_influential = result.mu_star("x").max(axis=1).idxmax()
        ```
    """

    kind = "morrisRes"

    def __init__(
        self,
        data: dict[str, pd.DataFrame] = None,
        parameters: list[str] = None,
        times: np.ndarray = None,
        r: int = None
    ):
        super().__init__(data or {})
        self.parameters = list(parameters) if parameters is not None else []
        self.times = np.asarray(times, dtype=float) if times is not None else None
        self.r = r

    def _block(self, state: str, prefix: str) -> pd.DataFrame:
        frame = self[state]
        labels = [f"{prefix}_{p}" for p in self.parameters]
        block = frame.loc[labels].copy()
        block.index = pd.Index(self.parameters, name="parameter")
        return block

    def mu(self, state: str) -> pd.DataFrame:
        return self._block(state, "mu")

    def mu_star(self, state: str) -> pd.DataFrame:
        return self._block(state, "mu.star")

    def sigma(self, state: str) -> pd.DataFrame:
        return self._block(state, "sigma")

    def to_dict(self):
        """
        Convert all frames to nested lists.

        Returns:
            dict: Per state variable, a dict with 'index' (row labels) and
                'data' (rows as lists, NaN kept as float NaN).
        """
        return {
            state: {
                "index": frame.index.tolist(),
                "data": frame.to_numpy().tolist(),
            }
            for state, frame in self.items()
        }

    def save(self, directory: str):
        """
        Save every state variable's frame to a CSV file in `directory`.

        Files are named `<state>.csv` and keep the row labels as the first
        column. Existing files with the same names are overwritten.

        Args:
            directory (str): Target directory. It must already exist.
        """
        for state, frame in self.items():
            frame.to_csv(os.path.join(directory, f"{state}.csv"), index_label="row")
