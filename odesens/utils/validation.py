"""
# Input Validation

Checks run before any ODE is solved. Every function either returns the
normalized value or raises, so a sensitivity analysis never starts with
inputs that would only fail halfway through the design.

## Functions

- `check_times`: Validate and sort the observation time grid
- `check_parameter_names`: Validate the ordered parameter names
- `check_state_init`: Validate the named initial state
- `check_bounds`: Broadcast and validate lower/upper parameter bounds
- `check_repetitions`: Validate the repetition count
- `check_method`: Resolve an integration method name

## Example Usage

```python
from odesens.utils.validation import check_times, check_bounds

times = check_times([0.1, 5.1, 10.1])
binf, bsup = check_bounds(0.0, [1.0, 2.0], k=2)
```
"""

from typing import Mapping, Sequence

import numpy as np
from numpy.typing import ArrayLike


INTEGRATION_METHODS = ("RK45", "RK23", "DOP853", "Radau", "BDF", "LSODA")
"""Methods understood by `scipy.integrate.solve_ivp`."""

METHOD_ALIASES = {
    "ode45": "RK45",
    "ode23": "RK23",
}


def check_times(times: ArrayLike) -> np.ndarray:
    """
    Validate the observation time grid.

    Time 0 is the implicit integration start and must not be part of the
    grid. The returned grid is sorted.

    Args:
        times (ArrayLike): Observation timepoints.

    Returns:
        np.ndarray: Sorted 1-D float array of timepoints.

    Raises:
        ValueError: If the grid is empty, not one-dimensional, contains
            non-finite, non-positive or duplicated values.
    """
    times = np.asarray(times, dtype=float)
    if times.ndim == 0:
        times = times.reshape(1)
    if times.ndim != 1 or times.size == 0:
        raise ValueError("times must be a non-empty one-dimensional sequence.")
    if not np.all(np.isfinite(times)):
        raise ValueError("times must be finite.")
    if np.any(times <= 0):
        raise ValueError("All timepoints must be positive (time 0 is the implicit start).")
    times = np.sort(times)
    if np.any(np.diff(times) == 0):
        raise ValueError("times must not contain duplicates.")
    return times


def check_parameter_names(names: Sequence[str]) -> list[str]:
    if isinstance(names, str):
        names = [names]
    names = list(names)
    if not names:
        raise ValueError("At least one parameter name is required.")
    for name in names:
        if not isinstance(name, str) or not name:
            raise ValueError(f"Parameter names must be non-empty strings, got {name!r}.")
    if len(set(names)) != len(names):
        raise ValueError("Parameter names must be unique.")
    return names


def check_state_init(state_init: Mapping[str, float]) -> dict[str, float]:
    """
    Validate the named initial state.

    Args:
        state_init (Mapping[str, float]): State variable names mapped to
            their initial values. Iteration order defines the order of the
            output channels.

    Returns:
        dict[str, float]: Copy of the initial state with float values.

    Raises:
        TypeError: If `state_init` is not a mapping.
        ValueError: If it is empty, has unnamed entries or non-finite values.
    """
    if not isinstance(state_init, Mapping):
        raise TypeError("state_init must be a mapping of state variable names to initial values.")
    if not state_init:
        raise ValueError("state_init must contain at least one state variable.")

    state = {}
    for name, value in state_init.items():
        if not isinstance(name, str) or not name:
            raise ValueError("All state variables must be named.")
        value = float(value)
        if not np.isfinite(value):
            raise ValueError(f"Initial value of '{name}' must be finite.")
        state[name] = value
    return state


def check_bounds(
    binf: float | ArrayLike,
    bsup: float | ArrayLike,
    k: int
) -> tuple[np.ndarray, np.ndarray]:
    """
    Broadcast and validate parameter bounds.

    Args:
        binf (float | ArrayLike): Lower bounds, a scalar or one per parameter.
        bsup (float | ArrayLike): Upper bounds, a scalar or one per parameter.
        k (int): Number of parameters.

    Returns:
        tuple[np.ndarray, np.ndarray]: Lower and upper bounds of length k.

    Raises:
        ValueError: If a bound vector has a length other than 1 or k, holds
            non-finite values, or a lower bound is not below its upper bound.
    """
    bounds = []
    for label, b in (("binf", binf), ("bsup", bsup)):
        b = np.atleast_1d(np.asarray(b, dtype=float))
        if b.ndim != 1 or b.size not in (1, k):
            raise ValueError(f"{label} must be of length 1 or of the same length as the parameters!")
        if not np.all(np.isfinite(b)):
            raise ValueError(f"{label} must be finite.")
        bounds.append(np.broadcast_to(b, (k,)).copy())

    lower, upper = bounds
    if np.any(lower >= upper):
        bad = np.flatnonzero(lower >= upper).tolist()
        raise ValueError(f"Lower bounds must be smaller than upper bounds (parameter indices {bad}).")
    return lower, upper


def check_repetitions(r: int) -> int:
    if isinstance(r, bool) or not float(r).is_integer():
        raise ValueError("r must be an integer.")
    r = int(r)
    if r < 1:
        raise ValueError("r must be greater or equal to 1.")
    return r


def check_method(method: str) -> str:
    """
    Resolve an integration method name to its `solve_ivp` spelling.

    Names are matched case-insensitively, and the aliases in
    `METHOD_ALIASES` are accepted.

    Raises:
        ValueError: If the method is not one of `INTEGRATION_METHODS`.
    """
    if not isinstance(method, str):
        raise ValueError(f"Integration method must be a string, got {method!r}.")
    lookup = {m.lower(): m for m in INTEGRATION_METHODS}
    lookup.update(METHOD_ALIASES)
    resolved = lookup.get(method.lower())
    if resolved is None:
        raise ValueError(
            f"Unknown integration method: {method}. "
            f"Choose one of {', '.join(INTEGRATION_METHODS)}."
        )
    return resolved
