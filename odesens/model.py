"""
# Model Interface and ODE Implementations

This module provides the abstract model interface used by the sensitivity
analysis and its two concrete representations: a plain right-hand-side
function and an oscillator network.

## Classes

- `Model`: Abstract base class defining the interface for all ODE models
- `FunctionModel`: Model given by a function `f(time, state, parameters)`
- `NetworkModel`: Model given by an `OscillatorNetwork`

## Functions

- `solve_ode`: Default integrator built on `scipy.integrate.solve_ivp`
- `as_model`: Wrap a callable, a network or a model into a `Model`

## Key Features

- **Pluggable Integration**: Any integrator with the `solve_ode` signature can be used
- **Failure Tolerance**: Integration failures become NaN trajectories instead of exceptions
- **Fixed Output Layout**: Trajectories are always (timepoints x state variables)

## Example Usage

```python
import numpy as np
from odesens import FunctionModel

def fhn(t, y, p):
    voltage, current = y
    return [
        p["s"] * (voltage - voltage**3 / 3 + current),
        -1 / p["s"] * (voltage - p["a"] + p["b"] * current),
    ]

model = FunctionModel(fhn, state_init={"Voltage": -1.0, "Current": 1.0})
times = np.concatenate([[0.0], np.arange(0.1, 50, 5)])
trajectory = model.evaluate_trajectory({"a": 0.2, "b": 0.2, "s": 3.0}, times)
```
"""

# Integration
from scipy.integrate import solve_ivp

# Basic data utils
import numpy as np
from typing import Any, Callable, Mapping
from numpy.typing import ArrayLike
from abc import abstractmethod, ABC

import logging

from odesens.network import OscillatorNetwork
from odesens.utils.validation import check_method, check_state_init


Integrator = Callable[[Callable, np.ndarray, np.ndarray, Any, str], np.ndarray]
"""Signature `integrate(func, initial_state, times, parameters, method) -> matrix`."""


def solve_ode(
    func: Callable,
    initial_state: ArrayLike,
    times: ArrayLike,
    parameters: Any,
    method: str = "LSODA",
    **solver_kwargs
) -> np.ndarray:
    """
    Integrate an ODE system and return the solution at the requested times.

    The integration runs from `times[0]` to `times[-1]`. If the solver
    stops early, the rows of the timepoints it did not reach are NaN.

    Args:
        func (Callable): Right-hand side `func(t, y, parameters)`.
        initial_state (ArrayLike): State at `times[0]`.
        times (ArrayLike): Increasing timepoints, including the start time.
        parameters (Any): Passed through to `func` unchanged.
        method (str, optional): A `solve_ivp` method name. Defaults to "LSODA".
        **solver_kwargs: Extra keyword arguments for `solve_ivp` (e.g. rtol).

    Returns:
        np.ndarray: Matrix of shape (len(times), 1 + len(initial_state)).
            The first column holds the time, the remaining ones the states.

    Raises:
        Exception: Whatever `func` or `solve_ivp` raises.
    """
    times = np.asarray(times, dtype=float)
    initial_state = np.asarray(initial_state, dtype=float)

    sol = solve_ivp(
        func,
        (times[0], times[-1]),
        initial_state,
        method=method,
        t_eval=times,
        args=(parameters,),
        **solver_kwargs
    )

    out = np.full((times.size, 1 + initial_state.size), np.nan)
    out[:, 0] = times
    reached = sol.t.size
    out[:reached, 1:] = sol.y.T

    if not sol.success:
        logging.debug(f"Integration stopped at t={sol.t[-1] if reached else times[0]}: {sol.message}")

    return out


class Model(ABC):
    """
    Abstract base class for ODE models under sensitivity analysis.

    A model knows its named initial state and how to integrate itself for
    one parameter vector. `evaluate_trajectory` is the failure-tolerant entry
    point used by the batch evaluation; `launch_model` is the low-level call
    that may raise.

    Attributes:
        state_init (dict[str, float]): Initial value per state variable. The
            order of the keys defines the order of the output channels.
        integrator (Integrator): Function used to solve the ODE system.

    Example:
        ```python
        class DecayModel(Model):
            def launch_model(self, parameters, times, method="LSODA"):
                return self.integrator(
                    lambda t, y, p: -p["k"] * y,
                    self.initial_state, times, parameters, method
                )

        model = DecayModel(state_init={"y": 1.0})
        model.evaluate_trajectory({"k": 0.5}, [0.0, 1.0, 2.0])  # shape (2, 1)
        ```
    """
    def __init__(
            self,
            state_init: Mapping[str, float],
            integrator: Integrator = None,
    ):
        self.state_init = check_state_init(state_init)
        self.integrator = integrator if integrator is not None else solve_ode

    @property
    def state_names(self) -> list[str]:
        return list(self.state_init.keys())

    @property
    def initial_state(self) -> np.ndarray:
        return np.array(list(self.state_init.values()), dtype=float)

    @abstractmethod
    def launch_model(
        self,
        parameters: dict[str, float],
        times: np.ndarray,
        method: str = "LSODA"
    ) -> np.ndarray:
        """
        Solve the ODE system for one parameter vector.

        Args:
            parameters (dict[str, float]): Parameter names mapped to values.
            times (np.ndarray): Timepoints including the start time 0.
            method (str, optional): Integration method. Defaults to "LSODA".

        Returns:
            np.ndarray: Solver output with a leading time column, one row
                per entry of `times`.
        """
        pass

    def evaluate_trajectory(
        self,
        parameters: dict[str, float],
        times: ArrayLike,
        method: str = "LSODA"
    ) -> np.ndarray:
        """
        Evaluate the state trajectory for one parameter vector.

        The solver output is restricted to the observation timepoints
        (the leading start time is dropped) and to the state columns
        (the time column is dropped). Any failure of the integration or of
        the model function yields NaN entries instead of an exception.

        Args:
            parameters (dict[str, float]): Parameter names mapped to values.
            times (ArrayLike): Augmented time grid `[0, t_1, ..., t_T]`.
            method (str, optional): Integration method, see
                `odesens.utils.validation.INTEGRATION_METHODS`.
                Defaults to "LSODA".

        Returns:
            np.ndarray: Trajectory of shape (T, z). Rows the solver did not
                reach, or all rows on failure, are NaN.

        Raises:
            ValueError: If `method` is not a known integration method.
        """
        method = check_method(method)
        times = np.asarray(times, dtype=float)
        n_times = times.size - 1
        z = len(self.state_init)

        try:
            out = np.asarray(self.launch_model(parameters, times, method), dtype=float)
        except Exception as e:
            logging.debug(f"Model evaluation failed for {parameters}: {e}")
            return np.full((n_times, z), np.nan)

        return _restrict_output(out, n_times, z)


def _restrict_output(out: np.ndarray, n_times: int, z: int) -> np.ndarray:
    """Drop the start row and the time column; pad missing rows with NaN."""
    if out.ndim == 1:
        out = out.reshape(1, -1)

    trajectory = np.full((n_times, z), np.nan)
    rows = out[1:n_times + 1, 1:z + 1]
    trajectory[:rows.shape[0], :rows.shape[1]] = rows
    trajectory[~np.isfinite(trajectory)] = np.nan
    return trajectory


def _as_derivative(value) -> np.ndarray:
    # Accept f(...) returning [dy] as well as dy.
    if isinstance(value, (list, tuple)) and len(value) == 1 and np.ndim(value[0]) == 1:
        value = value[0]
    return np.asarray(value, dtype=float).ravel()


class FunctionModel(Model):
    """
    Model defined by a right-hand-side function.

    Attributes:
        func (Callable): Function `func(time, state, parameters)` returning
            the derivative of the state. `state` is a numpy vector in the
            order of `state_init`, `parameters` a dict of parameter values.
        state_init (dict[str, float]): Initial value per state variable.

    Example:
        ```python
        def logistic(t, y, p):
            return p["r"] * y * (1 - y / p["K"])

        model = FunctionModel(logistic, {"N": 10.0})
        model.evaluate_trajectory({"r": 0.3, "K": 100.0}, [0, 1, 5, 10])
        ```
    """
    def __init__(
            self,
            func: Callable,
            state_init: Mapping[str, float],
            integrator: Integrator = None
    ):
        if not callable(func):
            raise TypeError("func must be callable.")
        super().__init__(state_init=state_init, integrator=integrator)
        self.func = func

    def _rhs(self, t: float, y: np.ndarray, parameters: dict[str, float]) -> np.ndarray:
        dy = _as_derivative(self.func(t, y, parameters))
        if dy.size != y.size:
            raise ValueError(
                f"Model returned {dy.size} derivatives for {y.size} state variables."
            )
        return dy

    def check_derivative(self, parameters: dict[str, float]) -> None:
        """
        Evaluate `func` once at the initial state and check that it returns
        one derivative per state variable.

        Failures of `func` itself are left to the integration, where they
        count as failed design points.

        Raises:
            ValueError: If the number of derivatives does not match the
                number of state variables.
        """
        y = self.initial_state
        try:
            dy = _as_derivative(self.func(0.0, y, parameters))
        except Exception as e:
            logging.debug(f"Derivative check skipped for {parameters}: {e}")
            return
        if dy.size != y.size:
            raise ValueError(
                f"Model returned {dy.size} derivatives for {y.size} state variables "
                f"({', '.join(self.state_names)})."
            )

    def launch_model(
        self,
        parameters: dict[str, float],
        times: np.ndarray,
        method: str = "LSODA"
    ) -> np.ndarray:
        return self.integrator(self._rhs, self.initial_state, times, parameters, method)


def _network_rhs(t: float, y: np.ndarray, network: OscillatorNetwork) -> np.ndarray:
    return network.derivative(t, y)


class NetworkModel(Model):
    """
    Model defined by an `OscillatorNetwork`.

    Each evaluation updates a copy of the network with the sampled
    parameters and simulates it from the network's own initial state.
    The state variables are `x.1, v.1, x.2, v.2, ...`.

    Attributes:
        network (OscillatorNetwork): The base network.
    """
    def __init__(
            self,
            network: OscillatorNetwork,
            integrator: Integrator = None
    ):
        super().__init__(state_init=network.initial_state(), integrator=integrator)
        self.network = network

    def check_parameters(self, names: list[str]) -> None:
        """
        Raise a ValueError if any name is not a parameter of the network or
        two names refer to the same coupling (e.g. "k.1.2" and "k.2.1").
        """
        admissible = set(self.network.param_names())
        canonical = [
            name if name in admissible else _swap_coupling(name)
            for name in names
        ]
        unknown = [name for name, c in zip(names, canonical) if c not in admissible]
        if unknown:
            raise ValueError(f"Unknown network parameters: {', '.join(unknown)}")
        if len(set(canonical)) != len(canonical):
            raise ValueError("Parameters refer to the same coupling more than once.")

    def launch_model(
        self,
        parameters: dict[str, float],
        times: np.ndarray,
        method: str = "LSODA"
    ) -> np.ndarray:
        network = self.network.update_parameters(parameters)
        return self.integrator(_network_rhs, self.initial_state, times, network, method)


def _swap_coupling(name: str) -> str:
    # "k.2.1" refers to the same coupling as "k.1.2".
    parts = name.split(".")
    if len(parts) == 3:
        kind, i, j = parts
        return f"{kind}.{j}.{i}"
    return name


def as_model(mod: Any, state_init: Mapping[str, float] = None) -> Model:
    """
    Wrap a model description into a `Model`.

    Args:
        mod (Any): A `Model`, an `OscillatorNetwork` or a callable
            `f(time, state, parameters)`.
        state_init (Mapping[str, float], optional): Initial state. Required
            for callables, ignored otherwise.

    Returns:
        Model: A model ready for evaluation.

    Raises:
        TypeError: If `mod` is none of the supported kinds.
        ValueError: If `mod` is a callable and `state_init` is missing.
    """
    if isinstance(mod, Model):
        return mod
    if isinstance(mod, OscillatorNetwork):
        return NetworkModel(mod)
    if callable(mod):
        if state_init is None:
            raise ValueError("state_init is required when the model is a function.")
        return FunctionModel(mod, state_init)
    raise TypeError(
        f"Unsupported model type {type(mod).__name__}: expected a callable, "
        "an OscillatorNetwork or a Model."
    )
