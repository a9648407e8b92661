"""Morris elementary effects screening for ODE models.

This module runs a Morris sensitivity analysis of an ODE model for all
state variables and all observation timepoints at once. The ODE system is
solved once per design point; every solve yields all state variables at
all timepoints, so no integration is repeated per output.

For each state variable, parameter and timepoint three statistics of the
elementary effects are reported:

    - mu: mean effect (direction of the influence)
    - mu.star: mean absolute effect (overall influence)
    - sigma: standard deviation (nonlinearity and interactions)

Screening designs regularly sample parameter combinations for which the
ODE system cannot be solved. Such design points yield NaN outputs instead
of aborting the analysis; the affected statistics become NaN and a
`SensitivityWarning` explains the likely cause.

References:
    - Morris, M.D. (1991). Factorial sampling plans for preliminary
      computational experiments. Technometrics, 33(2), 161-174.
    - Campolongo, F., Cariboni, J., Saltelli, A. (2007). An effective
      screening design for sensitivity analysis of large models.

Typical usage example:

    from odesens.sa import MorrisAnalysis, MorrisConfig
    from odesens import FunctionModel

    model = FunctionModel(fhn, {"Voltage": -1.0, "Current": 1.0})
    config = MorrisConfig(binf=[0.18, 0.18, 2.8], bsup=[0.22, 0.22, 3.2], r=50)
    sa = MorrisAnalysis(model, ["a", "b", "s"], config)
    result = sa.run(np.arange(0.1, 50, 5))
"""

# Model and config
from ..model import FunctionModel, Model, NetworkModel, as_model
from ..config.design import DesignConfig
from ..utils.results import MorrisResult, row_labels
from ..utils.validation import check_bounds, check_parameter_names, check_times
from .config import MorrisConfig
from .batch import BatchModelFunction
from .design import morris_elementary_effects
from .diagnostics import diagnose, warn

# Logging
import logging

# Data and saving
from typing import Any, Mapping
from numpy.typing import ArrayLike
import pandas as pd
import numpy as np
import os


def aggregate_state(
    ee: np.ndarray,
    parameters: list[str],
    times: np.ndarray
) -> pd.DataFrame:
    """Reduce the elementary effects of one state variable.

    Args:
        ee (np.ndarray): Elementary effects of shape (k, r, T).
        parameters (list[str]): The k parameter names.
        times (np.ndarray): The T observation timepoints.

    Returns:
        pd.DataFrame: (1 + 3k) x T frame with rows time, mu_*, mu.star_*
            and sigma_*. A NaN effect makes every statistic of its cell NaN;
            sigma is NaN throughout when r < 2.
    """
    k, r, T = ee.shape

    mu = ee.mean(axis=1)
    mu_star = np.abs(ee).mean(axis=1)
    if r >= 2:
        sigma = ee.std(axis=1, ddof=1)
    else:
        sigma = np.full((k, T), np.nan)

    data = np.vstack([np.asarray(times, dtype=float)[None, :], mu, mu_star, sigma])
    return pd.DataFrame(data, index=row_labels(parameters))


class MorrisAnalysis:
    """Morris screening of an ODE model over a time grid.

    The analysis generates a Morris design over the parameter box, solves
    the ODE for each design point, computes elementary effects per state
    variable and timepoint and aggregates them into mu, mu.star and sigma.

    Attributes:
        model (Model): The model to analyze.
        parameters (list[str]): Names of the k parameters to screen.
        config (MorrisConfig): Seed, bounds, design and execution settings.

    Example:
        ```python
        sa = MorrisAnalysis(model, ["a", "b", "s"], MorrisConfig(r=50))
        result = sa.run(times, out_dir="results/")
        result.mu_star("Voltage")
        ```
    """

    def __init__(
        self,
        model: Model,
        parameters: list[str],
        config: MorrisConfig = None,
    ):
        self.model = model
        self.parameters = check_parameter_names(parameters)
        self.config = config if config is not None else MorrisConfig()

    def _validate(self, times: ArrayLike) -> np.ndarray:
        times = check_times(times)
        self.config.validate(len(self.parameters))
        if isinstance(self.model, NetworkModel):
            self.model.check_parameters(self.parameters)
        if isinstance(self.model, FunctionModel):
            lower, upper = check_bounds(self.config.binf, self.config.bsup, len(self.parameters))
            midpoint = (lower + upper) / 2
            self.model.check_derivative(dict(zip(self.parameters, midpoint.tolist())))
        return times

    def run(self, times: ArrayLike, out_dir: str = None) -> MorrisResult:
        """Execute the complete Morris screening workflow.

        All inputs are validated before the first ODE is solved.

        Args:
            times (ArrayLike): Positive, finite, distinct observation
                timepoints. They are sorted; time 0 is the implicit start
                of every integration.
            out_dir (str, optional): If given, the result frames are saved
                there as `<state>.csv` and the design as `design.npy`.

        Returns:
            MorrisResult: One (1 + 3k) x T frame per state variable.

        Raises:
            ValueError: If the time grid or the configuration is invalid.
        """
        times = self._validate(times)
        config = self.config
        lower, upper = check_bounds(config.binf, config.bsup, len(self.parameters))

        batch = BatchModelFunction(
            self.model,
            self.parameters,
            times,
            method=config.ode_method,
            parallel=config.parallel,
            workers=config.workers,
            progress=config.progress
        )

        effects = morris_elementary_effects(
            batch,
            self.parameters,
            r=config.r,
            design=config.design,
            binf=lower,
            bsup=upper,
            scale=config.scale,
            rng=config.rng
        )

        logging.info("Aggregating elementary effects.")
        frames = {
            name: aggregate_state(effects.ee_by_y[name], self.parameters, times)
            for name in self.model.state_names
        }
        result = MorrisResult(frames, parameters=self.parameters, times=times, r=effects.r)

        messages = diagnose(result, len(self.parameters), effects.r)
        for message in messages:
            logging.warning(message)
        warn(messages)

        if out_dir is not None:
            logging.info(f"Results will be saved in: {out_dir}")
            os.makedirs(out_dir, exist_ok=True)
            result.save(out_dir)
            np.save(os.path.join(out_dir, "design.npy"), effects.X)

        return result


def ode_morris(
    mod: Any,
    pars: list[str],
    times: ArrayLike,
    state_init: Mapping[str, float] = None,
    seed: int = 2015,
    binf: float | ArrayLike = 0.0,
    bsup: float | ArrayLike = 1.0,
    r: int = 25,
    design: DesignConfig | dict = None,
    scale: bool = True,
    ode_method: str = "lsoda",
    parallel: bool = False,
    workers: int = None,
    progress: bool = False
) -> MorrisResult:
    """Morris screening of an ODE model for all state variables and timepoints.

    Args:
        mod (Any): A function `f(time, state, parameters)`, an
            `OscillatorNetwork` or a `Model`.
        pars (list[str]): Names of the k parameters to screen.
        times (ArrayLike): Positive observation timepoints.
        state_init (Mapping[str, float], optional): Named initial state.
            Required when `mod` is a function.
        seed (int, optional): Seed of the design generator. Defaults to 2015.
        binf (float | ArrayLike, optional): Lower bound(s). Defaults to 0.
        bsup (float | ArrayLike, optional): Upper bound(s). Defaults to 1.
        r (int, optional): Number of repetitions. Defaults to 25.
        design (DesignConfig | dict, optional): Design settings. Defaults to
            an "oat" design with 100 levels and a grid jump of 1.
        scale (bool, optional): Compute effects on [0, 1]-scaled parameters.
            Defaults to True.
        ode_method (str, optional): Integration method. Defaults to "lsoda".
        parallel (bool, optional): Integrate on a thread pool. Defaults to False.
        workers (int, optional): Pool size. Defaults to one worker.
        progress (bool, optional): Show a progress bar. Defaults to False.

    Returns:
        MorrisResult: One (1 + 3k) x T frame per state variable.

    Example:
        ```python
        def fhn(t, y, p):
            voltage, current = y
            return [
                p["s"] * (voltage - voltage**3 / 3 + current),
                -1 / p["s"] * (voltage - p["a"] + p["b"] * current),
            ]

        res = ode_morris(
            fhn, ["a", "b", "s"], np.arange(0.1, 50, 5),
            state_init={"Voltage": -1.0, "Current": 1.0},
            binf=[0.18, 0.18, 2.8], bsup=[0.22, 0.22, 3.2], r=50,
            design={"type": "oat", "levels": 100, "grid_jump": 1},
            ode_method="radau", parallel=True, workers=2
        )
        ```
    """
    if design is None:
        design = DesignConfig()
    elif isinstance(design, dict):
        design = DesignConfig.from_dict(design)

    config = MorrisConfig(
        seed=seed,
        binf=binf,
        bsup=bsup,
        r=r,
        design=design,
        scale=scale,
        ode_method=ode_method,
        parallel=parallel,
        workers=workers,
        progress=progress
    )
    model = as_model(mod, state_init)
    return MorrisAnalysis(model, pars, config).run(times)
