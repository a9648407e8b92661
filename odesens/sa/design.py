"""Morris designs and elementary effects.

This module generates the experimental design of a Morris screening and
computes the raw elementary effects of every parameter on every output
channel at every timepoint.

A Morris design consists of r trajectories of k + 1 points each. Two
consecutive points of a trajectory differ in exactly one parameter, so the
change in model output between them, divided by the parameter change, is
one elementary effect of that parameter. Every trajectory yields one
elementary effect per parameter.

Designs are generated from an explicit `numpy.random.Generator`, never from
numpy's global random state, so analyses with the same seed are
reproducible even when several run side by side.

References:
    - Morris, M.D. (1991). Factorial sampling plans for preliminary
      computational experiments. Technometrics, 33(2), 161-174.
    - Campolongo, F., Cariboni, J., Saltelli, A. (2007). An effective
      screening design for sensitivity analysis of large models.

Typical usage example:

    rng = np.random.default_rng(2015)
    effects = morris_elementary_effects(
        batch, ["a", "b"], r=25, design=DesignConfig(),
        binf=0.0, bsup=1.0, scale=True, rng=rng
    )
    effects.ee_by_y["Voltage"].shape   # (2, 25, T)
"""

from ..config.design import DesignConfig
from ..config.problem import MorrisProblem

# SALib
from SALib.sample import morris as smorris

from dataclasses import dataclass
from typing import Callable
from numpy.typing import ArrayLike
import numpy as np
import logging


@dataclass
class MorrisEffects:
    """Raw output of a Morris design evaluation.

    Attributes:
        X (np.ndarray): Design matrix in parameter units, shape (r*(k+1), k).
        outputs (dict[str, np.ndarray]): Model output per channel, each of
            shape (T, r*(k+1)).
        ee_by_y (dict[str, np.ndarray]): Elementary effects per channel,
            each of shape (k, r, T): parameter, repetition, timepoint.
        r (int): Number of trajectories in the design.
    """
    X: np.ndarray
    outputs: dict[str, np.ndarray]
    ee_by_y: dict[str, np.ndarray]
    r: int


def oat_design(
    k: int,
    r: int,
    levels: int,
    grid_jump: int,
    rng: np.random.Generator
) -> np.ndarray:
    """Random one-at-a-time trajectories in the unit cube.

    Each trajectory starts from a random grid point whose coordinates leave
    room for one step of size `delta = grid_jump / (levels - 1)`, then moves
    every parameter once, in random order and random direction.

    Args:
        k (int): Number of parameters.
        r (int): Number of trajectories.
        levels (int): Number of grid levels.
        grid_jump (int): Step size in grid levels.
        rng (np.random.Generator): Source of randomness.

    Returns:
        np.ndarray: Design of shape (r * (k + 1), k) with values in [0, 1].
    """
    delta = grid_jump / (levels - 1)
    B = np.tril(np.ones((k + 1, k)), -1)
    J = np.ones((k + 1, k))
    starts = np.arange(levels - grid_jump) / (levels - 1)

    U = np.empty((r * (k + 1), k))
    for m in range(r):
        x_star = rng.choice(starts, size=k)
        orientation = rng.choice([-1.0, 1.0], size=k)
        order = rng.permutation(k)

        trajectory = x_star + (delta / 2) * ((2 * B - J) * orientation + J)
        U[m * (k + 1):(m + 1) * (k + 1)] = trajectory[:, order]

    return np.clip(U, 0.0, 1.0)


def salib_design(
    problem: MorrisProblem,
    r: int,
    design: DesignConfig,
    rng: np.random.Generator
) -> np.ndarray:
    """Trajectories generated by SALib, in parameter units.

    SALib is seeded with an integer drawn from `rng`.
    """
    seed = int(rng.integers(1, 2**31 - 1))
    return smorris.sample(
        problem.to_dict(),
        N=r,
        num_levels=design.levels,
        optimal_trajectories=design.optimal_trajectories,
        seed=seed
    )


def generate_design(
    problem: MorrisProblem,
    r: int,
    design: DesignConfig,
    rng: np.random.Generator
) -> tuple[np.ndarray, np.ndarray]:
    """Generate a Morris design.

    Args:
        problem (MorrisProblem): Parameter names and bounds.
        r (int): Number of trajectories.
        design (DesignConfig): Design type and settings.
        rng (np.random.Generator): Source of randomness.

    Returns:
        tuple[np.ndarray, np.ndarray]: The design in parameter units and
            the same design mapped to the unit cube.

    Raises:
        ValueError: If the design settings are invalid.
    """
    design.validate(r)
    k = problem.num_vars

    logging.info(f"Generating Morris design ({design.type}, r={r}, k={k}).")
    if design.type == "salib":
        X = np.asarray(salib_design(problem, r, design, rng), dtype=float)
        U = problem.to_unit(X)
    else:
        U = oat_design(k, r, design.levels, design.grid_jump, rng)
        X = problem.from_unit(U)

    return X, U


def elementary_effects(
    design: np.ndarray,
    unit_design: np.ndarray,
    output: np.ndarray,
) -> np.ndarray:
    """Compute the elementary effects of one output channel.

    Args:
        design (np.ndarray): Design used as the denominator of the effects,
            shape (r * (k + 1), k). Pass the unit design for scaled effects.
        unit_design (np.ndarray): The design in the unit cube, used to find
            which parameter moves at each step.
        output (np.ndarray): Model output of shape (T, r * (k + 1)).

    Returns:
        np.ndarray: Elementary effects of shape (k, r, T). NaN outputs give
            NaN effects.
    """
    n, k = design.shape
    if n % (k + 1) != 0:
        raise ValueError(f"A design with {n} rows does not consist of trajectories of {k + 1} points.")
    r = n // (k + 1)

    output = np.asarray(output, dtype=float)
    ee = np.full((k, r, output.shape[0]), np.nan)

    for m in range(r):
        base = m * (k + 1)
        for step in range(k):
            a, b = base + step, base + step + 1
            j = int(np.argmax(np.abs(unit_design[b] - unit_design[a])))
            ee[j, m, :] = (output[:, b] - output[:, a]) / (design[b, j] - design[a, j])

    return ee


def morris_elementary_effects(
    model_fn: Callable[[np.ndarray], dict[str, np.ndarray]],
    factors: list[str],
    r: int,
    design: DesignConfig,
    binf: float | ArrayLike,
    bsup: float | ArrayLike,
    scale: bool = True,
    rng: np.random.Generator | int = None
) -> MorrisEffects:
    """Run a Morris design through a model function.

    Args:
        model_fn (Callable): Takes a design matrix (n, k) and returns a
            dict mapping each output channel to a (T, n) matrix.
        factors (list[str]): Parameter names.
        r (int): Number of trajectories.
        design (DesignConfig): Design type and settings.
        binf (float | ArrayLike): Lower parameter bounds.
        bsup (float | ArrayLike): Upper parameter bounds.
        scale (bool, optional): If True, effects are computed with the
            parameters rescaled to [0, 1]. Defaults to True.
        rng (np.random.Generator | int, optional): Generator or seed.

    Returns:
        MorrisEffects: Design, model outputs and elementary effects.
    """
    rng = np.random.default_rng(rng)
    problem = MorrisProblem(names=factors, binf=binf, bsup=bsup)

    X, U = generate_design(problem, r, design, rng)
    n = X.shape[0]
    r_eff = n // (problem.num_vars + 1)
    if r_eff != r:
        logging.info(f"Design keeps {r_eff} of {r} trajectories.")

    logging.info(f"Running model on {n} design points.")
    outputs = model_fn(X)

    ee_by_y = {}
    for name, output in outputs.items():
        output = np.asarray(output, dtype=float)
        if output.ndim != 2 or output.shape[1] != n:
            raise ValueError(
                f"Output '{name}' has shape {output.shape}, expected (T, {n})."
            )
        ee_by_y[name] = elementary_effects(U if scale else X, U, output)

    return MorrisEffects(X=X, outputs=outputs, ee_by_y=ee_by_y, r=r_eff)
