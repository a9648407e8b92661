"""Checks for missing values in Morris screening results.

Morris designs regularly sample unrealistic parameter combinations for
which the ODE system cannot be solved. Those failures show up as NaNs in
the aggregated results. This module inspects the results and reports, in
priority order, only the first of:

1. NaNs in the time, mu or mu.star rows: the ODE could not be solved.
2. All sigma rows NaN with r == 1: sigma needs at least two repetitions.
3. Some sigma values NaN: r is probably too small.

Typical usage example:

    for message in diagnose(result, k=3, r=25):
        print(message)
"""

from ..utils.results import MorrisResult

import warnings
import numpy as np


INTEGRATION_FAILED = (
    "The ODE system can't be solved. This might be due to arising unrealistic "
    "parameters by means of Morris screening. Set binf and bsup differently "
    "together with scale=True, try another integration method via "
    "ode_method, or use a variance-based method instead."
)

SIGMA_NEEDS_REPETITIONS = "Calculation of sigma requires r >= 2."

SIGMA_PARTIALLY_MISSING = "NAs for sigma. This might be due to r being too small."


class SensitivityWarning(UserWarning):
    """Warning about degenerate or incomplete sensitivity results."""


def diagnose(results: MorrisResult, k: int, r: int) -> list[str]:
    """Inspect Morris results for missing values.

    Never raises; at most one message is returned.

    Args:
        results (MorrisResult): Result frames per state variable, with rows
            time, k mu rows, k mu.star rows and k sigma rows.
        k (int): Number of parameters.
        r (int): Number of repetitions of the design.

    Returns:
        list[str]: Zero or one warning message.
    """
    frames = [np.asarray(frame, dtype=float) for frame in results.values()]
    if not frames:
        return []

    if any(np.isnan(M[:1 + 2 * k]).any() for M in frames):
        return [INTEGRATION_FAILED]

    sigma = [M[1 + 2 * k:1 + 3 * k] for M in frames]
    if r == 1 and all(np.isnan(S).all() for S in sigma):
        return [SIGMA_NEEDS_REPETITIONS]

    if any(np.isnan(S).any() for S in sigma):
        return [SIGMA_PARTIALLY_MISSING]

    return []


def warn(messages: list[str]) -> None:
    """Emit each message as a `SensitivityWarning`."""
    for message in messages:
        warnings.warn(message, SensitivityWarning, stacklevel=3)
