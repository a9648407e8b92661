"""
# Sensitivity Analysis

This module provides Morris elementary effects screening for ODE models:
which parameters influence which state variables, and when.

## Components

- `MorrisAnalysis`: Main class for conducting a Morris screening
- `MorrisConfig`: Configuration of seed, bounds, design and execution
- `BatchModelFunction`: Integration of whole design matrices
- `diagnose`: Checks for failed integrations and too few repetitions

## Example Usage

```python
from odesens.sa import MorrisAnalysis, MorrisConfig
from odesens import FunctionModel

config = MorrisConfig.from_json("morris_config.json")
model = FunctionModel(rhs, state_init={"x": 1.0, "y": 0.0})

sa = MorrisAnalysis(model, ["k1", "k2"], config)
result = sa.run(times=[1.0, 2.0, 5.0], out_dir="results/")

result.mu_star("x")    # mean absolute effects, parameters x timepoints
```
"""

from .morris import *
from .config import *
from .batch import BatchModelFunction, deinterleave_by_state_variable, stack_trajectories
from .diagnostics import SensitivityWarning, diagnose
