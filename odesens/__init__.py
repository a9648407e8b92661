"""
# odesens

A toolkit for global sensitivity analysis of ordinary differential equation
models, providing functionality for:

- **Model Interface**: Abstract base class and implementations for ODE models given as functions or oscillator networks
- **Morris Screening**: Elementary effects (mu, mu.star, sigma) for every state variable at every timepoint
- **Batch Evaluation**: Sequential or thread-pooled integration of whole design matrices
- **Configuration Management**: Parameter spaces, designs and analysis settings with JSON persistence
- **Diagnostics**: Warnings when integrations fail or repetitions are too few

## Main Components

- `Model`: Base class for ODE models
- `FunctionModel`, `NetworkModel`: Concrete model representations
- `OscillatorNetwork`: Damped, spring-coupled oscillator networks
- `sa`: Morris screening (`MorrisAnalysis`, `MorrisConfig`, `ode_morris`)
- `config`: Parameter space and design configuration
- `utils`: Input validation and result containers

## Example Usage

```python
import numpy as np
from odesens import ode_morris

def fhn(t, y, p):
    voltage, current = y
    return [
        p["s"] * (voltage - voltage**3 / 3 + current),
        -1 / p["s"] * (voltage - p["a"] + p["b"] * current),
    ]

res = ode_morris(
    fhn,
    pars=["a", "b", "s"],
    times=np.arange(0.1, 50, 5),
    state_init={"Voltage": -1.0, "Current": 1.0},
    seed=2015,
    binf=[0.18, 0.18, 2.8],
    bsup=[0.22, 0.22, 3.2],
    r=50,
    ode_method="radau",
)
res.mu_star("Voltage")
```
"""

from .model import *
from .network import OscillatorNetwork
from .sa.morris import MorrisAnalysis, ode_morris
