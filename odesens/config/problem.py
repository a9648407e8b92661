"""
# Parameter Space Definition

This module provides the parameter space of a Morris screening: the ordered
parameter names and the interval each parameter is sampled from.

## Classes

- `MorrisProblem`: Parameter names with lower and upper bounds

## Example Usage

```python
from odesens.config.problem import MorrisProblem

problem = MorrisProblem(
    names=["a", "b", "s"],
    binf=[0.18, 0.18, 2.8],
    bsup=[0.22, 0.22, 3.2]
)
problem.to_dict()
# {'num_vars': 3, 'names': ['a', 'b', 's'],
#  'bounds': [[0.18, 0.22], [0.18, 0.22], [2.8, 3.2]]}
```
"""

from dataclasses import dataclass, field
from numpy.typing import ArrayLike
import numpy as np

from odesens.utils.validation import check_bounds, check_parameter_names


@dataclass
class MorrisProblem:
    """
    Parameter space for Morris screening.

    Scalar bounds are broadcast to all parameters. Bounds are validated on
    construction, so an instance always describes a non-empty box.

    Attributes:
        names (list[str]): Unique parameter names. Their order is the column
            order of every design matrix.
        binf (float | ArrayLike): Lower bound(s). Defaults to 0.
        bsup (float | ArrayLike): Upper bound(s). Defaults to 1.
        lower (np.ndarray): Broadcast lower bounds, one per parameter.
        upper (np.ndarray): Broadcast upper bounds, one per parameter.

    Raises:
        ValueError: If names are duplicated or bounds are malformed.

    Example:
        ```python
        problem = MorrisProblem(names=["k1", "k2"], binf=0.0, bsup=[1.0, 10.0])
        problem.num_vars   # 2
        problem.lower      # array([0., 0.])
        ```
    """
    names: list[str]
    binf: float | ArrayLike = 0.0
    bsup: float | ArrayLike = 1.0
    lower: np.ndarray = field(init=False, repr=False)
    upper: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.names = check_parameter_names(self.names)
        self.lower, self.upper = check_bounds(self.binf, self.bsup, len(self.names))

    @property
    def num_vars(self) -> int:
        return len(self.names)

    @property
    def bounds(self) -> list[list[float]]:
        return [[lo, hi] for lo, hi in zip(self.lower.tolist(), self.upper.tolist())]

    def to_unit(self, X: np.ndarray) -> np.ndarray:
        """Map a design from the parameter box to the unit cube."""
        return (np.asarray(X, dtype=float) - self.lower) / (self.upper - self.lower)

    def from_unit(self, U: np.ndarray) -> np.ndarray:
        """Map a design from the unit cube to the parameter box."""
        return self.lower + np.asarray(U, dtype=float) * (self.upper - self.lower)

    def to_dict(self):
        """
        Convert the problem definition to the dictionary format of SALib.

        Returns:
            dict: Keys 'num_vars', 'names' and 'bounds'.
        """
        return {
            "num_vars": self.num_vars,
            "names": list(self.names),
            "bounds": self.bounds,
        }
