"""
# Oscillator Networks

This module provides a structured ODE representation: a network of damped
oscillators coupled by springs and dampers. Each oscillator `i` has a mass
`m.i`, a damper to ground `d.i`, a spring to ground `k.i` with rest
position `r.i`. Pairs of oscillators may be coupled by a damper `d.i.j`
and a spring `k.i.j` with rest distance `r.i.j`.

The equation of motion for oscillator `i` (cartesian coordinates) is

    m_i x_i'' = - d_i x_i' - k_i (x_i - r_i)
                + sum_j [ d_ij (x_j' - x_i') + k_ij (x_j - x_i - r_ij) ]

with `r_ji = -r_ij`, so the coupling forces are equal and opposite.

## Classes

- `OscillatorNetwork`: Immutable network description and its ODE right-hand side

## Example Usage

```python
import numpy as np
from odesens.network import OscillatorNetwork

springs = np.diag([1.0, 1.0])
springs[0, 1] = 1.0
distances = np.diag([0.0, 2.0])
distances[0, 1] = 1.0

net = OscillatorNetwork(
    masses=[1.0, 1.0],
    dampers=np.diag([1.0, 1.0]),
    springs=springs,
    distances=distances,
    position=[0.5, 1.0],
    velocity=[0.0, 0.0],
)
net = net.update_parameters({"k.1.2": 2.0, "m.2": 0.5})
```
"""

from dataclasses import dataclass, field, replace
from typing import Mapping

import numpy as np
from numpy.typing import ArrayLike


_MATRIX_KINDS = {"d": "dampers", "k": "springs", "r": "distances"}


def _square(values: ArrayLike | None, n: int, label: str) -> np.ndarray:
    if values is None:
        return np.zeros((n, n))
    values = np.asarray(values, dtype=float)
    if values.ndim == 1:
        values = np.diag(values)
    if values.shape != (n, n):
        raise ValueError(f"{label} must be a vector of length {n} or an {n}x{n} matrix.")
    return values


def _symmetrize(values: np.ndarray, antisymmetric: bool = False) -> np.ndarray:
    # Upper triangle is authoritative, the lower one mirrors it.
    upper = np.triu(values, k=1)
    lower = -upper.T if antisymmetric else upper.T
    return upper + lower + np.diag(np.diag(values))


@dataclass(frozen=True, eq=False)
class OscillatorNetwork:
    """
    Network of damped, spring-coupled oscillators.

    Only the upper triangle of the coupling matrices is read; the lower
    triangle is derived (symmetric for dampers and springs, antisymmetric
    for distances).

    Attributes:
        masses (ArrayLike): Mass of each oscillator, length n. Must be positive.
        dampers (ArrayLike): Damping, an n-vector (diagonal only) or n x n matrix.
        springs (ArrayLike): Spring constants, an n-vector or n x n matrix.
        distances (ArrayLike, optional): Rest positions (diagonal) and rest
            distances (off-diagonal). Defaults to all zero.
        position (ArrayLike, optional): Initial positions. Defaults to zero.
        velocity (ArrayLike, optional): Initial velocities. Defaults to zero.
    """
    masses: ArrayLike
    dampers: ArrayLike
    springs: ArrayLike
    distances: ArrayLike = None
    position: ArrayLike = None
    velocity: ArrayLike = None
    size: int = field(init=False)

    def __post_init__(self):
        masses = np.atleast_1d(np.asarray(self.masses, dtype=float))
        if masses.ndim != 1 or masses.size == 0:
            raise ValueError("masses must be a non-empty vector.")
        if np.any(masses <= 0):
            raise ValueError("masses must be positive.")
        n = masses.size

        set_ = object.__setattr__  # frozen dataclass
        set_(self, "size", n)
        set_(self, "masses", masses)
        set_(self, "dampers", _symmetrize(_square(self.dampers, n, "dampers")))
        set_(self, "springs", _symmetrize(_square(self.springs, n, "springs")))
        set_(self, "distances", _symmetrize(_square(self.distances, n, "distances"), antisymmetric=True))

        for name in ("position", "velocity"):
            values = getattr(self, name)
            values = np.zeros(n) if values is None else np.asarray(values, dtype=float)
            if values.shape != (n,):
                raise ValueError(f"{name} must be a vector of length {n}.")
            set_(self, name, values)

    @property
    def state_names(self) -> list[str]:
        names = []
        for i in range(1, self.size + 1):
            names.extend([f"x.{i}", f"v.{i}"])
        return names

    def initial_state(self) -> dict[str, float]:
        state = np.empty(2 * self.size)
        state[0::2] = self.position
        state[1::2] = self.velocity
        return dict(zip(self.state_names, state.tolist()))

    def param_names(self) -> list[str]:
        """
        Names of all parameters that can be varied.

        Diagonal parameters (`m.i`, `d.i`, `k.i`, `r.i`) are always present.
        Coupling parameters are listed for each pair `i < j` only, since
        `k.j.i` is fully determined by `k.i.j`.

        Returns:
            list[str]: Parameter names using 1-based oscillator indices.
        """
        names = []
        for i in range(1, self.size + 1):
            names.extend([f"m.{i}", f"d.{i}", f"k.{i}", f"r.{i}"])
        for i in range(1, self.size + 1):
            for j in range(i + 1, self.size + 1):
                names.extend([f"d.{i}.{j}", f"k.{i}.{j}", f"r.{i}.{j}"])
        return names

    def update_parameters(self, parameters: Mapping[str, float]) -> "OscillatorNetwork":
        """
        Return a copy of the network with some parameters replaced.

        Args:
            parameters (Mapping[str, float]): Parameter names (see
                `param_names`) mapped to new values. Coupling parameters
                may be given in either index order.

        Returns:
            OscillatorNetwork: New network; the original is left untouched.

        Raises:
            ValueError: If a name does not refer to a parameter of this network.
        """
        masses = self.masses.copy()
        matrices = {kind: getattr(self, attr).copy() for kind, attr in _MATRIX_KINDS.items()}

        for name, value in parameters.items():
            kind, *idx = name.split(".")
            try:
                idx = [int(i) - 1 for i in idx]
            except ValueError:
                raise ValueError(f"Unknown network parameter: {name}") from None
            if not idx or any(i < 0 or i >= self.size for i in idx):
                raise ValueError(f"Unknown network parameter: {name}")

            if kind == "m" and len(idx) == 1:
                masses[idx[0]] = value
            elif kind in matrices and len(idx) == 1:
                matrices[kind][idx[0], idx[0]] = value
            elif kind in matrices and len(idx) == 2 and idx[0] != idx[1]:
                i, j = idx
                if i > j:
                    i, j = j, i
                    value = -value if kind == "r" else value
                matrices[kind][i, j] = value
            else:
                raise ValueError(f"Unknown network parameter: {name}")

        return replace(
            self,
            masses=masses,
            **{attr: matrices[kind] for kind, attr in _MATRIX_KINDS.items()}
        )

    def derivative(self, t: float, y: np.ndarray) -> np.ndarray:
        """Right-hand side of the network ODE for state `[x.1, v.1, x.2, v.2, ...]`."""
        x = y[0::2]
        v = y[1::2]

        ground_d = np.diag(self.dampers)
        ground_k = np.diag(self.springs)
        ground_r = np.diag(self.distances)
        coupling_d = self.dampers - np.diag(ground_d)
        coupling_k = self.springs - np.diag(ground_k)
        coupling_r = self.distances - np.diag(ground_r)

        force = -ground_d * v - ground_k * (x - ground_r)
        # x[None, :] - x[:, None] is x_j - x_i at [i, j]
        force += np.sum(coupling_d * (v[None, :] - v[:, None]), axis=1)
        force += np.sum(coupling_k * (x[None, :] - x[:, None] - coupling_r), axis=1)

        dy = np.empty_like(y, dtype=float)
        dy[0::2] = v
        dy[1::2] = force / self.masses
        return dy
