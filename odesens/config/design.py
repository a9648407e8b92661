"""
# Morris Design Configuration

This module describes the experimental design used by
Morris screening.

## Classes

- `DesignConfig`: Design type and its settings

## Supported Designs

- `oat`: Random one-at-a-time trajectories on a regular grid (Morris, 1991)
- `salib`: Trajectories generated by `SALib.sample.morris`

## Example Usage

```python
from odesens.config.design import DesignConfig

design = DesignConfig(type="oat", levels=100, grid_jump=1)
design = DesignConfig.from_dict({"type": "salib", "levels": 4})
```
"""

from dataclasses import dataclass, asdict


DESIGN_TYPES = ("oat", "salib")


@dataclass
class DesignConfig:
    """
    Experimental design for Morris screening.

    Attributes:
        type (str): Design type, one of `DESIGN_TYPES`. Defaults to "oat".
        levels (int): Number of grid levels in [0, 1]. Defaults to 100.
        grid_jump (int): Step size in grid levels between two points of a
            trajectory ("oat" only; SALib always jumps `levels / 2`).
            Defaults to 1.
        optimal_trajectories (int, optional): "salib" only. Number of
            trajectories SALib keeps out of the r it generates, chosen to
            maximize their spread. Defaults to None (keep all).
    """
    type: str = "oat"
    levels: int = 100
    grid_jump: int = 1
    optimal_trajectories: int = None

    def __post_init__(self):
        self.type = str(self.type).lower()

    def validate(self, r: int = None):
        """
        Check the design settings.

        Args:
            r (int, optional): Repetition count, used to check
                `optimal_trajectories` against.

        Raises:
            ValueError: If any setting is out of range.
        """
        if self.type not in DESIGN_TYPES:
            raise ValueError(f"Unknown design type: {self.type}")
        if int(self.levels) != self.levels or self.levels < 2:
            raise ValueError("levels must be an integer >= 2.")
        if int(self.grid_jump) != self.grid_jump or not 1 <= self.grid_jump < self.levels:
            raise ValueError("grid_jump must be an integer with 1 <= grid_jump < levels.")
        if self.optimal_trajectories is not None:
            if self.type != "salib":
                raise ValueError("optimal_trajectories is only supported by the 'salib' design.")
            if self.optimal_trajectories < 2 or (r is not None and self.optimal_trajectories >= r):
                raise ValueError("optimal_trajectories must be between 2 and r - 1.")

    @property
    def delta(self) -> float:
        """Step size in the unit cube."""
        if self.type == "salib":
            return self.levels / (2 * (self.levels - 1))
        return self.grid_jump / (self.levels - 1)

    @classmethod
    def from_dict(cls, data: dict):
        # Accept the dotted spelling "grid.jump" as well.
        data = dict(data)
        if "grid.jump" in data:
            data["grid_jump"] = data.pop("grid.jump")
        return cls(**data)

    def to_dict(self):
        return asdict(self)
