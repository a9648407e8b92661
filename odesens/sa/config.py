"""Configuration classes for Morris screening settings.

This module provides the configuration of a Morris sensitivity analysis of
an ODE model: random seed, parameter bounds, number of repetitions, design,
scaling, integration method and parallel execution. It supports
serialization to and from JSON format for easy persistence and loading of
analysis configurations.

Typical usage example:

    from odesens.sa import MorrisConfig

    config = MorrisConfig.from_json("morris_config.json")
    config.r = 50
    config.to_json("updated_morris_config.json")
"""

from dataclasses import dataclass, asdict, field
import numpy as np
import json

from ..config.design import DesignConfig
from ..utils.validation import check_bounds, check_method, check_repetitions


@dataclass
class MorrisConfig:
    """Configuration class for Morris screening execution settings.

    Attributes:
        seed (int): Seed of the random generator used for the design.
            Defaults to 2015.
        binf (float | list[float]): Lower parameter bound(s). A single value
            applies to all parameters. Defaults to 0.
        bsup (float | list[float]): Upper parameter bound(s). A single value
            applies to all parameters. Defaults to 1.
        r (int): Number of repetitions (trajectories) of the design.
            Defaults to 25.
        design (DesignConfig): Design type and its settings. Defaults to an
            "oat" design with 100 levels and a grid jump of 1.
        scale (bool): If True, elementary effects are computed with all
            parameters rescaled to [0, 1]. Highly recommended when the
            parameters have different orders of magnitude. Defaults to True.
        ode_method (str): Integration method. Defaults to "lsoda".
        parallel (bool): Whether to integrate design rows on a thread pool.
            Defaults to False.
        workers (int, optional): Number of worker threads. Only used if
            `parallel` is True; None means a single worker.
        progress (bool): Show a progress bar while integrating. Defaults to False.

    Example:
        ```python
        config = MorrisConfig(
            seed=2015,
            binf=[0.18, 0.18, 2.8],
            bsup=[0.22, 0.22, 3.2],
            r=50,
            design=DesignConfig(type="oat", levels=100, grid_jump=1),
            ode_method="radau",
            parallel=True,
            workers=2
        )
        ```
    """

    seed: int = 2015
    binf: float | list[float] = 0.0
    bsup: float | list[float] = 1.0
    r: int = 25
    design: DesignConfig = field(default_factory=DesignConfig)
    scale: bool = True
    ode_method: str = "lsoda"
    parallel: bool = False
    workers: int = None
    progress: bool = False

    def validate(self, k: int):
        """Check the configuration against a problem with k parameters.

        Raises:
            ValueError: If any setting is invalid.
        """
        if isinstance(self.seed, bool) or not isinstance(self.seed, (int, np.integer)):
            raise ValueError("seed must be an integer.")
        check_bounds(self.binf, self.bsup, k)
        check_repetitions(self.r)
        self.design.validate(self.r)
        check_method(self.ode_method)
        if self.workers is not None and int(self.workers) < 1:
            raise ValueError("workers must be at least 1.")

    @property
    def rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    @classmethod
    def from_dict(cls, data: dict):
        data = dict(data)
        if "design" in data and isinstance(data["design"], dict):
            data["design"] = DesignConfig.from_dict(data["design"])
        return cls(**data)

    def to_dict(self):
        data = asdict(self)
        for key in ("binf", "bsup"):
            if isinstance(data[key], np.ndarray):
                data[key] = data[key].tolist()
        return data

    @classmethod
    def from_json(cls, infile: str):
        """Create a MorrisConfig instance from a JSON file.

        Args:
            infile (str): Path to the JSON file containing the configuration
                data.

        Returns:
            MorrisConfig: A new instance initialized with data from the file.

        Raises:
            FileNotFoundError: If the specified file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            TypeError: If the file holds keys that are not configuration fields.

        Note:
            The nested 'design' dictionary is converted to a DesignConfig.
        """

        with open(infile, "r") as f:
            data = json.load(f)

        return cls.from_dict(data)

    def to_json(self, outfile: str):
        """Serialize the configuration to a JSON file.

        Args:
            outfile (str): Path to the output file. The file is opened in
                exclusive creation mode ("+x") to prevent accidental
                overwrites.

        Raises:
            FileExistsError: If the specified file already exists.
        """
        with open(outfile, "+x") as f:
            json.dump(self.to_dict(), f, indent=4)
