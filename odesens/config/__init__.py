"""
# Configuration Management

This module provides configuration classes describing the parameter space
and the experimental design of a Morris screening.

## Components

- **MorrisProblem**: Parameter names and their sampling bounds
- **DesignConfig**: Design type and its settings

## Example Usage

```python
from odesens.config import MorrisProblem, DesignConfig

problem = MorrisProblem(names=["a", "b"], binf=0.0, bsup=[1.0, 5.0])
design = DesignConfig(type="oat", levels=10, grid_jump=2)
```
"""

from .problem import *
from .design import *
