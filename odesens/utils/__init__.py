"""
# Utilities

This module provides utility functions and classes for validating inputs
and handling results in the odesens package.

## Components

- **validation**: Input checks run before any ODE is solved
- **results**: Data structures for Morris screening results

## Example Usage

```python
from odesens.utils.validation import check_times, check_method
from odesens.utils.results import MorrisResult

times = check_times([0.5, 1.0, 2.0])
method = check_method("lsoda")   # 'LSODA'
```
"""
