"""
lsodasuite: ODE integration with automatic stiff/non-stiff method switching.

The ``liblsoda`` sub-package holds the LSODA integrator (Adams and BDF
families, Nordsieck history, finite-difference Jacobian, dense output);
``core`` drives it over a grid of output times and tabulates the result.
"""

# Import main sub-packages
from . import liblsoda
from . import core

__all__ = [
    "core",
    "liblsoda",
]
