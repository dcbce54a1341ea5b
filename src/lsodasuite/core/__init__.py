"""core sub-package: drivers built on top of the LSODA session."""

from . import ode

__all__ = [
    "ode",
]
