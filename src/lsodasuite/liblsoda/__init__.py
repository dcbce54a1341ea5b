"""liblsoda sub-package: the LSODA integrator core and its numerical kernels."""

# Import modules themselves (allows: from lsodasuite.liblsoda import integrator)
from . import coefficients
from . import integrator
from . import linpack
from . import logger
from . import norms
from . import options
from . import status

from .integrator import Lsoda
from .options import LsodaOptions, LsodaStats
from .status import IllegalInput, IState, Task

__all__ = [
    "coefficients",
    "integrator",
    "linpack",
    "logger",
    "norms",
    "options",
    "status",
    "Lsoda",
    "LsodaOptions",
    "LsodaStats",
    "IllegalInput",
    "IState",
    "Task",
]
