"""
Optional inputs and outputs of the LSODA driver.

Zero in any numeric option field means "use the built-in default", the
same convention as the classic ``iopt``/``rwork``/``iwork`` interface.
"""

from dataclasses import dataclass, fields
from typing import Optional


@dataclass
class LsodaOptions:
    """
    Optional inputs.

    Attributes
    ----------
    max_steps : int
        Maximum internal steps per call (0 -> 5000).
    max_hnil_warnings : int
        Number of "t + h = t" warnings printed (0 -> 10).
    hmax : float
        Maximum absolute step size (0 -> unbounded).
    hmin : float
        Minimum absolute step size.
    h0 : float
        Step size to attempt first, signed (0 -> computed).
    max_order_nonstiff : int
        Highest Adams order (0 -> 12, values above 12 are clipped).
    max_order_stiff : int
        Highest BDF order (0 -> 5, values above 5 are clipped).
    verbose_switch : bool
        Log method switches at INFO instead of DEBUG.
    tcrit : float, optional
        Critical time that must not be stepped past (tasks 4 and 5).
    """
    max_steps: int = 0
    max_hnil_warnings: int = 0
    hmax: float = 0.0
    hmin: float = 0.0
    h0: float = 0.0
    max_order_nonstiff: int = 0
    max_order_stiff: int = 0
    verbose_switch: bool = False
    tcrit: Optional[float] = None

    def first_negative(self) -> Optional[str]:
        """Name of the first count or bound holding a negative value, if any.

        ``h0`` is signed (it carries the direction of integration) and is
        checked against ``tout - t`` by the driver instead.
        """
        for f in fields(self):
            if f.name in ("h0", "verbose_switch", "tcrit"):
                continue
            if getattr(self, f.name) < 0:
                return f.name
        return None


@dataclass
class LsodaStats:
    """
    Optional outputs, a snapshot of the session counters.

    ``hu``/``nqu``/``mused`` describe the last successful step,
    ``hcur``/``nqcur``/``mcur`` the step about to be attempted.
    """
    nst: int
    nfe: int
    nje: int
    hu: float
    hcur: float
    tcur: float
    tolsf: float
    tsw: float
    nqu: int
    nqcur: int
    imxer: int
    mused: int
    mcur: int
