"""ode.py – tabulate an LSODA solution on a grid of output times.

* ``ode()`` repeats continuation calls of one ``Lsoda`` session across
  ``times`` and collects ``(time, y..., derived outputs...)`` rows.
* A model may return more entries than there are states; the extras are
  derived outputs, evaluated at every output time and appended to the
  table, while ``ModelAdaptor`` hands only the first ``neq`` entries to the
  integrator.
"""
from __future__ import annotations

from dataclasses import dataclass, field as _field
from typing import Callable, List, Optional

import numpy as np

from ..liblsoda.integrator import Lsoda
from ..liblsoda.logger import get_logger
from ..liblsoda.options import LsodaOptions, LsodaStats
from ..liblsoda.status import SUCCESS, IntegrationError, IState, Task

log = get_logger(__name__)


# -----------------------------------------------------------------------------
# 1.  Model adaptor
# -----------------------------------------------------------------------------

class ModelAdaptor:
    """Expose ``func(t, y, *args) -> [dy/dt, outputs]`` as a plain right-hand side."""

    def __init__(self, func: Callable, neq: int, nout: int):
        self.func = func
        self.neq = neq
        self.nout = nout

    def evaluate(self, t: float, y: np.ndarray, *args) -> np.ndarray:
        """Full model output (derivatives followed by derived outputs)."""
        out = np.asarray(self.func(t, y, *args), dtype=np.float64)
        if out.shape != (self.nout,):
            raise ValueError(
                f"model returned shape {out.shape}, expected ({self.nout},)"
            )
        return out

    def __call__(self, t: float, y: np.ndarray, *args) -> np.ndarray:
        return self.evaluate(t, y, *args)[: self.neq]


# -----------------------------------------------------------------------------
# 2.  Result container
# -----------------------------------------------------------------------------

@dataclass(slots=True)
class OdeResult:
    """Solution table with one row per output time."""

    table: np.ndarray  # (ntimes, 1 + nout)
    names: List[str]
    neq: int
    istate: IState
    stats: Optional[LsodaStats] = _field(default=None)

    @property
    def t(self) -> np.ndarray:
        return self.table[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.table[:, 1 : 1 + self.neq]

    @property
    def outputs(self) -> np.ndarray:
        return self.table[:, 1 + self.neq :]


def column_names(neq: int, nout: int) -> List[str]:
    return (
        ["time"]
        + [f"y{j + 1}" for j in range(neq)]
        + [f"res{j + 1}" for j in range(nout - neq)]
    )


# -----------------------------------------------------------------------------
# 3.  Driver
# -----------------------------------------------------------------------------

def ode(
    func: Callable,
    y0,
    times,
    rtol=1e-6,
    atol=1e-6,
    args: tuple = (),
    nout: Optional[int] = None,
    options: Optional[LsodaOptions] = None,
) -> OdeResult:
    """
    Integrate ``dy/dt = func(t, y)[:neq]`` and tabulate it at ``times``.

    Parameters
    ----------
    func : callable
        ``func(t, y, *args)`` returning ``nout`` values; the first
        ``len(y0)`` are the derivatives, any others are derived outputs.
    y0 : array_like
        State at ``times[0]``.
    times : array_like
        Strictly increasing output times; the first is the initial time.
    rtol, atol : float or array_like
        Tolerances, scalars or per-component.
    args : tuple
        Extra arguments passed through to func.
    nout : int, optional
        Length of func's result; inferred from one call at ``times[0]``
        when omitted.
    options : LsodaOptions, optional
        Optional inputs for the integrator.

    Returns
    -------
    OdeResult

    Raises
    ------
    ValueError
        If ``times`` is not a strictly increasing 1-D grid or ``nout`` is
        smaller than the number of states.
    IntegrationError
        If the integrator returns a failure status; the partially filled
        table is attached.
    """
    y = np.array(y0, dtype=np.float64).ravel()
    times = np.asarray(times, dtype=np.float64)
    if times.ndim != 1 or times.size == 0:
        raise ValueError("times must be a non-empty 1-D array")
    if np.any(np.diff(times) <= 0.0):
        raise ValueError("times must be strictly increasing")

    neq = y.size
    if nout is None:
        nout = np.asarray(func(times[0], y.copy(), *args)).size
    if nout < neq:
        raise ValueError(f"nout = {nout} < neq = {neq}")

    model = ModelAdaptor(func, neq, nout)
    table = np.full((times.size, 1 + nout), np.nan)
    names = column_names(neq, nout)

    def record(i: int, t: float) -> None:
        table[i, 0] = t
        table[i, 1 : 1 + neq] = y
        if nout > neq:
            table[i, 1 + neq :] = model.evaluate(t, y.copy(), *args)[neq:]

    solver = Lsoda()
    t = float(times[0])
    istate = IState.INITIAL
    record(0, t)
    for i in range(1, times.size):
        t, istate = solver.advance(
            model, y, t, float(times[i]),
            rtol=rtol, atol=atol, itask=Task.NORMAL, istate=istate,
            options=options, args=args,
        )
        if istate != SUCCESS:
            log.warning("ode -- stopped at t = %g with istate = %s", t, istate.name)
            raise IntegrationError(istate, t, table)
        record(i, t)

    return OdeResult(table, names, neq, IState(istate), solver.stats())
