"""
LSODA: variable-order, variable-step ODE integrator with automatic
switching between non-stiff (Adams) and stiff (BDF) methods.

Solves ``dy/dt = f(t, y)`` for a system of ``n`` equations.  The solution
history is carried as a Nordsieck array

    yh[j] = h**j * y^(j)(tn) / j!      j = 0 .. nq

which is predicted by a Pascal-triangle update and corrected either by
functional iteration (Adams) or by a chord iteration with a dense
finite-difference Jacobian (BDF).  Every 20 steps the driver compares the
step sizes the two families could use at the current accuracy and
switches to the cheaper one.

Implements:
    - Outer driver with five stop conditions (advance)
    - Single internal step with retry/backoff (_stoda)
    - Functional and chord corrector (_correction, _corfailure)
    - Finite-difference Jacobian and iteration matrix (_prja, _solsy)
    - Step-size and order selection (_scaleh, _orderswitch)
    - Adams/BDF switching (_methodswitch)
    - Dense output (intdy)

Reference: L. R. Petzold, "Automatic selection of methods for solving
stiff and nonstiff systems of ordinary differential equations",
SIAM J. Sci. Stat. Comput. 4 (1983) 136-148.
"""

import math
from enum import IntEnum
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .coefficients import ADAMS, BDF, MAXORD, SM1, cfode, switch_constants
from .linpack import dgefa, dgesl
from .logger import get_logger
from .norms import ewset, fnorm, tolerance_vectors, vmnorm
from .options import LsodaOptions, LsodaStats
from .status import (
    IllegalInput,
    IState,
    DenseOutputError,
    RepeatedIllegalInputError,
    Task,
)

log = get_logger(__name__)

RhsFunc = Callable[..., Sequence[float]]

# ─── Module constants ────────────────────────────────────────────────
ETA = float(np.finfo(np.float64).eps)
SQRTETA = math.sqrt(ETA)

MXSTP0 = 5000  # default max steps per call
MXHNL0 = 10  # default number of t + h = t warnings
MAXILLIN = 5  # illegal calls tolerated before aborting
CCMAX = 0.3  # rc drift that forces a Jacobian update
MAXCOR = 3  # corrector iterations per attempt
MSBP = 20  # max steps between Jacobian updates
MXNCF = 10  # corrector failures per step
RATIO = 5.0  # step-size gain required to switch family
ICOUNT0 = 20  # steps between switch tests


class CorrectorOutcome(IntEnum):
    CONVERGED = 0
    RETRY = 1  # shrink h and redo the step
    FAILED = 2  # give up on the step


class OrderChange(IntEnum):
    NONE = 0
    STEP = 1  # new h, same order
    STEP_AND_ORDER = 2  # new h and new order


# ═════════════════════════════════════════════════════════════════════
#  Integrator session
# ═════════════════════════════════════════════════════════════════════

class Lsoda:
    """
    One LSODA integration session.

    All step-control state, the Nordsieck history and the work arrays
    belong to the instance and persist between ``advance`` calls, so a
    single instance integrates a single problem.  Independent problems
    need independent instances.

    Examples
    --------
    >>> solver = Lsoda()
    >>> y = np.array([1.0])
    >>> t, istate = solver.advance(lambda t, y: -y, y, 0.0, 1.0)
    >>> istate == IState.CONTINUE
    True
    """

    def __init__(self):
        self.init = False
        self.illin = 0
        self.ntrep = 0
        self.last_illegal_input: Optional[IllegalInput] = None

        self.n = 0
        self.nst = 0
        self.nfe = 0
        self.nje = 0
        self.nslast = 0
        self.nhnil = 0
        self.nq = 0
        self.nqu = 0
        self.l = 0
        self.h = 0.0
        self.hu = 0.0
        self.tn = 0.0
        self.tsw = 0.0
        self.tolsf = 0.0
        self.imxer = -1
        self.meth = ADAMS
        self.mused = 0
        self.miter = 0
        self.jtyp = 2
        self.jstart = 0
        self.tcrit = 0.0

        self.cm1, self.cm2 = switch_constants()
        self.el = np.zeros(13)

        self._f: Optional[RhsFunc] = None
        self._args: tuple = ()

    # ─── right-hand side ─────────────────────────────────────────────

    def _rhs(self, t: float, y: NDArray[np.float64], out: NDArray[np.float64]) -> None:
        out[:] = self._f(t, y, *self._args)
        self.nfe += 1

    # ─── storage ─────────────────────────────────────────────────────

    def _allocate(self, n: int) -> None:
        lenyh = 1 + max(self.mxordn, self.mxords)
        self.n = n
        self.yh = np.zeros((lenyh, n))
        self.wm = np.zeros((n, n))
        self.ewt = np.zeros(n)
        self.savf = np.zeros(n)
        self.acor = np.zeros(n)
        self.ipvt = np.zeros(n, dtype=np.intp)

    def _shrink(self, n: int) -> None:
        """Drop trailing components after ``neq`` was lowered on istate 3."""
        self.n = n
        self.yh = self.yh[:, :n]
        self.wm = self.wm[:n, :n]
        self.ewt = self.ewt[:n]
        self.savf = self.savf[:n]
        self.acor = self.acor[:n]
        self.ipvt = self.ipvt[:n]

    # ─── returns ─────────────────────────────────────────────────────

    def _illegal(self, reason: IllegalInput, t: float, msg: str, *args) -> Tuple[float, IState]:
        """Reject the call without touching the integration state."""
        log.error("lsoda -- " + msg, *args)
        if self.illin == MAXILLIN:
            raise RepeatedIllegalInputError(
                "lsoda -- repeated occurrence of illegal input, run aborted "
                "(apparent infinite loop)"
            )
        self.illin += 1
        self.last_illegal_input = reason
        return t, IState.ILLEGAL_INPUT

    def _terminate2(self, y: NDArray[np.float64], istate: IState) -> Tuple[float, IState]:
        """Return the last accepted state after a failure inside the loop."""
        y[:] = self.yh[0]
        self.illin = 0
        return self.tn, istate

    def _success(self, y: NDArray[np.float64], itask: int, ihit: bool) -> Tuple[float, IState]:
        y[:] = self.yh[0]
        t = self.tn
        if itask in (Task.CRITICAL, Task.CRITICAL_ONE_STEP) and ihit:
            t = self.tcrit
        self.illin = 0
        return t, IState.CONTINUE

    def _interpolated(self, y: NDArray[np.float64], tout: float) -> Tuple[float, IState]:
        self._intdy(tout, 0, y)
        self.illin = 0
        return tout, IState.CONTINUE

    # ═════════════════════════════════════════════════════════════════
    #  Outer driver  (lsoda)
    # ═════════════════════════════════════════════════════════════════

    def advance(
        self,
        f: RhsFunc,
        y: NDArray[np.float64],
        t: float,
        tout: float,
        rtol=1e-6,
        atol=1e-6,
        itask: int = Task.NORMAL,
        istate: int = IState.INITIAL,
        options: Optional[LsodaOptions] = None,
        args: tuple = (),
        neq: Optional[int] = None,
    ) -> Tuple[float, IState]:
        """
        Integrate from t toward tout.

        Parameters
        ----------
        f : callable
            ``f(t, y, *args)`` returning dy/dt (length n).  Must not call
            back into this instance.
        y : ndarray
            State vector (float64, 1-D).  Read on the first call; on
            return holds the solution at the returned time.  Modified
            in-place.
        t : float
            Current time.  Only read on the first call; the session keeps
            its own copy afterwards.
        tout : float
            Next output time.
        rtol, atol : float or ndarray
            Relative and absolute tolerances, scalars or length-n arrays.
        itask : Task
            Stop condition (see ``Task``).
        istate : IState
            ``INITIAL`` for the first call, ``CONTINUE`` afterwards,
            ``CONTINUE_CHANGED`` after changing tolerances, options or
            lowering ``neq``.
        options : LsodaOptions, optional
            Optional inputs; None means all defaults.
        args : tuple
            Extra arguments passed through to f.
        neq : int, optional
            Number of equations, default ``y.size``.

        Returns
        -------
        t : float
            Time reached.
        istate : IState
            ``IState.CONTINUE`` on success, a negative code otherwise.
            Pass the returned value back in on the next call.
        """
        if not isinstance(y, np.ndarray) or y.dtype != np.float64:
            raise TypeError("lsoda: y must be a float64 ndarray")
        if y.ndim != 1:
            raise ValueError("lsoda: y must be one-dimensional")

        t = float(t)
        tout = float(tout)
        opts = options if options is not None else LsodaOptions()
        self._f = f
        self._args = tuple(args)
        istate = int(istate)
        itask = int(itask)
        ihit = False

        # ─── Block a: legality of istate and itask ───────────────────
        if istate < 1 or istate > 3:
            return self._illegal(IllegalInput.INVALID_STATE, t, "illegal istate = %d", istate)
        if itask < 1 or itask > 5:
            return self._illegal(IllegalInput.INVALID_TASK, t, "illegal itask = %d", itask)
        if not self.init and istate in (2, 3):
            return self._illegal(
                IllegalInput.UNINITIALIZED_CONTINUATION, t,
                "istate > 1 but lsoda not initialized",
            )

        n = self.n if istate == 2 else (y.size if neq is None else int(neq))
        if y.size < n:
            raise ValueError(f"lsoda: y has {y.size} components, need {n}")

        # ─── Block b: inputs for istate 1 and 3 ──────────────────────
        if istate in (1, 3):
            self.ntrep = 0
            if n <= 0:
                return self._illegal(
                    IllegalInput.NONPOSITIVE_DIMENSION, t, "neq = %d is less than 1", n
                )
            if istate == 3 and n > self.n:
                return self._illegal(
                    IllegalInput.DIMENSION_INCREASE, t,
                    "istate = 3 and neq increased from %d to %d", self.n, n,
                )
            tols = tolerance_vectors(rtol, atol, n)
            if tols is None:
                return self._illegal(
                    IllegalInput.INVALID_TOLERANCE_MODE, t,
                    "rtol and atol must be scalars or arrays of length %d", n,
                )
            rtolv, atolv, _ = tols
            for name, tolv in (("rtol", rtolv), ("atol", atolv)):
                if np.any(tolv < 0.0):
                    i = int(np.argmax(tolv < 0.0))
                    return self._illegal(
                        IllegalInput.NEGATIVE_TOLERANCE, t,
                        "%s[%d] = %g is less than 0", name, i, tolv[i],
                    )
            bad = opts.first_negative()
            if bad is not None:
                return self._illegal(
                    IllegalInput.INVALID_OPTION, t,
                    "%s = %g is less than 0", bad, getattr(opts, bad),
                )
            if istate == 1:
                h0 = float(opts.h0)
                mxordn = min(opts.max_order_nonstiff or MAXORD[ADAMS], MAXORD[ADAMS])
                mxords = min(opts.max_order_stiff or MAXORD[BDF], MAXORD[BDF])
                if (tout - t) * h0 < 0.0:
                    return self._illegal(
                        IllegalInput.NONPOSITIVE_STEP_DIRECTION, t,
                        "tout = %g behind t = %g, integration direction is given by h0 = %g",
                        tout, t, h0,
                    )
                if itask in (Task.CRITICAL, Task.CRITICAL_ONE_STEP):
                    if opts.tcrit is None:
                        return self._illegal(
                            IllegalInput.INVALID_CRITICAL_TIME, t,
                            "itask = %d requires tcrit", itask,
                        )
                    if (opts.tcrit - tout) * (tout - t) < 0.0:
                        return self._illegal(
                            IllegalInput.INVALID_CRITICAL_TIME, t,
                            "itask = 4 or 5 and tcrit = %g behind tout = %g",
                            opts.tcrit, tout,
                        )

            # all inputs are legal from here on
            self.rtol = rtolv
            self.atol = atolv
            self.ixpr = bool(opts.verbose_switch)
            self.mxstep = opts.max_steps or MXSTP0
            self.mxhnil = opts.max_hnil_warnings or MXHNL0
            self.hmxi = 1.0 / opts.hmax if opts.hmax > 0.0 else 0.0
            self.hmin = float(opts.hmin)
            if istate == 1:
                self.init = False
                self.mxordn = mxordn
                self.mxords = mxords
                self.meth = ADAMS
                self._allocate(n)
            else:
                if n < self.n:
                    self._shrink(n)
                self.jstart = -1

        yv = y[: self.n] if istate == 2 else y[:n]

        # ─── Block c: first call only ────────────────────────────────
        if istate == 1:
            self.tn = t
            self.tsw = t
            self.maxord = self.mxordn
            if itask in (Task.CRITICAL, Task.CRITICAL_ONE_STEP):
                self.tcrit = float(opts.tcrit)
                if h0 != 0.0 and (t + h0 - self.tcrit) * h0 > 0.0:
                    h0 = self.tcrit - t

            self.jstart = 0
            self.nhnil = 0
            self.nst = 0
            self.nje = 0
            self.nslast = 0
            self.hu = 0.0
            self.nqu = 0
            self.mused = 0
            self.miter = 0
            self.imxer = -1

            self.nfe = 0
            self._rhs(t, yv, self.yh[1])
            self.yh[0] = yv

            self.nq = 1
            self.h = 1.0
            ewset(yv, self.rtol, self.atol, self.ewt)
            if np.any(self.ewt <= 0.0):
                i = int(np.argmax(self.ewt <= 0.0))
                return self._illegal(
                    IllegalInput.ZERO_WEIGHT_AT_START, t,
                    "ewt[%d] = %g <= 0", i, self.ewt[i],
                )
            self.ewt[:] = 1.0 / self.ewt

            if h0 == 0.0:
                tdist = abs(tout - t)
                w0 = max(abs(t), abs(tout))
                if tdist < 2.0 * ETA * w0:
                    return self._illegal(
                        IllegalInput.TOUT_TOO_CLOSE, t,
                        "tout = %g too close to t = %g to start integration", tout, t,
                    )
                tol = float(np.max(self.rtol))
                if tol <= 0.0:
                    ay = np.abs(yv)
                    nz = ay != 0.0
                    if np.any(nz):
                        tol = max(tol, float(np.max(self.atol[nz] / ay[nz])))
                tol = min(max(tol, 100.0 * ETA), 0.001)
                fnrm = vmnorm(self.yh[1], self.ewt)
                h0 = 1.0 / math.sqrt(1.0 / (tol * w0 * w0) + tol * fnrm * fnrm)
                h0 = math.copysign(min(h0, tdist), tout - t)

            rh = abs(h0) * self.hmxi
            if rh > 1.0:
                h0 /= rh
            self.h = h0
            self.yh[1] *= h0

        # ─── Block d: stop conditions before stepping (istate 2, 3) ──
        if istate in (2, 3):
            self.nslast = self.nst
            if itask == Task.NORMAL:
                if (self.tn - tout) * self.h >= 0.0:
                    if self._intdy(tout, 0, yv) != 0:
                        return self._illegal(
                            IllegalInput.INTERPOLATION_FAILURE, t,
                            "trouble from intdy, itask = %d, tout = %g", itask, tout,
                        )
                    self.illin = 0
                    return tout, IState.CONTINUE
            elif itask == Task.OVERSHOOT:
                tp = self.tn - self.hu * (1.0 + 100.0 * ETA)
                if (tp - tout) * self.h > 0.0:
                    return self._illegal(
                        IllegalInput.TOUT_BEHIND_TCUR, t,
                        "itask = %d and tout = %g behind tcur - hu = %g", itask, tout, tp,
                    )
                if (self.tn - tout) * self.h >= 0.0:
                    return self._success(yv, itask, ihit)
            elif itask in (Task.CRITICAL, Task.CRITICAL_ONE_STEP):
                if opts.tcrit is None:
                    return self._illegal(
                        IllegalInput.INVALID_CRITICAL_TIME, t,
                        "itask = %d requires tcrit", itask,
                    )
                tcrit = float(opts.tcrit)
                if (self.tn - tcrit) * self.h > 0.0:
                    return self._illegal(
                        IllegalInput.INVALID_CRITICAL_TIME, t,
                        "itask = 4 or 5 and tcrit = %g behind tcur = %g", tcrit, self.tn,
                    )
                if itask == Task.CRITICAL:
                    if (tcrit - tout) * self.h < 0.0:
                        return self._illegal(
                            IllegalInput.INVALID_CRITICAL_TIME, t,
                            "itask = 4 or 5 and tcrit = %g behind tout = %g", tcrit, tout,
                        )
                    if (self.tn - tout) * self.h >= 0.0:
                        self.tcrit = tcrit
                        if self._intdy(tout, 0, yv) != 0:
                            return self._illegal(
                                IllegalInput.INTERPOLATION_FAILURE, t,
                                "trouble from intdy, itask = %d, tout = %g", itask, tout,
                            )
                        self.illin = 0
                        return tout, IState.CONTINUE
                self.tcrit = tcrit
                hmx = abs(self.tn) + abs(self.h)
                ihit = abs(self.tn - tcrit) <= 100.0 * ETA * hmx
                if ihit:
                    return self._success(yv, itask, ihit)
                tnext = self.tn + self.h * (1.0 + 4.0 * ETA)
                if (tnext - tcrit) * self.h > 0.0:
                    self.h = (tcrit - self.tn) * (1.0 - 4.0 * ETA)
                    if istate == 2:
                        self.jstart = -2

        # ─── Block e: the step loop ──────────────────────────────────
        while True:
            if istate != 1 or self.nst != 0:
                if self.nst - self.nslast >= self.mxstep:
                    log.warning(
                        "lsoda -- at t = %g, %d steps taken before reaching tout",
                        self.tn, self.mxstep,
                    )
                    return self._terminate2(yv, IState.TOO_MANY_STEPS)
                ewset(self.yh[0], self.rtol, self.atol, self.ewt)
                if np.any(self.ewt <= 0.0):
                    i = int(np.argmax(self.ewt <= 0.0))
                    log.warning("lsoda -- at t = %g, ewt[%d] = %g <= 0", self.tn, i, self.ewt[i])
                    return self._terminate2(yv, IState.ZERO_WEIGHT)
                self.ewt[:] = 1.0 / self.ewt

            self.tolsf = ETA * vmnorm(self.yh[0], self.ewt)
            if self.tolsf > 1.0:
                self.tolsf *= 2.0
                if self.nst == 0:
                    return self._illegal(
                        IllegalInput.EXCESS_PRECISION_AT_START, t,
                        "at start of problem, too much accuracy requested for "
                        "precision of machine, suggested scaling factor = %g",
                        self.tolsf,
                    )
                log.warning(
                    "lsoda -- at t = %g, too much accuracy requested for precision "
                    "of machine, suggested scaling factor = %g",
                    self.tn, self.tolsf,
                )
                return self._terminate2(yv, IState.EXCESS_PRECISION)

            if self.tn + self.h == self.tn:
                self.nhnil += 1
                if self.nhnil <= self.mxhnil:
                    log.warning(
                        "lsoda -- internal t = %g and h = %g are such that t + h = t "
                        "on the next step, solver will continue anyway",
                        self.tn, self.h,
                    )
                    if self.nhnil == self.mxhnil:
                        log.warning(
                            "lsoda -- above warning has been issued %d times, "
                            "it will not be issued again for this problem",
                            self.nhnil,
                        )

            self._stoda(yv)

            if self.kflag == 0:
                # ─── Block f: successful step ────────────────────────
                self.init = True
                if self.meth != self.mused:
                    self.tsw = self.tn
                    self.maxord = self.mxords if self.meth == BDF else self.mxordn
                    self.jstart = -1
                    kind = "stiff" if self.meth == BDF else "nonstiff"
                    if self.ixpr:
                        log.info("lsoda -- a switch to the %s method has occurred at t = %g", kind, self.tn)
                    else:
                        log.debug("lsoda -- a switch to the %s method has occurred at t = %g", kind, self.tn)

                if itask == Task.NORMAL:
                    if (self.tn - tout) * self.h < 0.0:
                        continue
                    return self._interpolated(yv, tout)
                if itask == Task.ONE_STEP:
                    return self._success(yv, itask, ihit)
                if itask == Task.OVERSHOOT:
                    if (self.tn - tout) * self.h >= 0.0:
                        return self._success(yv, itask, ihit)
                    continue
                if itask == Task.CRITICAL:
                    if (self.tn - tout) * self.h >= 0.0:
                        return self._interpolated(yv, tout)
                    hmx = abs(self.tn) + abs(self.h)
                    ihit = abs(self.tn - self.tcrit) <= 100.0 * ETA * hmx
                    if ihit:
                        return self._success(yv, itask, ihit)
                    tnext = self.tn + self.h * (1.0 + 4.0 * ETA)
                    if (tnext - self.tcrit) * self.h <= 0.0:
                        continue
                    self.h = (self.tcrit - self.tn) * (1.0 - 4.0 * ETA)
                    self.jstart = -2
                    continue
                # Task.CRITICAL_ONE_STEP
                hmx = abs(self.tn) + abs(self.h)
                ihit = abs(self.tn - self.tcrit) <= 100.0 * ETA * hmx
                return self._success(yv, itask, ihit)

            # kflag = -1: error test failed repeatedly or with |h| = hmin
            # kflag = -2: corrector failed repeatedly or with |h| = hmin
            if self.kflag == -1:
                log.warning(
                    "lsoda -- at t = %g and step size h = %g, the error test "
                    "failed repeatedly or with |h| = hmin",
                    self.tn, self.h,
                )
                istate_out = IState.ERROR_TEST_FAILURE
            else:
                log.warning(
                    "lsoda -- at t = %g and step size h = %g, the corrector "
                    "convergence failed repeatedly or with |h| = hmin",
                    self.tn, self.h,
                )
                istate_out = IState.CONVERGENCE_FAILURE
            self.imxer = int(np.argmax(np.abs(self.acor) * self.ewt))
            return self._terminate2(yv, istate_out)

    # ═════════════════════════════════════════════════════════════════
    #  One internal step  (stoda)
    # ═════════════════════════════════════════════════════════════════

    def _stoda(self, y: NDArray[np.float64]) -> None:
        """
        Take one step of size h (or smaller) and set ``kflag``.

        ``kflag`` is 0 on success, -1 if the error test failed
        repeatedly or at ``|h| = hmin``, -2 if the corrector failed
        repeatedly or at ``|h| = hmin``.  ``jstart`` selects the entry
        mode: 0 first step, 1 continue, -1 options or method changed,
        -2 only h changed.
        """
        self.kflag = 0
        self.told = self.tn
        self.ncf = 0
        self.ierpj = 0
        self.jcur = 0

        if self.jstart == 0:
            self.lmax = self.maxord + 1
            self.nq = 1
            self.l = 2
            self.ialth = 2
            self.rmax = 10000.0
            self.rc = 0.0
            self.el0 = 1.0
            self.crate = 0.7
            self.hold = self.h
            self.nslp = 0
            self.ipup = self.miter
            self.icount = ICOUNT0
            self.irflag = 0
            self.pdest = 0.0
            self.pdlast = 0.0
            self.pdnorm = 0.0
            self.ratio = RATIO
            self.elco, self.tesco = cfode(ADAMS)
            self._resetcoeff()
        elif self.jstart == -1:
            self.ipup = self.miter
            self.lmax = self.maxord + 1
            if self.ialth == 1:
                self.ialth = 2
            if self.meth != self.mused:
                self.elco, self.tesco = cfode(self.meth)
                self.ialth = self.l
                self._resetcoeff()
            if self.h != self.hold:
                rh = self.h / self.hold
                self.h = self.hold
                self._scaleh(rh)
        elif self.jstart == -2:
            if self.h != self.hold:
                rh = self.h / self.hold
                self.h = self.hold
                self._scaleh(rh)

        while True:
            # ─── predict, correct, error test ────────────────────────
            if abs(self.rc - 1.0) > CCMAX:
                self.ipup = self.miter
            if self.nst >= self.nslp + MSBP:
                self.ipup = self.miter
            self.tn += self.h
            self._predict()
            pnorm = vmnorm(self.yh[0], self.ewt)

            outcome, dl, m = self._correction(y, pnorm)
            if outcome == CorrectorOutcome.RETRY:
                self._scaleh(max(0.25, self.hmin / abs(self.h)))
                continue
            if outcome == CorrectorOutcome.FAILED:
                self.kflag = -2
                self.hold = self.h
                self.jstart = 1
                return

            self.jcur = 0
            if m == 0:
                dsm = dl / self.tesco[self.nq, 1]
            else:
                dsm = vmnorm(self.acor, self.ewt) / self.tesco[self.nq, 1]

            if dsm <= 1.0:
                self._accept(pnorm, dsm)
                return

            # ─── error test failed ───────────────────────────────────
            self.kflag -= 1
            self.tn = self.told
            self._retract()
            self.rmax = 2.0
            if abs(self.h) <= self.hmin * 1.00001:
                self.kflag = -1
                self.hold = self.h
                self.jstart = 1
                return

            if self.kflag > -3:
                flag, rh = self._orderswitch(0.0, dsm)
                if flag == OrderChange.NONE:
                    rh = min(rh, 0.2)
                elif flag == OrderChange.STEP_AND_ORDER:
                    self._resetcoeff()
                self._scaleh(max(rh, self.hmin / abs(self.h)))
                continue

            # three or more failures: restart from order 1 with fresh f
            if self.kflag == -10:
                self.kflag = -1
                self.hold = self.h
                self.jstart = 1
                return
            rh = max(self.hmin / abs(self.h), 0.1)
            self.h *= rh
            y[:] = self.yh[0]
            self._rhs(self.tn, y, self.savf)
            self.yh[1] = self.h * self.savf
            self.ipup = self.miter
            self.ialth = 5
            if self.nq != 1:
                self.nq = 1
                self.l = 2
                self._resetcoeff()

    def _accept(self, pnorm: float, dsm: float) -> None:
        """Commit a step that passed the error test and choose the next h/order."""
        self.kflag = 0
        self.nst += 1
        self.hu = self.h
        self.nqu = self.nq
        self.mused = self.meth
        self.yh[: self.l] += np.outer(self.el[: self.l], self.acor)
        log.debug2(
            "step %d accepted: t = %g, h = %g, nq = %d, meth = %d",
            self.nst, self.tn, self.h, self.nq, self.meth,
        )

        self.icount -= 1
        if self.icount < 0:
            rh = self._methodswitch(dsm, pnorm)
            if self.meth != self.mused:
                self._scaleh(max(rh, self.hmin / abs(self.h)))
                self.rmax = 10.0
                self._endstoda()
                return

        # steps since the last h/order change; reconsider when it runs out
        self.ialth -= 1
        if self.ialth == 0:
            rhup = 0.0
            if self.l != self.lmax:
                self.savf[:] = self.acor - self.yh[self.lmax - 1]
                dup = vmnorm(self.savf, self.ewt) / self.tesco[self.nq, 2]
                rhup = 1.0 / (1.4 * dup ** (1.0 / (self.l + 1)) + 1.4e-6)
            flag, rh = self._orderswitch(rhup, dsm)
            if flag == OrderChange.NONE:
                self._endstoda()
                return
            if flag == OrderChange.STEP_AND_ORDER:
                self._resetcoeff()
            self._scaleh(max(rh, self.hmin / abs(self.h)))
            self.rmax = 10.0
            self._endstoda()
            return

        if self.ialth > 1 or self.l == self.lmax:
            self._endstoda()
            return
        # keep acor for the order-increase estimate on the next step
        self.yh[self.lmax - 1] = self.acor
        self._endstoda()

    def _endstoda(self) -> None:
        self.acor *= 1.0 / self.tesco[self.nqu, 1]
        self.hold = self.h
        self.jstart = 1

    def _predict(self) -> None:
        """Multiply yh by the Pascal triangle matrix (advance to tn + h)."""
        yh = self.yh
        for j in range(self.nq - 1, -1, -1):
            for i in range(j, self.nq):
                yh[i] += yh[i + 1]

    def _retract(self) -> None:
        """Undo ``_predict``."""
        yh = self.yh
        for j in range(self.nq - 1, -1, -1):
            for i in range(j, self.nq):
                yh[i] -= yh[i + 1]

    # ═════════════════════════════════════════════════════════════════
    #  Coefficient and history rescaling  (resetcoeff, scaleh)
    # ═════════════════════════════════════════════════════════════════

    def _resetcoeff(self) -> None:
        """Load el for the current order and rescale rc to the new el[0]."""
        self.el[: self.l] = self.elco[self.nq, : self.l]
        self.rc = self.rc * self.el[0] / self.el0
        self.el0 = self.el[0]
        self.conit = 0.5 / (self.nq + 2)

    def _scaleh(self, rh: float) -> None:
        """
        Change the step size by the factor rh and rescale yh to match.

        rh is limited by ``rmax`` and ``hmax``; for the Adams family it is
        further limited to stay inside the stability region, in which case
        ``irflag`` is set.
        """
        rh = float(min(rh, self.rmax))
        rh = rh / max(1.0, abs(self.h) * self.hmxi * rh)
        if self.meth == ADAMS:
            self.irflag = 0
            pdh = max(abs(self.h) * self.pdlast, 1e-6)
            if rh * pdh * 1.00001 >= SM1[self.nq]:
                rh = float(SM1[self.nq] / pdh)
                self.irflag = 1
        r = 1.0
        for j in range(1, self.l):
            r *= rh
            self.yh[j] *= r
        self.h *= rh
        self.rc *= rh
        self.ialth = self.l

    # ═════════════════════════════════════════════════════════════════
    #  Corrector  (correction, corfailure)
    # ═════════════════════════════════════════════════════════════════

    def _correction(self, y: NDArray[np.float64], pnorm: float) -> Tuple[CorrectorOutcome, float, int]:
        """
        Iterate the corrector to convergence.

        Returns the outcome, the last correction norm and the number of
        iterations m taken (0 if the first iterate was accepted).
        """
        m = 0
        rate = 0.0
        dl = 0.0
        delp = 0.0
        y[:] = self.yh[0]
        self._rhs(self.tn, y, self.savf)

        while True:
            if m == 0:
                if self.ipup > 0:
                    self._prja(y)
                    self.ipup = 0
                    self.rc = 1.0
                    self.nslp = self.nst
                    self.crate = 0.7
                    if self.ierpj != 0:
                        return self._corfailure(), dl, m
                self.acor[:] = 0.0

            if self.miter == 0:
                # functional iteration
                self.savf[:] = self.h * self.savf - self.yh[1]
                dl = vmnorm(self.savf - self.acor, self.ewt)
                y[:] = self.yh[0] + self.el[0] * self.savf
                self.acor[:] = self.savf
            else:
                # chord iteration with P = I - h*el0*J
                y[:] = self.h * self.savf - (self.yh[1] + self.acor)
                self._solsy(y)
                dl = vmnorm(y, self.ewt)
                self.acor += y
                y[:] = self.yh[0] + self.el[0] * self.acor

            if dl <= 100.0 * pnorm * ETA:
                break

            if m != 0 or self.meth != ADAMS:
                if m != 0:
                    rm = 1024.0
                    if dl <= 1024.0 * delp:
                        rm = dl / delp
                    rate = max(rate, rm)
                    self.crate = max(0.2 * self.crate, rm)
                dcon = dl * min(1.0, 1.5 * self.crate) / (self.tesco[self.nq, 1] * self.conit)
                if dcon <= 1.0:
                    self.pdest = max(self.pdest, rate / abs(self.h * self.el[0]))
                    if self.pdest != 0.0:
                        self.pdlast = self.pdest
                    break

            m += 1
            if m == MAXCOR or (m >= 2 and dl > 2.0 * delp):
                if self.miter == 0 or self.jcur == 1:
                    return self._corfailure(), dl, m
                # stale Jacobian: refresh once and start over
                self.ipup = self.miter
                m = 0
                rate = 0.0
                dl = 0.0
                y[:] = self.yh[0]
                self._rhs(self.tn, y, self.savf)
            else:
                delp = dl
                self._rhs(self.tn, y, self.savf)

        return CorrectorOutcome.CONVERGED, dl, m

    def _corfailure(self) -> CorrectorOutcome:
        self.ncf += 1
        self.rmax = 2.0
        self.tn = self.told
        self._retract()
        if abs(self.h) <= self.hmin * 1.00001 or self.ncf == MXNCF:
            return CorrectorOutcome.FAILED
        self.ipup = self.miter
        return CorrectorOutcome.RETRY

    # ═════════════════════════════════════════════════════════════════
    #  Jacobian and iteration matrix  (prja, solsy)
    # ═════════════════════════════════════════════════════════════════

    def _prja(self, y: NDArray[np.float64]) -> None:
        """
        Build and factor ``P = I - h*el0*J`` with J by forward differences.

        On entry y holds the predicted state and savf holds f(tn, y).
        acor is used as scratch.  Sets ``ierpj = 1`` if P is singular.
        """
        self.nje += 1
        self.ierpj = 0
        self.jcur = 1
        hl0 = self.h * self.el0
        log.debug3("jacobian update %d at t = %g, h = %g", self.nje, self.tn, self.h)

        fac = vmnorm(self.savf, self.ewt)
        r0 = 1000.0 * abs(self.h) * ETA * self.n * fac
        if r0 == 0.0:
            r0 = 1.0
        for j in range(self.n):
            yj = y[j]
            r = max(SQRTETA * abs(yj), r0 / self.ewt[j])
            y[j] += r
            fac = -hl0 / r
            self._rhs(self.tn, y, self.acor)
            self.wm[:, j] = (self.acor - self.savf) * fac
            y[j] = yj

        # norm of J, used by the method-switch test
        self.pdnorm = fnorm(self.wm, self.ewt) / abs(hl0)

        self.wm[np.diag_indices(self.n)] += 1.0
        if dgefa(self.wm, self.ipvt) != 0:
            self.ierpj = 1

    def _solsy(self, x: NDArray[np.float64]) -> None:
        dgesl(self.wm, self.ipvt, x, 0)

    # ═════════════════════════════════════════════════════════════════
    #  Order selection  (orderswitch)
    # ═════════════════════════════════════════════════════════════════

    def _orderswitch(self, rhup: float, dsm: float) -> Tuple[OrderChange, float]:
        """
        Pick the order nq-1, nq or nq+1 that allows the largest step.

        rhup is the step ratio estimated for order nq+1 (0 to rule the
        increase out).  Returns the decision and the step ratio rh.  On
        ``STEP_AND_ORDER`` the new ``nq``/``l`` are already set and, for
        an increase, the new top row of yh has been filled.
        """
        rhsm = 1.0 / (1.2 * dsm ** (1.0 / self.l) + 1.2e-6)
        rhdn = 0.0
        if self.nq != 1:
            ddn = vmnorm(self.yh[self.l - 1], self.ewt) / self.tesco[self.nq, 0]
            rhdn = 1.0 / (1.3 * ddn ** (1.0 / self.nq) + 1.3e-6)

        pdh = 0.0
        if self.meth == ADAMS:
            pdh = max(abs(self.h) * self.pdlast, 1e-6)
            if self.l < self.lmax:
                rhup = min(rhup, float(SM1[self.l] / pdh))
            rhsm = min(rhsm, float(SM1[self.nq] / pdh))
            if self.nq > 1:
                rhdn = min(rhdn, float(SM1[self.nq - 1] / pdh))
            self.pdest = 0.0

        if rhsm >= rhup:
            if rhsm >= rhdn:
                newq = self.nq
                rh = rhsm
            else:
                newq = self.nq - 1
                rh = rhdn
                if self.kflag < 0 and rh > 1.0:
                    rh = 1.0
        elif rhup <= rhdn:
            newq = self.nq - 1
            rh = rhdn
            if self.kflag < 0 and rh > 1.0:
                rh = 1.0
        else:
            rh = rhup
            if rh >= 1.1:
                r = self.el[self.l - 1] / self.l
                self.nq = self.l
                self.l = self.nq + 1
                self.yh[self.l - 1] = self.acor * r
                return OrderChange.STEP_AND_ORDER, rh
            self.ialth = 3
            return OrderChange.NONE, rh

        # below 10% gain nothing changes, unless Adams is held back by stability
        if self.meth == ADAMS:
            if rh * pdh * 1.00001 < SM1[newq]:
                if self.kflag == 0 and rh < 1.1:
                    self.ialth = 3
                    return OrderChange.NONE, rh
        elif self.kflag == 0 and rh < 1.1:
            self.ialth = 3
            return OrderChange.NONE, rh

        if self.kflag <= -2:
            rh = min(rh, 0.2)
        if newq == self.nq:
            return OrderChange.STEP, rh
        self.nq = newq
        self.l = self.nq + 1
        return OrderChange.STEP_AND_ORDER, rh

    # ═════════════════════════════════════════════════════════════════
    #  Method switching  (methodswitch)
    # ═════════════════════════════════════════════════════════════════

    def _methodswitch(self, dsm: float, pnorm: float) -> float:
        """
        Decide whether to switch between Adams and BDF.

        Compares the step ratio rh1 available to the current family with
        rh2 for the other one, both at the current accuracy; the other
        family must win by a factor ``ratio``.  On a switch, ``meth``,
        ``miter``, ``nq`` and ``l`` are updated and the step ratio to use
        is returned (otherwise 1.0, ignored by the caller).
        """
        if self.meth == ADAMS:
            # Adams -> BDF: worthwhile once the stability bound holds h down
            if self.nq > 5:
                return 1.0
            if dsm <= 100.0 * pnorm * ETA or self.pdest == 0.0:
                if self.irflag == 0:
                    return 1.0
                rh2 = 2.0
                nqm2 = min(self.nq, self.mxords)
            else:
                exsm = 1.0 / self.l
                rh1 = 1.0 / (1.2 * dsm ** exsm + 1.2e-6)
                rh1it = 2.0 * rh1
                pdh = self.pdlast * abs(self.h)
                if pdh * rh1 > 0.00001:
                    rh1it = float(SM1[self.nq] / pdh)
                rh1 = min(rh1, rh1it)
                if self.nq > self.mxords:
                    nqm2 = self.mxords
                    lm2 = self.mxords + 1
                    dm2 = vmnorm(self.yh[lm2], self.ewt) / self.cm2[self.mxords]
                    rh2 = 1.0 / (1.2 * dm2 ** (1.0 / lm2) + 1.2e-6)
                else:
                    dm2 = dsm * (self.cm1[self.nq] / self.cm2[self.nq])
                    rh2 = 1.0 / (1.2 * dm2 ** exsm + 1.2e-6)
                    nqm2 = self.nq
                if rh2 < self.ratio * rh1:
                    return 1.0

            self.icount = ICOUNT0
            self.meth = BDF
            self.miter = self.jtyp
            self.pdlast = 0.0
            self.nq = nqm2
            self.l = self.nq + 1
            return rh2

        # BDF -> Adams: worthwhile once the Adams step is no longer limited
        exsm = 1.0 / self.l
        if self.mxordn < self.nq:
            nqm1 = self.mxordn
            lm1 = self.mxordn + 1
            exm1 = 1.0 / lm1
            dm1 = vmnorm(self.yh[lm1], self.ewt) / self.cm1[self.mxordn]
            rh1 = 1.0 / (1.2 * dm1 ** exm1 + 1.2e-6)
        else:
            dm1 = dsm * (self.cm2[self.nq] / self.cm1[self.nq])
            rh1 = 1.0 / (1.2 * dm1 ** exsm + 1.2e-6)
            nqm1 = self.nq
            exm1 = exsm
        rh1it = 2.0 * rh1
        pdh = self.pdnorm * abs(self.h)
        if pdh * rh1 > 0.00001:
            rh1it = float(SM1[nqm1] / pdh)
        rh1 = min(rh1, rh1it)
        rh2 = 1.0 / (1.2 * dsm ** exsm + 1.2e-6)
        if rh1 * self.ratio < 5.0 * rh2:
            return 1.0
        alpha = max(0.001, rh1)
        dm1 *= alpha ** exm1
        if dm1 <= 1000.0 * ETA * pnorm:
            return 1.0

        self.icount = ICOUNT0
        self.meth = ADAMS
        self.miter = 0
        self.pdlast = 0.0
        self.nq = nqm1
        self.l = self.nq + 1
        return rh1

    # ═════════════════════════════════════════════════════════════════
    #  Dense output  (intdy)
    # ═════════════════════════════════════════════════════════════════

    def _intdy(self, t: float, k: int, dky: NDArray[np.float64]) -> int:
        """
        k-th derivative of the interpolating polynomial at t, into dky.

        Returns 0 on success, -1 for an illegal k, -2 for t outside
        ``[tn - hu, tn]``; dky is left untouched on failure.
        """
        if k < 0 or k > self.nq:
            log.error("intdy -- k = %d illegal", k)
            return -1
        tfuzz = 100.0 * ETA * math.copysign(abs(self.tn) + abs(self.hu), self.hu)
        tp = self.tn - self.hu - tfuzz
        tn1 = self.tn + tfuzz
        if (t - tp) * (t - tn1) > 0.0:
            log.error(
                "intdy -- t = %g illegal, t not in interval tcur - hu to tcur", t
            )
            return -2

        s = (t - self.tn) / self.h
        ic = 1
        for jj in range(self.l - k, self.nq + 1):
            ic *= jj
        dky[:] = ic * self.yh[self.nq]
        for j in range(self.nq - 1, k - 1, -1):
            ic = 1
            for jj in range(j + 1 - k, j + 1):
                ic *= jj
            dky[:] = ic * self.yh[j] + s * dky
        if k != 0:
            dky *= self.h ** (-k)
        return 0

    def intdy(self, t: float, k: int = 0) -> NDArray[np.float64]:
        """
        Interpolate the solution (k = 0) or its k-th derivative at t.

        Parameters
        ----------
        t : float
            Time within the last step, ``[tcur - hu, tcur]``.
        k : int
            Derivative order, ``0 <= k <= nqcur``.

        Returns
        -------
        ndarray
            Length-n vector.

        Raises
        ------
        DenseOutputError
            If no step has been taken yet, k is out of range, or t lies
            outside the last step.
        """
        if not self.init:
            raise DenseOutputError(-1, "intdy: no step has been completed")
        dky = np.empty(self.n)
        iflag = self._intdy(t, k, dky)
        if iflag == -1:
            raise DenseOutputError(iflag, f"intdy: k = {k} not in 0..{self.nq}")
        if iflag == -2:
            raise DenseOutputError(
                iflag,
                f"intdy: t = {t:g} not in [{self.tn - self.hu:g}, {self.tn:g}]",
            )
        return dky

    # ─── optional outputs ────────────────────────────────────────────

    def stats(self) -> LsodaStats:
        """Snapshot of the session counters and last/next step data."""
        return LsodaStats(
            nst=self.nst,
            nfe=self.nfe,
            nje=self.nje,
            hu=self.hu,
            hcur=self.h,
            tcur=self.tn,
            tolsf=self.tolsf,
            tsw=self.tsw,
            nqu=self.nqu,
            nqcur=self.nq,
            imxer=self.imxer,
            mused=self.mused,
            mcur=self.meth,
        )
