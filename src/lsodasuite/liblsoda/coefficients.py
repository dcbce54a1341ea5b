"""
Method coefficients for the Adams (non-stiff) and BDF (stiff) families.

``cfode`` builds, for every order ``nq`` of a family, the coefficients
``el`` of the Nordsieck corrector polynomial and three error-test
constants.  Rows of both tables are indexed directly by order; row 0 is
unused.

    elco[nq, 0:nq+1]   corrector coefficients l_0 ... l_nq
    tesco[nq, 0]       test constant for order nq-1
    tesco[nq, 1]       test constant for order nq
    tesco[nq, 2]       test constant for order nq+1

For Adams the ``el`` come from the polynomial
``prod_{i=1}^{nq-1} (x + i)`` integrated over [-1, 0]; for BDF from
``prod_{i=1}^{nq} (x + i)``.
"""

from typing import Tuple

import numpy as np
from numpy.typing import NDArray

# ─── Method families ─────────────────────────────────────────────────
ADAMS = 1
BDF = 2

# Highest order supported by each family
MAXORD = {ADAMS: 12, BDF: 5}

# Adams stability-region bounds on |h|*||J|| per order
SM1 = np.array(
    [0.0, 0.5, 0.575, 0.55, 0.45, 0.35, 0.25, 0.2, 0.15, 0.1, 0.075, 0.05, 0.025]
)


# ═════════════════════════════════════════════════════════════════════
#  Coefficient generation  (cfode)
# ═════════════════════════════════════════════════════════════════════

def _cfode_adams(elco, tesco):
    pc = np.zeros(13)
    pc[0] = 1.0
    rqfac = 1.0

    elco[1, 0] = 1.0
    elco[1, 1] = 1.0
    tesco[1, 0] = 0.0
    tesco[1, 1] = 2.0
    tesco[2, 0] = 1.0
    tesco[12, 2] = 0.0

    for nq in range(2, 13):
        # pc holds the coefficients of prod_{i=1}^{nq-1} (x + i)
        rq1fac = rqfac
        rqfac /= nq
        fnqm1 = float(nq - 1)
        pc[nq - 1] = 0.0
        for i in range(nq - 1, 0, -1):
            pc[i] = pc[i - 1] + fnqm1 * pc[i]
        pc[0] = fnqm1 * pc[0]

        # integrals of p(x) and x*p(x) over [-1, 0]
        pint = pc[0]
        xpin = pc[0] / 2.0
        tsign = 1.0
        for i in range(1, nq):
            tsign = -tsign
            pint += tsign * pc[i] / (i + 1)
            xpin += tsign * pc[i] / (i + 2)

        elco[nq, 0] = pint * rq1fac
        elco[nq, 1] = 1.0
        for i in range(1, nq):
            elco[nq, i + 1] = rq1fac * pc[i] / (i + 1)

        agamq = rqfac * xpin
        ragq = 1.0 / agamq
        tesco[nq, 1] = ragq
        if nq < 12:
            tesco[nq + 1, 0] = ragq * rqfac / (nq + 1)
        tesco[nq - 1, 2] = ragq


def _cfode_bdf(elco, tesco):
    pc = np.zeros(7)
    pc[0] = 1.0
    rq1fac = 1.0

    for nq in range(1, 6):
        # pc holds the coefficients of prod_{i=1}^{nq} (x + i)
        fnq = float(nq)
        pc[nq] = 0.0
        for i in range(nq, 0, -1):
            pc[i] = pc[i - 1] + fnq * pc[i]
        pc[0] = fnq * pc[0]

        elco[nq, : nq + 1] = pc[: nq + 1] / pc[1]
        elco[nq, 1] = 1.0
        tesco[nq, 0] = rq1fac
        tesco[nq, 1] = (nq + 1) / elco[nq, 0]
        tesco[nq, 2] = (nq + 2) / elco[nq, 0]
        rq1fac /= fnq


def cfode(meth: int) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Build the coefficient tables for a method family.

    Parameters
    ----------
    meth : int
        ``ADAMS`` (1) or ``BDF`` (2).

    Returns
    -------
    elco : ndarray, shape (13, 13)
    tesco : ndarray, shape (13, 3)
    """
    elco = np.zeros((13, 13))
    tesco = np.zeros((13, 3))
    if meth == ADAMS:
        _cfode_adams(elco, tesco)
    elif meth == BDF:
        _cfode_bdf(elco, tesco)
    else:
        raise ValueError(f"cfode: unknown method family {meth}")
    return elco, tesco


def switch_constants() -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Error-constant ratios used when comparing the two families.

    ``cm[nq] = tesco[nq, 1] * elco[nq, nq]`` for each family, indexed by
    order.  Returns ``(cm1, cm2)`` for Adams and BDF respectively.
    """
    cm = []
    for meth in (ADAMS, BDF):
        elco, tesco = cfode(meth)
        q = np.arange(1, MAXORD[meth] + 1)
        c = np.zeros(MAXORD[meth] + 1)
        c[q] = tesco[q, 1] * elco[q, q]
        cm.append(c)
    return cm[0], cm[1]
