"""
Dense LU factorization and solve in the LINPACK manner.

Implements:
    - LU decomposition with partial pivoting (dgefa)
    - Forward/back substitution for A*x = b and trans(A)*x = b (dgesl)

Unlike a Crout factorization that aborts on a singular matrix, ``dgefa``
keeps going past a zero pivot and reports it through the returned
``info`` value, so the caller can treat a singular iteration matrix as a
recoverable step failure.

The elimination loops are JIT-compiled with Numba; the public functions
only validate shapes and dispatch.
"""

import numpy as np
from numba import jit
from numpy.typing import NDArray

from .norms import assertEq


#######################################################
################ JIT KERNELS ##########################
#######################################################

@jit(nopython=True, cache=True)
def _dgefa_jit(a, ipvt):
    """JIT-compiled column-oriented Gaussian elimination with partial pivoting."""
    n = a.shape[0]
    info = 0
    for k in range(n - 1):
        # pivot: largest magnitude in column k at or below the diagonal
        l = k
        amax = abs(a[k, k])
        for i in range(k + 1, n):
            if abs(a[i, k]) > amax:
                amax = abs(a[i, k])
                l = i
        ipvt[k] = l

        if a[l, k] == 0.0:
            info = k + 1
            continue

        if l != k:
            t = a[l, k]
            a[l, k] = a[k, k]
            a[k, k] = t

        # multipliers
        t = -1.0 / a[k, k]
        for i in range(k + 1, n):
            a[i, k] *= t

        # row elimination with column indexing
        for j in range(k + 1, n):
            t = a[l, j]
            if l != k:
                a[l, j] = a[k, j]
                a[k, j] = t
            for i in range(k + 1, n):
                a[i, j] += t * a[i, k]

    ipvt[n - 1] = n - 1
    if a[n - 1, n - 1] == 0.0:
        info = n
    return info


@jit(nopython=True, cache=True)
def _dgesl_jit(a, ipvt, b, job):
    """JIT-compiled triangular solves against the factors from ``_dgefa_jit``."""
    n = a.shape[0]
    if job == 0:
        # L*y = b
        for k in range(n - 1):
            l = ipvt[k]
            t = b[l]
            if l != k:
                b[l] = b[k]
                b[k] = t
            for i in range(k + 1, n):
                b[i] += t * a[i, k]
        # U*x = y
        for k in range(n - 1, -1, -1):
            b[k] /= a[k, k]
            t = -b[k]
            for i in range(k):
                b[i] += t * a[i, k]
        return

    # trans(U)*y = b
    for k in range(n):
        t = 0.0
        for i in range(k):
            t += a[i, k] * b[i]
        b[k] = (b[k] - t) / a[k, k]
    # trans(L)*x = y
    for k in range(n - 2, -1, -1):
        t = 0.0
        for i in range(k + 1, n):
            t += a[i, k] * b[i]
        b[k] += t
        l = ipvt[k]
        if l != k:
            t = b[l]
            b[l] = b[k]
            b[k] = t


#######################################################
################ PUBLIC INTERFACE #####################
#######################################################

def dgefa(a: NDArray[np.float64], ipvt: NDArray[np.intp]) -> int:
    """
    LU decomposition with partial pivoting.

    Modifies a in-place: the upper triangle holds U, the strict lower
    triangle holds the negated multipliers of L.  Fills ipvt with pivot
    indices (0-based).

    Parameters
    ----------
    a : ndarray, shape (n, n)
        Matrix to factor, float64.
    ipvt : ndarray, shape (n,)
        Pivot index output, integer.

    Returns
    -------
    int
        0 on success, otherwise ``k+1`` where ``a[k, k]`` is a zero pivot.
        The factorization is completed either way, but ``dgesl`` will
        divide by zero if called on a singular result.
    """
    assertEq(a.shape[0], a.shape[1], ipvt.size, msg="dgefa")
    return int(_dgefa_jit(a, ipvt))


def dgesl(
    a: NDArray[np.float64],
    ipvt: NDArray[np.intp],
    b: NDArray[np.float64],
    job: int = 0,
) -> None:
    """
    Solve with the factors computed by ``dgefa``.

    ``job == 0`` solves ``A*x = b``; any other value solves
    ``trans(A)*x = b``.  Modifies b in-place with the solution.
    """
    assertEq(a.shape[0], a.shape[1], ipvt.size, b.size, msg="dgesl")
    _dgesl_jit(a, ipvt, b, job)
