"""
Weighted norms and error weights used by the LSODA step controller.

Every error test, convergence test and step-size estimate in the
integrator is expressed through the weighted max-norm ``vmnorm``.  The
weights are the reciprocals of ``rtol*|y| + atol`` computed by ``ewset``
and inverted in place by the caller, so a component whose error equals
its tolerance contributes exactly 1.
"""

from typing import Any, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

dp = np.float64

ArrayLike = Union[float, NDArray[np.float64]]


# ===================================================================
#  Assertions
# ===================================================================

def assertEq(*args: Any, msg: str = "Equality assertion failed") -> Any:
    """
    Assert all positional arguments are equal; return the common value.

    Parameters
    ----------
    *args
        Values that must be equal (typically array extents).
    msg : str
        Message on failure.

    Returns
    -------
    value
        The common value.

    Raises
    ------
    ValueError
        If any two arguments differ.
    """
    first = args[0]
    if all(a == first for a in args[1:]):
        return first
    raise ValueError(f"{msg}: {args}")


# ===================================================================
#  Weighted norms  (vmnorm, fnorm)
# ===================================================================

def vmnorm(v: NDArray[np.float64], w: NDArray[np.float64]) -> float:
    """
    Weighted max-norm of a vector: ``max_i |v_i| * w_i``.

    Parameters
    ----------
    v : ndarray
        Vector of length n.
    w : ndarray
        Positive weights of length n (reciprocal tolerances).

    Returns
    -------
    float
    """
    if v.size == 0:
        return 0.0
    return float(np.max(np.abs(v) * w))


def fnorm(a: NDArray[np.float64], w: NDArray[np.float64]) -> float:
    """
    Weighted max-row-sum norm of a square matrix, consistent with ``vmnorm``.

    ``fnorm = max_i  w_i * sum_j |a_ij| / w_j``
    """
    if a.size == 0:
        return 0.0
    return float(np.max(w * (np.abs(a) @ (1.0 / w))))


# ===================================================================
#  Error weights  (ewset)
# ===================================================================

def ewset(
    ycur: NDArray[np.float64],
    rtol: NDArray[np.float64],
    atol: NDArray[np.float64],
    ewt: NDArray[np.float64],
) -> None:
    """
    Error weight vector ``ewt_i = rtol_i*|ycur_i| + atol_i``.

    Modifies ewt in-place.  ``rtol`` and ``atol`` are full-length vectors
    (see ``tolerance_vectors``).
    """
    np.multiply(rtol, np.abs(ycur), out=ewt)
    ewt += atol


def tolerance_vectors(
    rtol: ArrayLike, atol: ArrayLike, n: int
) -> Optional[Tuple[NDArray[np.float64], NDArray[np.float64], int]]:
    """
    Resolve scalar/array tolerances into full-length vectors.

    Parameters
    ----------
    rtol, atol : float or ndarray
        Relative and absolute tolerance, each a scalar or length-n vector.
    n : int
        Problem dimension.

    Returns
    -------
    (rtol_vec, atol_vec, itol) or None
        ``itol`` is the classic tolerance mode: 1 both scalar, 2 array atol,
        3 array rtol, 4 both arrays.  None if either shape is unusable.
    """
    r = np.asarray(rtol, dtype=dp)
    a = np.asarray(atol, dtype=dp)
    for arr in (r, a):
        if arr.ndim > 1 or (arr.ndim == 1 and arr.size != n):
            return None
    itol = 1 + (a.ndim == 1) + 2 * (r.ndim == 1)
    return (
        np.broadcast_to(r, (n,)).copy(),
        np.broadcast_to(a, (n,)).copy(),
        itol,
    )
