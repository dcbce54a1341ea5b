"""
Tests for lsodasuite.liblsoda.linpack: dense LU with partial pivoting.

Solutions are checked against numpy/scipy on well-conditioned random
matrices; singular inputs must be reported through ``info`` rather than
by raising.
"""

import numpy as np
import pytest
import scipy.linalg

from lsodasuite.liblsoda import linpack as L

RNG = np.random.default_rng(0)

RTOL = 1e-12
ATOL = 1e-12


def _well_conditioned(n):
    return RNG.standard_normal((n, n)) + n * np.eye(n)


def _factor(a):
    lu = a.copy()
    ipvt = np.zeros(a.shape[0], dtype=np.intp)
    info = L.dgefa(lu, ipvt)
    return lu, ipvt, info


# ═════════════════════════════════════════════════════════════════════
#  LU decomposition  (dgefa)
# ═════════════════════════════════════════════════════════════════════

class TestDgefa:
    @pytest.mark.parametrize("n", [1, 2, 5, 12])
    def test_nonsingular_info_zero(self, n):
        _, _, info = _factor(_well_conditioned(n))
        assert info == 0

    def test_matches_lapack_factors(self):
        """Same pivots and the same U as LAPACK getrf."""
        a = RNG.standard_normal((7, 7))
        lu, ipvt, info = _factor(a)
        lu_ref, piv_ref = scipy.linalg.lu_factor(a)
        assert info == 0
        np.testing.assert_array_equal(ipvt, piv_ref)
        np.testing.assert_allclose(np.triu(lu), np.triu(lu_ref), rtol=1e-10, atol=1e-12)

    def test_pivot_picks_largest(self):
        a = np.array([[1.0, 2.0], [4.0, 3.0]])
        _, ipvt, _ = _factor(a)
        assert ipvt[0] == 1
        assert ipvt[1] == 1

    def test_singular_rank_deficient(self):
        """Second pivot vanishes: info is its 1-based position."""
        a = np.array([[1.0, 2.0], [2.0, 4.0]])
        _, _, info = _factor(a)
        assert info == 2

    def test_zero_column_does_not_abort(self):
        """A zero first column flags info = 1 and elimination carries on."""
        a = np.array([[0.0, 1.0], [0.0, 2.0]])
        lu, ipvt, info = _factor(a)
        assert info == 1
        assert ipvt[1] == 1
        assert lu[1, 1] == 2.0

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            L.dgefa(np.eye(3), np.zeros(2, dtype=np.intp))


# ═════════════════════════════════════════════════════════════════════
#  Solve  (dgesl)
# ═════════════════════════════════════════════════════════════════════

class TestDgesl:
    @pytest.mark.parametrize("n", [1, 3, 8])
    def test_direct_solve(self, n):
        a = _well_conditioned(n)
        b = RNG.standard_normal(n)
        lu, ipvt, _ = _factor(a)
        x = b.copy()
        L.dgesl(lu, ipvt, x, 0)
        np.testing.assert_allclose(x, np.linalg.solve(a, b), rtol=RTOL, atol=1e-10)

    @pytest.mark.parametrize("n", [1, 3, 8])
    def test_transposed_solve(self, n):
        a = _well_conditioned(n)
        b = RNG.standard_normal(n)
        lu, ipvt, _ = _factor(a)
        x = b.copy()
        L.dgesl(lu, ipvt, x, 1)
        np.testing.assert_allclose(x, np.linalg.solve(a.T, b), rtol=RTOL, atol=1e-10)

    def test_residual_small(self):
        a = _well_conditioned(10)
        b = RNG.standard_normal(10)
        lu, ipvt, _ = _factor(a)
        x = b.copy()
        L.dgesl(lu, ipvt, x)
        np.testing.assert_allclose(a @ x, b, rtol=RTOL, atol=1e-10)

    def test_iteration_matrix(self):
        """I - h*J for a stiff diagonal J solves like the explicit inverse."""
        h = 0.1
        jac = np.diag([-1.0, -1000.0, -1.0e4])
        p = np.eye(3) - h * jac
        b = np.array([1.0, 1.0, 1.0])
        lu, ipvt, info = _factor(p)
        x = b.copy()
        L.dgesl(lu, ipvt, x)
        assert info == 0
        np.testing.assert_allclose(x, b / np.diag(p), rtol=RTOL)

    def test_solves_strided_view(self):
        """The right-hand side may be a view into a longer vector."""
        a = _well_conditioned(3)
        buf = RNG.standard_normal(5)
        expected = np.linalg.solve(a, buf[:3])
        lu, ipvt, _ = _factor(a)
        L.dgesl(lu, ipvt, buf[:3])
        np.testing.assert_allclose(buf[:3], expected, rtol=RTOL, atol=1e-10)
