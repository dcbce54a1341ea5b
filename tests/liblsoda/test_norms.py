"""
Tests for lsodasuite.liblsoda.norms: weighted norms and error weights.
"""

import numpy as np
import pytest

from lsodasuite.liblsoda import norms as N

RNG = np.random.default_rng(0)

RTOL = 1e-12
ATOL = 1e-12


# ═════════════════════════════════════════════════════════════════════
#  Weighted max-norm  (vmnorm)
# ═════════════════════════════════════════════════════════════════════

class TestVmnorm:
    def test_simple(self):
        v = np.array([3.0, -4.0])
        w = np.array([1.0, 0.5])
        assert N.vmnorm(v, w) == 3.0

    def test_unit_weights_is_inf_norm(self):
        v = RNG.standard_normal(9)
        assert N.vmnorm(v, np.ones(9)) == np.max(np.abs(v))

    def test_zero_vector(self):
        assert N.vmnorm(np.zeros(4), np.ones(4)) == 0.0

    def test_error_at_tolerance_has_unit_norm(self):
        """Error equal to the tolerance measures 1 in the weighted norm."""
        y = np.array([2.0, -0.5, 10.0])
        rtol, atol = np.full(3, 1e-3), np.full(3, 1e-6)
        ewt = np.empty(3)
        N.ewset(y, rtol, atol, ewt)
        err = rtol * np.abs(y) + atol
        np.testing.assert_allclose(N.vmnorm(err, 1.0 / ewt), 1.0, rtol=RTOL)


# ═════════════════════════════════════════════════════════════════════
#  Weighted matrix norm  (fnorm)
# ═════════════════════════════════════════════════════════════════════

class TestFnorm:
    def test_identity(self):
        w = RNG.uniform(0.1, 10.0, 5)
        np.testing.assert_allclose(N.fnorm(np.eye(5), w), 1.0, rtol=RTOL)

    def test_explicit_formula(self):
        a = RNG.standard_normal((4, 4))
        w = RNG.uniform(0.1, 10.0, 4)
        expected = max(w[i] * sum(abs(a[i, j]) / w[j] for j in range(4)) for i in range(4))
        np.testing.assert_allclose(N.fnorm(a, w), expected, rtol=RTOL)

    def test_consistent_with_vmnorm(self):
        """fnorm is the operator norm induced by vmnorm."""
        a = RNG.standard_normal((6, 6))
        w = RNG.uniform(0.1, 10.0, 6)
        bound = N.fnorm(a, w)
        for _ in range(20):
            x = RNG.standard_normal(6)
            assert N.vmnorm(a @ x, w) <= bound * N.vmnorm(x, w) * (1 + 1e-12)


# ═════════════════════════════════════════════════════════════════════
#  Error weights and tolerance modes  (ewset)
# ═════════════════════════════════════════════════════════════════════

class TestEwset:
    def test_componentwise(self):
        y = np.array([1.0, -2.0, 0.0])
        rtol = np.array([1e-3, 1e-4, 1e-5])
        atol = np.array([1e-6, 1e-7, 1e-8])
        ewt = np.empty(3)
        N.ewset(y, rtol, atol, ewt)
        np.testing.assert_allclose(ewt, rtol * np.abs(y) + atol, rtol=RTOL)


class TestToleranceVectors:
    @pytest.mark.parametrize(
        "rtol, atol, itol",
        [
            (1e-6, 1e-8, 1),
            (1e-6, np.array([1e-8, 1e-9, 1e-10]), 2),
            (np.array([1e-6, 1e-5, 1e-4]), 1e-8, 3),
            (np.array([1e-6, 1e-5, 1e-4]), np.array([1e-8, 1e-9, 1e-10]), 4),
        ],
    )
    def test_modes(self, rtol, atol, itol):
        r, a, mode = N.tolerance_vectors(rtol, atol, 3)
        assert mode == itol
        assert r.shape == (3,) and a.shape == (3,)
        np.testing.assert_array_equal(r, np.broadcast_to(rtol, (3,)))
        np.testing.assert_array_equal(a, np.broadcast_to(atol, (3,)))

    def test_vectors_are_copies(self):
        atol = np.array([1e-8, 1e-9])
        _, a, _ = N.tolerance_vectors(1e-6, atol, 2)
        a[0] = 1.0
        assert atol[0] == 1e-8

    @pytest.mark.parametrize(
        "rtol, atol",
        [
            (np.array([1e-6, 1e-6]), 1e-8),
            (1e-6, np.ones(4)),
            (np.ones((3, 1)), 1e-8),
        ],
    )
    def test_bad_shapes(self, rtol, atol):
        assert N.tolerance_vectors(rtol, atol, 3) is None


class TestAssertEq:
    def test_returns_common_value(self):
        assert N.assertEq(3, 3, 3) == 3

    def test_raises(self):
        with pytest.raises(ValueError):
            N.assertEq(3, 4, msg="shape")
