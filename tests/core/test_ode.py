"""
Tests for lsodasuite.core.ode: tabulated solutions on an output grid.
"""

import math

import numpy as np
import pytest

from lsodasuite.core.ode import ModelAdaptor, OdeResult, column_names, ode
from lsodasuite.liblsoda.options import LsodaOptions
from lsodasuite.liblsoda.status import IntegrationError, IState

RTOL = 1e-8
ATOL = 1e-10


# ─── Helper models ───────────────────────────────────────────────────

def _decay(t, y):
    return -y


def _decay_with_outputs(t, y):
    """Derivative followed by two derived outputs."""
    return np.array([-y[0], 2.0 * y[0], t])


def _lotka_volterra(t, y, a, b):
    x, z = y
    return np.array([a * x - b * x * z, -a * z + b * x * z])


def _lv_invariant(y, a, b):
    x, z = y[..., 0], y[..., 1]
    return b * x - a * np.log(x) + b * z - a * np.log(z)


# ═════════════════════════════════════════════════════════════════════
#  Table layout
# ═════════════════════════════════════════════════════════════════════

class TestTable:
    def test_shape_and_names(self):
        times = np.linspace(0.0, 2.0, 11)
        res = ode(_decay, [1.0, 2.0], times, rtol=RTOL, atol=ATOL)
        assert isinstance(res, OdeResult)
        assert res.table.shape == (11, 3)
        assert res.names == ["time", "y1", "y2"]
        assert res.istate == IState.CONTINUE
        np.testing.assert_array_equal(res.t, times)
        assert res.outputs.shape == (11, 0)

    def test_values(self):
        times = np.linspace(0.0, 2.0, 11)
        res = ode(_decay, [1.0, 2.0], times, rtol=RTOL, atol=ATOL)
        expected = np.exp(-times)[:, None] * np.array([1.0, 2.0])
        np.testing.assert_allclose(res.y, expected, rtol=1e-6)

    def test_first_row_is_initial_state(self):
        res = ode(_decay, [3.0], [0.5, 1.0])
        np.testing.assert_array_equal(res.table[0], [0.5, 3.0])

    def test_single_time(self):
        res = ode(_decay, [3.0], [0.0])
        assert res.table.shape == (1, 2)
        assert res.stats.nst == 0

    def test_y0_not_modified(self):
        y0 = np.array([1.0])
        ode(_decay, y0, [0.0, 1.0])
        assert y0[0] == 1.0

    def test_stats_attached(self):
        res = ode(_decay, [1.0], [0.0, 1.0])
        assert res.stats.nst > 0
        assert res.stats.nfe > res.stats.nst
        assert res.stats.tcur >= 1.0


class TestColumnNames:
    def test_states_only(self):
        assert column_names(2, 2) == ["time", "y1", "y2"]

    def test_derived_outputs(self):
        assert column_names(1, 3) == ["time", "y1", "res1", "res2"]


# ═════════════════════════════════════════════════════════════════════
#  Derived outputs
# ═════════════════════════════════════════════════════════════════════

class TestDerivedOutputs:
    def test_inferred_nout(self):
        times = np.linspace(0.0, 1.0, 6)
        res = ode(_decay_with_outputs, [1.0], times, rtol=RTOL, atol=ATOL)
        assert res.names == ["time", "y1", "res1", "res2"]
        np.testing.assert_allclose(res.outputs[:, 0], 2.0 * res.y[:, 0], rtol=1e-14)
        np.testing.assert_allclose(res.outputs[:, 1], times, rtol=1e-14)

    def test_explicit_nout(self):
        res = ode(_decay_with_outputs, [1.0], [0.0, 1.0], nout=3)
        assert res.table.shape == (2, 4)

    def test_nout_smaller_than_neq(self):
        with pytest.raises(ValueError):
            ode(_decay, [1.0, 2.0], [0.0, 1.0], nout=1)

    def test_wrong_length_from_model(self):
        with pytest.raises(ValueError):
            ode(_decay_with_outputs, [1.0], [0.0, 1.0], nout=2)


class TestModelAdaptor:
    def test_truncates_to_states(self):
        model = ModelAdaptor(_decay_with_outputs, 1, 3)
        np.testing.assert_array_equal(model(0.5, np.array([2.0])), [-2.0])
        np.testing.assert_array_equal(model.evaluate(0.5, np.array([2.0])), [-2.0, 4.0, 0.5])


# ═════════════════════════════════════════════════════════════════════
#  Arguments, grids and failures
# ═════════════════════════════════════════════════════════════════════

class TestDriver:
    def test_lotka_volterra_invariant(self):
        a, b = 1.0, 1.0
        times = np.linspace(0.0, 10.0, 51)
        res = ode(_lotka_volterra, [2.0, 1.0], times, rtol=RTOL, atol=ATOL, args=(a, b))
        h = _lv_invariant(res.y, a, b)
        np.testing.assert_allclose(h, h[0], rtol=1e-6)

    @pytest.mark.parametrize(
        "times",
        [np.array([0.0, 1.0, 1.0]), np.array([1.0, 0.0]), np.zeros((2, 2)), np.array([])],
    )
    def test_bad_grid(self, times):
        with pytest.raises(ValueError):
            ode(_decay, [1.0], times)

    def test_failure_carries_partial_table(self):
        def forcing(t, y):
            return np.array([math.cos(50.0 * t)])

        times = np.linspace(0.0, 10.0, 6)
        with pytest.raises(IntegrationError) as exc:
            ode(forcing, [0.0], times, rtol=1e-8, atol=1e-8, options=LsodaOptions(hmin=0.1))
        err = exc.value
        assert err.istate == IState.ERROR_TEST_FAILURE
        assert err.table.shape == (6, 2)
        np.testing.assert_array_equal(err.table[0], [0.0, 0.0])
        assert np.isnan(err.table[-1]).all()
