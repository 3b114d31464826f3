"""
Tests for averaging estimates and for histogram estimation of marginals.
"""

import numpy as np
import pytest
from numpy.random import default_rng
from scipy import stats

import aggregators
import interesting_functions
from conftest import make_normal_sampler
from error_handling import PreconditionViolation
from unbiased_estimation import Trajectory, sample_trajectory

HISTOGRAM_COLUMNS = ["bin_lo", "bin_hi", "mid", "mass", "mass_sd", "mass_ci_lo", "mass_ci_hi",
                     "density", "density_ci_lo", "density_ci_hi"]


def met_trajectory(values):
    """Trajectory whose chains met at time 1, so H_bar is a plain average."""
    values = np.array(values, dtype=float)[:, np.newaxis]
    return Trajectory(values, values[1:], meeting_time=1, lag=1, cost=len(values))


class TestArithMean:

    def test_point_estimate(self):
        assert aggregators.arith_mean([1.0, 2.0, 6.0]) == pytest.approx(3.0)

    def test_bootstrap(self):
        x = default_rng(0).normal(size=400)
        est, sd, rmse, bt_est = aggregators.arith_mean(x, BT_size=200, true_val=0.0, rng=default_rng(1))
        assert est == pytest.approx(np.mean(x))
        assert bt_est.shape == (200,)
        assert sd == pytest.approx(1/np.sqrt(400), rel=0.3)
        assert rmse > 0

    def test_empty(self):
        with pytest.raises(PreconditionViolation):
            aggregators.arith_mean([])


class TestNormalCI:

    def test_known_values(self):
        est, se, lo, hi = aggregators.normal_ci([1.0, 2.0, 3.0, 4.0], level=0.95)
        assert est == pytest.approx(2.5)
        assert se == pytest.approx(np.std([1, 2, 3, 4], ddof=1)/2)
        assert hi - est == pytest.approx(stats.norm.ppf(0.975)*se)
        assert est - lo == pytest.approx(hi - est)

    def test_columns(self):
        x = np.array([[0.0, 1.0], [2.0, 1.0]])
        est, se, lo, hi = aggregators.normal_ci(x)
        np.testing.assert_allclose(est, [1.0, 1.0])
        assert se[1] == 0.0
        assert lo[1] == hi[1] == 1.0

    def test_single_replicate(self):
        est, se, lo, hi = aggregators.normal_ci([5.0])
        assert est == 5.0
        assert se == 0.0

    def test_empty(self):
        with pytest.raises(PreconditionViolation):
            aggregators.normal_ci(np.zeros((0, 3)))


class TestBins:

    def test_bin_indicators_half_open(self):
        h = interesting_functions.bin_indicators([0.0, 1.0, 2.0])
        np.testing.assert_array_equal(h(np.array([0.0])), [1.0, 0.0])
        np.testing.assert_array_equal(h(np.array([1.0])), [0.0, 1.0])
        np.testing.assert_array_equal(h(np.array([2.0])), [0.0, 0.0])
        np.testing.assert_array_equal(h(np.array([-0.1])), [0.0, 0.0])

    def test_indicator(self):
        h = interesting_functions.indicator(-1.0, 1.0)
        assert h(np.array([0.5])) == 1.0
        assert h(np.array([1.0])) == 0.0

    def test_find_breaks_covers_values(self):
        trajs = [met_trajectory([10.0, 0.0, 1.0]), met_trajectory([10.0, 3.0, 2.0])]
        edges = aggregators.find_breaks(trajs, 0, 3, 1)
        assert len(edges) == 4
        assert edges[0] == 0.0
        assert edges[-1] > 3.0
        assert edges[-1] < 3.0 + 1e-10


class TestHistogram:

    def test_deterministic_masses(self):
        trajs = [met_trajectory([0.5, 0.5, 1.5]), met_trajectory([0.5, 1.5, 1.5])]
        df = aggregators.histogram(trajs, 0, 1, 2, bins=[0.0, 1.0, 2.0])
        assert list(df.columns) == HISTOGRAM_COLUMNS
        np.testing.assert_allclose(df["mass"], [0.25, 0.75])
        np.testing.assert_allclose(df["density"], [0.25, 0.75])
        np.testing.assert_allclose(df["mid"], [0.5, 1.5])

    def test_interval_columns(self):
        trajs = [met_trajectory([0.5, 0.5, 1.5]), met_trajectory([0.5, 1.5, 1.5]),
                 met_trajectory([0.5, 0.5, 0.5])]
        edges = [0.0, 1.0, 3.0]
        df = aggregators.histogram(trajs, 0, 1, 2, bins=edges, level=0.9)
        z = stats.norm.ppf(0.95)
        widths = np.diff(edges)
        np.testing.assert_allclose(df["mass_ci_lo"], df["mass"] - z*df["mass_sd"])
        np.testing.assert_allclose(df["mass_ci_hi"], df["mass"] + z*df["mass_sd"])
        np.testing.assert_allclose(df["density_ci_lo"], df["mass_ci_lo"]/widths)
        np.testing.assert_allclose(df["density_ci_hi"], df["mass_ci_hi"]/widths)
        # masses of the second bin are 1/2, 1 and 0
        assert df["mass_sd"][1] == pytest.approx(0.5/np.sqrt(3))

    def test_number_of_bins(self):
        trajs = [met_trajectory([0.0, 0.2, 0.9, 0.4])]
        df = aggregators.histogram(trajs, 0, 1, 3, bins=5)
        assert len(df) == 5
        np.testing.assert_allclose(df["bin_hi"].to_numpy()[:-1], df["bin_lo"].to_numpy()[1:])
        assert df["mass"].sum() == pytest.approx(1.0)

    def test_empty(self):
        with pytest.raises(PreconditionViolation):
            aggregators.histogram([], 0, 1, 2)

    @pytest.mark.parametrize("bins", [0, [1.0], [0.0, 2.0, 1.0]])
    def test_invalid_bins(self, bins):
        trajs = [met_trajectory([0.0, 0.5, 1.0])]
        with pytest.raises(PreconditionViolation):
            aggregators.histogram(trajs, 0, 1, 2, bins=bins)

    def test_reconstructs_marginal(self):
        """Bin masses are close to the exact probabilities of a standard normal."""
        single_kernel, coupled_kernel, pi0 = make_normal_sampler(default_rng(7))
        trajs = [sample_trajectory(single_kernel, coupled_kernel, pi0, lag=1, m=100) for _ in range(1000)]
        edges = np.linspace(-4, 4, 26)
        df = aggregators.histogram(trajs, 0, 10, 100, bins=edges)
        exact = np.diff(stats.norm.cdf(edges))
        close = np.abs(df["mass"].to_numpy() - exact) <= 4*df["mass_sd"].to_numpy() + 2e-3
        assert np.mean(close) >= 0.9
        assert np.sum(df["mass"]) == pytest.approx(np.sum(exact), abs=0.05)

    def test_density_intervals_cover_normal_pdf(self):
        """Per-bin 95% intervals of the density contain the standard normal pdf
        at the bin midpoints for most bins."""
        single_kernel, coupled_kernel, pi0 = make_normal_sampler(default_rng(11))
        trajs = [sample_trajectory(single_kernel, coupled_kernel, pi0, lag=1, m=100) for _ in range(2000)]
        df = aggregators.histogram(trajs, 0, 10, 100, bins=np.linspace(-4, 4, 51))
        assert len(df) == 50
        pdf = stats.norm.pdf(df["mid"].to_numpy())
        inside = (df["density_ci_lo"].to_numpy() <= pdf) & (pdf <= df["density_ci_hi"].to_numpy())
        assert np.mean(inside) >= 0.9
        assert np.all(df["density_ci_lo"] <= df["density"])
        assert np.all(df["density"] <= df["density_ci_hi"])
