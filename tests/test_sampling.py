"""
Tests for the single and coupled random-walk Metropolis-Hastings kernels.
"""

import numpy as np
import pytest
from numpy.random import default_rng

import sampling
import targets
from sampling import ChainState
from error_handling import PreconditionViolation
from conftest import independent_coupling


def uniform_logtarget(x):
    """Uniform density on [0, 1]."""
    return 0.0 if 0.0 <= x[0] <= 1.0 else -np.inf


class CountingTarget:
    def __init__(self, logtarget):
        self.logtarget = logtarget
        self.calls = 0

    def __call__(self, x):
        self.calls += 1
        return self.logtarget(x)


class TestChainState:

    def test_position_is_float_vector(self):
        state = ChainState(2, 0.0)
        assert state.position.shape == (1,)
        assert state.position.dtype == float

    def test_copy_is_independent(self):
        state = ChainState([1.0, 2.0], -1.0)
        other = state.copy()
        other.position[0] = 5.0
        assert state.position[0] == 1.0
        assert other.current_pdf == state.current_pdf

    def test_equals_is_exact(self):
        assert ChainState([1.0, 2.0], 0.0).equals(ChainState([1.0, 2.0], 3.0))
        assert not ChainState([1.0, 2.0], 0.0).equals(ChainState([1.0, 2.0 + 1e-15], 0.0))


class TestSingleKernel:

    def test_rejects_outside_support(self, rng):
        state = ChainState([0.5], 0.0)
        for _ in range(500):
            state = sampling.mh_step_single(state, uniform_logtarget, 5.0, rng)
            assert 0.0 <= state.position[0] <= 1.0
            assert np.isfinite(state.current_pdf)

    def test_rejects_nan_density(self, rng):
        state = ChainState([0.0], 0.0)
        logtarget = lambda x: np.nan
        for _ in range(20):
            assert sampling.mh_step_single(state, logtarget, 1.0, rng) is state

    def test_stationary_mean_and_variance(self):
        rng = default_rng(3)
        logtarget = targets.normal_logtarget(1.0, 2.0)
        state = ChainState([1.0], logtarget(np.array([1.0])))
        xs = np.zeros(20000)
        for i in range(len(xs)):
            state = sampling.mh_step_single(state, logtarget, 3.0, rng)
            xs[i] = state.position[0]
        assert np.mean(xs) == pytest.approx(1.0, abs=0.25)
        assert np.var(xs) == pytest.approx(4.0, rel=0.2)

    def test_pi0_caches_density(self, rng):
        logtarget = targets.normal_logtarget(0.0, 1.0)
        state = sampling.pi0(logtarget, rng, 2.0, 1.0, 3)
        assert state.position.shape == (3,)
        assert state.current_pdf == pytest.approx(logtarget(state.position))


class TestCoupledKernel:

    @pytest.mark.parametrize("coupling", ["Maximal", "cMaximal", "Reflection"])
    def test_met_chains_stay_together(self, rng, coupling):
        logtarget = targets.normal_logtarget(0.0, 1.0)
        state = ChainState([0.3], logtarget(np.array([0.3])))
        state1, state2 = state, state.copy()
        for _ in range(200):
            state1, state2, identical = sampling.mh_step_couple(state1, state2, logtarget, 1.0, rng, coupling)
            assert identical
            assert state1.equals(state2)

    def test_identical_proposals_evaluate_target_once(self, rng):
        logtarget = CountingTarget(targets.normal_logtarget(0.0, 1.0))
        state = ChainState([0.1], -0.5)
        sampling.mh_step_couple(state, state.copy(), logtarget, 1.0, rng, "Maximal")
        assert logtarget.calls == 1

    def test_distinct_proposals_evaluate_target_twice(self, rng):
        logtarget = CountingTarget(targets.normal_logtarget(0.0, 1.0))
        state1, state2 = ChainState([0.1], -0.5), ChainState([2.0], -2.5)
        sampling.mh_step_couple(state1, state2, logtarget, 1.0, rng, independent_coupling)
        assert logtarget.calls == 2

    def test_shared_uniform(self, rng):
        """Equal log ratios in both chains give the same accept decision."""
        def copied_proposal(rng, mu1, mu2, sigma1, sigma2):
            x = rng.normal(mu1, sigma1)
            return x, np.copy(x), False

        logtarget = targets.normal_logtarget(0.0, 1.0)
        state1 = ChainState([0.5], logtarget(np.array([0.5])))
        state2 = ChainState([0.5], logtarget(np.array([0.5])))
        nAccept = 0
        for _ in range(300):
            new1, new2, identical = sampling.mh_step_couple(state1, state2, logtarget, 2.0, rng, copied_proposal)
            accept1, accept2 = new1 is not state1, new2 is not state2
            assert accept1 == accept2
            # both accepted non-identical proposals
            assert identical == (not accept1)
            nAccept += accept1
        assert 0 < nAccept < 300

    def test_rejects_outside_support(self, rng):
        state1, state2 = ChainState([0.2], 0.0), ChainState([0.8], 0.0)
        for _ in range(300):
            state1, state2, _ = sampling.mh_step_couple(state1, state2, uniform_logtarget, 3.0, rng)
            assert 0.0 <= state1.position[0] <= 1.0
            assert 0.0 <= state2.position[0] <= 1.0

    def test_unknown_coupling(self, rng):
        logtarget = targets.normal_logtarget(0.0, 1.0)
        with pytest.raises(PreconditionViolation):
            sampling.get_mh_kernel(logtarget, 1.0, rng, "Optimal")

    def test_forward_one_chain(self, rng):
        logtarget = targets.normal_logtarget(0.0, 1.0)
        single_kernel, _ = sampling.get_mh_kernel(logtarget, 1.0, rng)
        state = ChainState([0.0], logtarget(np.zeros(1)))
        states = sampling.forward_one_chain(4, single_kernel, state)
        assert len(states) == 5
        assert states[0] is state
