"""
Pytest configuration and shared fixtures for the coupled-chain tests.
"""

import pytest
import numpy as np
from numpy.random import default_rng

import sampling
import targets


@pytest.fixture
def rng():
    """Default random stream for reproducible tests."""
    return default_rng(20201)


def make_normal_sampler(rng, proposalSd=1.0, initMean=3.0, initSd=1.0, coupling="Maximal"):
    """Random-walk MH for a standard normal target, started away from the target."""
    logtarget = targets.normal_logtarget(0.0, 1.0)
    single_kernel, coupled_kernel = sampling.get_mh_kernel(logtarget, proposalSd, rng, coupling)
    pi0 = sampling.make_pi0(logtarget, rng, initMean, initSd, 1)
    return single_kernel, coupled_kernel, pi0


@pytest.fixture
def normal_sampler(rng):
    return make_normal_sampler(rng)


def independent_coupling(rng, mu1, mu2, sigma1, sigma2):
    """Coupling that never produces identical proposals."""
    return rng.normal(mu1, sigma1), rng.normal(mu2, sigma2), False
