"""
Log densities of the target distributions used with the random-walk
Metropolis-Hastings kernel.
"""

import numpy as np


def diagNormal(x, mu1, S1):
    """
    Inputs:
        x: (D,) array, location to evaluate normal density
        mu1: (D,) array, mean of the normal
        S1: (D,) array, variance of the normal

    Output:
        lpdf: scalar, log pdf of multivariate normal density at
        x with mean mu1 and diagonal covariance S1
    """
    logNormConsts = -0.5*np.log(2*np.pi*S1)
    LL = -0.5*np.square(x - mu1)/S1
    # S1 may be a scalar shared by all D coordinates
    lpdf = np.sum(logNormConsts + LL)
    return lpdf


def normal_logtarget(mean=0.0, sd=1.0):
    """
    Returns a function evaluating the log density of a normal distribution with
    diagonal covariance. mean and sd broadcast against the chain position.
    """
    mean = np.asarray(mean, dtype=float)
    var = np.square(np.asarray(sd, dtype=float))
    return lambda x: diagNormal(x, mean, var)


def mixture_logtarget(means, sds, weights=None):
    """
    Log density of a one dimensional Gaussian mixture, evaluated at x[0].

    Inputs:
        means: (K,) array, component means
        sds: (K,) array, component standard deviations
        weights: (K,) array or None, mixing proportions (uniform if None)
    """
    means = np.asarray(means, dtype=float)
    sds = np.asarray(sds, dtype=float)
    K = len(means)
    if weights is None:
        weights = np.full(K, 1./K)
    logWeights = np.log(np.asarray(weights, dtype=float))
    logNormConsts = -0.5*np.log(2*np.pi) - np.log(sds)

    def logtarget(x):
        x0 = np.ravel(x)[0]
        logComps = logWeights + logNormConsts - 0.5*np.square((x0 - means)/sds)
        maxLog = np.max(logComps)
        return maxLog + np.log(np.sum(np.exp(logComps - maxLog)))

    return logtarget
