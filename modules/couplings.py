## Known issues:
## - the rejection loop in c_maximal has no iteration cap. Capping it would change
## the distribution of Y, so we only warn; use c < 1 to bound the expected number
## of tries.

import copy
import warnings
import numpy as np
from scipy import stats

import targets
from error_handling import PreconditionViolation

MAX_STEPS = 100

DEFAULT_C = 0.95

def c_maximal(c, rng, rXdist, lpdfXdist, rYdist, lpdfYdist):
    """
    c-maximal coupling is a sub-optimal maximal coupling (which maximizes the probability
    that rvs exactly equal each other) but with a time-until-sample that has a variance
    independent of how close the two distributions are. With c = 1 this is the usual
    rejection sampler for the maximal coupling.

    Reference:
        Jacob 2020, Mathieu Gerber and Anthony Lee discussion.

    Inputs:
        c: scalar in (0, 1]
        rng: Generator
        rXdist: lambda function, taking in Generator to draw samples from the X distribution
        lpdfXdist: lambda function to evaluate log pdf of the X distribution
        rYdist: lambda function to draw samples from the Y distribution
        lpdfYdist: lambda function to evaluate log pdf of the Y distribution

    Output:
        X, Y: samples with the right marginals
        isEqual: boolean, whether Y is a copy of X
    """
    if not (0.0 < c <= 1.0):
        raise PreconditionViolation("c must be in (0, 1], got %s" %c)

    X = rXdist(rng)
    isEqual = False

    W = np.exp(min(np.log(c), lpdfYdist(X)-lpdfXdist(X)))
    U = rng.uniform()
    if (U <= W):
        Y = copy.deepcopy(X)
        isEqual = True
    else:
        it = 0
        while (True):
            Ystar = rYdist(rng)
            Wstar = rng.uniform()
            it += 1
            criterion = np.log(Wstar) - np.log(c) - lpdfXdist(Ystar) + lpdfYdist(Ystar)
            if (criterion > 0):
                Y = Ystar
                break
        if (it > MAX_STEPS):
            warnings.warn("rejection sampling in c-maximal finished, but took more than %d tries" %MAX_STEPS)
    return X, Y, isEqual

def max_coupling_normal(rng, mu1, mu2, sigma1, sigma2):
    """
    Maximal coupling of N(mu1, sigma1^2) and N(mu2, sigma2^2). Means may be
    scalars or (D,) arrays, in which case the scales are diagonal standard
    deviations.

    P(isEqual) is 1 - TV between the two normals.

    Inputs:
        rng: Generator
        mu1, mu2: scalars or (D,) arrays, means
        sigma1, sigma2: scalars or (D,) arrays, standard deviations
    Outputs:
        X, Y, isEqual
    """
    S1, S2 = np.square(sigma1), np.square(sigma2)
    lpdfXdist = lambda x: targets.diagNormal(x, mu1, S1)
    rXdist = lambda rng: rng.normal(loc=mu1, scale=sigma1)

    lpdfYdist = lambda x: targets.diagNormal(x, mu2, S2)
    rYdist = lambda rng: rng.normal(loc=mu2, scale=sigma2)

    if np.array_equal(mu1, mu2) and np.array_equal(sigma1, sigma2):
        X = rXdist(rng)
        Y = copy.deepcopy(X)
        isEqual = True
    else:
        X, Y, isEqual = c_maximal(1.0, rng, rXdist, lpdfXdist, rYdist, lpdfYdist)
    return X, Y, isEqual

def c_maximal_diag_normal(rng, mu1, S1, mu2, S2, c=DEFAULT_C):
    """
    Specialized version of c_maximal for multivariate normals
    with diagonal covariances

    Inputs:
        rng: Generator
        mu1: (D,) array, mean of first normal
        S1: (D,) array, variance of first normal
        mu2, S2: same for the second normal
        c: scalar, see c_maximal
    """

    lpdfXdist = lambda x: targets.diagNormal(x, mu1, S1)
    rXdist = lambda rng: rng.normal(loc=mu1, scale=np.sqrt(S1))

    lpdfYdist = lambda x: targets.diagNormal(x, mu2, S2)
    rYdist = lambda rng: rng.normal(loc=mu2, scale=np.sqrt(S2))

    # c-maximal coupling is not faithful for c < 1, so identical distributions
    # are coupled exactly
    if np.array_equal(mu1, mu2) and np.array_equal(S1, S2):
        X = rXdist(rng)
        Y = copy.deepcopy(X)
        isEqual = True
    else:
        X, Y, isEqual = c_maximal(c, rng, rXdist, lpdfXdist, rYdist, lpdfYdist)
    return X, Y, isEqual

def reflection_max_coupling(rng, mu1, mu2, sigma):
    """
    Reflection-maximal coupling of N(mu1, diag(sigma^2)) and N(mu2, diag(sigma^2)).
    Unlike c_maximal, there is no rejection loop: exactly two random draws
    (a standard normal vector and a uniform) are consumed.

    Reference:
        Bou-Rabee, Eberle and Zimmer 2020; Jacob 2020 section 4.

    Inputs:
        rng: Generator
        mu1, mu2: scalars or (D,) arrays, means
        sigma: scalar or (D,) array, common standard deviation
    Outputs:
        X, Y, isEqual
    """
    mu1 = np.asarray(mu1, dtype=float)
    mu2 = np.asarray(mu2, dtype=float)
    scaledDiff = (mu1 - mu2)/sigma
    normDiff = np.sqrt(np.sum(np.square(scaledDiff)))

    xdot = rng.standard_normal(size=mu1.shape)
    X = mu1 + sigma*xdot
    if normDiff == 0:
        return X, copy.deepcopy(X), True

    e = scaledDiff/normDiff
    logU = np.log(rng.uniform())
    logRatio = -0.5*np.sum(np.square(xdot + scaledDiff)) + 0.5*np.sum(np.square(xdot))
    if (logU <= logRatio):
        Y = copy.deepcopy(X)
        isEqual = True
    else:
        ydot = xdot - 2*np.sum(e*xdot)*e
        Y = mu2 + sigma*ydot
        isEqual = False
    return X, Y, isEqual

def tv_distance_normal(mu1, mu2, sigma1, sigma2):
    """
    Total variation distance between N(mu1, sigma1^2) and N(mu2, sigma2^2).

    The densities cross at most twice; TV is the difference in mass the two
    distributions put on the region where the first density dominates.
    """
    if sigma1 == sigma2:
        if mu1 == mu2:
            return 0.0
        return 2*stats.norm.cdf(abs(mu1 - mu2)/(2*sigma1)) - 1

    # log N(x; mu1, sigma1) - log N(x; mu2, sigma2) = 0 as a quadratic in x
    a = 1/(2*sigma1**2) - 1/(2*sigma2**2)
    b = mu2/sigma2**2 - mu1/sigma1**2
    c = mu1**2/(2*sigma1**2) - mu2**2/(2*sigma2**2) + np.log(sigma1/sigma2)
    disc = np.sqrt(b**2 - 4*a*c)
    r1, r2 = sorted([(-b - disc)/(2*a), (-b + disc)/(2*a)])

    mass1 = stats.norm.cdf(r2, mu1, sigma1) - stats.norm.cdf(r1, mu1, sigma1)
    mass2 = stats.norm.cdf(r2, mu2, sigma2) - stats.norm.cdf(r1, mu2, sigma2)
    return abs(mass1 - mass2)

def reflection_coupling_normal(rng, mu1, mu2, sigma1, sigma2):
    if not np.array_equal(sigma1, sigma2):
        raise PreconditionViolation("reflection coupling needs equal scales, got %s and %s" %(sigma1, sigma2))
    return reflection_max_coupling(rng, mu1, mu2, sigma1)

# couplings of normal proposals, with signature (rng, mean1, mean2, scale1, scale2)
COUPLINGS = {"Maximal": max_coupling_normal,
             "cMaximal": lambda rng, mu1, mu2, sigma1, sigma2: c_maximal_diag_normal(
                 rng, mu1, np.square(sigma1), mu2, np.square(sigma2)),
             "Reflection": reflection_coupling_normal}
