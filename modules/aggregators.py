## Combining independent unbiased estimates across replicates.

import numpy as np
from numpy.random import default_rng
import pandas as pd
from scipy import stats

import interesting_functions
from error_handling import PreconditionViolation
from unbiased_estimation import H_bar

## ----------------------------------------------------------------------
## given Monte Carlo samples, how to combine them?

## simple arithmetic mean
def arith_mean(x, BT_size=None, true_val=None, rng=None):
    """
    Inputs:
        x: (N,) array, realizations of some r.v.
        BT_size: scalar (or None), number of bootstrap samples
        true_val: scalar, reference point to compute RMSE
        rng: Generator or None, used for bootstrap resampling
    Outputs:
        est: scalar, point estimate based on original sample
        if BT_size not None
            sd: scalar, standard deviation based on BT_size bootstrap samples
            rmse: scalar, bootstrap estimate of RMSE
            bt_est: (BT_size,), bootstrap samples
    """
    x = np.asarray(x, dtype=float)
    N = len(x)
    if N == 0:
        raise PreconditionViolation("cannot average an empty collection of estimates")
    est = np.mean(x)

    if not (BT_size is None):
        if rng is None:
            rng = default_rng(42)
        samples = rng.choice(x, size=(BT_size, N)) # each bootstrap sample is in a row
        bt_est = np.mean(samples, axis=1)
        sd = np.std(bt_est)
        if (true_val is None):
            rmse = None
        else:
            rmse = np.sqrt(np.mean(np.square(bt_est-true_val)))
        return est, sd, rmse, bt_est
    else:
        return est

def normal_ci(x, level=0.95):
    """
    Normal approximation confidence interval for the mean of independent
    estimates, separately for each coordinate.

    Inputs:
        x: (N,) or (N,M) array of estimates, one row per replicate
        level: scalar, coverage of the interval
    Outputs:
        est, se, lo, hi: scalars or (M,) arrays
    """
    x = np.asarray(x, dtype=float)
    if x.ndim == 0 or x.shape[0] == 0:
        raise PreconditionViolation("cannot average an empty collection of estimates")
    N = x.shape[0]
    est = np.mean(x, axis=0)
    if N > 1:
        se = np.std(x, axis=0, ddof=1)/np.sqrt(N)
    else:
        se = np.zeros_like(est)
    z = stats.norm.ppf(0.5 + level/2)
    return est, se, est - z*se, est + z*se

## ----------------------------------------------------------------------
## histograms of marginals

def find_breaks(trajectories, component, nclass, k):
    """
    Equally spaced bin edges covering the values of the component visited by
    the X chains from iteration k onwards.
    """
    values = np.concatenate([traj.history1[k:, component] for traj in trajectories])
    lo, hi = np.min(values), np.max(values)
    if lo == hi:
        lo, hi = lo - 0.5, hi + 0.5
    edges = np.linspace(lo, hi, nclass + 1)
    # bins are half-open, make sure the largest value falls in the last bin
    edges[-1] = np.nextafter(hi, np.inf)
    return edges

def histogram(trajectories, component, k, m, bins=30, level=0.95):
    """
    Unbiased estimates of the probabilities of bins under the marginal of a
    component of the target, from independent coupled trajectories.

    Each bin's mass is estimated with H_bar applied to the bin indicator, and
    averaged across trajectories. Intervals are normal approximations for each
    bin separately; they are not a simultaneous band over all bins.

    Inputs:
        trajectories: list of Trajectory, independent replicates
        component: index of the coordinate
        k, m: burn-in and minimum number of iterations of H_bar
        bins: int (number of equally spaced bins over the visited range)
            or (B+1,) increasing array of bin edges
        level: scalar, coverage of the per-bin intervals

    Outputs:
        df: pd.DataFrame with one row per bin and columns
            bin_lo, bin_hi, mid, mass, mass_sd, mass_ci_lo, mass_ci_hi,
            density, density_ci_lo, density_ci_hi
    """
    if len(trajectories) == 0:
        raise PreconditionViolation("histogram needs at least one trajectory")

    if np.ndim(bins) == 0:
        if int(bins) < 1:
            raise PreconditionViolation("number of bins must be >= 1, got %s" %bins)
        edges = find_breaks(trajectories, component, int(bins), k)
    else:
        edges = np.asarray(bins, dtype=float)
        if edges.ndim != 1 or len(edges) < 2 or np.any(np.diff(edges) <= 0):
            raise PreconditionViolation("bin edges must be an increasing array with at least two entries")

    h = interesting_functions.bin_indicators(edges, component)
    ests = np.array([H_bar(traj, h, k, m) for traj in trajectories]) # (R, B)

    mass, mass_sd, mass_lo, mass_hi = normal_ci(ests, level)
    widths = np.diff(edges)
    df = pd.DataFrame({"bin_lo": edges[:-1],
                       "bin_hi": edges[1:],
                       "mid": 0.5*(edges[:-1] + edges[1:]),
                       "mass": mass,
                       "mass_sd": mass_sd,
                       "mass_ci_lo": mass_lo,
                       "mass_ci_hi": mass_hi,
                       "density": mass/widths,
                       "density_ci_lo": mass_lo/widths,
                       "density_ci_hi": mass_hi/widths})
    return df
