"""unbiased_estimation.py provides utilities for unbiased estimation following (1)
and its lagged version (2).

References:
(1) Jacob, Pierre E., John O’Leary, and Yves F. Atchadé. "Unbiased Markov chain
    Monte Carlo methods with couplings." Journal of the Royal Statistical Society:
    Series B (Statistical Methodology) 82.3 (2020)
(2) Biswas, Niloy, Pierre E. Jacob, and Paul Vanetti. "Estimating convergence of
    Markov chains with L-lag couplings." NeurIPS (2019)
"""
import logging
import math
import time
import numpy as np

from error_handling import (PreconditionViolation, NonConvergence,
                            validate_lag, validate_estimator_args)
from sampling import forward_one_chain

logger = logging.getLogger(__name__)

class MeetingRecord():
    def __init__(self, meeting_time, cost, timeTaken):
        self.meeting_time = meeting_time
        self.cost = cost
        self.timeTaken = timeTaken

    def __repr__(self):
        return "MeetingRecord(meeting_time=%d, cost=%d)" %(self.meeting_time, self.cost)

class Trajectory():
    """
    Recorded states of two lagged chains.

    history1 holds X_0, ..., X_T and history2 holds Y_0, ..., Y_{T-lag}, where
    T = nIter = max(meeting_time, m). For t >= meeting_time,
    history1[t] == history2[t-lag] exactly.
    """
    def __init__(self, history1, history2, meeting_time, lag, cost, timeTaken=0.0):
        self.history1 = np.array(history1, dtype=float)
        self.history2 = np.array(history2, dtype=float)
        self.history1.setflags(write=False)
        self.history2.setflags(write=False)
        self.meeting_time = meeting_time
        self.lag = lag
        self.cost = cost
        self.timeTaken = timeTaken

    @property
    def nIter(self):
        return self.history1.shape[0] - 1

    def check_coalescence(self):
        """whether X_t == Y_{t-lag} for every recorded t >= meeting_time"""
        tau, lag = self.meeting_time, self.lag
        return np.array_equal(self.history1[tau:], self.history2[tau-lag:])

    def __repr__(self):
        return "Trajectory(meeting_time=%d, lag=%d, nIter=%d)" %(self.meeting_time, self.lag, self.nIter)

class UnbiasedEstimate():
    def __init__(self, value, cost, meeting_time, mcmc_estimate, correction, nIter, timeTaken=0.0):
        self.value = value
        self.cost = cost
        self.meeting_time = meeting_time
        self.mcmc_estimate = mcmc_estimate
        self.correction = correction
        self.nIter = nIter
        self.timeTaken = timeTaken

    def __repr__(self):
        return "UnbiasedEstimate(value=%s, cost=%d, meeting_time=%d)" %(self.value, self.cost, self.meeting_time)

def coupling_cost(lag, tau, nIter):
    """number of single-kernel evaluations, each coupled step counting as two"""
    return lag + 2*(tau - lag) + max(0, nIter - tau)

def sample_meeting_time(single_kernel, coupled_kernel, pi0, lag=1, max_iterations=np.inf):
    """sample_meeting_time runs the X chain lag steps ahead of the Y chain, then
    runs the coupled kernel until the chains meet.

    Args:
        single_kernel: marginal transition
        coupled_kernel: coupled transition, returns (state1, state2, identical)
        pi0: initial distribution, function with no arguments
        lag: number of steps X is run ahead
        max_iterations: maximum value of the time counter before giving up

    Returns:
        MeetingRecord, meeting time tau = inf{t >= lag : X_t = Y_{t-lag}}

    Raises:
        NonConvergence: if the chains have not met after max_iterations
    """
    validate_lag(lag, max_iterations)
    st = time.process_time()
    state1, state2 = pi0(), pi0()
    state1 = forward_one_chain(lag, single_kernel, state1)[-1]

    t = lag
    # the two chains could be identical by chance
    tau = lag if state1.equals(state2) else None
    while tau is None:
        if t >= max_iterations:
            raise NonConvergence(max_iterations, t, lag)
        t += 1
        state1, state2, identical = coupled_kernel(state1, state2)
        if identical:
            tau = t
    timeTaken = time.process_time() - st
    logger.debug("chains met at tau=%d (lag=%d)", tau, lag)
    return MeetingRecord(tau, coupling_cost(lag, tau, tau), timeTaken)

def sample_trajectory(single_kernel, coupled_kernel, pi0, lag=1, m=1, max_iterations=np.inf):
    """sample_trajectory runs two lagged coupled chains for at least m steps and
    until they meet, recording the states of both chains.

    Once the chains have met, only the marginal transition is run, and the
    new state is stored in both histories (faithfulness).

    Args:
        single_kernel: marginal transition
        coupled_kernel: coupled transition
        pi0: initial distribution
        lag: number of steps X is run ahead
        m: minimum number of iterations
        max_iterations: maximum value of the time counter before meeting

    Returns:
        Trajectory

    Raises:
        NonConvergence: if the chains have not met after max_iterations
    """
    validate_lag(lag, max_iterations)
    if m < lag:
        raise PreconditionViolation("m (%s) must be >= lag (%s)" %(m, lag))

    st = time.process_time()
    # Sample X_0 and Y_0, and advance X by lag steps
    X0, Y0 = pi0(), pi0()
    X = forward_one_chain(lag, single_kernel, X0)
    Y = [Y0]

    t = lag
    tau = lag if X[-1].equals(Y[-1]) else None
    while (tau is None) or (t < m):
        if (tau is None) and (t >= max_iterations):
            raise NonConvergence(max_iterations, t, lag)
        t += 1
        if tau is None:
            # until chains have met, run double transition
            Xt, Yt, identical = coupled_kernel(X[-1], Y[-1])
            if identical:
                tau = t
        else:
            # once chains have met, we only need marginal due to faithfulness
            Xt = single_kernel(X[-1])
            Yt = Xt
        X.append(Xt)
        Y.append(Yt)

    timeTaken = time.process_time() - st
    history1 = [state.position for state in X]
    history2 = [state.position for state in Y]
    return Trajectory(history1, history2, tau, lag, coupling_cost(lag, tau, t), timeTaken)

def correction_weight(t, k, m, lag):
    """weight of h(X_t) - h(Y_{t-lag}) in the bias correction"""
    return min(1.0, math.ceil((t - k)/lag)/(m - k + 1))

def H_bar(trajectory, h, k, m):
    """computes an unbiased estimate from two coupled chains following
    equation 2.1 of Jacob 2020 (1), with lag L as in (2):

    H_{k:m} = (m-k+1)^{-1} sum_{t=k}^{m} h(X_t)
        + sum_{t=k+L}^{tau-1} min(1, ceil((t-k)/L)/(m-k+1)) (h(X_t) - h(Y_{t-L}))

    With k = m this reduces to h(X_k) plus the sum of all differences.

    Args:
        trajectory: Trajectory
        h: function of state, want to estimate E[h]. May return an array.
        k: burn-in
        m: minimum number of iterations

    Returns:
        estimate, scalar or array with the shape of h(x)
    """
    lag, tau = trajectory.lag, trajectory.meeting_time
    validate_estimator_args(k, m, lag)
    if m > trajectory.nIter:
        raise PreconditionViolation("m (%d) exceeds the trajectory horizon (%d)" %(m, trajectory.nIter))
    X, Y = trajectory.history1, trajectory.history2

    # compute first term (usual MCMC estimate)
    term1 = np.mean([h(x) for x in X[k:m+1]], axis=0) # X_k to X_m

    # compute second term (bias correction), terms with t >= tau are zero
    ls = np.arange(k+lag, tau)
    if len(ls) == 0:
        return term1
    term2_scalings = np.array([correction_weight(l, k, m, lag) for l in ls])
    term2_diffs = np.array([np.asarray(h(X[l]), dtype=float) - np.asarray(h(Y[l-lag]), dtype=float) for l in ls])
    term2 = np.tensordot(term2_scalings, term2_diffs, axes=[[0],[0]])

    return term1 + term2

def online_estimator(single_kernel, coupled_kernel, pi0, h, k, m, lag=1, max_iterations=np.inf):
    """online_estimator computes the same estimator as H_bar while the chains are
    run, keeping only the current states instead of the whole trajectory.

    For a given random stream, the kernels are called in the same order as in
    sample_trajectory, so both routes give the same value.

    Returns:
        UnbiasedEstimate

    Raises:
        PreconditionViolation: before any sampling, for invalid (k, m, lag)
        NonConvergence: if the chains have not met after max_iterations
    """
    validate_estimator_args(k, m, lag)
    validate_lag(lag, max_iterations)
    st = time.process_time()

    state1, state2 = pi0(), pi0()
    # mcmcSum accumulates h(X_t) for t = k, ..., m
    mcmcSum = 0.0
    if k == 0:
        mcmcSum = mcmcSum + np.asarray(h(state1.position), dtype=float)
    correction = 0.0

    t = 0
    for _ in range(lag):
        t += 1
        state1 = single_kernel(state1)
        if k <= t <= m:
            mcmcSum = mcmcSum + np.asarray(h(state1.position), dtype=float)

    tau = lag if state1.equals(state2) else None
    if (tau is None) and (k == 0):
        # without burn-in the correction starts with h(X_lag) - h(Y_0)
        delta = np.asarray(h(state1.position), dtype=float) - np.asarray(h(state2.position), dtype=float)
        correction = correction + correction_weight(lag, k, m, lag)*delta
    # time t is lag here; we now generate X_t, Y_{t-lag} for t = lag+1, lag+2, ...
    while (tau is None) or (t < m):
        if (tau is None) and (t >= max_iterations):
            raise NonConvergence(max_iterations, t, lag)
        t += 1
        if tau is None:
            state1, state2, identical = coupled_kernel(state1, state2)
            if identical:
                tau = t
            elif t >= k + lag:
                delta = np.asarray(h(state1.position), dtype=float) - np.asarray(h(state2.position), dtype=float)
                correction = correction + correction_weight(t, k, m, lag)*delta
        else:
            state1 = single_kernel(state1)
            state2 = state1
        if k <= t <= m:
            mcmcSum = mcmcSum + np.asarray(h(state1.position), dtype=float)

    mcmcEstimate = mcmcSum/(m - k + 1)
    timeTaken = time.process_time() - st
    return UnbiasedEstimate(mcmcEstimate + correction, coupling_cost(lag, tau, t), tau,
                            mcmcEstimate, correction, t, timeTaken)

def usual_mcmc_est(single_kernel, pi0, h, k, m):
    """
    Usual (biased) MCMC estimate for comparison: ergodic average of h over X_k, ..., X_m.

    Outputs:
        (X, mean): states of the chain (as a list) and ergodic average
    """
    if k > m:
        raise PreconditionViolation("k (%s) must be <= m (%s)" %(k, m))
    X = forward_one_chain(m, single_kernel, pi0())
    mean = np.mean([h(x.position) for x in X[k:]], axis=0)
    return X, mean

def tv_upper_bound(meeting_times, lag, t):
    """
    Upper bound on the total variation distance between the law of X_t and the
    target, from independent meeting times of L-lag couplings (2):

        TV(pi_t, pi) <= E[max(0, ceil((tau - L - t)/L))]

    Inputs:
        meeting_times: (R,) array of meeting times
        lag: scalar L
        t: scalar or (T,) array of iterations
    Outputs:
        bound, scalar or (T,) array
    """
    meeting_times = np.asarray(meeting_times, dtype=float)
    if meeting_times.size == 0:
        raise PreconditionViolation("need at least one meeting time")
    if lag < 1:
        raise PreconditionViolation("lag must be >= 1, got %s" %lag)
    ts = np.atleast_1d(np.asarray(t, dtype=float))
    counts = np.maximum(0, np.ceil((meeting_times[:,np.newaxis] - lag - ts[np.newaxis,:])/lag))
    bounds = np.mean(counts, axis=0)
    if np.ndim(t) == 0:
        return bounds[0]
    return bounds
