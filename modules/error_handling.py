"""
Exceptions and argument validation for the coupled-chain estimators.

Precondition violations are raised before any sampling happens, so that a
bad (k, m, lag) never costs a single kernel evaluation. Failure of two
chains to meet within the iteration budget is a separate exception type.
"""

import logging
logger = logging.getLogger(__name__)


class PreconditionViolation(ValueError):
    """Invalid arguments to a sampler, estimator or aggregator."""


class NonConvergence(RuntimeError):
    """Coupled chains did not meet within max_iterations."""

    def __init__(self, max_iterations, nIter, lag=None):
        self.max_iterations = max_iterations
        self.nIter = nIter
        self.lag = lag
        msg = "chains did not meet after %d iterations (max_iterations=%s" %(nIter, max_iterations)
        if lag is not None:
            msg += ", lag=%d" %lag
        msg += ")"
        RuntimeError.__init__(self, msg)


def validate_lag(lag, max_iterations=float("inf")):
    """
    Raises:
        PreconditionViolation: if lag or max_iterations is invalid
    """
    errors = []
    if lag < 0:
        errors.append("lag must be >= 0, got %s" %lag)
    if max_iterations < lag:
        errors.append("max_iterations (%s) must be >= lag (%s)" %(max_iterations, lag))
    if errors:
        raise PreconditionViolation("Invalid sampler arguments:\n  " + "\n  ".join(errors))


def validate_estimator_args(k, m, lag=1):
    """
    Checks the burn-in k, horizon m and lag of an unbiased estimator.

    Args:
        k: burn-in
        m: minimum number of iterations
        lag: lag between the two chains

    Raises:
        PreconditionViolation: listing every violated constraint
    """
    errors = []

    if k < 0:
        errors.append("k must be >= 0, got %s" %k)
    if k > m:
        errors.append("k (%s) must be <= m (%s)" %(k, m))
    # the correction weights are ceil((t-k)/lag), so lag=0 has no estimator
    if lag < 1:
        errors.append("lag must be >= 1 for estimation, got %s" %lag)
    if lag > m:
        errors.append("lag (%s) must be <= m (%s)" %(lag, m))

    if errors:
        logger.debug("rejected estimator arguments k=%s m=%s lag=%s", k, m, lag)
        raise PreconditionViolation("Invalid estimator arguments:\n  " + "\n  ".join(errors))
