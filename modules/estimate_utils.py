"""
Build targets, kernels, initial distributions and functions of interest from
experiment settings, and run independent replicates.
"""

# Standard libaries
import logging
import time
from multiprocessing import Pool
import numpy as np
from numpy.random import SeedSequence, default_rng

# our implementation
import interesting_functions
import names_and_parser
import sampling
import targets
from error_handling import NonConvergence, PreconditionViolation
from unbiased_estimation import online_estimator, sample_meeting_time, usual_mcmc_est

logger = logging.getLogger(__name__)

DEFAULT_BURNIN_RATIO=0.1

## ----------------------------------------------------------------------
## targets and kernels

def make_logtarget(modelArgs):
    """
    Returns:
        logtarget: function of the (D,) position
        dim: dimension D of the state space
    """
    if (modelArgs["target"] == "normal"):
        logtarget = targets.normal_logtarget(modelArgs["mean"], modelArgs["sd"])
        dim = modelArgs["dim"]
    elif (modelArgs["target"] == "mixture"):
        logtarget = targets.mixture_logtarget(modelArgs["means"], modelArgs["sds"], modelArgs.get("weights"))
        dim = 1
    else:
        raise PreconditionViolation("unknown target %s" %modelArgs["target"])
    return logtarget, dim

def make_sampler(modelArgs, samplerArgs, rng):
    """
    Returns:
        single_kernel, coupled_kernel, pi0 sharing the random stream rng
    """
    logtarget, dim = make_logtarget(modelArgs)
    single_kernel, coupled_kernel = sampling.get_mh_kernel(logtarget, samplerArgs["proposalSd"], rng,
                                                           samplerArgs["coupling"])
    pi0 = sampling.make_pi0(logtarget, rng, samplerArgs["initMean"], samplerArgs["initSd"], dim)
    return single_kernel, coupled_kernel, pi0

## ----------------------------------------------------------------------
## integrands of interest

def make_h_function_dict(funcArgs, modelArgs):
    """
    Returns:
        {"hFunction": function of the position, "nHColumns": length of its output}
    """
    hType = funcArgs["hType"]
    dim = make_logtarget(modelArgs)[1]
    if (hType == "identity"):
        hFunction = interesting_functions.identity
        nHColumns = dim
    elif (hType == "square"):
        hFunction = interesting_functions.second_moment
        nHColumns = dim
    elif (hType == "component"):
        hFunction = interesting_functions.component(funcArgs.get("component", 0))
        nHColumns = 1
    elif (hType == "indicator"):
        hFunction = interesting_functions.indicator(funcArgs["lower"], funcArgs["upper"],
                                                    funcArgs.get("component", 0))
        nHColumns = 1
    elif (hType == "histogram"):
        edges = np.linspace(funcArgs["lower"], funcArgs["upper"], funcArgs["nBins"] + 1)
        hFunction = interesting_functions.bin_indicators(edges, funcArgs.get("component", 0))
        nHColumns = funcArgs["nBins"]
    else:
        raise PreconditionViolation("unknown hType %s" %hType)
    return {"hFunction": hFunction, "nHColumns": nHColumns}

## ----------------------------------------------------------------------
## replicates

def spawn_seeds(rootSeed, nRep):
    # seed sequence for parallel but reproducible computing.
    return SeedSequence(rootSeed).spawn(nRep)

def rep(indexedSeed, modelArgs, samplerArgs, funcArgs):
    """
    Run one replicate with its own random stream.

    Inputs:
        indexedSeed: (seed index, SeedSequence)
        modelArgs, samplerArgs, funcArgs: settings dicts

    Outputs:
        dict with keys seed, est ((nHColumns,) array), hasMet, tau, cost, nIter, timeTaken
    """
    seed, seedSeq = indexedSeed
    rng = default_rng(seedSeq)
    single_kernel, coupled_kernel, pi0 = make_sampler(modelArgs, samplerArgs, rng)
    hFunctionDict = make_h_function_dict(funcArgs, modelArgs)
    h, nHColumns = hFunctionDict["hFunction"], hFunctionDict["nHColumns"]
    maxIterations = names_and_parser.maxIterationsFromArgs(samplerArgs)
    lag = samplerArgs["lag"]

    st = time.process_time()
    estType = samplerArgs["estType"]
    if (estType == "coupled"):
        try:
            result = online_estimator(single_kernel, coupled_kernel, pi0, h,
                                      samplerArgs["burnIn"], samplerArgs["minIter"], lag, maxIterations)
            est = np.atleast_1d(result.value)
            hasMet, tau, cost, nIter = True, result.meeting_time, result.cost, result.nIter
        except NonConvergence as e:
            logger.warning("seed %d: %s", seed, e)
            est = np.full(nHColumns, np.nan)
            hasMet, tau, cost, nIter = False, -1, lag + 2*(e.nIter - lag), e.nIter
    elif (estType == "meetingTime"):
        try:
            record = sample_meeting_time(single_kernel, coupled_kernel, pi0, lag, maxIterations)
            hasMet, tau, cost, nIter = True, record.meeting_time, record.cost, record.meeting_time
        except NonConvergence as e:
            logger.warning("seed %d: %s", seed, e)
            hasMet, tau, cost, nIter = False, -1, lag + 2*(e.nIter - lag), e.nIter
        est = np.zeros(0)
    elif (estType == "single"):
        maxIter = samplerArgs["maxIter"]
        burnIn = int(maxIter*DEFAULT_BURNIN_RATIO)
        _, mean = usual_mcmc_est(single_kernel, pi0, h, burnIn, maxIter)
        est = np.atleast_1d(mean)
        hasMet, tau, cost, nIter = True, -1, maxIter, maxIter
    else:
        raise PreconditionViolation("unknown estType %s, choose from coupled, meetingTime, single" %estType)
    timeTaken = time.process_time() - st

    return {"seed": seed, "est": est, "hasMet": hasMet, "tau": tau, "cost": cost,
            "nIter": nIter, "timeTaken": timeTaken}

def run_replicates(fn, seeds, poolSize=1):
    """
    Map fn over seeds, serially or with a pool of processes. Results are yielded in
    the order of seeds.
    """
    if poolSize <= 1:
        for seed in seeds:
            yield fn(seed)
    else:
        with Pool(poolSize) as p:
            for result in p.imap(fn, seeds):
                yield result
