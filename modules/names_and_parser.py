"""
Define functions that read in command line arguments and functions
that return names of directories and result files.

Settings are grouped into json dictionaries (modelArgs, samplerArgs, funcArgs).
A json config file given by --configPath overwrites the command line values.
"""

import argparse
import json
import math

## ------------------------------------------------------------------
## Default settings

DEFAULT_MODEL_ARGS = {"target": "normal", "mean": 0.0, "sd": 1.0, "dim": 1}

DEFAULT_SAMPLER_ARGS = {"estType": "coupled",
                        "proposalSd": 1.0,
                        "coupling": "Maximal",
                        "lag": 1,
                        "burnIn": 50,
                        "minIter": 250,
                        "maxIterations": -1,
                        "maxIter": 1000,
                        "initMean": 0.0,
                        "initSd": 1.0}

DEFAULT_FUNC_ARGS = {"hType": "identity"}

## ------------------------------------------------------------------
## Argument parsers

def parse_args(argv=None):
    parser = argparse.ArgumentParser()

    ## config json file to simplify command line argument
    parser.add_argument("--configPath", type=str, dest="configPath", default="",
                        help='config json file to simplify command line argument')

    ## save directory
    parser.add_argument("--resultsDir", type=str, dest="resultsDir", default="../results/",
                    help="root directory to save results. Will add model args, sampler args etc. ")

    ## information about target distribution
    parser.add_argument("--modelArgs", type=json.loads, dest="modelArgs", default=dict(),
                    help="target distribution settings")

    ## settings for estimator construction
    parser.add_argument("--samplerArgs", type=json.loads, dest="samplerArgs", default=dict(),
                    help="sampler settings")

    ## information about function of interest
    parser.add_argument("--funcArgs", type=json.loads, dest="funcArgs", default=dict(),
                    help="functions arguments")

    ## and how to run replicates (number of replicates, how they are split into tasks)
    parser.add_argument("--nRep", dest="nRep", type=int, default=1,
                        help='total number of replicates, typically really large')
    parser.add_argument("--taskID", dest="taskID",type=int, default=0,
                        help="ID of this task among nTasks")
    parser.add_argument("--nTasks", dest="nTasks",type=int, default=1,
                        help="number of tasks the replicates are split into")
    parser.add_argument("--rootSeed", dest="rootSeed", type=int, default=12345,
                        help="root of the seed sequence spawning one stream per replicate")
    parser.add_argument("--poolSize", dest="poolSize", type=int, default=1,
                        help="number of processes to run replicates in parallel")

    ## summaries
    parser.add_argument("--BTSize", dest="BTSize", type=int, default=0,
                        help="number of bootstrap samples for the reducer's sd (0 means no bootstrap)")

    ## overwrite
    parser.add_argument("--overwrite", dest="overwrite", action="store_true",
                        help="do we overwrite existing results")
    parser.add_argument("--justMakeDir", dest="justMakeDir", action="store_true",
                        help="do we run experiments or just make directory")

    options = parser.parse_args(argv)
    return options

def loadConfig(options):
    """
    Update options with the json file at options.configPath (if any) and fill in
    default settings for missing keys.
    """
    optionsAsDict = vars(options) # alternate view of options
    if len(options.configPath) > 0:
        with open(options.configPath) as f:
            config = json.load(f)
        optionsAsDict.update(config)

    options.modelArgs = dict(DEFAULT_MODEL_ARGS, **options.modelArgs)
    options.samplerArgs = dict(DEFAULT_SAMPLER_ARGS, **options.samplerArgs)
    options.funcArgs = dict(DEFAULT_FUNC_ARGS, **options.funcArgs)
    return options

def maxIterationsFromArgs(samplerArgs):
    """maxIterations = -1 means no limit"""
    maxIterations = samplerArgs["maxIterations"]
    return math.inf if maxIterations == -1 else maxIterations

## ------------------------------------------------------------------
# make save directories and experiment names

def makeModelArgsDir(modelArgs):
    if (modelArgs["target"] == "normal"):
        dirName = "normal_mean=%s_sd=%s_dim=%d" %(modelArgs["mean"], modelArgs["sd"], modelArgs["dim"])
    else:
        dirName = "mixture_nComp=%d" %len(modelArgs["means"])
    dirName += "/"
    return dirName

def makeSamplerArgsDir(samplerArgs):
    """
    Inputs:
        samplerArgs: dict,

    Output:
        dirName
    """
    dirName = "estType=%s_proposalSd=%s_initMean=%s_initSd=%s/" %(samplerArgs["estType"],
        samplerArgs["proposalSd"], samplerArgs["initMean"], samplerArgs["initSd"])
    if (samplerArgs["estType"] == "single"):
        dirName += "maxIter=%d" %samplerArgs["maxIter"]
    else:
        dirName += "coupling=%s_lag=%d_maxIterations=%d" %(samplerArgs["coupling"], samplerArgs["lag"],
            samplerArgs["maxIterations"])
        if (samplerArgs["estType"] == "coupled"):
            dirName += "_burnIn=%d_minIter=%d" %(samplerArgs["burnIn"], samplerArgs["minIter"])
    dirName += "/"
    return dirName

def makeDirAndFileName(options):
    """
    dirName contains information about the target, the sampler and coupling,
    what function we compute the expectation of and the number of replicates.
    """
    dirName = options.resultsDir
    if not dirName.endswith("/"):
        dirName += "/"

    dirName += makeModelArgsDir(options.modelArgs)

    # what function
    dirName += "hType=%s/" %options.funcArgs["hType"]

    dirName += makeSamplerArgsDir(options.samplerArgs)

    # number of replicas
    dirName += "nRep=%d/" %(options.nRep)

    # file names
    estFileName = dirName + "est_taskID=%d_nTasks=%d.csv" %(options.taskID, options.nTasks)

    return dirName, estFileName

def makeHeaderLine(M):
    """
    Input:
        M: scalar, number of dimensions in a hFunction

    header line has format "seed,est0,est1,..,estM,hasMet,tau,cost,nIter,timeTaken"
    """
    estsPart = ["est%d" %x for x in range(M)]
    line = ",".join(["seed"] + estsPart + ["hasMet", "tau", "cost", "nIter", "timeTaken"])
    return line

def resultsToLine(seed,
                  est,
                  hasMet, tau, cost, nIter,
                  timeTaken):
    """
    Convert estimation results to string, taking 8 digits after decimal.

    Input:
        est: (M,) list or array, estimates for hFunction
        tau: scalar, meeting time (-1 if chains did not meet)
        cost: scalar, total number of single transitions
        nIter: scalar, number of transitions made by X chain
        timeTaken: scalar, time to generate estimate
    """
    estsPart = ["%.8f" %x for x in est]
    line = ",".join(["%d" %seed] + estsPart + ["%s" %hasMet, "%d" %tau, "%d" %cost, "%d" %nIter, "%.2f" %timeTaken])
    return line
