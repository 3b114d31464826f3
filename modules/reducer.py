# join the csv files of all tasks into one csv and summarize the estimates

import logging
import os
import numpy as np
import pandas as pd
from tqdm import tqdm

import aggregators
import names_and_parser
from error_handling import PreconditionViolation
from unbiased_estimation import tv_upper_bound

logger = logging.getLogger(__name__)

REMOVE_CSV=False # good for memory

def compressEstimatesCsv(options):
    """
    Outputs:
        combinedEst: pd.DataFrame with the lines of all nTasks task files
    """
    dirName, _ = names_and_parser.makeDirAndFileName(options)
    nTasks = options.nTasks
    estFiles = []

    for taskID in tqdm(range(nTasks)):
        estFileName = dirName + "est_taskID=%d_nTasks=%d.csv" %(taskID, nTasks)
        estFiles.append(pd.read_csv(estFileName))
        if (REMOVE_CSV):
            os.remove(estFileName)

    combinedEst = pd.concat(estFiles, ignore_index=True)
    combinedEst.to_csv(dirName + "estType=%s.csv" %options.samplerArgs["estType"], index=False)
    return combinedEst

def summarize(combinedEst, level=0.95, BT_size=None, rng=None):
    """
    Average the estimates of replicates where the chains met.

    Replicates that did not meet are left out, so the average is conditional
    on meeting; nFailed reports how many were dropped.

    Inputs:
        combinedEst: pd.DataFrame, see compressEstimatesCsv
        level: scalar, coverage of the intervals
        BT_size: scalar (or None), number of bootstrap samples for btSd
        rng: Generator or None, used for bootstrap resampling

    Outputs:
        pd.DataFrame indexed by est column, with columns
            est, sem, ciLo, ciHi, nRep, nFailed (and btSd if BT_size is given)
    """
    met = combinedEst[combinedEst["hasMet"]]
    nFailed = len(combinedEst) - len(met)
    if nFailed > 0:
        logger.warning("%d replicates did not meet and are left out", nFailed)
    if len(met) == 0:
        raise PreconditionViolation("no replicate to summarize")

    estColumns = met.filter(regex="^est")
    est, sem, lo, hi = aggregators.normal_ci(estColumns.to_numpy(), level)
    summary = pd.DataFrame({"est": est, "sem": sem, "ciLo": lo, "ciHi": hi,
                            "nRep": len(met), "nFailed": nFailed}, index=estColumns.columns)
    if not (BT_size is None):
        summary["btSd"] = [aggregators.arith_mean(estColumns[col].to_numpy(), BT_size, rng=rng)[1]
                           for col in estColumns.columns]
    return summary

def tvBoundTable(combinedEst, lag, ts=None):
    """
    Upper bounds on the total variation distance to the target after t steps,
    from the meeting times of the replicates.
    """
    taus = combinedEst[combinedEst["hasMet"]]["tau"].to_numpy()
    if len(taus) == 0:
        raise PreconditionViolation("no meeting time to bound the total variation distance with")
    if ts is None:
        ts = np.arange(0, max(1, int(np.max(taus)) - lag + 1))
    bounds = tv_upper_bound(taus, lag, ts)
    return pd.DataFrame({"t": ts, "tvBound": bounds})

def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    options = names_and_parser.loadConfig(names_and_parser.parse_args(argv))
    dirName, _ = names_and_parser.makeDirAndFileName(options)

    combinedEst = compressEstimatesCsv(options)
    if (options.samplerArgs["estType"] != "meetingTime"):
        BT_size = options.BTSize if options.BTSize > 0 else None
        summary = summarize(combinedEst, BT_size=BT_size)
        logger.info("\n%s", summary)
        summary.to_csv(dirName + "summary.csv")
    if (options.samplerArgs["estType"] != "single"):
        tvBounds = tvBoundTable(combinedEst, options.samplerArgs["lag"])
        tvBounds.to_csv(dirName + "tvBound.csv", index=False)
    return combinedEst

if __name__ == "__main__":
    main()
