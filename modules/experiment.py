"""
Read from command line using names_and_parser, define functions
for parallel processing and run them.

Each task runs the replicates taskID, taskID + nTasks, taskID + 2 nTasks, ...
of nRep replicates, and writes one csv line per replicate. Use reducer.py to
combine the files of all tasks.

Example:
    python modules/experiment.py --configPath configs/normal.json --nRep 1000 --poolSize 4
"""

# Standard libaries
import functools
import logging
import os
import time

# our implementation
import estimate_utils
import names_and_parser

logger = logging.getLogger(__name__)

def run(options):
    """
    Outputs:
        estFileName: path of the csv file with this task's estimates
    """
    # All config
    logger.info('===========================')
    for key, val in vars(options).items():
        logger.info('{}: {}'.format(key, val))
    logger.info('===========================')

    dirName, estFileName = names_and_parser.makeDirAndFileName(options)
    logger.info("Savedir is %s" %dirName)

    if os.path.exists(estFileName) and (not options.overwrite):
        logger.info("Results exist, skipping since overwrite = False")
        return estFileName
    if not os.path.exists(dirName):
        logger.info("Will make directory %s" %dirName)
        os.makedirs(dirName, exist_ok=True)
    if (options.justMakeDir):
        logger.info("Just making dir, not running anything.")
        return estFileName

    hFunctionDict = estimate_utils.make_h_function_dict(options.funcArgs, options.modelArgs)
    nHColumns = hFunctionDict["nHColumns"] if options.samplerArgs["estType"] != "meetingTime" else 0

    allSeeds = estimate_utils.spawn_seeds(options.rootSeed, options.nRep)
    thisSeeds = [(i, allSeeds[i]) for i in range(options.taskID, options.nRep, options.nTasks)]
    logger.info("Total number of replicates to do is %d" %len(thisSeeds))
    progress_count = max(1, int(len(thisSeeds)/10))

    fn = functools.partial(estimate_utils.rep, modelArgs=options.modelArgs,
                           samplerArgs=options.samplerArgs, funcArgs=options.funcArgs)

    st = time.time()
    with open(estFileName, "w") as file:
        file.write(names_and_parser.makeHeaderLine(nHColumns) + "\n")
        for idx, result in enumerate(estimate_utils.run_replicates(fn, thisSeeds, options.poolSize)):
            line = names_and_parser.resultsToLine(result["seed"],
                                                  result["est"],
                                                  result["hasMet"],
                                                  result["tau"],
                                                  result["cost"],
                                                  result["nIter"],
                                                  result["timeTaken"])
            file.write(line + "\n")
            file.flush() # write results as they come
            if (idx + 1) % progress_count == 0:
                logger.info("Finished another %d replicates." %progress_count)

    logger.info("Wall-clock time time elasped in minutes %.2f" %((time.time()-st)/60))
    return estFileName

def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    options = names_and_parser.loadConfig(names_and_parser.parse_args(argv))
    return run(options)

if __name__ == "__main__":
    main()
