## Test functions h whose expectations under the target we estimate. Each takes
## the (D,) position of a chain.

import numpy as np

def identity(x):
    return np.asarray(x, dtype=float)

def component(i=0):
    return lambda x: x[i]

def second_moment(x):
    return np.square(x)

def indicator(lower, upper, component=0):
    """
    Output:
        h(x) = 1 if lower <= x[component] < upper, else 0
    """
    return lambda x: float(lower <= x[component] < upper)

def bin_indicators(edges, component=0):
    """
    Inputs:
        edges: (B+1,) increasing array of bin edges
        component: index of the coordinate to bin

    Output:
        h: function returning a (B,) one-hot vector of the half-open bin
            [edges[b], edges[b+1]) containing x[component], or zeros if x falls
            outside all bins.
    """
    edges = np.asarray(edges, dtype=float)
    nBins = len(edges) - 1

    def h(x):
        out = np.zeros(nBins)
        idx = np.searchsorted(edges, x[component], side="right") - 1
        if 0 <= idx < nBins:
            out[idx] = 1.
        return out

    return h
