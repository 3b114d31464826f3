"""sampling.py contains the random-walk Metropolis-Hastings kernel for a single
chain and its coupled version for a pair of chains."""

import numpy as np

import couplings
from error_handling import PreconditionViolation

class ChainState():
    """
    State of one Markov chain: the position and the cached log target density at
    the position. Transitions return new ChainState objects instead of
    modifying the position in place.
    """
    def __init__(self, position, current_pdf):
        self.position = np.atleast_1d(np.asarray(position, dtype=float))
        self.current_pdf = current_pdf

    def copy(self):
        return ChainState(self.position.copy(), self.current_pdf)

    def equals(self, other):
        # exact equality, coupled chains share the same realized draw after meeting
        return np.array_equal(self.position, other.position)

    def __repr__(self):
        return "ChainState(position=%s, current_pdf=%.4f)" %(self.position, self.current_pdf)

def getCoupling(coupling):
    """
    Inputs:
        coupling: str (key of couplings.COUPLINGS) or function with signature
            (rng, mean1, mean2, scale1, scale2) -> (x, y, identical)
    """
    if callable(coupling):
        return coupling
    if coupling not in couplings.COUPLINGS:
        raise PreconditionViolation("unknown coupling %s, choose from %s"
                                    %(coupling, sorted(couplings.COUPLINGS)))
    return couplings.COUPLINGS[coupling]

def pi0(logtarget, rng, mean=0.0, sd=1.0, dim=1):
    """pi0 is the initial distribution for the Markov chain: a normal draw
    around mean, with the log target cached."""
    position = rng.normal(loc=mean, scale=sd, size=dim)
    return ChainState(position, logtarget(position))

def make_pi0(logtarget, rng, mean=0.0, sd=1.0, dim=1):
    return lambda : pi0(logtarget, rng, mean, sd, dim)

def mh_step_single(state, logtarget, sd, rng):
    """mh_step_single takes one random-walk Metropolis-Hastings step.

    Args:
        state: ChainState
        logtarget: function, log density of the target (up to a constant)
        sd: scalar or (D,) array, standard deviation of the normal proposal
        rng: Generator

    Returns:
        new ChainState (the input state itself if the proposal is rejected)
    """
    proposal = state.position + sd*rng.standard_normal(size=state.position.shape)
    proposal_pdf = logtarget(proposal)
    logu = np.log(rng.uniform())
    if np.isfinite(proposal_pdf) and (logu < (proposal_pdf - state.current_pdf)):
        return ChainState(proposal, proposal_pdf)
    return state

def mh_step_couple(state1, state2, logtarget, sd, rng, coupling="Maximal"):
    """mh_step_couple performs coupled Metropolis-Hastings updates of two chains.

    Proposals are drawn from a coupling of the two random-walk proposal
    distributions, and a single uniform is shared by both accept/reject
    decisions. A proposal with non-finite log density is always rejected.

    Args:
        state1, state2: ChainState
        logtarget: function, log density of the target (up to a constant)
        sd: scalar or (D,) array, proposal standard deviation (same for both chains)
        rng: Generator
        coupling: name of the coupling of the proposals ("Maximal", "cMaximal",
            "Reflection") or a coupling function

    Returns:
        updated states of both chains, and whether they are now identical
    """
    couple = getCoupling(coupling)
    proposal1, proposal2, identicalProposals = couple(rng, state1.position, state2.position, sd, sd)

    proposal_pdf1 = logtarget(proposal1)
    if identicalProposals:
        proposal_pdf2 = proposal_pdf1
    else:
        proposal_pdf2 = logtarget(proposal2)

    logu = np.log(rng.uniform())
    accept1 = bool(np.isfinite(proposal_pdf1) and (logu < (proposal_pdf1 - state1.current_pdf)))
    accept2 = bool(np.isfinite(proposal_pdf2) and (logu < (proposal_pdf2 - state2.current_pdf)))

    newState1 = ChainState(proposal1, proposal_pdf1) if accept1 else state1
    newState2 = ChainState(proposal2, proposal_pdf2) if accept2 else state2

    if accept1 and accept2:
        identical = identicalProposals
    elif (not accept1) and (not accept2):
        # chains that have already met stay together
        identical = state1.equals(state2)
    else:
        identical = False
    return newState1, newState2, identical

def get_mh_kernel(logtarget, sd, rng, coupling="Maximal"):
    """
    Returns:
        single_kernel: function ChainState -> ChainState
        coupled_kernel: function (ChainState, ChainState) -> (ChainState, ChainState, bool)
    """
    getCoupling(coupling)
    single_kernel = lambda state: mh_step_single(state, logtarget, sd, rng)
    coupled_kernel = lambda state1, state2: mh_step_couple(state1, state2, logtarget, sd, rng, coupling)
    return single_kernel, coupled_kernel

def forward_one_chain(lag, single_kernel, state):
    """
    Inputs:
        lag: scalar, number of steps
        single_kernel: function ChainState -> ChainState
        state: initial ChainState
    Outputs:
        list of the lag+1 visited states, starting with state
    """
    states = [state]
    for _ in range(lag):
        states.append(single_kernel(states[-1]))
    return states
