"""fieldreg Sampling Module: Metropolis-Hastings proposals and chain"""

from .mh_sample import MHSample, ProposalGenerator
from .proposals import (
    GaussianRandomWalkProposal,
    PartialProposal,
    IdentityProposal,
    MixtureProposal,
)
from .metropolis import MetropolisHastings, AcceptanceLogger

__all__ = [
    "MHSample",
    "ProposalGenerator",
    "GaussianRandomWalkProposal",
    "PartialProposal",
    "IdentityProposal",
    "MixtureProposal",
    "MetropolisHastings",
    "AcceptanceLogger",
]
