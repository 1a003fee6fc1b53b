"""
fieldreg Metropolis-Hastings

Chain driver combining a proposal generator with a target log density.
Accept probability: min(1, exp(log_ratio)) with the Hastings correction
log q(from | to) - log q(to | from).
"""

import math
from typing import Callable, Iterator, Optional

import torch

from .mh_sample import MHSample, ProposalGenerator
from ..utils.device import DTYPE
from ..utils.logging_config import get_logger

logger = get_logger("metropolis")

LogDensity = Callable[[MHSample], float]


class AcceptanceLogger:
    """Counts accepted and rejected proposals per proposal tag"""

    def __init__(self):
        self.accepted = {}
        self.rejected = {}

    def record(self, tag: str, accepted: bool):
        counts = self.accepted if accepted else self.rejected
        counts[tag] = counts.get(tag, 0) + 1

    def acceptance_ratio(self, tag: Optional[str] = None) -> float:
        if tag is None:
            accepted = sum(self.accepted.values())
            total = accepted + sum(self.rejected.values())
        else:
            accepted = self.accepted.get(tag, 0)
            total = accepted + self.rejected.get(tag, 0)
        return accepted / total if total else 0.0


class MetropolisHastings:
    """
    Args:
        proposal: Proposal generator
        log_density: Unnormalized target log density of a sample
        generator: Random source for the accept/reject draws
    """

    def __init__(
        self,
        proposal: ProposalGenerator,
        log_density: LogDensity,
        generator: Optional[torch.Generator] = None,
        log_every: int = 1000,
    ):
        self.proposal = proposal
        self.log_density = log_density
        self.generator = generator
        self.log_every = log_every
        self.acceptance = AcceptanceLogger()

    def accept_reject(self, log_ratio: float) -> bool:
        """Metropolis-Hastings accept/reject step"""
        if math.isnan(log_ratio) or log_ratio == -math.inf:
            return False
        if log_ratio >= 0:
            return True
        u = float(torch.rand((), dtype=DTYPE, generator=self.generator))
        return u <= math.exp(log_ratio)

    def next_sample(self, current: MHSample, current_log_density: float):
        """Single chain step, returns (sample, log density of sample)"""
        candidate = self.proposal.propose(current)
        candidate_log_density = self.log_density(candidate)
        forward = self.proposal.log_transition_probability(current, candidate)
        backward = self.proposal.log_transition_probability(candidate, current)
        log_ratio = candidate_log_density - current_log_density + backward - forward

        accepted = self.accept_reject(log_ratio)
        self.acceptance.record(candidate.generated_by, accepted)
        if accepted:
            return candidate, candidate_log_density
        return current, current_log_density

    def iterator(self, initial: MHSample) -> Iterator[MHSample]:
        """Infinite chain starting at `initial` (not yielded itself)"""
        current = initial
        current_log_density = self.log_density(initial)
        step = 0
        while True:
            current, current_log_density = self.next_sample(current, current_log_density)
            step += 1
            if self.log_every and step % self.log_every == 0:
                logger.info(f"  Step {step}: acceptance={self.acceptance.acceptance_ratio():.3f}")
            yield current
