"""
fieldreg Proposal Generators

- GaussianRandomWalkProposal: isotropic gaussian step
- PartialProposal: restricts another proposal to an index range
- IdentityProposal: leaves the state unchanged
- MixtureProposal: picks one of several proposals at random
"""

import math
from typing import List, Optional, Sequence, Tuple, Union

import torch
from torch.distributions import Normal

from .mh_sample import MHSample, ProposalGenerator
from ..utils.device import DTYPE
from ..utils.logging_config import get_logger

logger = get_logger("proposals")

IndexRange = Union[range, slice]


class GaussianRandomWalkProposal(ProposalGenerator):
    """
    Random walk proposal: the current state is perturbed by a step drawn
    from an isotropic gaussian with the given standard deviation.
    """

    def __init__(self, stddev: float, tag: str, generator: Optional[torch.Generator] = None):
        if stddev <= 0:
            raise ValueError(f"stddev must be positive, got {stddev}")
        self.stddev = float(stddev)
        self.tag = tag
        self.generator = generator
        self._step = Normal(torch.tensor(0.0, dtype=DTYPE), torch.tensor(self.stddev, dtype=DTYPE))

    def propose(self, sample: MHSample) -> MHSample:
        current = sample.parameters
        perturbation = torch.randn(current.shape[0], dtype=DTYPE, generator=self.generator) * self.stddev
        return sample.copy(parameters=current + perturbation, generated_by=self.tag)

    def log_transition_probability(self, from_sample: MHSample, to_sample: MHSample) -> float:
        if from_sample.parameters.shape != to_sample.parameters.shape:
            return -math.inf
        residual = to_sample.parameters.to(DTYPE) - from_sample.parameters.to(DTYPE)
        return float(self._step.log_prob(residual).sum())

    def partial(self, index_range: IndexRange) -> "PartialProposal":
        """Proposal that only updates the coefficients in `index_range`"""
        return PartialProposal(self, index_range)

    def __repr__(self) -> str:
        return f"GaussianRandomWalkProposal(stddev={self.stddev}, tag={self.tag!r})"


def _as_slice(index_range: IndexRange) -> slice:
    if isinstance(index_range, slice):
        return index_range
    if index_range.step <= 0:
        raise ValueError(f"Index range must be increasing, got {index_range}")
    return slice(index_range.start, index_range.stop, index_range.step)


class PartialProposal(ProposalGenerator):
    """
    Applies `base` to the entries in `index_range` only.

    All other entries are copied bit for bit, and any transition that changes
    them has probability zero.
    """

    def __init__(self, base: ProposalGenerator, index_range: IndexRange):
        self.base = base
        self.index_range = _as_slice(index_range)
        self.tag = getattr(base, "tag", type(base).__name__)

    def propose(self, sample: MHSample) -> MHSample:
        span = self.index_range
        partial_sample = sample.copy(parameters=sample.parameters[span])
        partial_new = self.base.propose(partial_sample).parameters
        full = sample.parameters.clone()
        full[span] = partial_new
        return sample.copy(parameters=full, generated_by=self.tag)

    def log_transition_probability(self, from_sample: MHSample, to_sample: MHSample) -> float:
        if from_sample.parameters.shape != to_sample.parameters.shape:
            return -math.inf
        span = self.index_range
        # entries outside the range must be unchanged
        patched = to_sample.parameters.clone()
        patched[span] = from_sample.parameters[span]
        if not torch.equal(patched, from_sample.parameters):
            return -math.inf
        return self.base.log_transition_probability(
            from_sample.copy(parameters=from_sample.parameters[span]),
            to_sample.copy(parameters=to_sample.parameters[span]),
        )

    def __repr__(self) -> str:
        return f"PartialProposal({self.base!r}, {self.index_range})"


class IdentityProposal(ProposalGenerator):
    """No-op proposal"""

    tag = "ident"

    def propose(self, sample: MHSample) -> MHSample:
        return sample.copy(generated_by=self.tag)

    def log_transition_probability(self, from_sample: MHSample, to_sample: MHSample) -> float:
        return 0.0


class MixtureProposal(ProposalGenerator):
    """
    Chooses one component per step with probability proportional to its weight.

    q(to | from) = sum_i w_i q_i(to | from)
    """

    def __init__(
        self,
        components: Sequence[Tuple[float, ProposalGenerator]],
        generator: Optional[torch.Generator] = None,
    ):
        if not components:
            raise ValueError("MixtureProposal needs at least one component")
        weights = torch.tensor([float(w) for w, _ in components], dtype=DTYPE)
        if bool((weights < 0).any()) or float(weights.sum()) <= 0:
            raise ValueError(f"Mixture weights must be non-negative and not all zero, got {weights.tolist()}")
        self.weights = weights / weights.sum()
        self.proposals: List[ProposalGenerator] = [p for _, p in components]
        self.generator = generator
        logger.debug(f"Mixture of {len(self.proposals)} proposals, weights {self.weights.tolist()}")

    def propose(self, sample: MHSample) -> MHSample:
        choice = int(torch.multinomial(self.weights, 1, generator=self.generator))
        return self.proposals[choice].propose(sample)

    def log_transition_probability(self, from_sample: MHSample, to_sample: MHSample) -> float:
        terms = []
        for weight, proposal in zip(self.weights, self.proposals):
            if float(weight) == 0.0:
                continue
            terms.append(math.log(float(weight)) + proposal.log_transition_probability(from_sample, to_sample))
        return float(torch.logsumexp(torch.tensor(terms, dtype=DTYPE), dim=0))
