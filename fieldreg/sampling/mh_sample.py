"""
fieldreg Metropolis-Hastings Samples

An MHSample is an immutable parameter vector tagged with the name of the
proposal that generated it. Proposal generators produce new samples and
report log transition probabilities for the acceptance step.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional

import torch

from ..utils.device import ArrayLike, as_vector


@dataclass(frozen=True, eq=False)
class MHSample:
    """
    Attributes:
        parameters: Parameter vector
        generated_by: Tag of the proposal that produced this sample
    """
    parameters: torch.Tensor
    generated_by: str = "initial"

    @classmethod
    def create(cls, parameters: ArrayLike, generated_by: str = "initial") -> "MHSample":
        return cls(as_vector(parameters).clone(), generated_by)

    def copy(self, parameters: Optional[torch.Tensor] = None, generated_by: Optional[str] = None) -> "MHSample":
        """New sample with its own parameter storage"""
        return replace(
            self,
            parameters=(self.parameters if parameters is None else parameters).clone(),
            generated_by=self.generated_by if generated_by is None else generated_by,
        )

    def __len__(self) -> int:
        return self.parameters.shape[0]


class ProposalGenerator(ABC):
    """Proposal distribution q(to | from) of a Metropolis-Hastings chain"""

    @abstractmethod
    def propose(self, sample: MHSample) -> MHSample:
        """Draw a candidate next state; may depend on the current state"""

    @abstractmethod
    def log_transition_probability(self, from_sample: MHSample, to_sample: MHSample) -> float:
        """log q(to | from)"""
