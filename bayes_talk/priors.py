"""
Beta priors for click-through rates.

A Beta(shape1, shape2) prior behaves like having already seen `shape1` clicks
and `shape2` non-clicks, which is the intuition the talk leans on when
comparing priors of different strengths.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
from scipy import stats


@dataclass(frozen=True)
class BetaPrior:
    """A Beta distribution over a click-through rate."""
    shape1: float
    shape2: float
    name: str = ""

    def __post_init__(self):
        if not (self.shape1 > 0 and self.shape2 > 0):
            raise ValueError(
                f"Beta shapes must be positive, got shape1={self.shape1}, shape2={self.shape2}"
            )

    @classmethod
    def uniform(cls) -> "BetaPrior":
        return cls(1.0, 1.0, name="Uniform")

    @classmethod
    def from_mean(cls, mean: float, strength: float, name: str = "") -> "BetaPrior":
        """
        Build a prior centred on `mean` worth `strength` pseudo-sessions.

        Args:
            mean: Prior expected click-through rate, strictly between 0 and 1
            strength: Number of sessions the prior is "worth"

        Returns:
            BetaPrior with shape1 = mean * strength, shape2 = (1 - mean) * strength
        """
        if not 0 < mean < 1:
            raise ValueError(f"Prior mean must lie in (0, 1), got {mean}")
        if strength <= 0:
            raise ValueError(f"Prior strength must be positive, got {strength}")
        return cls(mean * strength, (1 - mean) * strength, name=name)

    @classmethod
    def from_history(cls, clicked: int, sessions: int, name: str = "") -> "BetaPrior":
        """Use the counts of a previous rollout stage as the prior."""
        if clicked > sessions:
            raise ValueError(f"clicked ({clicked}) cannot exceed sessions ({sessions})")
        return cls(float(clicked), float(sessions - clicked), name=name)

    @property
    def mean(self) -> float:
        return self.shape1 / (self.shape1 + self.shape2)

    @property
    def variance(self) -> float:
        total = self.shape1 + self.shape2
        return (self.shape1 * self.shape2) / (total ** 2 * (total + 1))

    @property
    def effective_sample_size(self) -> float:
        return self.shape1 + self.shape2

    def distribution(self):
        """Frozen scipy.stats.beta distribution."""
        return stats.beta(self.shape1, self.shape2)

    def pdf(self, grid: np.ndarray) -> np.ndarray:
        return self.distribution().pdf(grid)

    def interval(self, level: float = 0.95) -> Tuple[float, float]:
        """Equal-tailed credible interval."""
        if not 0 < level < 1:
            raise ValueError(f"Credible level must lie in (0, 1), got {level}")
        lower, upper = self.distribution().interval(level)
        return float(lower), float(upper)

    def label(self) -> str:
        params = f"Beta({self.shape1:g}, {self.shape2:g})"
        return f"{self.name}: {params}" if self.name else params


def prior_gallery(historical_ctr: float = 0.085) -> List[BetaPrior]:
    """
    Priors compared on the "choosing a prior" slide.

    The informative priors are centred on the historical click-through rate
    and differ only in how many sessions they are worth.
    """
    return [
        BetaPrior.uniform(),
        BetaPrior(0.5, 0.5, name="Jeffreys"),
        BetaPrior.from_mean(historical_ctr, 50, name="Weakly informative"),
        BetaPrior.from_mean(historical_ctr, 1000, name="Strongly informative"),
        BetaPrior.from_mean(historical_ctr / 2, 200, name="Pessimistic"),
    ]
