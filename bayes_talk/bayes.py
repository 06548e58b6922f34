"""
Beta-Binomial posterior updating and Monte Carlo comparison of two variants.

Prior:      ctr ~ Beta(shape1, shape2)
Likelihood: clicked ~ Binomial(sessions, ctr)
Posterior:  ctr | data ~ Beta(shape1 + clicked, shape2 + not_clicked)
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from bayes_talk.priors import BetaPrior

logger = structlog.get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class VariantCounts:
    """Clicks and sessions observed for one variant."""
    clicked: int
    sessions: int

    def __post_init__(self):
        if self.clicked < 0 or self.sessions < 0:
            raise ValueError(
                f"Counts must be non-negative, got clicked={self.clicked}, sessions={self.sessions}"
            )
        if self.clicked > self.sessions:
            raise ValueError(f"clicked ({self.clicked}) cannot exceed sessions ({self.sessions})")

    @property
    def not_clicked(self) -> int:
        return self.sessions - self.clicked

    @property
    def ctr(self) -> float:
        return self.clicked / self.sessions if self.sessions > 0 else 0.0


@dataclass(frozen=True)
class ExperimentData:
    """Container for experiment data."""
    control: VariantCounts
    treatment: VariantCounts

    @property
    def observed_uplift(self) -> float:
        if self.control.ctr == 0:
            return 0.0
        return (self.treatment.ctr - self.control.ctr) / self.control.ctr


@dataclass
class BayesianResults:
    """Container for Bayesian analysis results."""
    control_posterior: BetaPrior
    treatment_posterior: BetaPrior
    prob_treatment_better: float
    expected_uplift: float
    uplift_ci: Tuple[float, float]
    absolute_diff_mean: float
    absolute_diff_ci: Tuple[float, float]
    loss_choosing_treatment: float
    loss_choosing_control: float
    samples_control: np.ndarray
    samples_treatment: np.ndarray
    credible_level: float = 0.95

    @property
    def recommendation(self) -> str:
        return "treatment" if self.loss_choosing_treatment < self.loss_choosing_control else "control"


# =============================================================================
# Posterior Updating
# =============================================================================

def update_posterior(prior: BetaPrior, clicked: int, not_clicked: int) -> BetaPrior:
    """Conjugate Beta-Binomial update."""
    if clicked < 0 or not_clicked < 0:
        raise ValueError(
            f"Counts must be non-negative, got clicked={clicked}, not_clicked={not_clicked}"
        )
    return BetaPrior(
        prior.shape1 + clicked,
        prior.shape2 + not_clicked,
        name=prior.name,
    )


def sequential_posteriors(
    prior: BetaPrior,
    clicked_per_day: Sequence[int],
    not_clicked_per_day: Sequence[int]
) -> List[BetaPrior]:
    """
    Update the prior one day at a time.

    Yesterday's posterior is today's prior, so the last element equals a single
    batch update with the summed counts.

    Returns:
        Posterior after each day, in day order (prior not included)
    """
    if len(clicked_per_day) != len(not_clicked_per_day):
        raise ValueError("clicked_per_day and not_clicked_per_day must have the same length")

    posteriors = []
    posterior = prior
    for clicked, not_clicked in zip(clicked_per_day, not_clicked_per_day):
        posterior = update_posterior(posterior, int(clicked), int(not_clicked))
        posteriors.append(posterior)
    return posteriors


# =============================================================================
# Monte Carlo Helpers
# =============================================================================

def sample_posterior(
    posterior: BetaPrior,
    n_samples: int,
    rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    if n_samples <= 0:
        raise ValueError(f"n_samples must be positive, got {n_samples}")
    if rng is None:
        rng = np.random.default_rng()
    return posterior.distribution().rvs(n_samples, random_state=rng)


def prob_treatment_better(samples_control: np.ndarray, samples_treatment: np.ndarray) -> float:
    """Fraction of paired draws where treatment beats control."""
    return float(np.mean(samples_treatment > samples_control))


def uplift_samples(samples_control: np.ndarray, samples_treatment: np.ndarray) -> np.ndarray:
    """Relative uplift (treatment - control) / control, non-finite draws removed."""
    with np.errstate(divide='ignore', invalid='ignore'):
        uplift = (samples_treatment - samples_control) / samples_control
    return uplift[np.isfinite(uplift)]


def expected_loss(samples_control: np.ndarray, samples_treatment: np.ndarray) -> Tuple[float, float]:
    """
    Expected loss of each decision.

    Returns:
        (loss of choosing treatment, loss of choosing control), i.e.
        E[max(control - treatment, 0)] and E[max(treatment - control, 0)]
    """
    loss_treatment = float(np.mean(np.maximum(samples_control - samples_treatment, 0)))
    loss_control = float(np.mean(np.maximum(samples_treatment - samples_control, 0)))
    return loss_treatment, loss_control


def credible_interval(samples: np.ndarray, level: float = 0.95) -> Tuple[float, float]:
    if not 0 < level < 1:
        raise ValueError(f"Credible level must lie in (0, 1), got {level}")
    if len(samples) == 0:
        return 0.0, 0.0
    alpha_tail = (1 - level) / 2
    return (
        float(np.percentile(samples, alpha_tail * 100)),
        float(np.percentile(samples, (1 - alpha_tail) * 100))
    )


# =============================================================================
# Bayesian Analysis
# =============================================================================

def compute_bayesian_analysis(
    data: ExperimentData,
    prior: Optional[BetaPrior] = None,
    n_samples: int = 100_000,
    credible_level: float = 0.95,
    seed: int = 42
) -> BayesianResults:
    """
    Compare control and treatment click-through rates.

    Both variants share the same prior. Derived quantities come from paired
    Monte Carlo draws of the two independent posteriors.

    Args:
        data: Clicks and sessions per variant
        prior: Beta prior shared by both variants (default uniform)
        n_samples: Number of Monte Carlo samples per posterior
        credible_level: Credible interval level (default 95%)
        seed: Seed for the local random generator

    Returns:
        BayesianResults with posteriors, samples and key metrics
    """
    if prior is None:
        prior = BetaPrior.uniform()
    if not 0 < credible_level < 1:
        raise ValueError(f"Credible level must lie in (0, 1), got {credible_level}")

    control_posterior = update_posterior(prior, data.control.clicked, data.control.not_clicked)
    treatment_posterior = update_posterior(prior, data.treatment.clicked, data.treatment.not_clicked)

    rng = np.random.default_rng(seed)
    samples_control = sample_posterior(control_posterior, n_samples, rng)
    samples_treatment = sample_posterior(treatment_posterior, n_samples, rng)

    uplift = uplift_samples(samples_control, samples_treatment)
    expected_uplift = float(np.mean(uplift)) if len(uplift) > 0 else 0.0

    diff_samples = samples_treatment - samples_control
    loss_treatment, loss_control = expected_loss(samples_control, samples_treatment)

    results = BayesianResults(
        control_posterior=control_posterior,
        treatment_posterior=treatment_posterior,
        prob_treatment_better=prob_treatment_better(samples_control, samples_treatment),
        expected_uplift=expected_uplift,
        uplift_ci=credible_interval(uplift, credible_level),
        absolute_diff_mean=float(np.mean(diff_samples)),
        absolute_diff_ci=credible_interval(diff_samples, credible_level),
        loss_choosing_treatment=loss_treatment,
        loss_choosing_control=loss_control,
        samples_control=samples_control,
        samples_treatment=samples_treatment,
        credible_level=credible_level,
    )

    logger.debug(
        "bayesian_analysis_completed",
        n_samples=n_samples,
        prob_treatment_better=round(results.prob_treatment_better, 4),
        expected_uplift=round(results.expected_uplift, 4),
    )
    return results
