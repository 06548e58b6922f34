"""
Stopping rules, the peeking problem, and experiment planning.

A rule looks at the state of an experiment at the end of a day and either
returns a decision ("treatment" or "control") or None to keep collecting data.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import structlog
from scipy import stats

from bayes_talk.bayes import (
    VariantCounts,
    expected_loss,
    prob_treatment_better,
    sample_posterior,
    update_posterior,
)
from bayes_talk.priors import BetaPrior
from bayes_talk.simulation import variant_frame

logger = structlog.get_logger(__name__)

TREATMENT = "treatment"
CONTROL = "control"
INCONCLUSIVE = "inconclusive"


# =============================================================================
# Daily State
# =============================================================================

@dataclass(frozen=True)
class DayState:
    """What an analyst sees when peeking at the end of `day` (0-based)."""
    day: int
    prob_treatment_better: float
    loss_treatment: float
    loss_control: float
    p_value: float
    treatment_ahead: bool


def two_proportion_p_value(control: VariantCounts, treatment: VariantCounts) -> float:
    """Two-sided p-value of the pooled two-proportion z-test."""
    total_sessions = control.sessions + treatment.sessions
    if control.sessions == 0 or treatment.sessions == 0:
        return 1.0

    pooled = (control.clicked + treatment.clicked) / total_sessions
    se = math.sqrt(pooled * (1 - pooled) * (1 / control.sessions + 1 / treatment.sessions))
    if se == 0:
        return 1.0

    z_score = (treatment.ctr - control.ctr) / se
    return float(2 * (1 - stats.norm.cdf(abs(z_score))))


# =============================================================================
# Rules
# =============================================================================

@dataclass(frozen=True)
class ProbabilityThresholdRule:
    """Stop once one variant is better with probability >= threshold."""
    threshold: float = 0.95

    def __post_init__(self):
        if not 0.5 < self.threshold < 1:
            raise ValueError(f"threshold must lie in (0.5, 1), got {self.threshold}")

    @property
    def name(self) -> str:
        return f"P(win) ≥ {self.threshold:.0%}"

    def decide(self, state: DayState) -> Optional[str]:
        if state.prob_treatment_better >= self.threshold:
            return TREATMENT
        if state.prob_treatment_better <= 1 - self.threshold:
            return CONTROL
        return None


@dataclass(frozen=True)
class ExpectedLossRule:
    """
    Stop once the expected loss of the better-looking variant drops below the
    threshold of caring, i.e. a mistake would cost less than we care about.
    """
    threshold_of_caring: float = 0.0005

    def __post_init__(self):
        if self.threshold_of_caring <= 0:
            raise ValueError(f"threshold_of_caring must be positive, got {self.threshold_of_caring}")

    @property
    def name(self) -> str:
        return f"Expected loss < {self.threshold_of_caring * 100:.2f} pp"

    def decide(self, state: DayState) -> Optional[str]:
        if min(state.loss_treatment, state.loss_control) >= self.threshold_of_caring:
            return None
        return TREATMENT if state.loss_treatment < state.loss_control else CONTROL


@dataclass(frozen=True)
class FixedHorizonRule:
    """Ignore the data until the planned final day, then apply a P(win) threshold."""
    num_days: int
    threshold: float = 0.95

    def __post_init__(self):
        if self.num_days <= 0:
            raise ValueError(f"num_days must be positive, got {self.num_days}")
        if not 0.5 < self.threshold < 1:
            raise ValueError(f"threshold must lie strictly between 0.5 and 1, got {self.threshold}")

    @property
    def name(self) -> str:
        return f"Fixed horizon ({self.num_days} days)"

    def decide(self, state: DayState) -> Optional[str]:
        if state.day + 1 < self.num_days:
            return None
        return ProbabilityThresholdRule(self.threshold).decide(state)


@dataclass(frozen=True)
class PValueRule:
    """Frequentist significance test applied at every look."""
    alpha: float = 0.05

    def __post_init__(self):
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must lie in (0, 1), got {self.alpha}")

    @property
    def name(self) -> str:
        return f"p-value < {self.alpha:g}"

    def decide(self, state: DayState) -> Optional[str]:
        if state.p_value >= self.alpha:
            return None
        return TREATMENT if state.treatment_ahead else CONTROL


# =============================================================================
# Evaluating a Rule on One Experiment
# =============================================================================

@dataclass
class StoppingOutcome:
    """Daily trace of one rule on one experiment."""
    rule_name: str
    trace: pd.DataFrame
    stop_day: Optional[int]
    decision: str


def daily_states(
    experiment: pd.DataFrame,
    prior: Optional[BetaPrior] = None,
    n_samples: int = 20_000,
    seed: int = 42
) -> List[DayState]:
    """
    Peek at the cumulative data at the end of every day.

    Args:
        experiment: Output of simulate_experiment (cumulative columns required)
        prior: Beta prior shared by both variants (default uniform)
        n_samples: Monte Carlo samples per posterior per day
        seed: Seed for the local random generator

    Returns:
        One DayState per experiment day
    """
    if prior is None:
        prior = BetaPrior.uniform()

    control = variant_frame(experiment, CONTROL)
    treatment = variant_frame(experiment, TREATMENT)
    if len(control) != len(treatment):
        raise ValueError("control and treatment must cover the same days")

    rng = np.random.default_rng(seed)
    states = []
    for c_row, t_row in zip(control.itertuples(), treatment.itertuples()):
        c_counts = VariantCounts(int(c_row.cum_clicked), int(c_row.cum_sessions))
        t_counts = VariantCounts(int(t_row.cum_clicked), int(t_row.cum_sessions))

        c_samples = sample_posterior(update_posterior(prior, c_counts.clicked, c_counts.not_clicked), n_samples, rng)
        t_samples = sample_posterior(update_posterior(prior, t_counts.clicked, t_counts.not_clicked), n_samples, rng)
        loss_treatment, loss_control = expected_loss(c_samples, t_samples)

        states.append(DayState(
            day=int(c_row.day),
            prob_treatment_better=prob_treatment_better(c_samples, t_samples),
            loss_treatment=loss_treatment,
            loss_control=loss_control,
            p_value=two_proportion_p_value(c_counts, t_counts),
            treatment_ahead=t_counts.ctr > c_counts.ctr,
        ))
    return states


def evaluate_stopping_rule(
    experiment: pd.DataFrame,
    rule,
    prior: Optional[BetaPrior] = None,
    n_samples: int = 20_000,
    seed: int = 42
) -> StoppingOutcome:
    """
    Apply a stopping rule to every day of an experiment.

    The trace covers all days, including those after the rule would have
    stopped, so charts can show what happens if you keep going.
    """
    states = daily_states(experiment, prior=prior, n_samples=n_samples, seed=seed)

    rows = []
    stop_day = None
    decision = INCONCLUSIVE
    for state in states:
        day_decision = rule.decide(state)
        if day_decision is not None and stop_day is None:
            stop_day = state.day
            decision = day_decision
        rows.append({
            "day": state.day,
            "prob_treatment_better": state.prob_treatment_better,
            "loss_treatment": state.loss_treatment,
            "loss_control": state.loss_control,
            "p_value": state.p_value,
            "stop": day_decision is not None,
            "decision": day_decision or "",
        })

    logger.info("stopping_rule_evaluated", rule=rule.name, stop_day=stop_day, decision=decision)
    return StoppingOutcome(
        rule_name=rule.name,
        trace=pd.DataFrame(rows),
        stop_day=stop_day,
        decision=decision,
    )


# =============================================================================
# The Peeking Problem
# =============================================================================

def simulate_peeking(
    ctr: float,
    avg_daily_sessions: int,
    num_days: int,
    rules: Sequence,
    n_experiments: int = 300,
    prior: Optional[BetaPrior] = None,
    n_samples: int = 2_000,
    seed: int = 42
) -> pd.DataFrame:
    """
    Run A/A experiments (both arms share `ctr`) and count false winners.

    Every declared winner in an A/A test is a false positive. Each rule is
    scored twice: when it is allowed to stop at any daily peek, and when it is
    only consulted once at the end.

    Returns:
        DataFrame with columns rule, checked, false_positive_rate
    """
    if n_experiments <= 0:
        raise ValueError(f"n_experiments must be positive, got {n_experiments}")
    if prior is None:
        prior = BetaPrior.uniform()

    rng = np.random.default_rng(seed)
    shape = (n_experiments, num_days)
    sessions = {v: rng.poisson(avg_daily_sessions, size=shape) for v in (CONTROL, TREATMENT)}
    clicked = {v: rng.binomial(sessions[v], ctr) for v in (CONTROL, TREATMENT)}
    cum_sessions = {v: np.cumsum(sessions[v], axis=1) for v in (CONTROL, TREATMENT)}
    cum_clicked = {v: np.cumsum(clicked[v], axis=1) for v in (CONTROL, TREATMENT)}

    fired_any = np.zeros((len(rules), n_experiments), dtype=bool)
    fired_final = np.zeros((len(rules), n_experiments), dtype=bool)

    for day in range(num_days):
        c_alpha = prior.shape1 + cum_clicked[CONTROL][:, day]
        c_beta = prior.shape2 + cum_sessions[CONTROL][:, day] - cum_clicked[CONTROL][:, day]
        t_alpha = prior.shape1 + cum_clicked[TREATMENT][:, day]
        t_beta = prior.shape2 + cum_sessions[TREATMENT][:, day] - cum_clicked[TREATMENT][:, day]

        size = (n_experiments, n_samples)
        c_samples = stats.beta(c_alpha[:, None], c_beta[:, None]).rvs(size=size, random_state=rng)
        t_samples = stats.beta(t_alpha[:, None], t_beta[:, None]).rvs(size=size, random_state=rng)

        prob_better = np.mean(t_samples > c_samples, axis=1)
        loss_treatment = np.mean(np.maximum(c_samples - t_samples, 0), axis=1)
        loss_control = np.mean(np.maximum(t_samples - c_samples, 0), axis=1)

        for i in range(n_experiments):
            c_counts = VariantCounts(int(cum_clicked[CONTROL][i, day]), int(cum_sessions[CONTROL][i, day]))
            t_counts = VariantCounts(int(cum_clicked[TREATMENT][i, day]), int(cum_sessions[TREATMENT][i, day]))
            state = DayState(
                day=day,
                prob_treatment_better=float(prob_better[i]),
                loss_treatment=float(loss_treatment[i]),
                loss_control=float(loss_control[i]),
                p_value=two_proportion_p_value(c_counts, t_counts),
                treatment_ahead=t_counts.ctr > c_counts.ctr,
            )
            for r, rule in enumerate(rules):
                fired = rule.decide(state) is not None
                fired_any[r, i] |= fired
                if day == num_days - 1:
                    fired_final[r, i] = fired

    rows = []
    for r, rule in enumerate(rules):
        rows.append({"rule": rule.name, "checked": "Every day", "false_positive_rate": float(fired_any[r].mean())})
        rows.append({"rule": rule.name, "checked": "Final day only", "false_positive_rate": float(fired_final[r].mean())})

    logger.info("peeking_simulated", n_experiments=n_experiments, num_days=num_days, rules=len(rules))
    return pd.DataFrame(rows)


# =============================================================================
# Planning
# =============================================================================

DEFAULT_SAMPLE_SIZES = np.array([
    100, 250, 500, 750, 1000, 1500, 2000, 3000, 4000, 5000,
    7500, 10000, 15000, 20000, 30000, 50000
])


@dataclass
class SampleSizeResult:
    """Container for sample size calculation results."""
    sample_size_per_variant: int
    total_sample_size: int
    expected_runtime_days: Optional[float]
    power_at_size: float
    sample_sizes: np.ndarray
    powers: np.ndarray


def compute_sample_size(
    baseline_ctr: float,
    mde_relative: float,
    target_power: float = 0.80,
    win_threshold: float = 0.95,
    prior: Optional[BetaPrior] = None,
    n_simulations: int = 400,
    n_draws: int = 2_000,
    daily_sessions: Optional[int] = None,
    sample_sizes: np.ndarray = DEFAULT_SAMPLE_SIZES,
    seed: int = 42
) -> SampleSizeResult:
    """
    Compute required sessions per variant using Bayesian simulation.

    For each candidate size, simulate experiments under the assumed uplift and
    count how often P(treatment > control) reaches the win threshold.

    Args:
        baseline_ctr: Expected click-through rate for control (e.g., 0.05 for 5%)
        mde_relative: Minimum detectable effect as relative uplift (e.g., 0.10 for 10%)
        target_power: Desired probability of detecting the effect (default 80%)
        win_threshold: P(win) needed to call the treatment a winner
        prior: Beta prior shared by both variants (default uniform)
        n_simulations: Number of simulated experiments per sample size
        n_draws: Monte Carlo draws per posterior in each simulated experiment
        daily_sessions: Optional daily sessions across both variants for a runtime estimate
        sample_sizes: Candidate sessions per variant, ascending
        seed: Seed for the local random generator

    Returns:
        SampleSizeResult with recommended sample size and power curve
    """
    treatment_ctr = baseline_ctr * (1 + mde_relative)
    if not 0 < baseline_ctr < 1 or not 0 < treatment_ctr < 1:
        raise ValueError(
            f"baseline_ctr and uplifted ctr must lie in (0, 1), got {baseline_ctr} and {treatment_ctr}"
        )
    if prior is None:
        prior = BetaPrior.uniform()

    rng = np.random.default_rng(seed)
    powers = []

    for n in sample_sizes:
        control_clicked = rng.binomial(n, baseline_ctr, size=n_simulations)
        treatment_clicked = rng.binomial(n, treatment_ctr, size=n_simulations)

        size = (n_simulations, n_draws)
        control_samples = stats.beta(
            prior.shape1 + control_clicked[:, None], prior.shape2 + (n - control_clicked)[:, None]
        ).rvs(size=size, random_state=rng)
        treatment_samples = stats.beta(
            prior.shape1 + treatment_clicked[:, None], prior.shape2 + (n - treatment_clicked)[:, None]
        ).rvs(size=size, random_state=rng)

        prob_better = np.mean(treatment_samples > control_samples, axis=1)
        powers.append(float(np.mean(prob_better >= win_threshold)))

    powers = np.array(powers)

    achieved_idx = np.where(powers >= target_power)[0]
    if len(achieved_idx) > 0:
        recommended_n = int(sample_sizes[achieved_idx[0]])
        power_at_size = float(powers[achieved_idx[0]])
    else:
        # If target not achieved, recommend largest tested
        recommended_n = int(sample_sizes[-1])
        power_at_size = float(powers[-1])

    runtime_days = None
    if daily_sessions is not None and daily_sessions > 0:
        runtime_days = (recommended_n * 2) / daily_sessions

    return SampleSizeResult(
        sample_size_per_variant=recommended_n,
        total_sample_size=recommended_n * 2,
        expected_runtime_days=runtime_days,
        power_at_size=power_at_size,
        sample_sizes=np.array(sample_sizes),
        powers=powers
    )
