"""
Slides of the talk, in presentation order.

Charts are zero-argument callables so a slide only simulates its data when it
is actually shown or exported.
"""

from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Callable, List, Optional

import pandas as pd
import plotly.graph_objects as go
import structlog

from bayes_talk import charts
from bayes_talk.bayes import BayesianResults, ExperimentData, VariantCounts, compute_bayesian_analysis, update_posterior
from bayes_talk.config import DeckSettings
from bayes_talk.priors import BetaPrior, prior_gallery
from bayes_talk.simulation import simulate_experiment, variant_frame
from bayes_talk.stopping import (
    ExpectedLossRule,
    FixedHorizonRule,
    PValueRule,
    ProbabilityThresholdRule,
    SampleSizeResult,
    StoppingOutcome,
    compute_sample_size,
    evaluate_stopping_rule,
    simulate_peeking,
)

logger = structlog.get_logger(__name__)

ASSETS_DIR = Path(__file__).resolve().parent / "assets"


@dataclass
class Slide:
    key: str
    title: str
    body: str
    chart: Optional[Callable[[], go.Figure]] = None
    image: Optional[Path] = None
    notes: str = ""


class Scenario:
    """The running example: a call-to-action button test simulated from the settings."""

    def __init__(self, settings: DeckSettings):
        self.settings = settings

    @cached_property
    def prior(self) -> BetaPrior:
        return BetaPrior.from_mean(self.settings.baseline_ctr, 50, name="Weakly informative")

    @cached_property
    def experiment(self) -> pd.DataFrame:
        s = self.settings
        return simulate_experiment(
            s.baseline_ctr, s.treatment_ctr, s.avg_daily_sessions, s.num_days, seed=s.seed
        )

    @cached_property
    def data(self) -> ExperimentData:
        totals = {}
        for variant in ("control", "treatment"):
            last = variant_frame(self.experiment, variant).iloc[-1]
            totals[variant] = VariantCounts(int(last["cum_clicked"]), int(last["cum_sessions"]))
        return ExperimentData(control=totals["control"], treatment=totals["treatment"])

    @cached_property
    def first_day(self) -> VariantCounts:
        first = variant_frame(self.experiment, "control").iloc[0]
        return VariantCounts(int(first["clicked"]), int(first["sessions"]))

    @cached_property
    def results(self) -> BayesianResults:
        s = self.settings
        return compute_bayesian_analysis(
            self.data, prior=self.prior, n_samples=s.n_samples,
            credible_level=s.credible_level, seed=s.seed
        )

    @cached_property
    def probability_outcome(self) -> StoppingOutcome:
        rule = ProbabilityThresholdRule(self.settings.win_threshold)
        return evaluate_stopping_rule(self.experiment, rule, prior=self.prior, seed=self.settings.seed)

    @cached_property
    def loss_outcome(self) -> StoppingOutcome:
        rule = ExpectedLossRule(self.settings.threshold_of_caring)
        return evaluate_stopping_rule(self.experiment, rule, prior=self.prior, seed=self.settings.seed)

    @cached_property
    def peeking(self) -> pd.DataFrame:
        s = self.settings
        rules = [
            PValueRule(0.05),
            ProbabilityThresholdRule(s.win_threshold),
            FixedHorizonRule(s.num_days, s.win_threshold),
        ]
        return simulate_peeking(
            s.baseline_ctr, s.avg_daily_sessions, s.num_days, rules,
            n_experiments=s.peeking_experiments, prior=self.prior, seed=s.seed
        )

    @cached_property
    def sample_size(self) -> SampleSizeResult:
        s = self.settings
        mde = s.treatment_ctr / s.baseline_ctr - 1
        return compute_sample_size(
            s.baseline_ctr, mde, win_threshold=s.win_threshold, prior=self.prior,
            daily_sessions=2 * s.avg_daily_sessions, seed=s.seed
        )


def build_deck(settings: DeckSettings) -> List[Slide]:
    """Assemble the talk. Slide keys are unique and stable; they name exported files."""
    sc = Scenario(settings)

    deck = [
        Slide(
            key="title",
            title="Bayesian A/B Testing: Knowing When You Know",
            body="""
Two versions of a call-to-action button. Which one gets clicked more,
how sure are we, and when can we stop the test?

*Priors · Beta-Binomial updating · Monte Carlo · Stopping rules*
""",
            image=ASSETS_DIR / "cta_buttons.svg",
            notes="Introduce the running example. Everything in this deck is simulated live.",
        ),
        Slide(
            key="the-data",
            title="The Running Example",
            body=f"""
Half of the traffic sees the **control** button, half sees the **treatment**.
Every session either clicks or it doesn't.

In this simulation the true click-through rates are
**{settings.baseline_ctr:.1%}** and **{settings.treatment_ctr:.1%}**, with about
**{settings.avg_daily_sessions:,}** sessions per variant per day for **{settings.num_days}** days.
In real life we never get to see the true rates.
""",
            chart=lambda: charts.create_traffic_plot(sc.experiment),
            notes="Point out how noisy the early days are.",
        ),
        Slide(
            key="priors",
            title="Priors: What We Believe Before the Test",
            body="""
A **Beta(shape1, shape2)** prior works like having already seen `shape1`
clicks and `shape2` non-clicks.

- The uniform prior says every CTR from 0% to 100% is equally plausible.
- Informative priors are centred on the historical CTR; their strength is
  how many sessions of history they are worth.
- A pessimistic prior makes the treatment work harder to convince us.
""",
            chart=lambda: charts.create_prior_gallery_plot(prior_gallery(settings.baseline_ctr)),
            notes="Ask the audience which prior they would pick for a button test.",
        ),
        Slide(
            key="conjugate-update",
            title="Beta-Binomial: Updating Is Just Addition",
            body="""
With a Beta prior and Binomial clicks, the posterior is again a Beta:

```
posterior_shape1 = prior_shape1 + clicked
posterior_shape2 = prior_shape2 + not_clicked
```

Updating day by day gives exactly the same answer as updating once with the totals.
""",
            image=ASSETS_DIR / "beta_binomial.svg",
        ),
        Slide(
            key="prior-to-posterior",
            title="One Day of Data",
            body="""
A weakly informative prior worth 50 sessions meets the first day of control traffic.
The data already outweighs the prior: the posterior is narrower and sits close to
the observed CTR.
""",
            chart=lambda: charts.create_prior_posterior_plot(
                sc.prior,
                update_posterior(sc.prior, sc.first_day.clicked, sc.first_day.not_clicked),
                sc.first_day.ctr,
            ),
        ),
        Slide(
            key="posterior-animation",
            title="Watching the Posteriors Learn",
            body="""
Press play. Each frame adds one more day of clicks to both variants.
The curves narrow as evidence accumulates and slowly pull apart.
""",
            chart=lambda: charts.create_posterior_animation(sc.experiment, sc.prior),
            notes="Let the animation run once without talking.",
        ),
        Slide(
            key="posteriors",
            title="Where We End Up",
            body="""
After the full test we have a posterior for each variant.
The overlap between the two curves is exactly the uncertainty we want to quantify.
""",
            chart=lambda: charts.create_posterior_plot(sc.results, sc.data),
        ),
        Slide(
            key="monte-carlo",
            title="Monte Carlo: Is Treatment Better?",
            body="""
There is no need for an integral. Draw many CTRs from each posterior,
pair them up, and count how often treatment beats control.

The share of points above the diagonal **is** P(treatment > control).
""",
            chart=lambda: charts.create_monte_carlo_plot(sc.results),
            notes="Mention that 100,000 draws take milliseconds.",
        ),
        Slide(
            key="uplift",
            title="How Much Better?",
            body="""
The same paired draws give the whole distribution of the relative uplift
`(treatment - control) / control`, with a credible interval we can read literally:
the true uplift lies inside it with the stated probability.
""",
            chart=lambda: charts.create_uplift_distribution_plot(sc.results),
        ),
        Slide(
            key="expected-loss",
            title="Expected Loss: The Price of Being Wrong",
            body="""
A 90% chance to win is not the whole story. **Expected loss** averages how much
CTR we give up in the draws where our choice turns out to be the worse one.

Pick the variant with the lower expected loss.
""",
            chart=lambda: charts.create_risk_plot(sc.results),
        ),
        Slide(
            key="stopping-probability",
            title=f"Stopping Rule 1: P(win) ≥ {settings.win_threshold:.0%}",
            body="""
Recompute the probability to beat control after every day and stop as soon as it
crosses the threshold in either direction.
""",
            chart=lambda: charts.create_win_probability_plot(sc.probability_outcome, settings.win_threshold),
        ),
        Slide(
            key="stopping-loss",
            title="Stopping Rule 2: Threshold of Caring",
            body=f"""
Stop when the expected loss of the leading variant drops below a loss we are
willing to accept: here **{settings.threshold_of_caring * 100:.2f} percentage points** of CTR.

This rule stops early when the variants clearly differ *or* when they are so
similar that a mistake would not matter.
""",
            chart=lambda: charts.create_expected_loss_plot(sc.loss_outcome, settings.threshold_of_caring),
        ),
        Slide(
            key="peeking",
            title="The Peeking Problem",
            body="""
Simulate many A/A tests where both buttons are identical, so any declared winner
is a false positive.

Checking a p-value every day and stopping at the first significant result declares
far more winners than the nominal 5%. A fixed horizon only looks once.
Probability thresholds are not immune either: peeking still finds more winners,
which is why the expected-loss rule bounds the *cost* of a mistake instead.
""",
            chart=lambda: charts.create_peeking_plot(sc.peeking),
            notes="This is the slide people photograph.",
        ),
        Slide(
            key="planning",
            title="Planning: How Long Should We Run?",
            body="""
Before launching, simulate the experiment under the uplift you hope to detect and
ask how often the posterior would reach the win threshold for a given traffic.
The dotted line marks the smallest test that gets there, and how many days of
the running example's traffic it would take.
""",
            chart=lambda: charts.create_power_curve_plot(sc.sample_size, 0.80),
        ),
        Slide(
            key="takeaways",
            title="Takeaways",
            body="""
1. A Beta prior is a statement in units of sessions. Choose its strength on purpose.
2. Beta-Binomial updating is addition: clicks go to `shape1`, non-clicks to `shape2`.
3. Monte Carlo turns posteriors into answers: P(win), uplift intervals, expected loss.
4. Decide on a stopping rule before you peek, and prefer rules that bound the cost of being wrong.
""",
        ),
    ]

    keys = [slide.key for slide in deck]
    if len(set(keys)) != len(keys):
        raise ValueError("Slide keys must be unique")

    logger.debug("deck_built", slides=len(deck))
    return deck


def find_slide(deck: List[Slide], key: str) -> Slide:
    for slide in deck:
        if slide.key == key:
            return slide
    raise KeyError(f"No slide with key {key!r}")
