"""Plotly figures shown on the slides."""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from bayes_talk.bayes import BayesianResults, ExperimentData, sequential_posteriors, uplift_samples
from bayes_talk.priors import BetaPrior
from bayes_talk.simulation import variant_frame
from bayes_talk.stopping import SampleSizeResult, StoppingOutcome
from bayes_talk.theme import (
    CONTROL_COLOR,
    NEUTRAL_COLOR,
    PRIOR_COLOR,
    PRIOR_PALETTE,
    TEMPLATE_NAME,
    THRESHOLD_COLOR,
    TREATMENT_COLOR,
    UPLIFT_COLOR,
    register_template,
    rgba,
)

register_template()

VARIANT_COLORS = {"control": CONTROL_COLOR, "treatment": TREATMENT_COLOR}

# Smallest loss drawn on the log axis, in percentage points
LOSS_FLOOR = 1e-6


def _ctr_grid(distributions: Sequence[BetaPrior], lower_q: float = 0.001, upper_q: float = 0.999,
              points: int = 500) -> np.ndarray:
    """x range covering the bulk of every distribution."""
    lows = [d.distribution().ppf(lower_q) for d in distributions]
    highs = [d.distribution().ppf(upper_q) for d in distributions]
    x_min = max(0.0, min(lows) - 0.005)
    x_max = min(1.0, max(highs) + 0.005)
    return np.linspace(x_min, x_max, points)


# =============================================================================
# Priors and Updating
# =============================================================================

def create_prior_gallery_plot(priors: Sequence[BetaPrior], x_max: float = 0.3) -> go.Figure:
    """Overlay candidate priors on a shared click-through-rate axis."""

    # Avoid the endpoints where Jeffreys-style priors blow up
    x = np.linspace(0.0005, x_max, 500)

    fig = go.Figure()
    for i, prior in enumerate(priors):
        fig.add_trace(go.Scatter(
            x=x, y=prior.pdf(x),
            mode='lines',
            name=prior.label(),
            line=dict(color=PRIOR_PALETTE[i % len(PRIOR_PALETTE)], width=3)
        ))

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="What Do We Believe Before the Test?",
        xaxis_title="Click-through rate",
        yaxis_title="Probability density",
        xaxis_tickformat='.0%',
        legend=dict(yanchor="top", y=0.99, xanchor="right", x=0.99),
        height=500
    )

    return fig


def create_prior_posterior_plot(prior: BetaPrior, posterior: BetaPrior, observed_ctr: float) -> go.Figure:
    """Show how observed clicks move and narrow the prior."""

    x = _ctr_grid([prior, posterior])

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=x, y=prior.pdf(x),
        mode='lines',
        name=f"Prior {prior.label()}",
        line=dict(color=PRIOR_COLOR, width=3, dash='dash'),
    ))
    fig.add_trace(go.Scatter(
        x=x, y=posterior.pdf(x),
        mode='lines',
        name=f"Posterior Beta({posterior.shape1:g}, {posterior.shape2:g})",
        line=dict(color=CONTROL_COLOR, width=3),
        fill='tozeroy',
        fillcolor=rgba(CONTROL_COLOR, 0.2)
    ))

    fig.add_vline(
        x=observed_ctr,
        line_dash="dot",
        line_color=NEUTRAL_COLOR,
        annotation_text=f"Observed: {observed_ctr:.2%}",
        annotation_position="top right"
    )

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="Prior + Data = Posterior",
        xaxis_title="Click-through rate",
        yaxis_title="Probability density",
        xaxis_tickformat='.1%',
        hovermode='x unified',
        legend=dict(yanchor="top", y=0.99, xanchor="right", x=0.99),
        height=500
    )

    return fig


def create_posterior_plot(results: BayesianResults, data: ExperimentData) -> go.Figure:
    """Posterior distributions of both variants with observed rates."""

    x = _ctr_grid([results.control_posterior, results.treatment_posterior])

    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=x, y=results.control_posterior.pdf(x),
        mode='lines',
        name='Control',
        line=dict(color=CONTROL_COLOR, width=3),
        fill='tozeroy',
        fillcolor=rgba(CONTROL_COLOR, 0.2)
    ))

    fig.add_trace(go.Scatter(
        x=x, y=results.treatment_posterior.pdf(x),
        mode='lines',
        name='Treatment',
        line=dict(color=TREATMENT_COLOR, width=3),
        fill='tozeroy',
        fillcolor=rgba(TREATMENT_COLOR, 0.2)
    ))

    fig.add_vline(
        x=data.control.ctr,
        line_dash="dash",
        line_color=CONTROL_COLOR,
        annotation_text=f"Control: {data.control.ctr:.2%}",
        annotation_position="top left"
    )
    fig.add_vline(
        x=data.treatment.ctr,
        line_dash="dash",
        line_color=TREATMENT_COLOR,
        annotation_text=f"Treatment: {data.treatment.ctr:.2%}",
        annotation_position="top right"
    )

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="Posterior Distributions of Click-Through Rate",
        xaxis_title="Click-through rate",
        yaxis_title="Probability density",
        xaxis_tickformat='.1%',
        hovermode='x unified',
        legend=dict(yanchor="top", y=0.99, xanchor="right", x=0.99),
        height=500
    )

    return fig


def create_posterior_animation(experiment: pd.DataFrame, prior: BetaPrior) -> go.Figure:
    """
    Animate both posteriors as each day of data arrives.

    Frame 0 is the prior; frame k shows the posteriors after k days. The x
    range is fixed to the final posteriors so the narrowing is visible.
    """
    posteriors = {}
    for variant in VARIANT_COLORS:
        daily = variant_frame(experiment, variant)
        posteriors[variant] = [prior] + sequential_posteriors(
            prior, daily["clicked"].tolist(), daily["not_clicked"].tolist()
        )

    finals = [history[-1] for history in posteriors.values()]
    x = _ctr_grid(finals, lower_q=0.0001, upper_q=0.9999)
    y_max = max(float(np.max(d.pdf(x))) for d in finals) * 1.1

    def traces(step: int):
        return [
            go.Scatter(
                x=x, y=posteriors[variant][step].pdf(x),
                mode='lines',
                name=variant.title(),
                line=dict(color=color, width=3),
                fill='tozeroy',
                fillcolor=rgba(color, 0.2)
            )
            for variant, color in VARIANT_COLORS.items()
        ]

    n_steps = len(posteriors["control"])
    frames = [
        go.Frame(data=traces(step), name=str(step), layout=go.Layout(title_text=_day_title(step)))
        for step in range(n_steps)
    ]

    fig = go.Figure(data=traces(0), frames=frames)
    fig.update_layout(
        template=TEMPLATE_NAME,
        title=_day_title(0),
        xaxis_title="Click-through rate",
        yaxis_title="Probability density",
        xaxis_tickformat='.1%',
        xaxis_range=[x[0], x[-1]],
        yaxis_range=[0, y_max],
        height=550,
        updatemenus=[dict(
            type="buttons",
            showactive=False,
            x=0.0, y=-0.18, xanchor="left",
            buttons=[
                dict(label="▶ Play", method="animate",
                     args=[None, dict(frame=dict(duration=500, redraw=True), fromcurrent=True)]),
                dict(label="⏸ Pause", method="animate",
                     args=[[None], dict(frame=dict(duration=0, redraw=False), mode="immediate")]),
            ]
        )],
        sliders=[dict(
            active=0,
            x=0.15, y=-0.12, len=0.85,
            currentvalue=dict(prefix="Day "),
            steps=[
                dict(label=str(step), method="animate",
                     args=[[str(step)], dict(mode="immediate", frame=dict(duration=0, redraw=True))])
                for step in range(n_steps)
            ]
        )]
    )

    return fig


def _day_title(step: int) -> str:
    return "Before the test: prior only" if step == 0 else f"Posteriors after day {step}"


# =============================================================================
# Monte Carlo
# =============================================================================

def create_monte_carlo_plot(results: BayesianResults, n_points: int = 3000, seed: int = 0) -> go.Figure:
    """Scatter of paired posterior draws; points above the diagonal are treatment wins."""

    n = min(n_points, len(results.samples_control))
    idx = np.random.default_rng(seed).choice(len(results.samples_control), size=n, replace=False)
    control = results.samples_control[idx]
    treatment = results.samples_treatment[idx]
    wins = treatment > control

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=control[wins], y=treatment[wins],
        mode='markers',
        name='Treatment wins',
        marker=dict(color=TREATMENT_COLOR, size=5, opacity=0.5)
    ))
    fig.add_trace(go.Scatter(
        x=control[~wins], y=treatment[~wins],
        mode='markers',
        name='Control wins',
        marker=dict(color=CONTROL_COLOR, size=5, opacity=0.5)
    ))

    lo = float(min(control.min(), treatment.min()))
    hi = float(max(control.max(), treatment.max()))
    fig.add_trace(go.Scatter(
        x=[lo, hi], y=[lo, hi],
        mode='lines',
        name='Equal CTR',
        line=dict(color=NEUTRAL_COLOR, dash='dash', width=2)
    ))

    fig.update_layout(
        template=TEMPLATE_NAME,
        title=f"P(Treatment > Control) ≈ {results.prob_treatment_better:.1%}",
        xaxis_title="Control CTR draw",
        yaxis_title="Treatment CTR draw",
        xaxis_tickformat='.1%',
        yaxis_tickformat='.1%',
        legend=dict(yanchor="bottom", y=0.01, xanchor="right", x=0.99),
        height=550
    )

    return fig


def create_uplift_distribution_plot(results: BayesianResults) -> go.Figure:
    """Uplift distribution plot with credible interval."""

    uplift = uplift_samples(results.samples_control, results.samples_treatment)
    lower, upper = results.uplift_ci

    fig = go.Figure()

    fig.add_trace(go.Histogram(
        x=uplift,
        nbinsx=100,
        name='Relative Uplift Distribution',
        marker_color=UPLIFT_COLOR,
        opacity=0.7,
        histnorm='probability density'
    ))

    fig.add_vline(
        x=0,
        line_dash="solid",
        line_color=THRESHOLD_COLOR,
        line_width=2,
        annotation_text="No Effect",
        annotation_position="top"
    )

    fig.add_vrect(
        x0=lower,
        x1=upper,
        fillcolor=rgba(UPLIFT_COLOR, 0.2),
        line_width=0,
        annotation_text=f"{results.credible_level:.0%} Credible Interval",
        annotation_position="top left"
    )

    fig.add_vline(
        x=results.expected_uplift,
        line_dash="dash",
        line_color=UPLIFT_COLOR,
        line_width=2,
        annotation_text=f"Expected: {results.expected_uplift:+.1%}",
        annotation_position="bottom"
    )

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="How Much Better? Relative Uplift of Treatment",
        xaxis_title="Relative uplift",
        yaxis_title="Probability density",
        xaxis_tickformat='+.0%',
        showlegend=False,
        height=500
    )

    return fig


def create_risk_plot(results: BayesianResults) -> go.Figure:
    """Expected loss of each decision, in percentage points of CTR."""

    fig = go.Figure()

    categories = ['Choose Treatment', 'Choose Control']
    losses = [
        results.loss_choosing_treatment * 100,
        results.loss_choosing_control * 100
    ]

    fig.add_trace(go.Bar(
        x=categories,
        y=losses,
        marker_color=[TREATMENT_COLOR, CONTROL_COLOR],
        text=[f'{loss:.3f} pp' for loss in losses],
        textposition='auto'
    ))

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="Expected Loss of Each Decision",
        yaxis_title="Expected loss (percentage points)",
        showlegend=False,
        height=450
    )

    return fig


# =============================================================================
# Data and Stopping Rules
# =============================================================================

def create_traffic_plot(experiment: pd.DataFrame) -> go.Figure:
    """Daily sessions as bars with the cumulative CTR of each variant on a second axis."""

    fig = make_subplots(specs=[[{"secondary_y": True}]])

    for variant, color in VARIANT_COLORS.items():
        daily = variant_frame(experiment, variant)
        fig.add_trace(go.Bar(
            x=daily["day"] + 1, y=daily["sessions"],
            name=f"{variant.title()} sessions",
            marker_color=rgba(color, 0.35)
        ), secondary_y=False)
        fig.add_trace(go.Scatter(
            x=daily["day"] + 1, y=daily["cum_ctr"],
            mode='lines+markers',
            name=f"{variant.title()} cumulative CTR",
            line=dict(color=color, width=3)
        ), secondary_y=True)

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="What We Observe Each Day",
        xaxis_title="Experiment day",
        barmode='group',
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0),
        height=500
    )
    fig.update_yaxes(title_text="Sessions", secondary_y=False)
    fig.update_yaxes(title_text="Cumulative CTR", tickformat='.1%', secondary_y=True)

    return fig


def create_win_probability_plot(outcome: StoppingOutcome, threshold: float) -> go.Figure:
    """P(treatment > control) after each day with the decision thresholds."""

    trace = outcome.trace
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=trace["day"] + 1, y=trace["prob_treatment_better"],
        mode='lines+markers',
        name='P(Treatment > Control)',
        line=dict(color=TREATMENT_COLOR, width=3),
        marker=dict(size=8)
    ))

    fig.add_hline(
        y=threshold,
        line_dash="dash",
        line_color=THRESHOLD_COLOR,
        annotation_text=f"Ship treatment: {threshold:.0%}",
        annotation_position="top left"
    )
    fig.add_hline(
        y=1 - threshold,
        line_dash="dash",
        line_color=CONTROL_COLOR,
        annotation_text=f"Keep control: {1 - threshold:.0%}",
        annotation_position="bottom left"
    )
    _mark_stop(fig, outcome)

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="Probability to Beat Control, Day by Day",
        xaxis_title="Experiment day",
        yaxis_title="P(Treatment > Control)",
        yaxis_tickformat='.0%',
        yaxis_range=[0, 1.02],
        showlegend=False,
        height=500
    )

    return fig


def create_expected_loss_plot(outcome: StoppingOutcome, threshold_of_caring: float) -> go.Figure:
    """Expected loss of both decisions over time against the threshold of caring."""

    trace = outcome.trace
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=trace["day"] + 1, y=np.maximum(trace["loss_treatment"] * 100, LOSS_FLOOR),
        mode='lines+markers',
        name='Choose Treatment',
        line=dict(color=TREATMENT_COLOR, width=3)
    ))
    fig.add_trace(go.Scatter(
        x=trace["day"] + 1, y=np.maximum(trace["loss_control"] * 100, LOSS_FLOOR),
        mode='lines+markers',
        name='Choose Control',
        line=dict(color=CONTROL_COLOR, width=3)
    ))

    fig.add_hline(
        y=threshold_of_caring * 100,
        line_dash="dash",
        line_color=THRESHOLD_COLOR,
        annotation_text=f"Threshold of caring: {threshold_of_caring * 100:.2f} pp",
        annotation_position="top right"
    )
    _mark_stop(fig, outcome)

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="Expected Loss, Day by Day",
        xaxis_title="Experiment day",
        yaxis_title="Expected loss (percentage points)",
        yaxis_type="log",
        legend=dict(yanchor="top", y=0.99, xanchor="right", x=0.99),
        height=500
    )

    return fig


def _mark_stop(fig: go.Figure, outcome: StoppingOutcome) -> None:
    if outcome.stop_day is None:
        return
    fig.add_vline(
        x=outcome.stop_day + 1,
        line_dash="dot",
        line_color=NEUTRAL_COLOR,
        annotation_text=f"Stop: {outcome.decision}",
        annotation_position="top"
    )


def create_peeking_plot(peeking: pd.DataFrame, nominal_rate: Optional[float] = 0.05) -> go.Figure:
    """False-positive rate of each rule when peeking daily versus checking once."""

    fig = go.Figure()
    colors = {"Every day": THRESHOLD_COLOR, "Final day only": NEUTRAL_COLOR}
    for checked, group in peeking.groupby("checked", sort=False):
        fig.add_trace(go.Bar(
            x=group["rule"],
            y=group["false_positive_rate"],
            name=checked,
            marker_color=colors.get(checked, UPLIFT_COLOR),
            text=[f'{rate:.1%}' for rate in group["false_positive_rate"]],
            textposition='auto'
        ))

    if nominal_rate is not None:
        fig.add_hline(
            y=nominal_rate,
            line_dash="dash",
            line_color=NEUTRAL_COLOR,
            annotation_text=f"Nominal: {nominal_rate:.0%}",
            annotation_position="top right"
        )

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="Peeking at an A/A Test: How Often Do We Declare a Winner?",
        yaxis_title="False positive rate",
        yaxis_tickformat='.0%',
        barmode='group',
        legend=dict(yanchor="top", y=0.99, xanchor="left", x=0.01),
        height=500
    )

    return fig


def create_power_curve_plot(result: SampleSizeResult, target_power: float) -> go.Figure:
    """Power curve visualization."""

    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=result.sample_sizes,
        y=result.powers * 100,
        mode='lines+markers',
        name='Detection probability',
        line=dict(color=CONTROL_COLOR, width=3),
        marker=dict(size=8)
    ))

    fig.add_hline(
        y=target_power * 100,
        line_dash="dash",
        line_color=TREATMENT_COLOR,
        annotation_text=f"Target: {target_power:.0%}",
        annotation_position="right"
    )

    recommended = f"Recommended: {result.sample_size_per_variant:,} per variant ({result.total_sample_size:,} total)"
    if result.expected_runtime_days is not None:
        recommended += f", about {result.expected_runtime_days:.0f} days"

    fig.add_vline(
        x=result.sample_size_per_variant,
        line_dash="dot",
        line_color=THRESHOLD_COLOR,
        annotation_text=recommended,
        annotation_position="top"
    )

    fig.update_layout(
        template=TEMPLATE_NAME,
        title="How Many Sessions Do We Need?",
        xaxis_title="Sessions (per variant)",
        yaxis_title="Detection probability (%)",
        xaxis_type="log",
        yaxis_range=[0, 105],
        hovermode='x unified',
        height=500
    )

    return fig
