import numpy as np
import pandas as pd
import plotly.graph_objects as go
import plotly.io as pio
import pytest

from bayes_talk import charts
from bayes_talk.bayes import ExperimentData, VariantCounts, compute_bayesian_analysis
from bayes_talk.priors import BetaPrior, prior_gallery
from bayes_talk.simulation import simulate_experiment
from bayes_talk.stopping import (
    FixedHorizonRule,
    ProbabilityThresholdRule,
    PValueRule,
    SampleSizeResult,
    StoppingOutcome,
    evaluate_stopping_rule,
    simulate_peeking,
)
from bayes_talk.theme import TEMPLATE_NAME, rgba


@pytest.fixture(scope="module")
def data():
    return ExperimentData(VariantCounts(450, 5000), VariantCounts(500, 5000))


@pytest.fixture(scope="module")
def results(data):
    return compute_bayesian_analysis(data, n_samples=10_000)


@pytest.fixture(scope="module")
def experiment():
    return simulate_experiment(0.085, 0.095, 300, 6, seed=4)


class TestTheme:
    def test_template_registered(self):
        assert TEMPLATE_NAME in pio.templates

    def test_rgba(self):
        assert rgba('#FF0080', 0.5) == "rgba(255, 0, 128, 0.5)"

    def test_rgba_rejects_short_colours(self):
        with pytest.raises(ValueError):
            rgba('#FFF', 0.5)


class TestDistributionCharts:
    def test_prior_gallery(self):
        priors = prior_gallery(0.085)
        fig = charts.create_prior_gallery_plot(priors)
        assert isinstance(fig, go.Figure)
        assert len(fig.data) == len(priors)
        assert fig.data[0].name == "Uniform: Beta(1, 1)"

    def test_prior_posterior(self):
        prior = BetaPrior(5, 45)
        fig = charts.create_prior_posterior_plot(prior, BetaPrior(35, 315), 30 / 300)
        assert len(fig.data) == 2
        assert len(fig.layout.shapes) == 1

    def test_posterior_plot(self, results, data):
        fig = charts.create_posterior_plot(results, data)
        assert [trace.name for trace in fig.data] == ["Control", "Treatment"]
        assert len(fig.layout.shapes) == 2

    def test_posterior_animation_has_frame_per_day(self, experiment):
        fig = charts.create_posterior_animation(experiment, BetaPrior.uniform())
        assert len(fig.frames) == 7
        assert len(fig.data) == 2
        assert len(fig.layout.sliders[0].steps) == 7

    def test_monte_carlo_scatter(self, results):
        fig = charts.create_monte_carlo_plot(results, n_points=1000)
        assert len(fig.data) == 3
        assert len(fig.data[0].x) + len(fig.data[1].x) == 1000
        assert np.all(np.asarray(fig.data[0].y) > np.asarray(fig.data[0].x))

    def test_uplift_histogram(self, results):
        fig = charts.create_uplift_distribution_plot(results)
        assert fig.data[0].type == "histogram"
        assert fig.layout.showlegend is False

    def test_risk_plot(self, results):
        fig = charts.create_risk_plot(results)
        assert list(fig.data[0].x) == ['Choose Treatment', 'Choose Control']


class TestStoppingCharts:
    def test_traffic_plot(self, experiment):
        fig = charts.create_traffic_plot(experiment)
        assert len(fig.data) == 4

    def test_win_probability_marks_stop(self, experiment):
        outcome = evaluate_stopping_rule(experiment, FixedHorizonRule(6, 0.6), n_samples=2_000)
        fig = charts.create_win_probability_plot(outcome, 0.95)
        expected_shapes = 3 if outcome.stop_day is not None else 2
        assert len(fig.layout.shapes) == expected_shapes

    def test_expected_loss_plot(self, experiment):
        outcome = evaluate_stopping_rule(experiment, ProbabilityThresholdRule(0.95), n_samples=2_000)
        fig = charts.create_expected_loss_plot(outcome, 0.0005)
        assert len(fig.data) == 2
        assert len(fig.data[0].x) == 6

    def test_expected_loss_keeps_zero_days(self):
        trace = pd.DataFrame({
            "day": [0, 1, 2],
            "prob_treatment_better": [0.9, 0.999, 1.0],
            "loss_treatment": [0.002, 0.0001, 0.0],
            "loss_control": [0.01, 0.02, 0.03],
            "p_value": [0.1, 0.01, 0.001],
            "stop": [False, True, True],
            "decision": [None, "treatment", "treatment"],
        })
        outcome = StoppingOutcome("Expected loss", trace, stop_day=1, decision="treatment")

        fig = charts.create_expected_loss_plot(outcome, 0.0005)
        assert len(fig.data[0].y) == 3
        assert min(fig.data[0].y) == charts.LOSS_FLOOR
        assert all(y > 0 for y in fig.data[0].y)

    def test_peeking_plot(self):
        table = simulate_peeking(0.1, 200, 4, [PValueRule(), FixedHorizonRule(4)], n_experiments=10, n_samples=200)
        fig = charts.create_peeking_plot(table)
        assert [trace.name for trace in fig.data] == ["Every day", "Final day only"]

    def test_power_curve(self):
        result = SampleSizeResult(
            sample_size_per_variant=1000,
            total_sample_size=2000,
            expected_runtime_days=None,
            power_at_size=0.85,
            sample_sizes=np.array([100, 1000, 10000]),
            powers=np.array([0.1, 0.85, 1.0]),
        )
        fig = charts.create_power_curve_plot(result, 0.8)
        assert list(fig.data[0].y) == pytest.approx([10.0, 85.0, 100.0])

    def test_power_curve_shows_runtime(self):
        result = SampleSizeResult(
            sample_size_per_variant=1000,
            total_sample_size=2000,
            expected_runtime_days=4.0,
            power_at_size=0.85,
            sample_sizes=np.array([100, 1000, 10000]),
            powers=np.array([0.1, 0.85, 1.0]),
        )
        fig = charts.create_power_curve_plot(result, 0.8)
        texts = [annotation.text for annotation in fig.layout.annotations]
        assert any("2,000 total" in text and "about 4 days" in text for text in texts)
