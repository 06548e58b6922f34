import numpy as np
import pytest

from bayes_talk.bayes import (
    ExperimentData,
    VariantCounts,
    compute_bayesian_analysis,
    credible_interval,
    expected_loss,
    prob_treatment_better,
    sample_posterior,
    sequential_posteriors,
    update_posterior,
    uplift_samples,
)
from bayes_talk.priors import BetaPrior


class TestVariantCounts:
    def test_not_clicked_and_ctr(self):
        counts = VariantCounts(clicked=25, sessions=100)
        assert counts.not_clicked == 75
        assert counts.ctr == pytest.approx(0.25)

    def test_zero_sessions(self):
        assert VariantCounts(clicked=0, sessions=0).ctr == 0.0

    def test_more_clicks_than_sessions(self):
        with pytest.raises(ValueError):
            VariantCounts(clicked=11, sessions=10)

    def test_negative_counts(self):
        with pytest.raises(ValueError):
            VariantCounts(clicked=-1, sessions=10)


class TestExperimentData:
    def test_observed_uplift(self):
        data = ExperimentData(VariantCounts(100, 1000), VariantCounts(120, 1000))
        assert data.observed_uplift == pytest.approx(0.2)

    def test_observed_uplift_without_control_clicks(self):
        data = ExperimentData(VariantCounts(0, 1000), VariantCounts(10, 1000))
        assert data.observed_uplift == 0.0


class TestPosteriorUpdate:
    def test_conjugate_update(self):
        posterior = update_posterior(BetaPrior(1, 1), clicked=30, not_clicked=70)
        assert posterior.shape1 == 31
        assert posterior.shape2 == 71

    def test_update_keeps_prior_name(self):
        posterior = update_posterior(BetaPrior(2, 8, name="Weak"), clicked=1, not_clicked=1)
        assert posterior.name == "Weak"

    def test_no_data_returns_prior_shapes(self):
        prior = BetaPrior(3, 7)
        posterior = update_posterior(prior, 0, 0)
        assert (posterior.shape1, posterior.shape2) == (3, 7)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError):
            update_posterior(BetaPrior.uniform(), clicked=-1, not_clicked=10)

    def test_sequential_equals_batch(self):
        prior = BetaPrior.from_mean(0.1, 50)
        clicked = [12, 9, 15, 11]
        not_clicked = [88, 95, 80, 102]

        posteriors = sequential_posteriors(prior, clicked, not_clicked)
        batch = update_posterior(prior, sum(clicked), sum(not_clicked))

        assert len(posteriors) == 4
        assert posteriors[-1].shape1 == pytest.approx(batch.shape1)
        assert posteriors[-1].shape2 == pytest.approx(batch.shape2)

    def test_sequential_posteriors_narrow(self):
        posteriors = sequential_posteriors(BetaPrior.uniform(), [10, 10, 10], [90, 90, 90])
        variances = [p.variance for p in posteriors]
        assert variances == sorted(variances, reverse=True)

    def test_sequential_length_mismatch(self):
        with pytest.raises(ValueError):
            sequential_posteriors(BetaPrior.uniform(), [1, 2], [3])


class TestMonteCarloHelpers:
    def test_sample_posterior_shape_and_range(self):
        samples = sample_posterior(BetaPrior(10, 90), 1000, np.random.default_rng(0))
        assert samples.shape == (1000,)
        assert np.all((samples > 0) & (samples < 1))

    def test_sample_posterior_reproducible(self):
        a = sample_posterior(BetaPrior(10, 90), 100, np.random.default_rng(3))
        b = sample_posterior(BetaPrior(10, 90), 100, np.random.default_rng(3))
        assert np.array_equal(a, b)

    def test_sample_posterior_rejects_zero_samples(self):
        with pytest.raises(ValueError):
            sample_posterior(BetaPrior.uniform(), 0)

    def test_prob_treatment_better(self):
        control = np.array([0.1, 0.2, 0.3])
        treatment = np.array([0.2, 0.1, 0.4])
        assert prob_treatment_better(control, treatment) == pytest.approx(2 / 3)

    def test_uplift_drops_non_finite(self):
        uplift = uplift_samples(np.array([0.0, 0.1]), np.array([0.1, 0.2]))
        assert uplift.tolist() == pytest.approx([1.0])

    def test_expected_loss(self):
        loss_treatment, loss_control = expected_loss(np.array([0.1, 0.3]), np.array([0.2, 0.1]))
        assert loss_treatment == pytest.approx(0.1)
        assert loss_control == pytest.approx(0.05)

    def test_credible_interval(self):
        lower, upper = credible_interval(np.arange(101, dtype=float), 0.9)
        assert lower == pytest.approx(5.0)
        assert upper == pytest.approx(95.0)

    def test_credible_interval_empty(self):
        assert credible_interval(np.array([]), 0.95) == (0.0, 0.0)

    def test_credible_interval_bad_level(self):
        with pytest.raises(ValueError):
            credible_interval(np.arange(10, dtype=float), 0.0)


class TestBayesianAnalysis:
    @pytest.fixture
    def clear_winner(self):
        return ExperimentData(VariantCounts(500, 10000), VariantCounts(700, 10000))

    def test_posteriors_use_uniform_prior_by_default(self, clear_winner):
        results = compute_bayesian_analysis(clear_winner, n_samples=10_000)
        assert results.control_posterior.shape1 == 501
        assert results.control_posterior.shape2 == 9501
        assert results.treatment_posterior.shape1 == 701
        assert results.treatment_posterior.shape2 == 9301

    def test_clear_winner(self, clear_winner):
        results = compute_bayesian_analysis(clear_winner, n_samples=20_000)
        assert results.prob_treatment_better > 0.99
        assert results.recommendation == "treatment"
        assert results.loss_choosing_treatment < results.loss_choosing_control
        assert results.expected_uplift == pytest.approx(0.4, abs=0.05)

    def test_interval_contains_expected_uplift(self, clear_winner):
        results = compute_bayesian_analysis(clear_winner, n_samples=20_000, credible_level=0.9)
        lower, upper = results.uplift_ci
        assert lower < results.expected_uplift < upper
        assert results.absolute_diff_ci[0] < results.absolute_diff_mean < results.absolute_diff_ci[1]
        assert results.credible_level == 0.9

    def test_identical_variants_are_a_coin_flip(self):
        data = ExperimentData(VariantCounts(500, 10000), VariantCounts(500, 10000))
        results = compute_bayesian_analysis(data, n_samples=100_000)
        assert results.prob_treatment_better == pytest.approx(0.5, abs=0.02)

    def test_reproducible_with_seed(self, clear_winner):
        a = compute_bayesian_analysis(clear_winner, n_samples=5_000, seed=7)
        b = compute_bayesian_analysis(clear_winner, n_samples=5_000, seed=7)
        assert a.prob_treatment_better == b.prob_treatment_better
        assert np.array_equal(a.samples_control, b.samples_control)

    def test_custom_prior(self, clear_winner):
        prior = BetaPrior(5, 95)
        results = compute_bayesian_analysis(clear_winner, prior=prior, n_samples=5_000)
        assert results.control_posterior.shape1 == 505
        assert results.control_posterior.shape2 == 9595

    def test_invalid_credible_level(self, clear_winner):
        with pytest.raises(ValueError):
            compute_bayesian_analysis(clear_winner, credible_level=1.5)
