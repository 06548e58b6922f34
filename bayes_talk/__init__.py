"""Bayesian A/B testing talk: priors, conjugate updating, Monte Carlo and stopping rules."""

__version__ = "1.0.0"
