"""Simulated traffic for the running call-to-action example."""

from typing import Optional

import numpy as np
import pandas as pd
import scipy.stats as stats

VARIANTS = ("control", "treatment")


def simulate_daily_traffic(
    ctr: float,
    avg_daily_sessions: int,
    num_days: int,
    rng: Optional[np.random.Generator] = None
) -> pd.DataFrame:
    """Simulate session and click counts for some number of days."""
    if not 0 <= ctr <= 1:
        raise ValueError(f"ctr must lie in [0, 1], got {ctr}")
    if avg_daily_sessions <= 0 or num_days <= 0:
        raise ValueError("avg_daily_sessions and num_days must be positive")
    if rng is None:
        rng = np.random.default_rng()

    sessions = stats.poisson.rvs(mu=avg_daily_sessions, size=num_days, random_state=rng)
    clicked = stats.binom.rvs(n=sessions, p=ctr, size=num_days, random_state=rng)

    with np.errstate(divide='ignore', invalid='ignore'):
        daily_ctr = np.where(sessions > 0, clicked / sessions, 0.0)

    return pd.DataFrame(
        {
            "day": np.arange(num_days),
            "sessions": sessions,
            "clicked": clicked,
            "not_clicked": sessions - clicked,
            "ctr": daily_ctr,
        }
    )


def cumulative_counts(frame: pd.DataFrame) -> pd.DataFrame:
    """Add running totals per variant."""
    frame = frame.sort_values(["variant", "day"]).copy()
    grouped = frame.groupby("variant")
    frame["cum_sessions"] = grouped["sessions"].cumsum()
    frame["cum_clicked"] = grouped["clicked"].cumsum()
    frame["cum_not_clicked"] = frame["cum_sessions"] - frame["cum_clicked"]
    frame["cum_ctr"] = frame["cum_clicked"] / frame["cum_sessions"].where(frame["cum_sessions"] > 0)
    frame["cum_ctr"] = frame["cum_ctr"].fillna(0.0)
    return frame.reset_index(drop=True)


def simulate_experiment(
    control_ctr: float,
    treatment_ctr: float,
    avg_daily_sessions: int,
    num_days: int,
    seed: int = 42
) -> pd.DataFrame:
    """
    Simulate both arms of an A/B test.

    Returns:
        Long DataFrame with one row per (variant, day) and cumulative columns
    """
    rng = np.random.default_rng(seed)
    frames = []
    for variant, ctr in zip(VARIANTS, (control_ctr, treatment_ctr)):
        daily = simulate_daily_traffic(ctr, avg_daily_sessions, num_days, rng)
        daily.insert(0, "variant", variant)
        frames.append(daily)
    return cumulative_counts(pd.concat(frames, ignore_index=True))


def variant_frame(experiment: pd.DataFrame, variant: str) -> pd.DataFrame:
    """Rows for one variant, in day order."""
    if variant not in VARIANTS:
        raise ValueError(f"Unknown variant: {variant}")
    return experiment[experiment["variant"] == variant].sort_values("day").reset_index(drop=True)
