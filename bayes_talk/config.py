from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeckSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BAYES_TALK_", env_file=".env", extra="ignore")

    # Reproducibility
    seed: int = 42
    n_samples: int = Field(100_000, gt=0)

    # Decision thresholds
    credible_level: float = 0.95
    win_threshold: float = 0.95
    threshold_of_caring: float = Field(0.0005, gt=0)  # Expected loss in absolute CTR

    # Running example: a call-to-action button test
    baseline_ctr: float = 0.085
    treatment_ctr: float = 0.095
    avg_daily_sessions: int = Field(500, gt=0)
    num_days: int = Field(21, gt=0)

    # Peeking simulation
    peeking_experiments: int = Field(300, gt=0)

    log_level: str = "INFO"
    output_dir: Path = Path("build/charts")

    @field_validator("credible_level")
    @classmethod
    def check_probability(cls, v):
        if not 0 < v < 1:
            raise ValueError("must lie strictly between 0 and 1")
        return v

    @field_validator("win_threshold")
    @classmethod
    def check_win_threshold(cls, v):
        if not 0.5 < v < 1:
            raise ValueError("win threshold must lie strictly between 0.5 and 1")
        return v

    @field_validator("baseline_ctr", "treatment_ctr")
    @classmethod
    def check_ctr(cls, v):
        if not 0 < v < 1:
            raise ValueError("click-through rate must lie strictly between 0 and 1")
        return v


@lru_cache()
def get_settings() -> DeckSettings:
    return DeckSettings()
