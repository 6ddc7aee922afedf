"""Settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from forecast_fusion.contracts import CapScale
from forecast_fusion.scoring.evidence import caps_for_scale


def _load_env() -> None:
    """Load .env from project root if it exists."""
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)


_load_env()


@dataclass(frozen=True)
class Settings:
    # LLM collaborators (critic, relevance)
    anthropic_api_key: str = field(default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", ""))
    critic_model: str = field(
        default_factory=lambda: os.environ.get("CRITIC_MODEL", "claude-sonnet-4-6")
    )
    max_concurrent_requests: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CONCURRENT_REQUESTS", "5"))
    )

    # Clustering
    default_rho: float = field(default_factory=lambda: float(os.environ.get("DEFAULT_RHO", "0.5")))
    domain_cap: int = field(default_factory=lambda: int(os.environ.get("DOMAIN_CAP", "5")))

    # Scoring
    cap_scale: str = field(default_factory=lambda: os.environ.get("CAP_SCALE", "standard"))

    # Probability bounds
    prob_floor: float = field(default_factory=lambda: float(os.environ.get("PROB_FLOOR", "0.001")))
    prob_ceiling: float = field(
        default_factory=lambda: float(os.environ.get("PROB_CEILING", "0.999"))
    )
    prior_floor: float = field(default_factory=lambda: float(os.environ.get("PRIOR_FLOOR", "0.1")))
    prior_ceiling: float = field(
        default_factory=lambda: float(os.environ.get("PRIOR_CEILING", "0.9"))
    )

    # Market blend
    market_alpha: float = field(
        default_factory=lambda: float(os.environ.get("MARKET_ALPHA", "0.1"))
    )
    market_timeout_s: float = field(
        default_factory=lambda: float(os.environ.get("MARKET_TIMEOUT_S", "10"))
    )
    polymarket_url: str = field(
        default_factory=lambda: os.environ.get(
            "POLYMARKET_URL", "https://gamma-api.polymarket.com"
        )
    )

    # Refinement
    relevance_timeout_s: float = field(
        default_factory=lambda: float(os.environ.get("RELEVANCE_TIMEOUT_S", "30"))
    )

    def type_caps(self) -> dict[str, float]:
        """Cap table for the configured scale."""
        return caps_for_scale(self.cap_scale)

    def validate(self) -> list[str]:
        """Return list of validation errors. Empty list means valid."""
        errors = []
        if not 0.0 <= self.default_rho <= 1.0:
            errors.append(f"DEFAULT_RHO must be in [0, 1], got {self.default_rho}")
        if not 0.0 <= self.market_alpha <= 1.0:
            errors.append(f"MARKET_ALPHA must be in [0, 1], got {self.market_alpha}")
        if not 0.0 < self.prob_floor < self.prob_ceiling < 1.0:
            errors.append(
                "PROB_FLOOR and PROB_CEILING must satisfy 0 < floor < ceiling < 1,"
                f" got {self.prob_floor}, {self.prob_ceiling}"
            )
        if not 0.0 < self.prior_floor < self.prior_ceiling < 1.0:
            errors.append(
                "PRIOR_FLOOR and PRIOR_CEILING must satisfy 0 < floor < ceiling < 1,"
                f" got {self.prior_floor}, {self.prior_ceiling}"
            )
        if self.cap_scale not in {s.value for s in CapScale}:
            errors.append(f"CAP_SCALE must be 'standard' or 'unit', got '{self.cap_scale}'")
        if self.domain_cap < 1:
            errors.append("DOMAIN_CAP must be >= 1")
        if self.market_timeout_s <= 0:
            errors.append("MARKET_TIMEOUT_S must be > 0")
        if self.relevance_timeout_s <= 0:
            errors.append("RELEVANCE_TIMEOUT_S must be > 0")
        return errors

    def warnings(self) -> list[str]:
        """Return list of non-fatal configuration warnings."""
        warns: list[str] = []
        if self.default_rho < 0.2:
            warns.append(
                f"DEFAULT_RHO={self.default_rho} treats same-origin reports as nearly "
                "independent and will overstate confidence."
            )
        if self.market_alpha > 0.5:
            warns.append(
                f"MARKET_ALPHA={self.market_alpha} lets the market dominate p_aware."
            )
        return warns


def get_settings() -> Settings:
    """Create Settings from current environment."""
    return Settings()
