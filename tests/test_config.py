"""Tests for config.py — Settings defaults, env loading, validation."""

from __future__ import annotations

import os
from unittest.mock import patch

from forecast_fusion.config import Settings, get_settings
from forecast_fusion.scoring.evidence import TYPE_CAPS, UNIT_TYPE_CAPS

_ENV_KEYS = (
    "DEFAULT_RHO",
    "CAP_SCALE",
    "MARKET_ALPHA",
    "MARKET_TIMEOUT_S",
    "PROB_FLOOR",
    "PROB_CEILING",
    "PRIOR_FLOOR",
    "PRIOR_CEILING",
    "DOMAIN_CAP",
    "RELEVANCE_TIMEOUT_S",
)


def _clean_env() -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if k not in _ENV_KEYS}


class TestDefaults:
    def test_fusion_defaults(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            s = Settings()
        assert s.default_rho == 0.5
        assert s.cap_scale == "standard"
        assert s.market_alpha == 0.1
        assert s.market_timeout_s == 10.0
        assert s.domain_cap == 5

    def test_probability_bounds_defaults(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            s = Settings()
        assert (s.prob_floor, s.prob_ceiling) == (0.001, 0.999)
        assert (s.prior_floor, s.prior_ceiling) == (0.1, 0.9)

    def test_defaults_are_valid(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            assert Settings().validate() == []


class TestEnvLoading:
    def test_reads_environment(self):
        env = {"DEFAULT_RHO": "0.7", "CAP_SCALE": "unit", "MARKET_ALPHA": "0.25"}
        with patch.dict(os.environ, env):
            s = get_settings()
        assert s.default_rho == 0.7
        assert s.cap_scale == "unit"
        assert s.market_alpha == 0.25

    def test_explicit_override(self):
        s = Settings(default_rho=0.9)
        assert s.default_rho == 0.9


class TestTypeCaps:
    def test_standard_scale(self):
        assert Settings(cap_scale="standard").type_caps() == TYPE_CAPS

    def test_unit_scale(self):
        assert Settings(cap_scale="unit").type_caps() == UNIT_TYPE_CAPS


class TestValidate:
    def test_rho_out_of_range(self):
        errors = Settings(default_rho=1.2).validate()
        assert any("DEFAULT_RHO" in e for e in errors)

    def test_alpha_out_of_range(self):
        errors = Settings(market_alpha=-0.1).validate()
        assert any("MARKET_ALPHA" in e for e in errors)

    def test_inverted_probability_bounds(self):
        errors = Settings(prob_floor=0.9, prob_ceiling=0.1).validate()
        assert any("PROB_FLOOR" in e for e in errors)

    def test_prior_bounds_must_be_open(self):
        errors = Settings(prior_floor=0.0, prior_ceiling=0.9).validate()
        assert any("PRIOR_FLOOR" in e for e in errors)

    def test_unknown_cap_scale(self):
        errors = Settings(cap_scale="double").validate()
        assert any("CAP_SCALE" in e for e in errors)

    def test_domain_cap_positive(self):
        assert any("DOMAIN_CAP" in e for e in Settings(domain_cap=0).validate())

    def test_timeouts_positive(self):
        errors = Settings(market_timeout_s=0, relevance_timeout_s=-1).validate()
        assert any("MARKET_TIMEOUT_S" in e for e in errors)
        assert any("RELEVANCE_TIMEOUT_S" in e for e in errors)


class TestWarnings:
    def test_low_rho_warns(self):
        warns = Settings(default_rho=0.1, market_alpha=0.1).warnings()
        assert any("DEFAULT_RHO" in w for w in warns)

    def test_high_alpha_warns(self):
        warns = Settings(default_rho=0.5, market_alpha=0.8).warnings()
        assert any("MARKET_ALPHA" in w for w in warns)

    def test_defaults_quiet(self):
        assert Settings(default_rho=0.5, market_alpha=0.1).warnings() == []
