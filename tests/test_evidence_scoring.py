"""Tests for scoring.evidence — per-item LLR scoring."""

from __future__ import annotations

import math

from forecast_fusion.contracts import Evidence
from forecast_fusion.scoring.evidence import (
    TYPE_CAPS,
    UNIT_TYPE_CAPS,
    caps_for_scale,
    evidence_log_lr,
    reliability_from_corroborations,
    type_cap,
)


def _ev(**overrides) -> Evidence:
    base = {
        "id": "ev-1",
        "claim": "Regulator approved the filing",
        "polarity": 1,
        "type": "A",
        "urls": ["https://example.gov/a"],
        "origin_id": "example.gov",
        "first_report": False,
        "verifiability": 1.0,
        "corroborations_indep": 2,
        "consistency": 1.0,
    }
    base.update(overrides)
    return base  # type: ignore[return-value]


class TestTypeCap:
    def test_caps_strictly_decrease(self):
        assert TYPE_CAPS["A"] > TYPE_CAPS["B"] > TYPE_CAPS["C"] > TYPE_CAPS["D"] > 0
        assert (
            UNIT_TYPE_CAPS["A"] > UNIT_TYPE_CAPS["B"] > UNIT_TYPE_CAPS["C"] > UNIT_TYPE_CAPS["D"]
        )

    def test_unit_scale_is_half_of_standard(self):
        for tier in "ABCD":
            assert math.isclose(UNIT_TYPE_CAPS[tier] * 2, TYPE_CAPS[tier])

    def test_lowercase_tier_accepted(self):
        assert type_cap("b") == TYPE_CAPS["B"]

    def test_unknown_tier_gets_weakest_cap(self):
        assert type_cap("Z") == TYPE_CAPS["D"]

    def test_caps_for_scale(self):
        assert caps_for_scale("unit") == UNIT_TYPE_CAPS
        assert caps_for_scale("standard") == TYPE_CAPS


class TestReliability:
    def test_zero_corroborations(self):
        assert reliability_from_corroborations(0) == 0.0

    def test_negative_clamped_to_zero(self):
        assert reliability_from_corroborations(-3) == 0.0

    def test_two_corroborations(self):
        assert math.isclose(reliability_from_corroborations(2), 1 - math.exp(-2))

    def test_stays_below_one(self):
        assert reliability_from_corroborations(50) <= 1.0
        assert reliability_from_corroborations(5) < 1.0


class TestEvidenceLogLR:
    def test_worked_example_unit_scale(self):
        """cap_A = 1.0, ver=1, cons=1, 2 corroborations -> ~0.9594."""
        llr = evidence_log_lr(_ev(), caps=UNIT_TYPE_CAPS)
        expected = 0.5 + 0.3 * (1 - math.exp(-2)) + 0.2
        assert math.isclose(llr, expected)
        assert abs(llr - 0.9594) < 1e-3

    def test_standard_scale_doubles(self):
        unit = evidence_log_lr(_ev(), caps=UNIT_TYPE_CAPS)
        assert math.isclose(evidence_log_lr(_ev()), 2 * unit)

    def test_neutral_is_zero(self):
        assert evidence_log_lr(_ev(polarity=0)) == 0.0

    def test_neutral_ignores_hint(self):
        assert evidence_log_lr(_ev(polarity=0, log_lr_hint=3.0)) == 0.0

    def test_hint_returned_verbatim(self):
        assert evidence_log_lr(_ev(log_lr_hint=5.5)) == 5.5
        assert evidence_log_lr(_ev(polarity=-1, log_lr_hint=-0.25)) == -0.25

    def test_non_finite_hint_ignored(self):
        computed = evidence_log_lr(_ev())
        assert evidence_log_lr(_ev(log_lr_hint=float("nan"))) == computed
        assert evidence_log_lr(_ev(log_lr_hint=None)) == computed

    def test_con_evidence_is_negative(self):
        assert evidence_log_lr(_ev(polarity=-1)) == -evidence_log_lr(_ev())

    def test_first_report_halved(self):
        assert math.isclose(evidence_log_lr(_ev(first_report=True)), evidence_log_lr(_ev()) / 2)

    def test_out_of_range_quality_clamped(self):
        wild = evidence_log_lr(_ev(verifiability=7.0, consistency=-2.0))
        tame = evidence_log_lr(_ev(verifiability=1.0, consistency=0.0))
        assert wild == tame

    def test_negative_corroborations_clamped(self):
        assert evidence_log_lr(_ev(corroborations_indep=-4)) == evidence_log_lr(
            _ev(corroborations_indep=0)
        )

    def test_never_exceeds_cap(self):
        for tier, cap in TYPE_CAPS.items():
            for pol in (1, -1):
                e = _ev(type=tier, polarity=pol, verifiability=9, consistency=9)
                e["corroborations_indep"] = 99
                llr = evidence_log_lr(e)
                assert abs(llr) <= cap

    def test_lower_tier_scores_less(self):
        assert evidence_log_lr(_ev(type="A")) > evidence_log_lr(_ev(type="D"))

    def test_polarity_reduced_to_sign(self):
        assert evidence_log_lr(_ev(polarity=3)) == evidence_log_lr(_ev(polarity=1))

    def test_input_not_mutated(self):
        e = _ev()
        snapshot = dict(e)
        evidence_log_lr(e)
        assert e == snapshot
