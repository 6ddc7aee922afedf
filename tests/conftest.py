"""Test fixtures and mocks."""

from __future__ import annotations

import pytest

from forecast_fusion.contracts import Critique, Evidence, MarketSnapshot


def make_evidence(eid: str, **overrides) -> Evidence:
    """Evidence record with strong type-A defaults."""
    base = {
        "id": eid,
        "claim": f"Claim {eid}",
        "polarity": 1,
        "type": "A",
        "urls": [],
        "origin_id": f"source-{eid}",
        "first_report": False,
        "verifiability": 1.0,
        "corroborations_indep": 2,
        "consistency": 1.0,
    }
    base.update(overrides)
    return base  # type: ignore[return-value]


@pytest.fixture
def sample_evidence() -> list[Evidence]:
    return [
        make_evidence(
            "ev-001",
            claim="The central bank published its rate decision in an official statement",
            urls=["https://www.federalreserve.gov/newsevents/pressreleases/a.htm"],
            origin_id="federalreserve.gov",
        ),
        make_evidence(
            "ev-002",
            claim="Wire report says the vote passed",
            type="B",
            urls=["https://www.reuters.com/markets/vote-passed"],
            origin_id="reuters.com",
            verifiability=0.8,
            consistency=0.9,
            corroborations_indep=1,
        ),
        make_evidence(
            "ev-003",
            claim="Syndicated copy of the wire report",
            type="B",
            urls=["https://www.reuters.com/markets/vote-passed-update"],
            origin_id="reuters.com",
            verifiability=0.8,
            consistency=0.9,
            corroborations_indep=1,
        ),
        make_evidence(
            "ev-004",
            claim="Blog post reportedly disputes the count",
            polarity=-1,
            type="D",
            urls=["https://someblog.example.com/post"],
            origin_id="someblog.example.com",
            verifiability=0.3,
            consistency=0.5,
            corroborations_indep=0,
        ),
    ]


@pytest.fixture
def sample_critique() -> Critique:
    return Critique(
        duplication_flags=["ev-003"],
        correlation_adjustments={"reuters.com": 0.9},
        data_concerns=["someblog"],
        missing=["No polling data after the vote"],
    )


@pytest.fixture
def sample_snapshot() -> MarketSnapshot:
    return MarketSnapshot(probability=0.4, as_of="2026-02-20T00:00:00Z", source="test")
