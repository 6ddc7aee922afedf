"""Tests for scoring.normalize — URL canonicalisation and evidence dedup."""

from __future__ import annotations

import copy

from forecast_fusion.contracts import Evidence
from forecast_fusion.scoring.normalize import host_from_url, normalize_evidence, normalize_url


def _ev(eid: str, urls: list[str], **overrides) -> Evidence:
    base = {
        "id": eid,
        "claim": f"claim {eid}",
        "polarity": 1,
        "type": "B",
        "urls": urls,
        "origin_id": "",
        "first_report": False,
        "verifiability": 0.8,
        "corroborations_indep": 1,
        "consistency": 0.8,
    }
    base.update(overrides)
    return base  # type: ignore[return-value]


class TestNormalizeUrl:
    def test_strips_www_tracking_and_fragment(self):
        url = "https://www.Example.com/path/?utm_source=x&id=3&fbclid=abc#frag"
        assert normalize_url(url) == "https://example.com/path?id=3"

    def test_root_path(self):
        assert normalize_url("https://example.com/") == "https://example.com"

    def test_keeps_port(self):
        assert normalize_url("http://example.com:8080/a") == "http://example.com:8080/a"

    def test_non_http_rejected(self):
        assert normalize_url("ftp://example.com/file") is None
        assert normalize_url("mailto:desk@example.com") is None

    def test_blank_rejected(self):
        assert normalize_url("") is None
        assert normalize_url("   ") is None

    def test_bad_port_rejected(self):
        assert normalize_url("http://example.com:99999/x") is None

    def test_equivalent_urls_collapse(self):
        a = normalize_url("https://www.reuters.com/story/")
        b = normalize_url("https://reuters.com/story?utm_campaign=feed")
        assert a == b


class TestHostFromUrl:
    def test_strips_www(self):
        assert host_from_url("https://www.BBC.co.uk/news") == "bbc.co.uk"

    def test_no_host(self):
        assert host_from_url("not a url") is None


class TestNormalizeEvidence:
    def test_drops_item_reusing_a_source_url(self):
        items = [
            _ev("a", ["https://www.reuters.com/story"]),
            _ev("b", ["https://reuters.com/story/?utm_source=tw"]),
        ]
        kept = normalize_evidence(items)
        assert [e["id"] for e in kept] == ["a"]

    def test_origin_rederived_from_host(self):
        (kept,) = normalize_evidence([_ev("a", ["https://www.apnews.com/x"], origin_id="AP")])
        assert kept["origin_id"] == "apnews.com"
        assert kept["urls"] == ["https://apnews.com/x"]

    def test_item_without_urls_keeps_origin(self):
        (kept,) = normalize_evidence([_ev("a", [], origin_id="desk-notes")])
        assert kept["origin_id"] == "desk-notes"

    def test_missing_origin_becomes_unknown(self):
        (kept,) = normalize_evidence([_ev("a", ["not-a-url"])])
        assert kept["origin_id"] == "unknown"
        assert kept["urls"] == []

    def test_domain_cap(self):
        items = [_ev(f"e{i}", [f"https://example.com/{i}"]) for i in range(4)]
        kept = normalize_evidence(items, domain_cap=2)
        assert [e["id"] for e in kept] == ["e0", "e1"]

    def test_urls_within_item_deduped(self):
        (kept,) = normalize_evidence(
            [_ev("a", ["https://example.com/x", "https://www.example.com/x/"])]
        )
        assert kept["urls"] == ["https://example.com/x"]

    def test_input_not_mutated(self):
        items = [_ev("a", ["https://www.example.com/x?utm_medium=email"], origin_id="old")]
        before = copy.deepcopy(items)
        normalize_evidence(items)
        assert items == before
