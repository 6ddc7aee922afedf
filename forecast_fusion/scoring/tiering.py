"""Source-tier suggestion for evidence records (A highest, D lowest).

Heuristic, deterministic, zero LLM calls. Research collaborators may use it
to sanity-check the tier an extractor assigned before aggregation.
"""

from __future__ import annotations

from typing import NamedTuple
from urllib.parse import urlparse

from forecast_fusion.contracts import EvidenceType

_OFFICIAL_TLDS = {".gov", ".mil"}
# .gov hosts (federalreserve.gov, sec.gov) are caught by TLD
_OFFICIAL_DOMAINS = {
    "bankofengland.co.uk",
    "bis.org",
    "europa.eu",
    "who.int",
    "un.org",
}

_WIRE_DOMAINS = {
    "reuters.com",
    "bloomberg.com",
    "wsj.com",
    "ft.com",
    "apnews.com",
    "ap.org",
}

_PRIMARY_INDICATORS = (
    "official statement",
    "press release",
    "according to documents",
    "on the record",
    "regulatory filing",
)
_SECONDARY_INDICATORS = ("expert analysis", "investigation found", "data shows", "study reveals")
_TERTIARY_INDICATORS = ("sources say", "reportedly", "according to reports")
_WEAK_INDICATORS = ("alleged", "rumored", "rumoured", "speculation", "unconfirmed")

_RECENCY_MARKERS = ("recent", "this week", "today")
_RECENCY_BONUS = 0.1


class TierSuggestion(NamedTuple):
    suggested_type: EvidenceType
    verifiability_bonus: float
    explanation: str


def _hosts(urls: list[str]) -> list[str]:
    hosts: list[str] = []
    for url in urls:
        try:
            hostname = (urlparse(url).hostname or "").lower()
        except ValueError:
            continue
        if hostname.startswith("www."):
            hostname = hostname[4:]
        if hostname:
            hosts.append(hostname)
    return hosts


def _matches(host: str, domains: set[str]) -> bool:
    # sub.reuters.com -> reuters.com
    parts = host.split(".")
    return any(".".join(parts[i:]) in domains for i in range(len(parts) - 1))


def suggest_evidence_type(
    claim: str,
    urls: list[str],
    source_description: str = "",
    *,
    current_year: int | None = None,
) -> TierSuggestion:
    """Suggest a tier from source hosts and wording of the claim."""
    score = 0
    notes: list[str] = []
    hosts = _hosts(urls)

    if any(h.endswith(tld) for h in hosts for tld in _OFFICIAL_TLDS) or any(
        _matches(h, _OFFICIAL_DOMAINS) for h in hosts
    ):
        score += 3
        notes.append("Official source (+3).")
    elif any(_matches(h, _WIRE_DOMAINS) for h in hosts):
        score += 2
        notes.append("High-quality news source (+2).")

    text = f"{claim} {source_description}".lower()
    if any(ind in text for ind in _PRIMARY_INDICATORS):
        score += 2
        notes.append("Primary source indicators (+2).")
    elif any(ind in text for ind in _SECONDARY_INDICATORS):
        score += 1
        notes.append("Secondary source indicators (+1).")
    elif any(ind in text for ind in _TERTIARY_INDICATORS):
        score -= 1
        notes.append("Tertiary source indicators (-1).")
    elif any(ind in text for ind in _WEAK_INDICATORS):
        score -= 2
        notes.append("Weak source indicators (-2).")

    bonus = 0.0
    recency = list(_RECENCY_MARKERS)
    if current_year is not None:
        recency.append(str(current_year))
    if any(marker in text for marker in recency):
        bonus = _RECENCY_BONUS
        notes.append("Recent publication (+0.1 verifiability).")

    if score >= 4:
        tier = EvidenceType.A
    elif score >= 2:
        tier = EvidenceType.B
    elif score >= 0:
        tier = EvidenceType.C
    else:
        tier = EvidenceType.D

    return TierSuggestion(tier, bonus, " ".join(notes))
