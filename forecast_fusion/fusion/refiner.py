"""Critique-driven refinement — second aggregation pass on filtered evidence.

Steps:
  1. Drop evidence matched by duplication flags or data-concern keywords
     (deterministic substring filter, not a classifier).
  2. Merge critic correlation adjustments into the rho map (override).
  3. Optionally narrow by topic relevance via an external classifier,
     failing open: on any classifier failure every item is kept.
  4. Re-run the neutral aggregator, then the optional market blend.

The refined pass is an independent call with new inputs; the first-pass
evidence list and rho map are never modified.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Mapping

from forecast_fusion.contracts import (
    Critique,
    Evidence,
    MarketFn,
    RefinedResult,
    RelevanceClassifier,
)
from forecast_fusion.fusion.cluster import DEFAULT_RHO
from forecast_fusion.fusion.market import DEFAULT_ALPHA, DEFAULT_MARKET_TIMEOUT_S, aggregate
from forecast_fusion.fusion.odds import PROB_CEILING, PROB_FLOOR
from forecast_fusion.scoring.evidence import TYPE_CAPS

DEFAULT_RELEVANCE_TIMEOUT_S = 30.0


def is_flagged_duplicate(e: Evidence, duplication_flags: list[str]) -> bool:
    """True when id or origin_id contains any duplication flag."""
    eid = e.get("id", "")
    origin = e.get("origin_id", "") or ""
    return any(flag and (flag in eid or flag in origin) for flag in duplication_flags)


def has_data_concern(e: Evidence, data_concerns: list[str]) -> bool:
    """True when claim or origin_id mentions a concern keyword (case-insensitive)."""
    claim = (e.get("claim", "") or "").lower()
    origin = (e.get("origin_id", "") or "").lower()
    for concern in data_concerns:
        needle = concern.strip().lower()
        if needle and (needle in claim or needle in origin):
            return True
    return False


def apply_critique(evidence: list[Evidence], critique: Critique) -> list[Evidence]:
    """Return the evidence that survives the critic's textual filter."""
    flags = [f for f in critique.get("duplication_flags", []) if f]
    concerns = [c for c in critique.get("data_concerns", []) if c and c.strip()]
    return [
        e
        for e in evidence
        if not is_flagged_duplicate(e, flags) and not has_data_concern(e, concerns)
    ]


def merge_rho(
    base: Mapping[str, float] | None,
    adjustments: Mapping[str, float] | None,
) -> dict[str, float]:
    """Overlay critic adjustments on the base rho map. Last write wins."""
    merged = dict(base or {})
    merged.update(adjustments or {})
    return merged


async def narrow_by_relevance(
    question: str,
    evidence: list[Evidence],
    classifier: RelevanceClassifier,
    *,
    timeout_s: float = DEFAULT_RELEVANCE_TIMEOUT_S,
) -> list[Evidence]:
    """Keep only items the classifier marks relevant. Fails open.

    A classifier error, a timeout, or a verdict that would discard every
    item returns the input unchanged.
    """
    if not evidence:
        return []
    try:
        keep_ids = await asyncio.wait_for(
            classifier.classify(question, list(evidence)),
            timeout=timeout_s,
        )
    except asyncio.TimeoutError:
        print(
            f"WARNING: relevance classifier timed out after {timeout_s}s, keeping all evidence",
            file=sys.stderr,
        )
        return list(evidence)
    except Exception as e:
        print(f"WARNING: relevance classifier failed ({e}), keeping all evidence", file=sys.stderr)
        return list(evidence)

    if not isinstance(keep_ids, list):
        print(
            f"WARNING: relevance classifier returned {type(keep_ids).__name__}, "
            "keeping all evidence",
            file=sys.stderr,
        )
        return list(evidence)
    keep = set(keep_ids)
    narrowed = [e for e in evidence if e["id"] in keep]
    if not narrowed:
        print(
            "WARNING: relevance classifier rejected every item, keeping all evidence",
            file=sys.stderr,
        )
        return list(evidence)
    return narrowed


async def refine(
    p0: float,
    evidence: list[Evidence],
    critique: Critique,
    rho_by_cluster: Mapping[str, float] | None = None,
    *,
    question: str = "",
    relevance_classifier: RelevanceClassifier | None = None,
    market_fn: MarketFn | None = None,
    alpha: float = DEFAULT_ALPHA,
    market_timeout_s: float = DEFAULT_MARKET_TIMEOUT_S,
    relevance_timeout_s: float = DEFAULT_RELEVANCE_TIMEOUT_S,
    default_rho: float = DEFAULT_RHO,
    caps: Mapping[str, float] = TYPE_CAPS,
    floor: float = PROB_FLOOR,
    ceiling: float = PROB_CEILING,
) -> RefinedResult:
    """Filter and re-weight evidence from critic feedback, then re-aggregate."""
    filtered = apply_critique(evidence, critique)
    if relevance_classifier is not None:
        filtered = await narrow_by_relevance(
            question,
            filtered,
            relevance_classifier,
            timeout_s=relevance_timeout_s,
        )
    rho = merge_rho(rho_by_cluster, critique.get("correlation_adjustments"))

    kept = {e["id"] for e in filtered}
    dropped = tuple(e["id"] for e in evidence if e["id"] not in kept)

    result = await aggregate(
        p0,
        filtered,
        rho,
        market_fn,
        alpha=alpha,
        timeout_s=market_timeout_s,
        default_rho=default_rho,
        caps=caps,
        floor=floor,
        ceiling=ceiling,
    )
    return RefinedResult(
        result=result,
        filtered_evidence=tuple(filtered),
        dropped_ids=dropped,
        rho_by_cluster=rho,
    )
