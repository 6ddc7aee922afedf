"""Market-aware blending — phase two of aggregation.

    logit(p_aware) = (1 - alpha) * logit(p_neutral) + alpha * logit(m)

Blending happens in log-odds space. The market callback is only reachable
through compute_aware(), which takes a finished NeutralEstimate, so the
neutral number is fixed before any price is fetched.
"""

from __future__ import annotations

import asyncio
import math
import sys
from collections.abc import Mapping

from forecast_fusion.contracts import (
    AggregationResult,
    Evidence,
    MarketFn,
    MarketSnapshot,
    NeutralEstimate,
)
from forecast_fusion.fusion.aggregator import aggregate_neutral
from forecast_fusion.fusion.cluster import DEFAULT_RHO
from forecast_fusion.fusion.odds import PROB_CEILING, PROB_FLOOR, clamp_probability, logit, sigmoid
from forecast_fusion.scoring.evidence import TYPE_CAPS

DEFAULT_ALPHA = 0.1
DEFAULT_MARKET_TIMEOUT_S = 10.0


def blend_market(
    p_neutral: float,
    market_probability: float,
    alpha: float = DEFAULT_ALPHA,
    *,
    floor: float = PROB_FLOOR,
    ceiling: float = PROB_CEILING,
) -> float | None:
    """Blend the neutral estimate with a market price under trust weight alpha.

    alpha = 0 returns None (nothing to blend); alpha = 1 returns the market.
    """
    _check_alpha(alpha)
    if alpha == 0.0:
        return None
    m = clamp_probability(market_probability, floor=floor, ceiling=ceiling)
    if alpha == 1.0:
        return m
    p = clamp_probability(p_neutral, floor=floor, ceiling=ceiling)
    blended = (1.0 - alpha) * logit(p) + alpha * logit(m)
    return clamp_probability(sigmoid(blended), floor=floor, ceiling=ceiling)


async def compute_aware(
    neutral: NeutralEstimate,
    market_fn: MarketFn | None = None,
    *,
    alpha: float = DEFAULT_ALPHA,
    timeout_s: float = DEFAULT_MARKET_TIMEOUT_S,
    floor: float = PROB_FLOOR,
    ceiling: float = PROB_CEILING,
) -> AggregationResult:
    """Attach a market-aware probability to a finished neutral estimate.

    The callback is awaited at most once. Timeout, failure or an unusable
    snapshot leave p_aware as None; p_neutral is always returned.
    """
    _check_alpha(alpha)
    p_aware: float | None = None
    snapshot: MarketSnapshot | None = None

    if market_fn is not None and alpha > 0.0:
        snapshot = await _fetch_market(market_fn, timeout_s)
        if snapshot is not None:
            p_aware = blend_market(
                neutral.p_neutral,
                snapshot["probability"],
                alpha,
                floor=floor,
                ceiling=ceiling,
            )

    return AggregationResult(
        p_neutral=neutral.p_neutral,
        p_aware=p_aware,
        influence=neutral.influence,
        clusters=neutral.clusters,
        prior=neutral.prior,
        alpha=alpha,
        market=snapshot,
    )


async def aggregate(
    p0: float,
    evidence: list[Evidence],
    rho_by_cluster: Mapping[str, float] | None = None,
    market_fn: MarketFn | None = None,
    *,
    alpha: float = DEFAULT_ALPHA,
    timeout_s: float = DEFAULT_MARKET_TIMEOUT_S,
    default_rho: float = DEFAULT_RHO,
    caps: Mapping[str, float] = TYPE_CAPS,
    floor: float = PROB_FLOOR,
    ceiling: float = PROB_CEILING,
) -> AggregationResult:
    """Neutral pass followed by the optional market blend."""
    neutral = aggregate_neutral(
        p0,
        evidence,
        rho_by_cluster,
        default_rho=default_rho,
        caps=caps,
        floor=floor,
        ceiling=ceiling,
    )
    return await compute_aware(
        neutral,
        market_fn,
        alpha=alpha,
        timeout_s=timeout_s,
        floor=floor,
        ceiling=ceiling,
    )


# ============================================================
# Internal helpers
# ============================================================


def _check_alpha(alpha: float) -> None:
    if isinstance(alpha, bool) or not (math.isfinite(alpha) and 0.0 <= alpha <= 1.0):
        raise ValueError(f"alpha must lie in [0, 1], got {alpha!r}")


async def _fetch_market(market_fn: MarketFn, timeout_s: float) -> MarketSnapshot | None:
    try:
        snapshot = await asyncio.wait_for(market_fn(), timeout=timeout_s)
    except asyncio.TimeoutError:
        print(
            f"WARNING: market probability fetch timed out after {timeout_s}s, "
            "p_aware omitted",
            file=sys.stderr,
        )
        return None
    except Exception as e:
        print(f"WARNING: market probability fetch failed ({e}), p_aware omitted", file=sys.stderr)
        return None

    prob = snapshot.get("probability") if isinstance(snapshot, Mapping) else None
    if (
        isinstance(prob, bool)
        or not isinstance(prob, (int, float))
        or not math.isfinite(prob)
        or not 0.0 <= prob <= 1.0
    ):
        print(f"WARNING: unusable market probability {prob!r}, p_aware omitted", file=sys.stderr)
        return None

    return MarketSnapshot(
        probability=float(prob),
        as_of=str(snapshot.get("as_of", "")),
        source=str(snapshot.get("source", "")),
    )
