"""Neutral aggregator — prior + discounted cluster contributions -> posterior.

    L0        = logit(p0)
    dL        = sum over clusters of mean_llr * m_eff
    p_neutral = clamp(sigmoid(L0 + dL))

The result never sees a market price. Influence figures are explanatory:
each item's share of its cluster contribution, expressed as the probability
points lost if only that share were removed. They are never summed back into
the posterior.

Pure function: identical (p0, evidence, rho map) -> identical output.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

from forecast_fusion.contracts import ClusterMeta, Evidence, InfluenceItem, NeutralEstimate
from forecast_fusion.fusion.cluster import (
    DEFAULT_RHO,
    cluster_contribution,
    cluster_evidence,
    resolve_rho,
)
from forecast_fusion.fusion.odds import PROB_CEILING, PROB_FLOOR, clamp_probability, logit, sigmoid
from forecast_fusion.scoring.evidence import TYPE_CAPS, evidence_log_lr, polarity_sign

PRIOR_FLOOR = 0.1
PRIOR_CEILING = 0.9


def prior_from_market(
    mid: float | None,
    *,
    floor: float = PRIOR_FLOOR,
    ceiling: float = PRIOR_CEILING,
    default: float = 0.5,
) -> float:
    """Prior from a market mid-price, pulled into [floor, ceiling].

    A missing or non-finite mid yields the uninformative default.
    """
    if mid is None or isinstance(mid, bool) or not math.isfinite(mid):
        return default
    return max(floor, min(ceiling, float(mid)))


def aggregate_neutral(
    p0: float,
    evidence: list[Evidence],
    rho_by_cluster: Mapping[str, float] | None = None,
    *,
    default_rho: float = DEFAULT_RHO,
    caps: Mapping[str, float] = TYPE_CAPS,
    floor: float = PROB_FLOOR,
    ceiling: float = PROB_CEILING,
) -> NeutralEstimate:
    """Market-unaware posterior with per-cluster and per-item breakdown.

    Args:
        p0: Prior probability. Must be finite; clamped into [floor, ceiling].
        evidence: Evidence records. Read only.
        rho_by_cluster: Optional cluster_id -> rho overrides.
        default_rho: Correlation assumed for multi-member clusters without
            a valid override.
        caps: Type cap table (see scoring.evidence).

    Returns:
        NeutralEstimate with clusters in first-appearance order and influence
        sorted by |delta_pp| descending (ties keep input order). Neutral
        items carry an empty cluster_id.
    """
    prior = clamp_probability(p0, floor=floor, ceiling=ceiling)
    l0 = logit(prior)

    # Neutral items never join a cluster: they would dilute its mean
    llr_by_id: dict[str, float] = {}
    scored: list[Evidence] = []
    for e in evidence:
        llr = evidence_log_lr(e, caps=caps)
        llr_by_id[e["id"]] = llr
        if polarity_sign(e.get("polarity", 0) or 0) != 0:
            scored.append(e)

    clusters: list[ClusterMeta] = []
    share_by_id: dict[str, float] = {}
    cid_by_id: dict[str, str] = {}
    for cid, members in cluster_evidence(scored).items():
        llrs = [llr_by_id[m["id"]] for m in members]
        rho = resolve_rho(cid, len(members), rho_by_cluster, default_rho=default_rho)
        mean_llr, m_eff, contribution = cluster_contribution(llrs, rho)
        weight = m_eff / len(members)
        for m, llr in zip(members, llrs):
            share_by_id[m["id"]] = llr * weight
            cid_by_id[m["id"]] = cid
        clusters.append(
            ClusterMeta(
                cluster_id=cid,
                size=len(members),
                rho=rho,
                m_eff=m_eff,
                mean_llr=mean_llr,
                contribution=contribution,
                member_ids=tuple(m["id"] for m in members),
            )
        )

    log_odds = l0 + math.fsum(c.contribution for c in clusters)
    p_neutral = clamp_probability(sigmoid(log_odds), floor=floor, ceiling=ceiling)

    influence: list[InfluenceItem] = []
    for e in evidence:
        share = share_by_id.get(e["id"], 0.0)
        if share == 0.0:
            delta = 0.0
        else:
            without = clamp_probability(sigmoid(log_odds - share), floor=floor, ceiling=ceiling)
            delta = p_neutral - without
        influence.append(
            InfluenceItem(
                evidence_id=e["id"],
                log_lr=llr_by_id[e["id"]],
                delta_pp=delta,
                cluster_id=cid_by_id.get(e["id"], ""),
            )
        )
    influence.sort(key=lambda item: abs(item.delta_pp), reverse=True)

    return NeutralEstimate(
        p_neutral=p_neutral,
        prior=prior,
        log_odds=log_odds,
        influence=tuple(influence),
        clusters=tuple(clusters),
    )
