"""Forecast card assembly and Markdown rendering with YAML frontmatter.

Structured, deterministic output only. Narrative prose is left to
downstream reporting collaborators.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TypedDict

import yaml

from forecast_fusion.contracts import AggregationResult, ClusterMeta, Evidence, InfluenceItem


class ForecastCard(TypedDict):
    question: str
    generated: str  # ISO 8601
    p0: float
    p_neutral: float
    p_aware: float | None
    alpha: float
    market_probability: float | None
    market_source: str
    edge_pp: float | None  # p_neutral - market, probability points
    drivers: list[str]
    top_influences: list[dict]
    clusters: list[dict]
    provenance: list[str]


def top_influences(influence: tuple[InfluenceItem, ...], n: int = 6) -> list[InfluenceItem]:
    """Largest absolute contributions first."""
    return sorted(influence, key=lambda i: abs(i.delta_pp), reverse=True)[:n]


def _cluster_row(c: ClusterMeta) -> dict:
    return {
        "cluster_id": c.cluster_id,
        "size": c.size,
        "rho": round(c.rho, 4),
        "m_eff": round(c.m_eff, 4),
        "mean_llr": round(c.mean_llr, 4),
        "contribution": round(c.contribution, 4),
    }


def make_forecast_card(
    question: str,
    result: AggregationResult,
    *,
    drivers: list[str] | None = None,
    evidence: list[Evidence] | None = None,
    provenance: list[str] | None = None,
    top_n: int = 6,
) -> ForecastCard:
    """Build a ForecastCard from an aggregation result.

    Provenance is the de-duplicated union of explicit links and the URLs of
    every evidence item, in first-seen order.
    """
    links: list[str] = []
    for url in list(provenance or []) + [u for e in evidence or [] for u in e.get("urls", [])]:
        if url and url not in links:
            links.append(url)

    market_prob = result.market["probability"] if result.market else None
    edge = result.p_neutral - market_prob if market_prob is not None else None

    return ForecastCard(
        question=question,
        generated=datetime.now(timezone.utc).isoformat(),
        p0=result.prior,
        p_neutral=result.p_neutral,
        p_aware=result.p_aware,
        alpha=result.alpha,
        market_probability=market_prob,
        market_source=result.market["source"] if result.market else "",
        edge_pp=edge,
        drivers=list(drivers or []),
        top_influences=[
            {
                "evidence_id": i.evidence_id,
                "log_lr": round(i.log_lr, 4),
                "delta_pp": round(i.delta_pp, 4),
                "cluster_id": i.cluster_id,
            }
            for i in top_influences(result.influence, top_n)
        ],
        clusters=[_cluster_row(c) for c in result.clusters],
        provenance=links,
    )


def _pct(p: float | None) -> str:
    return "n/a" if p is None else f"{p * 100:.1f}%"


def render_card(card: ForecastCard) -> str:
    """Render a forecast card as Markdown."""
    frontmatter = {
        "title": f"Forecast: {card['question']}",
        "generated": card["generated"],
        "p0": round(card["p0"], 4),
        "p_neutral": round(card["p_neutral"], 4),
        "p_aware": None if card["p_aware"] is None else round(card["p_aware"], 4),
        "alpha": card["alpha"],
        "market_probability": card["market_probability"],
        "market_source": card["market_source"],
    }

    lines: list[str] = []
    lines.append("---")
    lines.append(yaml.dump(frontmatter, default_flow_style=False, sort_keys=False).strip())
    lines.append("---")
    lines.append("")
    lines.append(f"# {card['question']}")
    lines.append("")

    lines.append("## Probabilities")
    lines.append("")
    lines.append(f"- **Base rate (p0)**: {_pct(card['p0'])}")
    lines.append(f"- **Neutral estimate**: {_pct(card['p_neutral'])}")
    if card["p_aware"] is not None:
        lines.append(
            f"- **Market-aware estimate** (alpha={card['alpha']}): {_pct(card['p_aware'])}"
        )
    else:
        lines.append("- **Market-aware estimate**: omitted")
    if card["market_probability"] is not None:
        source = f" ({card['market_source']})" if card["market_source"] else ""
        lines.append(f"- **Market price**{source}: {_pct(card['market_probability'])}")
        lines.append(f"- **Edge vs market**: {card['edge_pp'] * 100:+.1f} pp")
    lines.append("")

    if card["drivers"]:
        lines.append("## Key Drivers")
        lines.append("")
        for d in card["drivers"]:
            lines.append(f"- {d}")
        lines.append("")

    if card["top_influences"]:
        lines.append("## Top Influences")
        lines.append("")
        lines.append("| Evidence | Cluster | log LR | Δ pp |")
        lines.append("|---|---|---:|---:|")
        for row in card["top_influences"]:
            lines.append(
                f"| {row['evidence_id']} | {row['cluster_id']} | "
                f"{row['log_lr']:+.3f} | {row['delta_pp'] * 100:+.1f} |"
            )
        lines.append("")

    if card["clusters"]:
        lines.append("## Clusters")
        lines.append("")
        lines.append("| Cluster | Size | rho | m_eff | mean LLR | Contribution |")
        lines.append("|---|---:|---:|---:|---:|---:|")
        for c in card["clusters"]:
            lines.append(
                f"| {c['cluster_id']} | {c['size']} | {c['rho']:.2f} | {c['m_eff']:.2f} | "
                f"{c['mean_llr']:+.3f} | {c['contribution']:+.3f} |"
            )
        lines.append("")

    if card["provenance"]:
        lines.append("## Provenance")
        lines.append("")
        for url in card["provenance"]:
            lines.append(f"- {url}")
        lines.append("")

    return "\n".join(lines)
