"""CLI entry point: python -m forecast_fusion <evidence.json>"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from forecast_fusion.config import Settings, get_settings
from forecast_fusion.contracts import (
    AggregationResult,
    Critique,
    Evidence,
    MarketFn,
    MarketSnapshot,
    RelevanceClassifier,
)
from forecast_fusion.fusion.aggregator import aggregate_neutral, prior_from_market
from forecast_fusion.fusion.market import compute_aware
from forecast_fusion.fusion.refiner import refine
from forecast_fusion.reporting.card import make_forecast_card, render_card
from forecast_fusion.scoring.normalize import normalize_evidence


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="forecast-fusion",
        description="Fuse scored evidence into a calibrated yes/no probability",
    )
    parser.add_argument(
        "evidence",
        type=str,
        help="JSON file with a list of evidence records (or {\"items\": [...]})",
    )
    parser.add_argument(
        "--question",
        type=str,
        default="",
        help="The market question (used by the critic and in the report)",
    )
    prior = parser.add_mutually_exclusive_group()
    prior.add_argument(
        "--prior",
        type=float,
        default=None,
        help="Prior probability p0 (default: 0.5)",
    )
    prior.add_argument(
        "--market-mid",
        type=float,
        default=None,
        help="Derive p0 from a market mid-price, clamped to the prior bounds",
    )
    parser.add_argument(
        "--rho-file",
        type=str,
        default=None,
        help="JSON object mapping cluster id -> rho",
    )
    critic = parser.add_mutually_exclusive_group()
    critic.add_argument(
        "--critique",
        type=str,
        default=None,
        help="JSON file with a critique (duplication_flags, correlation_adjustments, "
        "data_concerns)",
    )
    critic.add_argument(
        "--llm-critic",
        action="store_true",
        default=False,
        help="Generate the critique with the skeptic model (needs ANTHROPIC_API_KEY)",
    )
    parser.add_argument(
        "--relevance",
        action="store_true",
        default=False,
        help="Narrow refined evidence with the LLM relevance classifier",
    )
    market = parser.add_mutually_exclusive_group()
    market.add_argument(
        "--market-prob",
        type=float,
        default=None,
        help="Market-implied probability to blend after the neutral estimate",
    )
    market.add_argument(
        "--polymarket-slug",
        type=str,
        default=None,
        help="Fetch the market probability from Polymarket for this slug",
    )
    parser.add_argument(
        "--alpha",
        type=float,
        default=None,
        help="Market trust weight in [0, 1] (default: from config)",
    )
    parser.add_argument(
        "--normalize",
        action="store_true",
        default=False,
        help="Dedupe evidence by URL and re-derive origin ids before aggregating",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["json", "markdown"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write output to this file instead of stdout",
    )
    args = parser.parse_args()

    if args.relevance and not (args.critique or args.llm_critic):
        parser.error("--relevance requires --critique or --llm-critic")

    return args


def load_evidence(path: str | Path) -> list[Evidence]:
    """Read evidence records from a JSON file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("items", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of evidence records")
    for i, item in enumerate(data):
        if not isinstance(item, dict) or "id" not in item:
            raise ValueError(f"{path}: record {i} has no 'id'")
    return data


def _load_json_object(path: str | Path, what: str) -> dict:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object for {what}")
    return data


def load_critique(path: str | Path) -> Critique:
    """Read a critique file. Malformed fields are dropped, not raised."""
    from forecast_fusion.agents.critic import coerce_critique

    return coerce_critique(_load_json_object(path, "the critique"))


def static_market_fn(probability: float, source: str = "cli") -> MarketFn:
    """MarketFn returning a fixed price."""

    async def _fetch() -> MarketSnapshot:
        return MarketSnapshot(
            probability=probability,
            as_of=datetime.now(timezone.utc).isoformat(),
            source=source,
        )

    return _fetch


def result_payload(result: AggregationResult) -> dict:
    """JSON-ready view of an aggregation result."""
    return {
        "p_neutral": result.p_neutral,
        "p_aware": result.p_aware,
        "prior": result.prior,
        "alpha": result.alpha,
        "market": result.market,
        "clusters": [asdict(c) for c in result.clusters],
        "influence": [asdict(i) for i in result.influence],
    }


def _make_caller(settings: Settings):
    from forecast_fusion.agents.base import AgentCaller

    if not settings.anthropic_api_key:
        print("ERROR: ANTHROPIC_API_KEY is required for LLM collaborators.", file=sys.stderr)
        sys.exit(1)
    return AgentCaller(
        api_key=settings.anthropic_api_key,
        model=settings.critic_model,
        max_concurrent=settings.max_concurrent_requests,
    )


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()
    errors = settings.validate()
    if errors:
        for err in errors:
            print(f"ERROR: {err}", file=sys.stderr)
        sys.exit(1)
    for warn in settings.warnings():
        print(f"WARNING: {warn}", file=sys.stderr)

    try:
        evidence = load_evidence(args.evidence)
        rho = _load_json_object(args.rho_file, "rho overrides") if args.rho_file else {}
        critique = load_critique(args.critique) if args.critique else None
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if args.normalize:
        before = len(evidence)
        evidence = normalize_evidence(evidence, domain_cap=settings.domain_cap)
        print(f"Normalized: kept {len(evidence)}/{before} evidence items", file=sys.stderr)

    if args.prior is not None:
        if not (math.isfinite(args.prior) and 0.0 < args.prior < 1.0):
            print(f"ERROR: --prior must be in (0, 1), got {args.prior}", file=sys.stderr)
            sys.exit(1)
        p0 = args.prior
    else:
        p0 = prior_from_market(
            args.market_mid,
            floor=settings.prior_floor,
            ceiling=settings.prior_ceiling,
        )
    alpha = settings.market_alpha if args.alpha is None else args.alpha
    if not 0.0 <= alpha <= 1.0:
        print(f"ERROR: --alpha must be in [0, 1], got {alpha}", file=sys.stderr)
        sys.exit(1)
    caps = settings.type_caps()
    bounds = {"floor": settings.prob_floor, "ceiling": settings.prob_ceiling}

    backend = None
    market_fn: MarketFn | None = None
    if args.market_prob is not None:
        market_fn = static_market_fn(args.market_prob)
    elif args.polymarket_slug:
        from forecast_fusion.backends.polymarket import PolymarketBackend

        backend = PolymarketBackend(
            base_url=settings.polymarket_url,
            timeout=settings.market_timeout_s,
        )
        market_fn = backend.market_fn(args.polymarket_slug)

    try:
        neutral = aggregate_neutral(
            p0, evidence, rho, default_rho=settings.default_rho, caps=caps, **bounds
        )
        print(
            f"Neutral pass: p_neutral={neutral.p_neutral:.3f} "
            f"({len(evidence)} items, {len(neutral.clusters)} clusters)",
            file=sys.stderr,
        )

        caller = None
        if args.llm_critic or args.relevance:
            caller = _make_caller(settings)
        if args.llm_critic:
            from forecast_fusion.agents.critic import critique_evidence

            try:
                critique = await critique_evidence(args.question, evidence, caller)
            except (ValueError, RuntimeError) as e:
                print(f"WARNING: critic failed ({e}), skipping refinement", file=sys.stderr)
                critique = None

        if critique is None:
            result = await compute_aware(
                neutral,
                market_fn,
                alpha=alpha,
                timeout_s=settings.market_timeout_s,
                **bounds,
            )
            used_evidence = evidence
        else:
            classifier: RelevanceClassifier | None = None
            if args.relevance:
                from forecast_fusion.agents.relevance import LLMRelevanceClassifier

                classifier = LLMRelevanceClassifier(caller)
            refined = await refine(
                p0,
                evidence,
                critique,
                rho,
                question=args.question,
                relevance_classifier=classifier,
                market_fn=market_fn,
                alpha=alpha,
                market_timeout_s=settings.market_timeout_s,
                relevance_timeout_s=settings.relevance_timeout_s,
                default_rho=settings.default_rho,
                caps=caps,
                **bounds,
            )
            print(
                f"Refined pass: dropped {len(refined.dropped_ids)} item(s), "
                f"p_neutral={refined.result.p_neutral:.3f}",
                file=sys.stderr,
            )
            result = refined.result
            used_evidence = list(refined.filtered_evidence)
    finally:
        if backend is not None:
            await backend.aclose()

    if args.format == "markdown":
        card = make_forecast_card(args.question or "Forecast", result, evidence=used_evidence)
        output = render_card(card)
    else:
        payload = result_payload(result)
        payload["initial_p_neutral"] = neutral.p_neutral
        payload["evidence_ids"] = [e["id"] for e in used_evidence]
        output = json.dumps(payload, indent=2)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(output, encoding="utf-8")
        print(f"Saved to: {out_path}", file=sys.stderr)
    else:
        sys.stdout.buffer.write(output.encode("utf-8"))
        sys.stdout.buffer.write(b"\n")
        sys.stdout.buffer.flush()


def main() -> None:
    args = parse_args()
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
