"""Skeptic agent — attacks the working evidence and returns a Critique.

The model proposes duplication flags, correlation adjustments per cluster,
and data-bias concerns. Output is coerced into a well-formed Critique so the
refiner never sees malformed fields: unknown cluster ids and out-of-range
rho values are dropped here.
"""

from __future__ import annotations

import math
import sys

from forecast_fusion.agents.base import AgentCaller
from forecast_fusion.contracts import Critique, Evidence
from forecast_fusion.fusion.cluster import cluster_key

SKEPTIC_SYSTEM = """\
You are the Skeptic. Attack the working evidence for a yes/no forecasting \
question. You do not estimate probabilities.

1. Flag suspected duplicate wiring: the same story republished by several \
outlets, or items sharing an origin. Return fragments of evidence ids or \
origin ids in "duplication_flags".
2. For clusters whose members look correlated, propose a correlation rho in \
[0, 1] in "correlation_adjustments" (cluster id -> rho). 0 = independent, \
1 = pure repetition.
3. List measurement or selection-bias risks as short keywords that would \
appear in the affected claims ("data_concerns"). Be conservative: every \
keyword removes matching evidence.
4. List missed disconfirming evidence or failure modes in "missing".

Output STRICT JSON:
{"duplication_flags": [], "correlation_adjustments": {}, "data_concerns": [], "missing": []}
"""


def _format_evidence(evidence: list[Evidence]) -> str:
    lines: list[str] = []
    for e in evidence:
        side = {1: "PRO", -1: "CON"}.get(e.get("polarity", 0), "NEUTRAL")
        lines.append(
            f"- id={e['id']} cluster={cluster_key(e)} origin={e.get('origin_id', '')} "
            f"type={e.get('type', '?')} side={side} first_report={e.get('first_report', False)}\n"
            f"  claim: {e.get('claim', '')}"
        )
    return "\n".join(lines)


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]


def coerce_critique(data: dict, known_clusters: set[str] | None = None) -> Critique:
    """Turn raw model JSON into a valid Critique."""
    adjustments: dict[str, float] = {}
    raw_adj = data.get("correlation_adjustments")
    if isinstance(raw_adj, dict):
        for cid, rho in raw_adj.items():
            if known_clusters is not None and cid not in known_clusters:
                continue
            if isinstance(rho, bool) or not isinstance(rho, (int, float)):
                continue
            if math.isfinite(rho) and 0.0 <= rho <= 1.0:
                adjustments[str(cid)] = float(rho)

    return Critique(
        duplication_flags=_string_list(data.get("duplication_flags")),
        correlation_adjustments=adjustments,
        data_concerns=_string_list(data.get("data_concerns")),
        missing=_string_list(data.get("missing")),
    )


async def critique_evidence(
    question: str,
    evidence: list[Evidence],
    caller: AgentCaller,
) -> Critique:
    """Ask the skeptic model for a Critique of the evidence set."""
    pro = sum(1 for e in evidence if e.get("polarity", 0) > 0)
    con = sum(1 for e in evidence if e.get("polarity", 0) < 0)
    user_content = (
        f"Question: {question}\n"
        f"We have {pro} supporting and {con} contradicting items.\n\n"
        f"Evidence:\n{_format_evidence(evidence)}"
    )

    data, _usage = await caller.call_json(
        system=SKEPTIC_SYSTEM,
        messages=[{"role": "user", "content": user_content}],
        agent_name="critic",
        max_tokens=1024,
    )

    known = {cluster_key(e) for e in evidence}
    critique = coerce_critique(data, known)
    raw_adj = data.get("correlation_adjustments")
    proposed = len(raw_adj) if isinstance(raw_adj, dict) else 0
    dropped = proposed - len(critique["correlation_adjustments"])
    if dropped > 0:
        print(
            f"WARNING: critic proposed {dropped} unusable correlation adjustment(s), ignored",
            file=sys.stderr,
        )
    return critique
