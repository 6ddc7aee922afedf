"""Evidence scorer — one Evidence record to a signed, capped log-likelihood ratio.

    cap  = type cap (A > B > C > D)
    r    = 1 - exp(-k0 * corroborations)        reliability from corroboration
    raw  = polarity * cap * (0.5*ver + 0.3*r + 0.2*cons)
    llr  = raw * 0.5 if first report else raw
    llr  = clamp(llr, -cap, cap)

Verifiability dominates, independent corroboration next, internal
consistency is a tie-breaker. Pure, deterministic, zero I/O.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

from forecast_fusion.contracts import CapScale, Evidence, EvidenceType
from forecast_fusion.fusion.odds import clamp

# Canonical scale. UNIT_TYPE_CAPS is the same ladder normalised to cap_A = 1.0.
TYPE_CAPS: dict[str, float] = {"A": 2.0, "B": 1.6, "C": 0.8, "D": 0.3}
UNIT_TYPE_CAPS: dict[str, float] = {"A": 1.0, "B": 0.8, "C": 0.4, "D": 0.15}

WEIGHTS = {"verifiability": 0.5, "reliability": 0.3, "consistency": 0.2}
FIRST_REPORT_PENALTY = 0.5
CORROBORATION_K0 = 1.0


def caps_for_scale(scale: CapScale | str) -> dict[str, float]:
    """Resolve a cap table by scale name."""
    if CapScale(scale) == CapScale.UNIT:
        return dict(UNIT_TYPE_CAPS)
    return dict(TYPE_CAPS)


def type_cap(evidence_type: str, caps: Mapping[str, float] = TYPE_CAPS) -> float:
    """Cap for a source tier. Unknown tiers get the weakest cap."""
    key = str(evidence_type).strip().upper()
    if key in caps:
        return caps[key]
    return caps[EvidenceType.D.value]


def reliability_from_corroborations(count: float, k0: float = CORROBORATION_K0) -> float:
    """1 - exp(-k0 * count), negative counts treated as zero. Result in [0, 1)."""
    return 1.0 - math.exp(-k0 * max(0.0, count))


def polarity_sign(polarity: float) -> int:
    if polarity > 0:
        return 1
    if polarity < 0:
        return -1
    return 0


def _is_real(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _unit(value: object) -> float:
    """Coerce a quality score into [0, 1]; missing or non-finite counts as 0."""
    if not _is_real(value):
        return 0.0
    return clamp(float(value), 0.0, 1.0)  # type: ignore[arg-type]


def evidence_log_lr(e: Evidence, *, caps: Mapping[str, float] = TYPE_CAPS) -> float:
    """Signed LLR for a single evidence record.

    Neutral evidence short-circuits to 0.0 before anything else, including
    any hint. A finite ``log_lr_hint`` is returned verbatim.
    """
    polarity = polarity_sign(e.get("polarity", 0) or 0)
    if polarity == 0:
        return 0.0

    hint = e.get("log_lr_hint")
    if _is_real(hint):
        return float(hint)  # type: ignore[arg-type]

    cap = type_cap(e.get("type", EvidenceType.D.value), caps)
    ver = _unit(e.get("verifiability"))
    cons = _unit(e.get("consistency"))
    corroborations = e.get("corroborations_indep", 0)
    r = reliability_from_corroborations(corroborations if _is_real(corroborations) else 0)

    quality = (
        WEIGHTS["verifiability"] * ver
        + WEIGHTS["reliability"] * r
        + WEIGHTS["consistency"] * cons
    )
    llr = polarity * cap * quality
    if e.get("first_report", False):
        llr *= FIRST_REPORT_PENALTY

    return clamp(llr, -cap, cap)
