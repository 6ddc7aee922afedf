"""Probability / log-odds conversions shared by the fusion layer."""

from __future__ import annotations

import math

# Safe open interval for any probability that may reach log-odds space
PROB_FLOOR = 0.001
PROB_CEILING = 0.999


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def clamp_probability(
    p: float,
    *,
    floor: float = PROB_FLOOR,
    ceiling: float = PROB_CEILING,
) -> float:
    """Clamp a probability into [floor, ceiling]. Non-finite input is a caller bug."""
    if not math.isfinite(p):
        raise ValueError(f"probability must be finite, got {p!r}")
    return clamp(p, floor, ceiling)


def logit(p: float) -> float:
    """ln(p / (1 - p)). Fails fast outside the open interval (0, 1)."""
    if not 0.0 < p < 1.0:
        raise ValueError(f"logit undefined for p={p!r}; clamp before converting")
    return math.log(p / (1.0 - p))


def sigmoid(x: float) -> float:
    # Split on sign so exp() never overflows
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)
