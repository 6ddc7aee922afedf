"""Single source of truth for all types, enums, and protocols."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import NotRequired, Protocol, TypedDict, runtime_checkable

# --- Enums ---


class EvidenceType(str, Enum):
    A = "A"  # primary data, official records
    B = "B"  # secondary analysis, wire reporting
    C = "C"  # tertiary sources, "sources say"
    D = "D"  # rumour, speculation


class CapScale(str, Enum):
    STANDARD = "standard"  # cap_A = 2.0
    UNIT = "unit"  # cap_A = 1.0


# --- Errors ---


class MarketUnavailable(RuntimeError):
    """Raised by market sources when no usable price can be produced."""


# --- Input records (produced by collaborators, never mutated here) ---


class Evidence(TypedDict):
    id: str
    claim: str
    polarity: int  # -1 | 0 | +1
    type: str  # EvidenceType value
    urls: list[str]
    origin_id: str  # source-family key
    first_report: bool
    verifiability: float  # 0-1
    corroborations_indep: int
    consistency: float  # 0-1
    log_lr_hint: NotRequired[float | None]
    published_at: NotRequired[str | None]  # ISO 8601
    pathway: NotRequired[str | None]  # informational only
    connection_strength: NotRequired[float | None]  # informational only
    cluster_id: NotRequired[str | None]  # explicit cluster flag


class Critique(TypedDict):
    duplication_flags: list[str]
    correlation_adjustments: dict[str, float]  # cluster_id -> rho
    data_concerns: list[str]
    missing: NotRequired[list[str]]


class MarketSnapshot(TypedDict):
    probability: float
    as_of: str  # ISO 8601
    source: str


class TokenUsage(TypedDict):
    agent: str
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    timestamp: str


# --- Results (immutable once produced) ---


@dataclass(frozen=True)
class ClusterMeta:
    cluster_id: str
    size: int
    rho: float
    m_eff: float
    mean_llr: float
    contribution: float
    member_ids: tuple[str, ...]


@dataclass(frozen=True)
class InfluenceItem:
    evidence_id: str
    log_lr: float
    delta_pp: float  # probability points, explanatory only
    cluster_id: str


@dataclass(frozen=True)
class NeutralEstimate:
    """Market-unaware posterior. Phase one of aggregation.

    Only a finished NeutralEstimate can be handed to the market blender,
    so the neutral number can never observe the market price.
    """

    p_neutral: float
    prior: float
    log_odds: float
    influence: tuple[InfluenceItem, ...]
    clusters: tuple[ClusterMeta, ...]


@dataclass(frozen=True)
class AggregationResult:
    p_neutral: float
    p_aware: float | None
    influence: tuple[InfluenceItem, ...]
    clusters: tuple[ClusterMeta, ...]
    prior: float
    alpha: float
    market: MarketSnapshot | None = None


@dataclass(frozen=True)
class RefinedResult:
    result: AggregationResult
    filtered_evidence: tuple[Evidence, ...]
    dropped_ids: tuple[str, ...]
    rho_by_cluster: dict[str, float]


# --- Protocols ---

MarketFn = Callable[[], Awaitable[MarketSnapshot]]


@runtime_checkable
class RelevanceClassifier(Protocol):
    async def classify(self, question: str, evidence: list[Evidence]) -> list[str]:
        """Return the ids of evidence items relevant to the question."""
        ...
