"""Polymarket market source (Gamma API) for the market-aware blend."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx

from forecast_fusion.contracts import MarketFn, MarketSnapshot, MarketUnavailable

# Wider books (e.g. an empty book quoted 0/1) fall back to outcomePrices
MAX_MIDPOINT_SPREAD = 0.1


def _as_float(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def yes_probability(market: dict) -> float:
    """YES-side probability of a Gamma market record.

    Uses the bid/ask midpoint when both sides are quoted within
    MAX_MIDPOINT_SPREAD, otherwise the first entry of outcomePrices.
    """
    bid = _as_float(market.get("bestBid"))
    ask = _as_float(market.get("bestAsk"))
    if (
        bid is not None
        and ask is not None
        and 0.0 <= bid <= ask <= 1.0
        and ask - bid <= MAX_MIDPOINT_SPREAD
    ):
        return (bid + ask) / 2.0

    prices = market.get("outcomePrices")
    if isinstance(prices, str):
        try:
            prices = json.loads(prices)
        except json.JSONDecodeError as e:
            raise MarketUnavailable(f"malformed outcomePrices: {prices!r}") from e
    if not isinstance(prices, list) or not prices:
        raise MarketUnavailable("market has no outcome prices")

    first = _as_float(prices[0])
    if first is None or not 0.0 <= first <= 1.0:
        raise MarketUnavailable(f"invalid YES price: {prices[0]!r}")
    return first


class PolymarketBackend:
    name: str = "polymarket"

    def __init__(
        self,
        *,
        base_url: str = "https://gamma-api.polymarket.com",
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout)

    async def fetch_snapshot(self, slug: str) -> MarketSnapshot:
        """Current YES probability for a market slug. Raises MarketUnavailable."""
        try:
            resp = await self._client.get(f"{self.base_url}/markets", params={"slug": slug})
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise MarketUnavailable(f"Polymarket request failed for '{slug}': {e}") from e

        markets = data if isinstance(data, list) else [data]
        if not markets or not isinstance(markets[0], dict):
            raise MarketUnavailable(f"no Polymarket market found for slug '{slug}'")

        return MarketSnapshot(
            probability=yes_probability(markets[0]),
            as_of=datetime.now(timezone.utc).isoformat(),
            source=self.name,
        )

    def market_fn(self, slug: str) -> MarketFn:
        """Zero-argument callback bound to one slug, for compute_aware()."""

        async def _fetch() -> MarketSnapshot:
            return await self.fetch_snapshot(slug)

        return _fetch

    async def aclose(self) -> None:
        await self._client.aclose()
