"""AgentCaller — Anthropic SDK wrapper for the critic and relevance collaborators."""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime, timezone

import anthropic
from anthropic._exceptions import OverloadedError

from forecast_fusion.contracts import TokenUsage

# USD per million tokens
_PRICING: dict[str, dict[str, float]] = {
    "claude-opus-4-6": {"input": 15.0, "output": 75.0},
    "claude-sonnet-4-6": {"input": 3.0, "output": 15.0},
    "claude-haiku-4-5-20251001": {"input": 1.0, "output": 5.0},
}
_DEFAULT_PRICING = {"input": 3.0, "output": 15.0}

_RETRYABLE = (OverloadedError, anthropic.RateLimitError, anthropic.InternalServerError)


def extract_json(text: str) -> str:
    """Pull a JSON document out of a model reply (fenced block or prose-wrapped)."""
    cleaned = text.strip()

    if cleaned.startswith("```"):
        body: list[str] = []
        for line in cleaned.split("\n")[1:]:
            if line.strip() == "```":
                break
            body.append(line)
        cleaned = "\n".join(body).strip()

    if cleaned.startswith(("{", "[")):
        return cleaned

    start = cleaned.find("{")
    if start == -1:
        return ""
    depth = 0
    for i in range(start, len(cleaned)):
        if cleaned[i] == "{":
            depth += 1
        elif cleaned[i] == "}":
            depth -= 1
            if depth == 0:
                return cleaned[start : i + 1]
    return cleaned[start:]


class AgentCaller:
    """Bounded-concurrency Anthropic client with retry and token accounting."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_concurrent: int = 5,
        max_retries: int = 3,
    ) -> None:
        self.model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._max_retries = max_retries
        self._usage_log: list[TokenUsage] = []

    async def call(
        self,
        *,
        system: str,
        messages: list[dict],
        agent_name: str,
        max_tokens: int = 2048,
        temperature: float = 0.0,
    ) -> tuple[str, TokenUsage]:
        """Single completion. Returns (text, usage)."""
        async with self._semaphore:
            last_error = ""
            for attempt in range(self._max_retries):
                try:
                    response = await self._client.messages.create(
                        model=self.model,
                        max_tokens=max_tokens,
                        temperature=temperature,
                        system=system,
                        messages=messages,
                    )
                except _RETRYABLE as e:
                    wait = 2 ** (attempt + 1)
                    print(
                        f"WARNING: {self.model} unavailable ({type(e).__name__}), "
                        f"retry {attempt + 1}/{self._max_retries} in {wait}s",
                        file=sys.stderr,
                    )
                    last_error = str(e)
                    await asyncio.sleep(wait)
                    continue
                except anthropic.APIError as e:
                    last_error = str(e)
                    if attempt < self._max_retries - 1:
                        await asyncio.sleep(1)
                    continue

                text = "".join(b.text for b in response.content if b.type == "text")
                return text, self._track_usage(response, agent_name)

        raise RuntimeError(f"AgentCaller failed after {self._max_retries} retries: {last_error}")

    async def call_json(
        self,
        *,
        system: str,
        messages: list[dict],
        agent_name: str,
        max_tokens: int = 2048,
        temperature: float = 0.0,
    ) -> tuple[dict, TokenUsage]:
        """Completion expected to be a JSON object. Raises ValueError otherwise."""
        text, usage = await self.call(
            system=system,
            messages=messages,
            agent_name=agent_name,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        cleaned = extract_json(text)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            tail = cleaned.rstrip()
            if tail and tail[-1] not in ("}", "]"):
                raise ValueError(
                    f"Truncated JSON from {agent_name} (likely hit max_tokens). "
                    f"Raw tail: ...{text[-200:]}"
                ) from e
            raise ValueError(
                f"Failed to parse JSON from {agent_name}: {e}\nRaw: {text[:500]}"
            ) from e
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object from {agent_name}, got {type(data).__name__}")
        return data, usage

    def _track_usage(self, response, agent_name: str) -> TokenUsage:
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        pricing = _PRICING.get(self.model, _DEFAULT_PRICING)
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000

        usage = TokenUsage(
            agent=agent_name,
            model=self.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=round(cost, 6),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._usage_log.append(usage)
        return usage

    @property
    def total_tokens(self) -> int:
        return sum(u["input_tokens"] + u["output_tokens"] for u in self._usage_log)

    @property
    def total_cost(self) -> float:
        return sum(u["cost_usd"] for u in self._usage_log)
