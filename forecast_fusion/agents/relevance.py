"""LLM topic-relevance classifier for the refiner's optional narrowing step."""

from __future__ import annotations

from forecast_fusion.agents.base import AgentCaller
from forecast_fusion.contracts import Evidence

RELEVANCE_SYSTEM = """\
You are a relevance filter for a forecasting question. For each evidence \
item decide whether it bears on the outcome of the question at all, in \
either direction. Keep anything plausibly causal; drop only clearly \
off-topic items.

Output STRICT JSON:
{"relevant_ids": ["ev-1", "ev-3"]}
"""


class LLMRelevanceClassifier:
    """RelevanceClassifier backed by an AgentCaller.

    Errors propagate; the refiner decides how to fail.
    """

    def __init__(self, caller: AgentCaller, *, max_tokens: int = 1024) -> None:
        self._caller = caller
        self._max_tokens = max_tokens

    async def classify(self, question: str, evidence: list[Evidence]) -> list[str]:
        items = "\n".join(f"- {e['id']}: {e.get('claim', '')}" for e in evidence)
        data, _usage = await self._caller.call_json(
            system=RELEVANCE_SYSTEM,
            messages=[
                {"role": "user", "content": f"Question: {question}\n\nEvidence:\n{items}"}
            ],
            agent_name="relevance",
            max_tokens=self._max_tokens,
        )
        ids = data.get("relevant_ids")
        if not isinstance(ids, list):
            raise ValueError("relevance classifier returned no 'relevant_ids' list")
        known = {e["id"] for e in evidence}
        return [i for i in ids if isinstance(i, str) and i in known]
