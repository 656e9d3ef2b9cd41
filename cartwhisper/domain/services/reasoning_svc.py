# cartwhisper/domain/services/reasoning_svc.py

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional
import asyncio
import logging
from time import monotonic as _now

from openai import AsyncOpenAI

from cartwhisper.core.config import Settings
from cartwhisper.core.errors import EnrichmentError
from cartwhisper.domain.models.product import RecommendationRecord
from cartwhisper.domain.services.constants import FALLBACK_NO_CANDIDATES, REASONING_TEMPERATURE
from cartwhisper.domain.services.prompts import reasoning_prompt, system_prompt, template_reasoning
from cartwhisper.utils.cancel import CancelToken
from cartwhisper.utils.retry import retry_async

logger = logging.getLogger(__name__)

@dataclass
class EnrichmentResult:
    records: Dict[str, RecommendationRecord]
    generated: int = 0
    templated: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def error_detail(self) -> Optional[str]:
        if not self.errors:
            return None
        return f"{len(self.errors)} reasoning call(s) failed; first: {self.errors[0]}"

class ReasoningEnricher:
    """
    Best-effort LLM justification for a product's candidate list.
    Any OpenAI-compatible chat endpoint works (DeepSeek by default).
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncOpenAI] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.model = settings.REASONING_MODEL
        self.enabled = settings.REASONING_ENABLED and (client is not None or bool(settings.REASONING_API_KEY))
        self._client = client
        self._sleep = sleep

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.REASONING_API_KEY,
                base_url=self.settings.REASONING_BASE_URL,
            )
        return self._client

    async def _call_llm(self, record: RecommendationRecord) -> str:
        messages = [
            {"role": "system", "content": system_prompt()},
            {"role": "user", "content": reasoning_prompt(record)},
        ]
        t0 = _now()
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=REASONING_TEMPERATURE,
            max_tokens=self.settings.reasoning_max_tokens,
            timeout=self.settings.reasoning_timeout_s,
        )
        dt = _now() - t0
        u = getattr(resp, "usage", None)
        logger.info(
            f"LLM call model={getattr(resp, 'model', self.model)} duration={dt:.3f}s "
            f"tokens(prompt={getattr(u, 'prompt_tokens', None)}, completion={getattr(u, 'completion_tokens', None)})"
        )
        content = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not content:
            raise ValueError("empty completion")
        return content

    async def enrich(self, record: RecommendationRecord) -> str:
        """
        Reasoning text for one record. Retries with capped backoff and raises
        EnrichmentError once attempts are exhausted.
        """
        try:
            return await retry_async(
                lambda: self._call_llm(record),
                retries=self.settings.reasoning_max_retries,
                base_s=self.settings.reasoning_backoff_base_s,
                cap_s=self.settings.reasoning_backoff_cap_s,
                label=f"reasoning product_id={record.source_product_id}",
                sleep=self._sleep,
            )
        except Exception as e:
            raise EnrichmentError(record.source_product_id, e) from e

    async def enrich_records(
        self,
        records: Dict[str, RecommendationRecord],
        *,
        limit: int,
        cancel_token: Optional[CancelToken] = None,
    ) -> EnrichmentResult:
        """
        Enrich the first `limit` records (dict order) through the LLM with
        bounded concurrency; every other record gets template reasoning.
        Failures fall back to the template and are collected, never raised.
        """
        result = EnrichmentResult(records=dict(records))
        selected = list(records.keys())[:max(limit, 0)] if self.enabled else []
        if not self.enabled:
            logger.info("Reasoning disabled (flag off or no API key); using templates")

        semaphore = asyncio.Semaphore(max(self.settings.reasoning_concurrency, 1))

        async def _one(product_id: str) -> None:
            record = records[product_id]
            async with semaphore:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled("reasoning")
                try:
                    text = await self.enrich(record)
                    result.generated += 1
                except EnrichmentError as e:
                    logger.error(e.message)
                    result.errors.append(e.message)
                    text = template_reasoning(record)
                    result.templated += 1
            result.records[product_id] = record.model_copy(update={"reasoning": text})

        llm_ids = [pid for pid in selected if records[pid].candidates]
        await asyncio.gather(*(_one(pid) for pid in llm_ids))

        for product_id, record in records.items():
            if product_id in llm_ids:
                continue
            if not record.candidates:
                text = FALLBACK_NO_CANDIDATES
            else:
                text = template_reasoning(record)
                result.templated += 1
            result.records[product_id] = record.model_copy(update={"reasoning": text})

        logger.info(
            f"[reasoning] llm={result.generated} templated={result.templated} "
            f"errors={len(result.errors)} limit={limit}"
        )
        return result
