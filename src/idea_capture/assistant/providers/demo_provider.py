"""Offline provider used when no API key is configured"""

import asyncio
import re
import time
import logging
from typing import Dict, List

from .base import BaseProvider, ProviderResult

logger = logging.getLogger(__name__)

DEMO_KEYWORDS = [
    'SaaS', 'B2B', 'B2C', 'MVP', 'KPI', 'ROI', 'PLG',
    'business model', 'revenue model', 'target audience', 'problem', 'value proposition',
    'small business', 'enterprise', 'startup',
    'automation', 'DX', 'digitalization', 'idea',
]

DEMO_SUMMARY = """## Overview
A conversation about a business idea, centred on the [[target market]] and the [[revenue model]].

## Key points
- Clarify the [[target market]]
- Work out the [[competitive advantage]]
- Make the [[revenue model]] concrete

## Problems and solutions
- Problem: market size unknown -> Solution: run [[market research]]
- Problem: weak [[differentiation]] -> Solution: build proprietary technology

## Action items
- [ ] Start building the [[MVP]]
- [ ] Interview [[target customers]]
- [ ] Write a [[competitor analysis]]

## Keywords
[[business model]] [[value proposition]] [[customer problem]]"""

DEMO_REPLY = (
    "[Demo mode] Interesting idea. Who feels this problem most sharply today, "
    "and what do they use instead?"
)


def _compile_keyword_pattern(keywords: List[str]) -> re.Pattern:
    # Existing [[links]] match first and are kept whole; longest keyword first
    # so "revenue model" wins over a shorter overlapping keyword
    alternatives = '|'.join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"\[\[.*?\]\]|\b({alternatives})\b")


def _link(match: re.Match) -> str:
    keyword = match.group(1)
    return match.group(0) if keyword is None else f"[[{keyword}]]"


class DemoProvider(BaseProvider):
    """Regex keyword linking and canned responses, no network"""

    def __init__(self, keywords: List[str] = None, latency_seconds: float = 0.0):
        super().__init__(model="demo")
        self.keywords = list(keywords or DEMO_KEYWORDS)
        self.latency_seconds = latency_seconds
        self._pattern = _compile_keyword_pattern(self.keywords)

    @property
    def provider_name(self) -> str:
        return "demo"

    def link_keywords(self, text: str) -> str:
        """Wrap known keywords in [[ ]], leaving existing links alone"""
        return self._pattern.sub(_link, text)

    async def _simulate_latency(self) -> int:
        start_time = time.time()
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)
        return int((time.time() - start_time) * 1000)

    async def enrich(self, text: str) -> ProviderResult:
        latency_ms = await self._simulate_latency()
        return self._create_result(text=self.link_keywords(text), latency_ms=latency_ms)

    async def summarize(self, text: str, max_length: int) -> ProviderResult:
        latency_ms = await self._simulate_latency()
        summary = f"[Demo mode]\n\n{DEMO_SUMMARY}"
        logger.debug(f"Demo summary of {len(text)} characters (limit {max_length})")
        return self._create_result(text=summary, latency_ms=latency_ms)

    async def reply(self, messages: List[Dict[str, str]], context: str) -> ProviderResult:
        latency_ms = await self._simulate_latency()
        return self._create_result(text=DEMO_REPLY, latency_ms=latency_ms)
