"""OpenAI provider for keyword linking, summaries and replies"""

import asyncio
import time
import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI
from .base import BaseProvider, ProviderResult

logger = logging.getLogger(__name__)

KEYWORD_LINK_PROMPT = """You annotate business conversation notes for an Obsidian vault.
Wrap every keyword worth linking in [[keyword]] form.

Link:
- Business terms (SaaS, B2B, MVP, KPI, ROI, PLG, ...)
- Proper nouns (companies, products, people)
- Key concepts (business model, revenue model, target audience, problem, value proposition)
- Action items, technical terms and framework names

Do not link pronouns, particles, filler words or single characters.

Rules:
1. Link every occurrence of a keyword.
2. Keep the original structure, line breaks and blank lines exactly.
3. Leave text already inside [[ ]] untouched; never nest links.
4. When unsure whether to link, link.
5. Keep Markdown syntax (headings, lists) as it is.

Return only the annotated Markdown, with no preamble or commentary."""

SUMMARIZE_PROMPT = """You summarize brainstorming conversations about business ideas.

Rules:
1. Extract the key points of the idea.
2. State the problems discussed and their proposed solutions.
3. List action items as a checklist when there are any.
4. Always wrap important keywords in [[keyword]] Obsidian links.
5. Stay strictly within the requested maximum number of characters.
6. Keep the conversation's chronological order.

Output format:
## Overview
(2-3 sentences)

## Key points
- ...

## Problems and solutions
- Problem: ... -> Solution: ...

## Action items
- [ ] ...

## Keywords
[[keyword1]] [[keyword2]]"""


class OpenAIProvider(BaseProvider):
    """OpenAI chat completions provider"""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1024,
        temperature: float = 0.3,
        timeout_seconds: int = 30,
        api_key: Optional[str] = None,
    ):
        super().__init__(model, max_tokens, temperature, timeout_seconds)
        self._client = AsyncOpenAI(api_key=api_key) if api_key else AsyncOpenAI()

    @property
    def provider_name(self) -> str:
        return "openai"

    async def enrich(self, text: str) -> ProviderResult:
        """Link keywords using OpenAI"""
        return await self._complete(
            "enrich",
            [
                {"role": "system", "content": KEYWORD_LINK_PROMPT},
                {"role": "user", "content": text},
            ],
            temperature=0.0,
        )

    async def summarize(self, text: str, max_length: int) -> ProviderResult:
        """Summarize a conversation using OpenAI"""
        return await self._complete(
            "summarize",
            [
                {"role": "system", "content": SUMMARIZE_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Summarize the following conversation in at most {max_length} characters. "
                        f"The character limit is absolute.\n\n{text}"
                    ),
                },
            ],
        )

    async def reply(self, messages: List[Dict[str, str]], context: str) -> ProviderResult:
        """Continue the conversation using OpenAI"""
        return await self._complete(
            "reply",
            [{"role": "system", "content": context}] + list(messages),
        )

    async def _complete(
        self,
        operation: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
    ) -> ProviderResult:
        start_time = time.time()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature if temperature is None else temperature,
                timeout=self.timeout_seconds,
            )

            text = response.choices[0].message.content or ""
            latency_ms = int((time.time() - start_time) * 1000)

            logger.info(f"OpenAI {operation} completed in {latency_ms}ms")

            return self._create_result(
                text=text.strip(),
                latency_ms=latency_ms,
                success=True,
            )

        except asyncio.TimeoutError:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(f"OpenAI {operation} timed out after {latency_ms}ms")
            return self._create_result(
                latency_ms=latency_ms,
                success=False,
                error="Request timed out",
            )

        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            logger.error(f"OpenAI {operation} failed: {e}")
            return self._create_result(
                latency_ms=latency_ms,
                success=False,
                error=str(e),
            )
