"""Base class for AI assistant providers"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Dict, Optional


@dataclass
class ProviderResult:
    """Result from a provider call"""
    text: str
    provider: str
    model: str
    latency_ms: int
    success: bool
    error: Optional[str] = None


class BaseProvider(ABC):
    """Abstract base class for AI providers"""

    def __init__(
        self,
        model: str,
        max_tokens: int = 1024,
        temperature: float = 0.3,
        timeout_seconds: int = 30,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name"""
        pass

    @abstractmethod
    async def enrich(self, text: str) -> ProviderResult:
        """
        Wrap important keywords in [[ ]] links.

        Args:
            text: Markdown to annotate; existing [[links]] must be kept as-is

        Returns:
            ProviderResult with the annotated text or error
        """
        pass

    @abstractmethod
    async def summarize(self, text: str, max_length: int) -> ProviderResult:
        """
        Summarize a conversation into at most max_length characters.

        The summary carries its own [[ ]] links.
        """
        pass

    @abstractmethod
    async def reply(self, messages: List[Dict[str, str]], context: str) -> ProviderResult:
        """Answer the last user message of a conversation"""
        pass

    def _create_result(
        self,
        text: str = "",
        latency_ms: int = 0,
        success: bool = True,
        error: Optional[str] = None,
    ) -> ProviderResult:
        """Helper to create a ProviderResult"""
        return ProviderResult(
            text=text,
            provider=self.provider_name,
            model=self.model,
            latency_ms=latency_ms,
            success=success,
            error=error,
        )
