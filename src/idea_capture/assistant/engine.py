"""Assistant engine orchestrating AI providers"""

import os
import logging
from typing import Dict, List, Optional

from .providers.base import BaseProvider, ProviderResult
from .providers.demo_provider import DemoProvider
from ..exceptions import AssistantError, EnrichmentFailed, SummarizationFailed

logger = logging.getLogger(__name__)


def is_demo_mode() -> bool:
    """Demo mode when no API key is set or DEMO_MODE=true"""
    return not os.environ.get('OPENAI_API_KEY') or os.environ.get('DEMO_MODE', '').lower() == 'true'


class AssistantEngine:
    """
    Owns the AI providers and exposes the collaborators the rest of the app
    needs: enrich(text), summarize(text, max_length) and reply(messages).
    """

    def __init__(self, settings: dict, providers: Optional[Dict[str, BaseProvider]] = None):
        """
        Args:
            settings: Assistant and API configuration from settings manager
            providers: Ready-made providers by name, skips construction from settings
        """
        self.settings = settings
        self._providers: Dict[str, BaseProvider] = dict(providers or {})
        self._default_provider: Optional[str] = None
        self._context = settings.get('assistant', {}).get('context', '')

        if not self._providers:
            self._init_providers()
        self._select_default()

    def _init_providers(self):
        """Initialize enabled providers"""
        api_config = self.settings.get('api', {})
        assistant_config = self.settings.get('assistant', {})

        max_tokens = assistant_config.get('max_tokens', 1024)
        temperature = assistant_config.get('temperature', 0.3)
        timeout = assistant_config.get('timeout_seconds', 30)

        if api_config.get('openai', {}).get('enabled', False) and not is_demo_mode():
            from .providers.openai_provider import OpenAIProvider

            model = api_config['openai'].get('model', 'gpt-4o-mini')
            self._providers['openai'] = OpenAIProvider(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout_seconds=timeout,
            )
            logger.info(f"Initialized OpenAI provider with model: {model}")

        if api_config.get('demo', {}).get('enabled', True):
            self._providers['demo'] = DemoProvider()

    def _select_default(self):
        requested = self.settings.get('assistant', {}).get('default_provider', 'openai')
        self._default_provider = requested
        if self._default_provider not in self._providers and self._providers:
            self._default_provider = list(self._providers.keys())[0]
            logger.warning(f"Provider '{requested}' not available, using: {self._default_provider}")

    def _provider(self) -> Optional[BaseProvider]:
        return self._providers.get(self._default_provider) if self._default_provider else None

    def _no_provider(self) -> ProviderResult:
        return ProviderResult(
            text="",
            provider="none",
            model="",
            latency_ms=0,
            success=False,
            error=f"No provider available (requested: {self._default_provider})",
        )

    async def enrich(self, text: str) -> str:
        """
        Link keywords in text.

        Raises:
            EnrichmentFailed: the provider failed
        """
        if not text.strip():
            return text

        provider = self._provider()
        result = await provider.enrich(text) if provider else self._no_provider()
        if not result.success:
            raise EnrichmentFailed(result.error or "Enrichment failed")
        return result.text

    async def summarize(self, text: str, max_length: int) -> str:
        """
        Summarize text into roughly max_length characters.

        Raises:
            SummarizationFailed: the provider failed or returned nothing
        """
        provider = self._provider()
        result = await provider.summarize(text, max_length) if provider else self._no_provider()
        if not result.success:
            raise SummarizationFailed(result.error or "Summarization failed")
        if not result.text.strip():
            raise SummarizationFailed("Summarization returned no content")
        return result.text

    async def reply(self, messages: List[Dict[str, str]]) -> str:
        """
        Answer the conversation so far.

        Raises:
            AssistantError: the provider failed
        """
        provider = self._provider()
        result = await provider.reply(messages, self._context) if provider else self._no_provider()
        if not result.success:
            raise AssistantError(result.error or "Assistant failed")
        return result.text

    @property
    def available_providers(self) -> list:
        """List of available provider names"""
        return list(self._providers.keys())

    @property
    def default_provider(self) -> Optional[str]:
        """Current default provider name"""
        return self._default_provider
