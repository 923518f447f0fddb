from .engine import AssistantEngine, is_demo_mode
from .providers.base import BaseProvider, ProviderResult
from .providers.demo_provider import DemoProvider

__all__ = ['AssistantEngine', 'is_demo_mode', 'BaseProvider', 'ProviderResult', 'DemoProvider']
