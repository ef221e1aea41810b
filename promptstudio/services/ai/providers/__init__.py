"""
Model providers available to the router.
"""

from promptstudio.services.ai.providers.copilot import CopilotModelProvider
from promptstudio.services.ai.providers.litellm_provider import LiteLLMModelProvider
from promptstudio.services.ai.providers.mcp import McpModelProvider
from promptstudio.services.ai.providers.ollama import OllamaModelProvider

# Config.ENABLED_PROVIDERS name -> provider class
PROVIDER_CLASSES = {
    CopilotModelProvider.name: CopilotModelProvider,
    McpModelProvider.name: McpModelProvider,
    OllamaModelProvider.name: OllamaModelProvider,
    LiteLLMModelProvider.name: LiteLLMModelProvider,
}

__all__ = [
    'CopilotModelProvider',
    'McpModelProvider',
    'OllamaModelProvider',
    'LiteLLMModelProvider',
    'PROVIDER_CLASSES',
]
