"""
AI Services - Model provider routing for prompt execution.

The router picks one of several pluggable backends (Copilot stub, MCP
server, local Ollama, hosted models via LiteLLM) for each model id.
"""

from .base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from .exceptions import (
    ModelProviderError,
    NoProviderFoundError,
    ProviderAuthenticationError,
    ProviderModelNotFoundError,
    ProviderQuotaExceededError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from .router import ModelProviderRouter, build_default_router
from .utils import PROVIDER_MODELS, estimate_cost, estimate_tokens, get_model_string

__all__ = [
    # Router
    'ModelProviderRouter',
    'build_default_router',
    # Types
    'ModelInfo',
    'ModelProvider',
    'ModelRequest',
    'ModelResponse',
    # Exceptions
    'ModelProviderError',
    'NoProviderFoundError',
    'ProviderAuthenticationError',
    'ProviderModelNotFoundError',
    'ProviderQuotaExceededError',
    'ProviderResponseError',
    'ProviderTimeoutError',
    'ProviderUnavailableError',
    # Utils
    'PROVIDER_MODELS',
    'estimate_cost',
    'estimate_tokens',
    'get_model_string',
]
