"""
Model Provider Router - Picks a backend for each model id and dispatches to it.

Selection (first match wins, ids compared case-insensitively):
1. Prefix: mcp-* -> mcp, ollama-* -> ollama
2. Static table of common model names -> copilot
3. First provider whose catalogue lists the model
4. First registered provider

When rule 1 or 2 matches but names an unregistered provider, selection stops
there and no provider is found. The router never retries; callers that want
retries (batch runs) do it themselves.
"""

import logging
import time
from typing import Dict, List, Optional

from promptstudio.config import Config, get_config
from promptstudio.services.ai.base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from promptstudio.services.ai.exceptions import (
    ModelProviderError,
    NoProviderFoundError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

PREFIX_PROVIDERS = (
    ('mcp-', 'mcp'),
    ('ollama-', 'ollama'),
)

STATIC_MODEL_PROVIDERS = {
    'gpt-4': 'copilot',
    'gpt-4-turbo': 'copilot',
    'gpt-3.5-turbo': 'copilot',
}


class ModelProviderRouter:
    """
    Routes ModelRequests to registered providers.

    Usage:
        router = ModelProviderRouter([CopilotModelProvider(), McpModelProvider()])
        response = await router.execute(ModelRequest(model_id='mcp-claude', prompt='Hi'))
    """

    def __init__(self, providers: Optional[List[ModelProvider]] = None):
        # Registration order is the catalogue/fallback order
        self._providers: Dict[str, ModelProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ModelProvider):
        """Register a provider, replacing any with the same name"""
        key = provider.name.lower()
        if key in self._providers:
            logger.info(f"Replacing model provider: {provider.name}")
        self._providers[key] = provider
        logger.debug(f"Registered model provider: {provider.name}")

    def get_provider(self, name: str) -> Optional[ModelProvider]:
        return self._providers.get(name.lower())

    def get_providers(self) -> List[ModelProvider]:
        return list(self._providers.values())

    async def determine_provider(self, model_id: str) -> Optional[ModelProvider]:
        """
        Pick the provider for a model id.

        Returns:
            Provider, or None when no provider is registered or the prefix
            or static-table rule that matched names an unregistered one
        """
        wanted = (model_id or '').strip().lower()

        for prefix, name in PREFIX_PROVIDERS:
            if wanted.startswith(prefix):
                return self._matched_rule(model_id, name, 'prefix')

        name = STATIC_MODEL_PROVIDERS.get(wanted)
        if name:
            return self._matched_rule(model_id, name, 'static table')

        for provider in self._providers.values():
            try:
                if await provider.supports_model(wanted):
                    logger.debug(f"Model {model_id} found in {provider.name} catalogue")
                    return provider
            except Exception as e:
                logger.warning(f"Could not list models for provider {provider.name}: {e}")

        if self._providers:
            fallback = next(iter(self._providers.values()))
            logger.debug(f"Model {model_id} not matched, falling back to {fallback.name}")
            return fallback

        return None

    def _matched_rule(self, model_id: str, name: str, rule: str) -> Optional[ModelProvider]:
        provider = self._providers.get(name)
        if provider is None:
            logger.warning(f"Model {model_id} routed by {rule} to {name}, which is not registered")
            return None
        logger.debug(f"Model {model_id} routed by {rule} to {name}")
        return provider

    async def execute(self, request: ModelRequest) -> ModelResponse:
        """
        Execute a request on the selected provider.

        Never raises: selection, availability and provider errors come back as
        a failed ModelResponse with an error_code.
        """
        start_time = time.time()

        provider = await self.determine_provider(request.model_id)
        if provider is None:
            error = NoProviderFoundError(model=request.model_id)
            logger.warning(error.message)
            return ModelResponse.failure(error.message, error.error_code)

        try:
            available = await provider.is_available()
        except Exception as e:
            logger.warning(f"Availability check failed for provider {provider.name}: {e}")
            available = False

        if not available:
            error = ProviderUnavailableError(
                f"Provider '{provider.name}' is not available", provider.name, request.model_id
            )
            logger.warning(str(error))
            return ModelResponse.failure(
                error.message,
                error.error_code,
                metadata={'provider': provider.name, 'model': request.model_id},
            )

        logger.info(f"Executing model {request.model_id} on provider {provider.name}")
        try:
            response = await provider.execute(request)
        except ModelProviderError as e:
            logger.error(f"Provider error: {e}")
            return ModelResponse.failure(
                e.message,
                e.error_code,
                execution_time_ms=_elapsed_ms(start_time),
                metadata={'provider': provider.name, 'model': request.model_id},
            )
        except Exception as e:
            logger.error(
                f"Unexpected error from provider {provider.name}: {type(e).__name__}: {e}",
                exc_info=True
            )
            return ModelResponse.failure(
                str(e),
                'provider_error',
                execution_time_ms=_elapsed_ms(start_time),
                metadata={'provider': provider.name, 'model': request.model_id},
            )

        if not response.success and not response.error_code:
            response.error_code = 'provider_error'
        if not response.execution_time_ms:
            response.execution_time_ms = _elapsed_ms(start_time)
        response.metadata.setdefault('provider', provider.name)
        return response

    async def get_all_available_models(self) -> List[ModelInfo]:
        """Merged catalogues of every available provider"""
        models: List[ModelInfo] = []
        for provider in self._providers.values():
            try:
                if await provider.is_available():
                    models.extend(await provider.list_models())
            except Exception as e:
                logger.warning(f"Error getting models from provider {provider.name}: {e}")
        return models


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def build_default_router(config: Optional[Config] = None) -> ModelProviderRouter:
    """Router with the providers enabled in configuration, in configured order"""
    from promptstudio.services.ai.providers import PROVIDER_CLASSES

    config = config or get_config()
    router = ModelProviderRouter()

    for name in config.ENABLED_PROVIDERS:
        provider_class = PROVIDER_CLASSES.get(name.lower())
        if provider_class is None:
            logger.warning(f"Unknown model provider in ENABLED_PROVIDERS: {name}")
            continue
        router.register(provider_class(config))

    logger.info(f"Model router ready with providers: {[p.name for p in router.get_providers()]}")
    return router
