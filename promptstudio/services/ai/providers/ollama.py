"""
Ollama provider - models served by a local Ollama daemon over HTTP.

Model ids are exposed with an "ollama-" prefix (ollama-llama3) so the router
can send them here without asking the daemon.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from promptstudio.config import Config, get_config
from promptstudio.services.ai.base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from promptstudio.services.ai.exceptions import (
    ProviderModelNotFoundError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

MODEL_PREFIX = "ollama-"


def strip_prefix(model_id: str) -> str:
    if model_id.lower().startswith(MODEL_PREFIX):
        return model_id[len(MODEL_PREFIX):]
    return model_id


class OllamaModelProvider(ModelProvider):
    name = "ollama"

    def __init__(self, config: Optional[Config] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        config = config or get_config()
        self.base_url = config.OLLAMA_BASE_URL.rstrip('/')
        self.timeout = config.OLLAMA_TIMEOUT
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def is_available(self) -> bool:
        try:
            async with self._client(timeout=5) as client:
                response = await client.get('/api/version')
                return response.is_success
        except httpx.HTTPError as e:
            logger.debug(f"Ollama not reachable at {self.base_url}: {e}")
            return False

    async def list_models(self) -> List[ModelInfo]:
        try:
            async with self._client(timeout=10) as client:
                response = await client.get('/api/tags')
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Could not list Ollama models: {e}")
            return []

        models = []
        for entry in data.get('models', []):
            name = entry.get('name') or entry.get('model')
            if not name:
                continue
            models.append(ModelInfo(
                id=f"{MODEL_PREFIX}{name}",
                name=name,
                provider=self.name,
                description=f"Local Ollama model {name}",
                capabilities={'size': entry.get('size')},
            ))
        return models

    def _build_payload(self, request: ModelRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'model': strip_prefix(request.model_id),
            'prompt': request.prompt,
            'stream': False,
        }
        if request.system_message:
            payload['system'] = request.system_message

        options = {}
        params = request.parameters
        if 'temperature' in params:
            options['temperature'] = params['temperature']
        max_tokens = params.get('maxTokens', params.get('max_tokens'))
        if max_tokens is not None:
            options['num_predict'] = max_tokens
        if options:
            payload['options'] = options
        return payload

    async def execute(self, request: ModelRequest) -> ModelResponse:
        """
        Raises:
            ProviderTimeoutError: Daemon did not answer in time
            ProviderUnavailableError: Daemon not reachable
            ProviderModelNotFoundError: Model not pulled
            ProviderResponseError: Any other error status
        """
        model = strip_prefix(request.model_id)
        logger.info(f"Executing prompt with Ollama model {model}")
        start_time = time.time()

        try:
            async with self._client() as client:
                response = await client.post('/api/generate', json=self._build_payload(request))
                response.raise_for_status()
                data = response.json()

        except httpx.TimeoutException:
            raise ProviderTimeoutError(provider=self.name, model=model, timeout_seconds=self.timeout)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise ProviderModelNotFoundError(f"Ollama model not found: {model}", self.name, model)
            raise ProviderResponseError(
                f"Ollama API error: {e.response.status_code} - {e.response.text}",
                self.name,
                model,
                status_code=e.response.status_code,
            )
        except httpx.TransportError as e:
            raise ProviderUnavailableError(f"Ollama not reachable: {e}", self.name, model)

        prompt_tokens = data.get('prompt_eval_count') or 0
        output_tokens = data.get('eval_count') or 0

        return ModelResponse(
            success=True,
            content=data.get('response', ''),
            tokens_used=prompt_tokens + output_tokens,
            execution_time_ms=int((time.time() - start_time) * 1000),
            metadata={'model': request.model_id, 'provider': self.name},
        )
