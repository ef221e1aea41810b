"""
LiteLLM provider - hosted models (OpenAI, Gemini, Anthropic) through LiteLLM.

LiteLLM abstracts the hosted providers behind one interface. Model ids use
the 'provider/model' form (openai/gpt-4o); bare ids are sent to OpenAI.
"""

import logging
import time
from typing import List, Optional

import litellm
from litellm import acompletion
from litellm.exceptions import (
    APIError,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    RateLimitError,
    Timeout,
)

from promptstudio.config import Config, get_config
from promptstudio.services.ai.base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from promptstudio.services.ai.exceptions import (
    ModelProviderError,
    ProviderAuthenticationError,
    ProviderModelNotFoundError,
    ProviderQuotaExceededError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from promptstudio.services.ai.utils import (
    PROVIDER_MODELS,
    PROVIDER_NAMES,
    configured_api_keys,
    estimate_cost,
    get_model_string,
    split_model_string,
)

logger = logging.getLogger(__name__)

# Keep LiteLLM quiet
litellm.set_verbose = False


class LiteLLMModelProvider(ModelProvider):
    name = "litellm"

    def __init__(self, config: Optional[Config] = None):
        config = config or get_config()
        self.api_keys = configured_api_keys(config)
        self.timeout = config.LITELLM_TIMEOUT
        self.default_temperature = 0.7
        self.default_max_tokens = 1000

    async def is_available(self) -> bool:
        return bool(self.api_keys)

    async def list_models(self) -> List[ModelInfo]:
        return [
            ModelInfo(
                id=get_model_string(provider, model),
                name=model,
                provider=self.name,
                description=f"{PROVIDER_NAMES.get(provider, provider)} {model}",
            )
            for provider, models in PROVIDER_MODELS.items()
            for model in models
        ]

    async def execute(self, request: ModelRequest) -> ModelResponse:
        """
        Raises:
            ProviderTimeoutError: Timeout exceeded
            ProviderAuthenticationError: Missing or invalid API key
            ProviderQuotaExceededError: Rate limit / quota exceeded
            ProviderModelNotFoundError: Unknown model
            ProviderResponseError: Other API errors
        """
        provider, model_name = split_model_string(request.model_id)
        api_key = self.api_keys.get(provider)
        if not api_key:
            raise ProviderAuthenticationError(
                f"No API key configured for {provider}", provider, model_name
            )

        params = request.parameters
        temperature = params.get('temperature', self.default_temperature)
        max_tokens = params.get('maxTokens', params.get('max_tokens')) or self.default_max_tokens

        logger.info(f"Starting hosted generation - provider={provider}, model={model_name}")
        start_time = time.time()

        try:
            response = await acompletion(
                model=get_model_string(provider, model_name),
                messages=request.to_messages(),
                api_key=api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.timeout,
            )
        except Timeout as e:
            raise ProviderTimeoutError(str(e), provider, model_name, self.timeout)
        except AuthenticationError as e:
            raise ProviderAuthenticationError(str(e), provider, model_name)
        except RateLimitError as e:
            raise ProviderQuotaExceededError(str(e), provider, model_name)
        except NotFoundError as e:
            raise ProviderModelNotFoundError(str(e), provider, model_name)
        except BadRequestError as e:
            raise ProviderResponseError(str(e), provider, model_name, status_code=400)
        except APIError as e:
            raise ProviderResponseError(str(e), provider, model_name, getattr(e, 'status_code', None))
        except Exception as e:
            raise ModelProviderError(str(e), provider, model_name)

        duration_ms = int((time.time() - start_time) * 1000)

        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0
        total_tokens = usage.total_tokens if usage else 0
        cost = estimate_cost(provider, model_name, input_tokens, output_tokens)

        logger.info(
            f"Hosted generation finished - provider={provider}, model={model_name}, "
            f"tokens={total_tokens}, time_ms={duration_ms}, cost_usd={cost:.6f}"
        )

        return ModelResponse(
            success=True,
            content=response.choices[0].message.content,
            tokens_used=total_tokens,
            execution_time_ms=duration_ms,
            metadata={
                'model': request.model_id,
                'provider': self.name,
                'upstreamProvider': provider,
                'inputTokens': input_tokens,
                'outputTokens': output_tokens,
                'estimatedCostUsd': cost,
            },
        )
