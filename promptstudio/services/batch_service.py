"""
Batch Prompt Service - Run one template against many variable sets.

Each set is validated, interpolated and sent through the model router.
Transient failures (provider_error, provider_unavailable) are retried with
exponential backoff:

    delay = BATCH_RETRY_INITIAL_DELAY * BATCH_RETRY_BACKOFF ** attempt
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from promptstudio.config import Config, get_config
from promptstudio.flow_engine.variable_resolver import extract_variable_names, missing_variables, resolve
from promptstudio.services.ai.base import ModelRequest, ModelResponse
from promptstudio.services.ai.router import ModelProviderRouter

logger = logging.getLogger(__name__)

RETRYABLE_ERROR_CODES = ('provider_error', 'provider_unavailable')


@dataclass
class BatchItemResult:
    """Result for one variable set"""
    index: int
    variables: Dict[str, Any]
    resolved_prompt: Optional[str] = None
    success: bool = False
    content: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0
    tokens_used: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'index': self.index,
            'variables': self.variables,
            'resolvedPrompt': self.resolved_prompt,
            'success': self.success,
            'content': self.content,
            'error': self.error,
            'errorCode': self.error_code,
            'attempts': self.attempts,
            'tokensUsed': self.tokens_used,
        }


@dataclass
class BatchExecutionResult:
    items: List[BatchItemResult] = field(default_factory=list)
    total_time_ms: int = 0

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failure_count(self) -> int:
        return len(self.items) - self.success_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'successCount': self.success_count,
            'failureCount': self.failure_count,
            'totalTimeMs': self.total_time_ms,
            'items': [item.to_dict() for item in self.items],
        }


class BatchPromptService:
    """
    Usage:
        service = BatchPromptService(router)
        result = await service.execute_batch(
            "Summarize {{topic}}",
            [{'topic': 'refunds'}, {'topic': 'shipping'}],
            model_id='gpt-4'
        )
    """

    def __init__(self, router: ModelProviderRouter, config: Optional[Config] = None):
        self.router = router
        self.config = config or get_config()

    async def execute_batch(
        self,
        template: str,
        variable_sets: List[Dict[str, Any]],
        model_id: Optional[str] = None,
        defaults: Optional[Dict[str, Any]] = None,
        system_message: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None
    ) -> BatchExecutionResult:
        """
        Execute template once per variable set, in order.

        Args:
            template: Prompt template with {{name}} placeholders
            variable_sets: One environment per execution
            model_id: Model to use (Config.DEFAULT_MODEL when omitted)
            defaults: Default values for missing names
            system_message: Optional system message (interpolated per set)
            parameters: Model parameters

        Returns:
            BatchExecutionResult with one item per variable set
        """
        start_time = time.time()
        model_id = model_id or self.config.DEFAULT_MODEL
        required = extract_variable_names(template)
        result = BatchExecutionResult()

        logger.info(f"Starting batch of {len(variable_sets)} executions on {model_id}")

        for index, variables in enumerate(variable_sets):
            item = BatchItemResult(index=index, variables=dict(variables))
            result.items.append(item)

            missing = missing_variables(required, variables, defaults)
            if missing:
                item.error = f"Missing required variables: {', '.join(missing)}"
                logger.warning(f"Batch item {index} skipped: {item.error}")
                continue

            item.resolved_prompt = resolve(template, variables, defaults)
            request = ModelRequest(
                model_id=model_id,
                prompt=item.resolved_prompt,
                system_message=resolve(system_message, variables, defaults) if system_message else None,
                parameters=dict(parameters or {}),
                variables=dict(variables),
            )

            response, item.attempts = await self._execute_with_retry(request)
            item.success = response.success
            item.content = response.content
            item.error = response.error_message
            item.error_code = response.error_code
            item.tokens_used = response.tokens_used

        result.total_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Batch finished: {result.success_count} succeeded, "
            f"{result.failure_count} failed in {result.total_time_ms}ms"
        )
        return result

    async def _execute_with_retry(self, request: ModelRequest):
        """Returns (last response, attempts made)"""
        max_retries = self.config.BATCH_MAX_RETRIES
        attempt = 0

        while True:
            response: ModelResponse = await self.router.execute(request)
            attempts = attempt + 1

            if response.success or response.error_code not in RETRYABLE_ERROR_CODES:
                return response, attempts
            if attempt >= max_retries:
                logger.warning(f"Giving up on {request.model_id} after {attempts} attempts: {response.error_message}")
                return response, attempts

            delay = self.config.BATCH_RETRY_INITIAL_DELAY * (self.config.BATCH_RETRY_BACKOFF ** attempt)
            logger.info(f"Retrying {request.model_id} in {delay}s ({response.error_code})")
            await asyncio.sleep(delay)
            attempt += 1
