"""
Copilot provider (stub).

Direct Copilot API access needs editor-side authentication, so this provider
answers with canned content picked from keywords in the prompt. It is always
available and marks every response with metadata['mock'] = True.
"""

import asyncio
import logging
import time
from typing import List, Optional

from promptstudio.config import Config, get_config
from promptstudio.services.ai.base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from promptstudio.services.ai.utils import estimate_tokens

logger = logging.getLogger(__name__)

CODE_SAMPLE = (
    "```python\n"
    "# Here's a solution to your programming request\n"
    "def example_function():\n"
    "    return 'Generated code example'\n"
    "```\n\n"
    "This code demonstrates the concept you requested..."
)


class CopilotModelProvider(ModelProvider):
    name = "copilot"

    def __init__(self, config: Optional[Config] = None):
        config = config or get_config()
        self.simulated_latency_ms = config.COPILOT_SIMULATED_LATENCY_MS

    async def list_models(self) -> List[ModelInfo]:
        return [
            ModelInfo(
                id="gpt-4",
                name="GPT-4",
                provider=self.name,
                description="Most capable model, best for complex reasoning",
                capabilities={'maxTokens': 8192, 'supportsSystemMessage': True},
            ),
            ModelInfo(
                id="gpt-3.5-turbo",
                name="GPT-3.5 Turbo",
                provider=self.name,
                description="Fast and efficient for most tasks",
                capabilities={'maxTokens': 4096, 'supportsSystemMessage': True},
            ),
        ]

    async def is_available(self) -> bool:
        return True

    async def execute(self, request: ModelRequest) -> ModelResponse:
        start_time = time.time()
        logger.info(f"Executing prompt with Copilot model {request.model_id}")

        if self.simulated_latency_ms > 0:
            await asyncio.sleep(self.simulated_latency_ms / 1000)

        content = generate_mock_response(request)
        return ModelResponse(
            success=True,
            content=content,
            tokens_used=estimate_tokens(request.prompt + content),
            execution_time_ms=int((time.time() - start_time) * 1000),
            metadata={
                'model': request.model_id,
                'provider': self.name,
                'temperature': request.parameters.get('temperature', 0.7),
                'mock': True,
            },
        )


def generate_mock_response(request: ModelRequest) -> str:
    """Canned answer chosen by prompt keywords"""
    prompt = (request.prompt or '').lower()

    if 'analyze' in prompt or 'analysis' in prompt:
        return "Based on the provided data, I can see several key patterns and insights. The analysis shows that..."

    if 'write' in prompt or 'create' in prompt or 'generate' in prompt:
        return (
            "Here's a well-structured response to your request:\n\n"
            "I'll help you create exactly what you need. Let me break this down step by step..."
        )

    if 'code' in prompt or 'function' in prompt or 'programming' in prompt:
        return CODE_SAMPLE

    if 'summarize' in prompt or 'summary' in prompt:
        return "**Summary:**\n\nThe main points are:\n- Key insight 1\n- Key insight 2\n- Key insight 3\n\nIn conclusion..."

    return (
        f"Thank you for your request. Based on your prompt about '{prompt[:50]}...', "
        f"here's a thoughtful response that addresses your needs. "
        f"[This is a mock response from the {request.model_id} model]"
    )
