"""
Base types shared by the model router and its providers.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ModelRequest:
    """Prompt execution request routed to a provider"""
    model_id: str
    prompt: str
    system_message: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    variables: Dict[str, Any] = field(default_factory=dict)

    def to_messages(self) -> List[Dict[str, str]]:
        """Chat-style messages for providers that take them"""
        messages = []
        if self.system_message:
            messages.append({"role": "system", "content": self.system_message})
        messages.append({"role": "user", "content": self.prompt})
        return messages


@dataclass
class ModelResponse:
    """Outcome of a provider call. Failures are values, not exceptions."""
    success: bool
    content: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    tokens_used: int = 0
    execution_time_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, message: str, error_code: str = 'provider_error', **kwargs) -> 'ModelResponse':
        return cls(success=False, error_message=message, error_code=error_code, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'content': self.content,
            'errorMessage': self.error_message,
            'errorCode': self.error_code,
            'tokensUsed': self.tokens_used,
            'executionTimeMs': self.execution_time_ms,
            'metadata': dict(self.metadata),
        }


@dataclass
class ModelInfo:
    """Catalogue entry advertised by a provider"""
    id: str
    name: str
    provider: str
    description: str = ""
    capabilities: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'provider': self.provider,
            'description': self.description,
            'capabilities': dict(self.capabilities),
        }


class ModelProvider(abc.ABC):
    """
    A pluggable language-model backend.

    Providers must not keep per-request state; one instance serves every
    concurrent flow run.
    """

    name: str = ""

    @abc.abstractmethod
    async def list_models(self) -> List[ModelInfo]:
        """Models this provider can serve right now"""

    @abc.abstractmethod
    async def execute(self, request: ModelRequest) -> ModelResponse:
        """Run a prompt. May raise ModelProviderError."""

    @abc.abstractmethod
    async def is_available(self) -> bool:
        """Cheap liveness probe run before every dispatch"""

    async def supports_model(self, model_id: str) -> bool:
        models = await self.list_models()
        wanted = model_id.lower()
        return any(model.id.lower() == wanted for model in models)
