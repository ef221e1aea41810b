"""
Tests for the built-in model providers
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from litellm.exceptions import AuthenticationError, RateLimitError, Timeout

from promptstudio.config import TestingConfig
from promptstudio.services.ai.base import ModelRequest
from promptstudio.services.ai.exceptions import (
    ModelProviderError,
    ProviderAuthenticationError,
    ProviderModelNotFoundError,
    ProviderQuotaExceededError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from promptstudio.services.ai.providers.copilot import CODE_SAMPLE, CopilotModelProvider
from promptstudio.services.ai.providers.litellm_provider import LiteLLMModelProvider
from promptstudio.services.ai.providers.mcp import McpModelProvider
from promptstudio.services.ai.providers.ollama import OllamaModelProvider, strip_prefix


class KeyedConfig(TestingConfig):
    OPENAI_API_KEY = 'sk-test'
    ANTHROPIC_API_KEY = ''
    GEMINI_API_KEY = ''


class KeylessConfig(TestingConfig):
    OPENAI_API_KEY = ''
    ANTHROPIC_API_KEY = ''
    GEMINI_API_KEY = ''


def fake_process(name, cmdline=None, pid=100):
    proc = MagicMock()
    proc.pid = pid
    proc.info = {'name': name, 'cmdline': cmdline or []}
    return proc


class TestCopilotProvider:
    """Tests for the canned Copilot provider"""

    @pytest.mark.asyncio
    async def test_always_available(self, test_config):
        """Test copilot is always available"""
        assert await CopilotModelProvider(test_config).is_available() is True

    @pytest.mark.asyncio
    async def test_lists_two_models(self, test_config):
        """Test copilot model list"""
        models = await CopilotModelProvider(test_config).list_models()
        assert [model.id for model in models] == ['gpt-4', 'gpt-3.5-turbo']

    @pytest.mark.asyncio
    @pytest.mark.parametrize('prompt,expected', [
        ('Please analyze these numbers', 'Based on the provided data'),
        ('Write a poem', "Here's a well-structured response"),
        ('Summarize the meeting', '**Summary:**'),
    ])
    async def test_keyword_responses(self, test_config, prompt, expected):
        """Test keyword based canned responses"""
        response = await CopilotModelProvider(test_config).execute(ModelRequest(model_id='gpt-4', prompt=prompt))
        assert response.success
        assert response.content.startswith(expected)
        assert response.metadata['mock'] is True

    @pytest.mark.asyncio
    async def test_code_response(self, test_config):
        """Test code prompt returns the code sample"""
        response = await CopilotModelProvider(test_config).execute(
            ModelRequest(model_id='gpt-4', prompt='a python function please')
        )
        assert response.content == CODE_SAMPLE

    @pytest.mark.asyncio
    async def test_default_response_names_model(self, test_config):
        """Test default response names the model"""
        response = await CopilotModelProvider(test_config).execute(
            ModelRequest(model_id='gpt-3.5-turbo', prompt='Hello there')
        )
        assert 'gpt-3.5-turbo' in response.content
        assert response.tokens_used > 0


class TestMcpProvider:
    """Tests for MCP server detection and execution"""

    @pytest.mark.asyncio
    @patch('promptstudio.services.ai.providers.mcp.psutil.process_iter')
    async def test_available_when_process_running(self, mock_iter, test_config):
        """Test available when the server process runs"""
        mock_iter.return_value = [
            fake_process('python'),
            fake_process('dotnet', ['dotnet', 'run', '--project', 'PromptStudioMcpServer']),
        ]
        assert await McpModelProvider(test_config).is_available() is True

    @pytest.mark.asyncio
    @patch('promptstudio.services.ai.providers.mcp.psutil.process_iter')
    async def test_unavailable_without_process(self, mock_iter, test_config):
        """Test unavailable without the server process"""
        mock_iter.return_value = [fake_process('bash')]
        provider = McpModelProvider(test_config)

        assert await provider.is_available() is False
        assert await provider.list_models() == []

    @pytest.mark.asyncio
    @patch('promptstudio.services.ai.providers.mcp.psutil.process_iter')
    async def test_execute_lists_variables(self, mock_iter, test_config):
        """Test execute lists the provided variables"""
        mock_iter.return_value = [fake_process('PromptStudioMcpServer')]
        provider = McpModelProvider(test_config)

        response = await provider.execute(ModelRequest(
            model_id='mcp-claude', prompt='Hi', variables={'topic': 'AI', 'tone': 'calm'}
        ))

        assert response.success
        assert 'Variables provided: topic, tone' in response.content
        assert response.metadata['mcpServer'] is True
        assert [m.id for m in await provider.list_models()] == ['mcp-claude', 'mcp-copilot']

    @pytest.mark.asyncio
    @patch('promptstudio.services.ai.providers.mcp.psutil.process_iter')
    async def test_execute_raises_when_server_stopped(self, mock_iter, test_config):
        """Test execute raises when the server is stopped"""
        mock_iter.return_value = []
        with pytest.raises(ProviderUnavailableError):
            await McpModelProvider(test_config).execute(ModelRequest(model_id='mcp-claude', prompt='Hi'))


class TestOllamaProvider:
    """Tests for the Ollama HTTP provider"""

    def ollama(self, handler):
        return OllamaModelProvider(TestingConfig(), transport=httpx.MockTransport(handler))

    def test_strip_prefix(self):
        """Test ollama- prefix is stripped"""
        assert strip_prefix('ollama-llama3') == 'llama3'
        assert strip_prefix('llama3') == 'llama3'

    @pytest.mark.asyncio
    async def test_available(self):
        """Test available when the version endpoint answers"""
        provider = self.ollama(lambda request: httpx.Response(200, json={'version': '0.1.0'}))
        assert await provider.is_available() is True

    @pytest.mark.asyncio
    async def test_unavailable_on_connection_error(self):
        """Test unavailable on connection error"""
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        assert await self.ollama(handler).is_available() is False

    @pytest.mark.asyncio
    async def test_list_models_adds_prefix(self):
        """Test listed models get the ollama- prefix"""
        def handler(request):
            assert request.url.path == '/api/tags'
            return httpx.Response(200, json={'models': [{'name': 'llama3', 'size': 1}, {'name': 'mistral'}]})

        models = await self.ollama(handler).list_models()
        assert [model.id for model in models] == ['ollama-llama3', 'ollama-mistral']

    @pytest.mark.asyncio
    async def test_execute(self):
        """Test generate request and response parsing"""
        captured = {}

        def handler(request):
            captured['path'] = request.url.path
            captured['body'] = json.loads(request.content)
            return httpx.Response(200, json={'response': 'Hi there', 'prompt_eval_count': 4, 'eval_count': 6})

        response = await self.ollama(handler).execute(ModelRequest(
            model_id='ollama-llama3',
            prompt='Hello',
            system_message='Be kind',
            parameters={'temperature': 0.1, 'maxTokens': 50},
        ))

        assert response.success
        assert response.content == 'Hi there'
        assert response.tokens_used == 10
        assert captured['path'] == '/api/generate'
        assert captured['body'] == {
            'model': 'llama3',
            'prompt': 'Hello',
            'stream': False,
            'system': 'Be kind',
            'options': {'temperature': 0.1, 'num_predict': 50},
        }

    @pytest.mark.asyncio
    async def test_model_not_found(self):
        """Test 404 raises ProviderModelNotFoundError"""
        provider = self.ollama(lambda request: httpx.Response(404, text='model not found'))
        with pytest.raises(ProviderModelNotFoundError):
            await provider.execute(ModelRequest(model_id='ollama-ghost', prompt='Hi'))

    @pytest.mark.asyncio
    async def test_server_error(self):
        """Test server error raises ProviderResponseError"""
        provider = self.ollama(lambda request: httpx.Response(500, text='boom'))
        with pytest.raises(ProviderResponseError) as exc:
            await provider.execute(ModelRequest(model_id='ollama-llama3', prompt='Hi'))
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test read timeout raises ProviderTimeoutError"""
        def handler(request):
            raise httpx.ReadTimeout('slow', request=request)

        with pytest.raises(ProviderTimeoutError):
            await self.ollama(handler).execute(ModelRequest(model_id='ollama-llama3', prompt='Hi'))

    @pytest.mark.asyncio
    async def test_unreachable(self):
        """Test connection error raises ProviderUnavailableError"""
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        with pytest.raises(ProviderUnavailableError):
            await self.ollama(handler).execute(ModelRequest(model_id='ollama-llama3', prompt='Hi'))


class TestLiteLLMProvider:
    """Tests for hosted models through LiteLLM"""

    def completion_response(self, content='Hosted answer'):
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = content
        response.usage.prompt_tokens = 10
        response.usage.completion_tokens = 20
        response.usage.total_tokens = 30
        return response

    @pytest.mark.asyncio
    async def test_availability_follows_keys(self):
        """Test availability follows configured keys"""
        assert await LiteLLMModelProvider(KeyedConfig()).is_available() is True
        assert await LiteLLMModelProvider(KeylessConfig()).is_available() is False

    @pytest.mark.asyncio
    async def test_catalogue_uses_provider_prefix(self):
        """Test catalogue ids carry the provider prefix"""
        models = await LiteLLMModelProvider(KeyedConfig()).list_models()
        ids = [model.id for model in models]
        assert 'openai/gpt-4o' in ids
        assert 'anthropic/claude-3-haiku-20240307' in ids

    @pytest.mark.asyncio
    @patch('promptstudio.services.ai.providers.litellm_provider.acompletion', new_callable=AsyncMock)
    async def test_execute(self, mock_completion):
        """Test completion call and response parsing"""
        mock_completion.return_value = self.completion_response()
        provider = LiteLLMModelProvider(KeyedConfig())

        response = await provider.execute(ModelRequest(
            model_id='openai/gpt-4o', prompt='Hi', system_message='Be brief', parameters={'maxTokens': 64}
        ))

        assert response.success
        assert response.content == 'Hosted answer'
        assert response.tokens_used == 30
        assert response.metadata['upstreamProvider'] == 'openai'

        kwargs = mock_completion.call_args.kwargs
        assert kwargs['model'] == 'openai/gpt-4o'
        assert kwargs['api_key'] == 'sk-test'
        assert kwargs['max_tokens'] == 64
        assert kwargs['messages'][0] == {'role': 'system', 'content': 'Be brief'}

    @pytest.mark.asyncio
    @patch('promptstudio.services.ai.providers.litellm_provider.acompletion', new_callable=AsyncMock)
    async def test_missing_key(self, mock_completion):
        """Test missing API key raises before calling LiteLLM"""
        provider = LiteLLMModelProvider(KeyedConfig())
        with pytest.raises(ProviderAuthenticationError):
            await provider.execute(ModelRequest(model_id='anthropic/claude-3-haiku-20240307', prompt='Hi'))
        mock_completion.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize('litellm_error,expected', [
        (Timeout(message='Timeout occurred', model='gpt-4', llm_provider='openai'), ProviderTimeoutError),
        (AuthenticationError(message='Invalid key', llm_provider='openai', model='gpt-4'), ProviderAuthenticationError),
        (RateLimitError(message='Rate limited', llm_provider='openai', model='gpt-4'), ProviderQuotaExceededError),
        (RuntimeError('socket closed'), ModelProviderError),
    ])
    async def test_error_mapping(self, litellm_error, expected):
        """Test LiteLLM errors map to provider errors"""
        with patch(
            'promptstudio.services.ai.providers.litellm_provider.acompletion',
            new_callable=AsyncMock,
            side_effect=litellm_error,
        ):
            with pytest.raises(expected):
                await LiteLLMModelProvider(KeyedConfig()).execute(ModelRequest(model_id='gpt-4', prompt='Hi'))
