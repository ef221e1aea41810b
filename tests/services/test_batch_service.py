"""
Tests for BatchPromptService
"""

from unittest.mock import AsyncMock, patch

import pytest

from promptstudio.config import TestingConfig
from promptstudio.services.ai.base import ModelResponse
from promptstudio.services.ai.router import ModelProviderRouter
from promptstudio.services.batch_service import BatchPromptService


class RetryConfig(TestingConfig):
    BATCH_MAX_RETRIES = 3
    BATCH_RETRY_INITIAL_DELAY = 1.0
    BATCH_RETRY_BACKOFF = 2.0
    DEFAULT_MODEL = 'gpt-4'


class TestExecuteBatch:
    """Test batch execution"""

    @pytest.mark.asyncio
    async def test_runs_every_variable_set(self, router, fake_provider):
        """Test every variable set is run"""
        service = BatchPromptService(router, RetryConfig())

        result = await service.execute_batch(
            "Summarize {{topic}}",
            [{'topic': 'refunds'}, {'topic': 'shipping'}],
        )

        assert result.success_count == 2
        assert result.failure_count == 0
        assert [item.resolved_prompt for item in result.items] == ['Summarize refunds', 'Summarize shipping']
        assert result.items[0].content == 'fake response: Summarize refunds'
        assert result.items[0].attempts == 1
        assert result.items[0].tokens_used == 3
        assert fake_provider.requests[0].model_id == 'gpt-4'

    @pytest.mark.asyncio
    async def test_missing_variables_skip_item(self, router, fake_provider):
        """Test item with missing variables is skipped"""
        service = BatchPromptService(router, RetryConfig())

        result = await service.execute_batch(
            "{{greeting}} {{name}}, about {{topic}}",
            [{'topic': 'x'}, {'greeting': 'Hi', 'name': 'Ada', 'topic': 'y'}],
        )

        skipped = result.items[0]
        assert skipped.success is False
        assert skipped.error == 'Missing required variables: greeting, name'
        assert skipped.attempts == 0
        assert result.items[1].success is True
        assert result.failure_count == 1
        assert len(fake_provider.requests) == 1

    @pytest.mark.asyncio
    async def test_defaults_fill_missing_names(self, router):
        """Test defaults fill missing names"""
        service = BatchPromptService(router, RetryConfig())
        result = await service.execute_batch("Hi {{name}}", [{}], defaults={'name': 'friend'})
        assert result.items[0].resolved_prompt == 'Hi friend'

    @pytest.mark.asyncio
    async def test_system_message_interpolated(self, router, fake_provider):
        """Test system message is interpolated"""
        service = BatchPromptService(router, RetryConfig())
        await service.execute_batch("Hi", [{'tone': 'calm'}], system_message="Be {{tone}}")
        assert fake_provider.requests[0].system_message == 'Be calm'

    @pytest.mark.asyncio
    async def test_to_dict(self, router):
        """Test batch result serialization"""
        result = await BatchPromptService(router, RetryConfig()).execute_batch("Hi", [{}])
        data = result.to_dict()
        assert data['successCount'] == 1
        assert data['items'][0]['resolvedPrompt'] == 'Hi'


class TestRetry:
    """Test exponential backoff on transient errors"""

    @pytest.mark.asyncio
    @patch('promptstudio.services.batch_service.asyncio.sleep', new_callable=AsyncMock)
    async def test_backoff_delays_then_give_up(self, mock_sleep, make_provider):
        """Test backoff delays grow then the item gives up"""
        provider = make_provider('copilot', error=RuntimeError('upstream hiccup'))
        service = BatchPromptService(ModelProviderRouter([provider]), RetryConfig())

        result = await service.execute_batch("Hi", [{}])

        item = result.items[0]
        assert item.success is False
        assert item.error_code == 'provider_error'
        assert item.attempts == 4
        assert len(provider.requests) == 4
        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    @patch('promptstudio.services.batch_service.asyncio.sleep', new_callable=AsyncMock)
    async def test_succeeds_after_retry(self, mock_sleep, make_provider):
        """Test item succeeds after a retry"""
        provider = make_provider('copilot', responses=[
            ModelResponse.failure('busy', 'provider_error'),
            ModelResponse(success=True, content='done'),
        ])
        service = BatchPromptService(ModelProviderRouter([provider]), RetryConfig())

        item = (await service.execute_batch("Hi", [{}])).items[0]

        assert item.success is True
        assert item.content == 'done'
        assert item.attempts == 2
        mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    @patch('promptstudio.services.batch_service.asyncio.sleep', new_callable=AsyncMock)
    async def test_non_retryable_error_not_retried(self, mock_sleep, make_provider):
        """Test non-retryable error is not retried"""
        provider = make_provider('copilot', responses=[ModelResponse.failure('no key', 'authentication_failed')])
        service = BatchPromptService(ModelProviderRouter([provider]), RetryConfig())

        item = (await service.execute_batch("Hi", [{}])).items[0]

        assert item.attempts == 1
        assert item.error_code == 'authentication_failed'
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    @patch('promptstudio.services.batch_service.asyncio.sleep', new_callable=AsyncMock)
    async def test_unavailable_provider_is_retried(self, mock_sleep, make_provider):
        """Test unavailable provider is retried"""
        provider = make_provider('mcp', available=False)
        service = BatchPromptService(ModelProviderRouter([provider]), RetryConfig())

        item = (await service.execute_batch("Hi", [{}], model_id='mcp-claude')).items[0]

        assert item.error_code == 'provider_unavailable'
        assert item.attempts == 4
        assert provider.requests == []
