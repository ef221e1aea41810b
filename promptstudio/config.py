import os
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()


def _split_list(value: str) -> List[str]:
    """Split a comma separated env value, dropping blanks"""
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    # Database
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///promptstudio.db')
    DATABASE_ECHO = os.getenv('DATABASE_ECHO', 'false').lower() == 'true'

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Flow execution
    DEFAULT_MODEL = os.getenv('DEFAULT_MODEL', 'gpt-3.5-turbo')
    FLOW_EXECUTION_TIMEOUT = int(os.getenv('FLOW_EXECUTION_TIMEOUT', '300'))  # seconds, whole run

    # Model providers (registration order matters for fallback routing)
    ENABLED_PROVIDERS = _split_list(os.getenv('ENABLED_PROVIDERS', 'copilot,mcp,ollama,litellm'))

    # Copilot stub
    COPILOT_SIMULATED_LATENCY_MS = int(os.getenv('COPILOT_SIMULATED_LATENCY_MS', '0'))

    # MCP server detection
    MCP_SERVER_PROCESS_NAMES = _split_list(os.getenv('MCP_SERVER_PROCESS_NAMES', 'PromptStudioMcpServer'))

    # Ollama
    OLLAMA_BASE_URL = os.getenv('OLLAMA_BASE_URL', 'http://localhost:11434')
    OLLAMA_TIMEOUT = int(os.getenv('OLLAMA_TIMEOUT', '60'))

    # Hosted models via LiteLLM
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
    GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', '')
    LITELLM_TIMEOUT = int(os.getenv('LITELLM_TIMEOUT', '60'))

    # Batch execution retry policy
    BATCH_MAX_RETRIES = int(os.getenv('BATCH_MAX_RETRIES', '3'))
    BATCH_RETRY_INITIAL_DELAY = float(os.getenv('BATCH_RETRY_INITIAL_DELAY', '1.0'))
    BATCH_RETRY_BACKOFF = float(os.getenv('BATCH_RETRY_BACKOFF', '2.0'))


class TestingConfig(Config):
    DATABASE_URL = 'sqlite://'
    FLOW_EXECUTION_TIMEOUT = 5
    ENABLED_PROVIDERS = ['copilot']
    BATCH_RETRY_INITIAL_DELAY = 0.0


# Configuration singleton
_config: Optional[Config] = None


def get_config() -> Config:
    """Returns the configuration singleton"""
    global _config
    if _config is None:
        _config = Config()
    return _config
