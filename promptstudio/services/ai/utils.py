"""
Helpers for the model provider layer.
"""

import math
from typing import Dict, List, Optional

# Hosted providers reachable through LiteLLM
SUPPORTED_PROVIDERS = ['openai', 'gemini', 'anthropic']

# Models available per hosted provider
PROVIDER_MODELS = {
    'openai': [
        'gpt-4',
        'gpt-4-turbo',
        'gpt-4o',
        'gpt-4o-mini',
        'gpt-3.5-turbo',
    ],
    'gemini': [
        'gemini-1.5-pro',
        'gemini-1.5-flash',
        'gemini-pro',
    ],
    'anthropic': [
        'claude-3-opus-20240229',
        'claude-3-sonnet-20240229',
        'claude-3-haiku-20240307',
        'claude-3-5-sonnet-20241022',
    ],
}

# Display names
PROVIDER_NAMES = {
    'openai': 'OpenAI',
    'gemini': 'Google Gemini',
    'anthropic': 'Anthropic',
}

# Estimated cost per 1K tokens (USD, input/output). Approximate.
COST_PER_1K_TOKENS = {
    'openai': {
        'gpt-4': {'input': 0.03, 'output': 0.06},
        'gpt-4-turbo': {'input': 0.01, 'output': 0.03},
        'gpt-4o': {'input': 0.005, 'output': 0.015},
        'gpt-4o-mini': {'input': 0.00015, 'output': 0.0006},
        'gpt-3.5-turbo': {'input': 0.0005, 'output': 0.0015},
    },
    'gemini': {
        'gemini-1.5-pro': {'input': 0.00125, 'output': 0.005},
        'gemini-1.5-flash': {'input': 0.000075, 'output': 0.0003},
        'gemini-pro': {'input': 0.00025, 'output': 0.0005},
    },
    'anthropic': {
        'claude-3-opus': {'input': 0.015, 'output': 0.075},
        'claude-3-sonnet': {'input': 0.003, 'output': 0.015},
        'claude-3-haiku': {'input': 0.00025, 'output': 0.00125},
        'claude-3-5-sonnet': {'input': 0.003, 'output': 0.015},
    },
}


def estimate_tokens(text: Optional[str]) -> int:
    """
    Rough token count: about 4 characters per token for English text.

    Examples:
        >>> estimate_tokens('')
        0
        >>> estimate_tokens('hello')
        2
    """
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def get_model_string(provider: str, model: str) -> str:
    """
    Model string for LiteLLM.

    Examples:
        >>> get_model_string('openai', 'gpt-4')
        'openai/gpt-4'
        >>> get_model_string('Gemini', ' gemini-1.5-pro ')
        'gemini/gemini-1.5-pro'
    """
    return f"{provider.lower().strip()}/{model.strip()}"


def split_model_string(model_id: str) -> tuple:
    """'provider/model' -> (provider, model); bare ids are treated as openai"""
    if '/' in model_id:
        provider, model = model_id.split('/', 1)
        return provider.lower(), model
    return 'openai', model_id


def hosted_model_ids(providers: Optional[List[str]] = None) -> List[str]:
    """All hosted models in 'provider/model' form"""
    providers = providers if providers is not None else SUPPORTED_PROVIDERS
    return [
        get_model_string(provider, model)
        for provider in providers
        for model in PROVIDER_MODELS.get(provider, [])
    ]


def estimate_cost(provider: str, model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate cost in USD from token counts.

    Args:
        provider: Provider name
        model: Model name
        input_tokens: Prompt tokens
        output_tokens: Completion tokens

    Returns:
        Estimated cost in USD
    """
    provider_costs = COST_PER_1K_TOKENS.get(provider.lower().strip(), {})

    # Exact or prefix match (dated model versions)
    model_costs = None
    for m, costs in provider_costs.items():
        if m == model or model.startswith(m):
            model_costs = costs
            break

    if not model_costs:
        # Conservative default
        model_costs = {'input': 0.01, 'output': 0.03}

    input_cost = (input_tokens / 1000) * model_costs['input']
    output_cost = (output_tokens / 1000) * model_costs['output']

    return round(input_cost + output_cost, 6)


def get_api_key_env_var(provider: str) -> str:
    env_vars = {
        'openai': 'OPENAI_API_KEY',
        'gemini': 'GEMINI_API_KEY',
        'anthropic': 'ANTHROPIC_API_KEY',
    }
    return env_vars.get(provider.lower(), f'{provider.upper()}_API_KEY')


def configured_api_keys(config) -> Dict[str, str]:
    """Hosted provider -> API key, for keys set in config"""
    keys = {}
    for provider in SUPPORTED_PROVIDERS:
        value = getattr(config, get_api_key_env_var(provider), '') or ''
        if value:
            keys[provider] = value
    return keys
