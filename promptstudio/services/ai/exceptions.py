"""
Custom exceptions for the model provider layer.

Each error carries an error_code that the router copies onto the failed
ModelResponse, so callers can decide what to retry without isinstance checks.
"""


class ModelProviderError(Exception):
    """Generic model provider error"""

    error_code = 'provider_error'

    def __init__(self, message: str, provider: str = None, model: str = None):
        self.message = message
        self.provider = provider
        self.model = model
        super().__init__(self.message)

    def __str__(self):
        if self.provider and self.model:
            return f"[{self.provider}/{self.model}] {self.message}"
        return self.message


class ProviderUnavailableError(ModelProviderError):
    """Provider failed its availability probe"""

    error_code = 'provider_unavailable'

    def __init__(self, message: str = "Model provider is not available", provider: str = None, model: str = None):
        super().__init__(message, provider, model)


class NoProviderFoundError(ModelProviderError):
    """No registered provider can serve the model"""

    error_code = 'no_provider'

    def __init__(self, message: str = None, provider: str = None, model: str = None):
        message = message or f"No provider found for model '{model}'"
        super().__init__(message, provider, model)


class ProviderTimeoutError(ModelProviderError):
    """Timeout calling the provider"""

    error_code = 'timeout'

    def __init__(self, message: str = "Model call timed out", provider: str = None, model: str = None, timeout_seconds: int = None):
        self.timeout_seconds = timeout_seconds
        if timeout_seconds:
            message = f"{message} (timeout: {timeout_seconds}s)"
        super().__init__(message, provider, model)


class ProviderAuthenticationError(ModelProviderError):
    """API key invalid or not authorized"""

    error_code = 'authentication_failed'

    def __init__(self, message: str = "API key invalid or not authorized", provider: str = None, model: str = None):
        super().__init__(message, provider, model)


class ProviderQuotaExceededError(ModelProviderError):
    """API quota or rate limit exceeded"""

    error_code = 'quota_exceeded'

    def __init__(self, message: str = "API quota exceeded", provider: str = None, model: str = None):
        super().__init__(message, provider, model)


class ProviderModelNotFoundError(ModelProviderError):
    """Model not found or not supported by the provider"""

    error_code = 'model_not_found'

    def __init__(self, message: str = "Model not found", provider: str = None, model: str = None):
        super().__init__(message, provider, model)


class ProviderResponseError(ModelProviderError):
    """Provider answered with an error status or an unusable body"""

    def __init__(self, message: str, provider: str = None, model: str = None, status_code: int = None):
        self.status_code = status_code
        super().__init__(message, provider, model)
