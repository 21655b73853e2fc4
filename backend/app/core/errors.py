class RecipeEngineError(RuntimeError):
    """Base class for failures surfaced by the recipe engine."""

    code = "engine_error"


class ConfigurationError(RecipeEngineError):
    """Raised when the deployment is missing credentials or endpoints."""

    code = "configuration_error"


class AuthenticationError(RecipeEngineError):
    """Raised when the completion provider rejects the credential."""

    code = "authentication_error"


class RateLimitError(RecipeEngineError):
    """Raised when the completion provider throttles the request."""

    code = "rate_limit_error"


class ProviderError(RecipeEngineError):
    """Raised for any other completion provider failure."""

    code = "provider_error"


class CompletionTimeoutError(ProviderError):
    """Raised when the completion call exceeds the per-request time bound."""

    code = "timeout_error"


class MalformedOutputError(RecipeEngineError):
    """Raised when the model response cannot be parsed into a recipe draft."""

    code = "malformed_output_error"

    def __init__(self, message: str, raw_content: str | None = None):
        super().__init__(message)
        self.raw_content = raw_content


class ValidationError(RecipeEngineError):
    """Raised when a generation request is missing required fields."""

    code = "validation_error"


class LimitReachedError(RecipeEngineError):
    """Raised when the billing gate refuses another saved recipe."""

    code = "limit_reached"
