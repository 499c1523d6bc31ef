"""Error taxonomy for component research.

Provider-level failures are absorbed by the engine; only the aggregate
message reaches callers, always paired with a fallback stub.
"""


class ResearchError(Exception):
    """Base class for every error raised by this package."""


class ProviderUnavailable(ResearchError):
    """Provider has no credentials configured. Skipped, never retried."""

    def __init__(self, provider: str):
        super().__init__(f"{provider} is not configured")
        self.provider = provider


class ProviderCallFailed(ResearchError):
    """Network, HTTP or SDK error while calling a provider. Retried."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} call failed: {message}")
        self.provider = provider


class MalformedResponse(ResearchError):
    """Provider text could not be coerced into a JSON object."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class ValidationFailed(ResearchError):
    """Parsed object lacks the minimally required fields."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Invalid response: missing required fields ({', '.join(missing)})")
        self.missing = missing


class AllProvidersExhausted(ResearchError):
    """Every provider in the selected order failed or was skipped."""

    def __init__(self, errors: list[str]):
        detail = "; ".join(errors) if errors else "no providers available"
        super().__init__(f"Failed to research part information. {detail}")
        self.errors = errors


class ImageLoadError(ResearchError):
    """Image reference could not be read or decoded."""
