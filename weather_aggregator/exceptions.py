"""Exceptions raised inside providers and the configuration layer."""

from weather_aggregator.models import ErrorKind


class CredentialMissingError(ValueError):
    """A provider's API key is not present in the environment."""

    def __init__(self, provider: str, env_var: str) -> None:
        self.provider = provider
        self.env_var = env_var
        super().__init__(f"{provider} API key required. Set the {env_var} environment variable.")


class MalformedResponseError(ValueError):
    """A provider payload is missing its expected top-level structure."""


class ProviderCallError(Exception):
    """A provider call ended without usable data; converted to a failed result."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)
