"""
Exception hierarchy for deepthink.

Engine-facing failures are split by how far they are allowed to unwind:
- Per-expert failures never leave the fan-out coordinator
- NodeFailure unwinds to the engine, which ends the run with one error event
- EngineCancelled is not an error: the run ends without a terminal event
"""


class DeepThinkError(Exception):
    """Base class for all deepthink errors."""


class ModelConfigurationError(DeepThinkError):
    """Raised when a model client cannot be constructed (e.g. missing API key)."""


class ModelClientError(DeepThinkError):
    """Raised when a model completion call fails."""


class ModelAuthenticationError(ModelClientError):
    """Raised when the model provider rejects the credential."""

    def __init__(self, provider: str, api_key_env: str | None = None):
        self.provider = provider
        self.api_key_env = api_key_env
        hint = f" Check that {api_key_env} is set to a valid API key." if api_key_env else ""
        super().__init__(f"{provider} authentication failed.{hint}")


class SearchError(DeepThinkError):
    """Raised when every configured search provider fails."""


class NodeFailure(DeepThinkError):
    """A pipeline node failed in a way that ends the run."""

    def __init__(self, node: str, cause: BaseException | str):
        self.node = node
        self.cause = cause
        super().__init__(f"{node} failed: {cause}")


class AllExpertsFailedError(NodeFailure):
    """Every expert in a fan-out failed."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        summary = "; ".join(f"{expert_id}: {msg}" for expert_id, msg in errors.items())
        super().__init__("experts", f"all {len(errors)} experts failed ({summary})")


class EngineCancelled(DeepThinkError):
    """Raised at a suspension point once the run's cancellation token is set."""
