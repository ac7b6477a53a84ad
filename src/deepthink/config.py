"""
Configuration loading and validation for deepthink.

Process-wide settings come from deepthink.toml and are validated with Pydantic.
Per-run overrides arrive as a RunConfig and are overlaid onto the process
settings for the lifetime of a single run only.
"""

import json
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LLMSettings(BaseModel):
    """Connection settings for the model provider."""

    provider: str = "openai"  # "anthropic", or anything OpenAI-compatible
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    api_key: str | None = None  # Resolved from api_key_env when not set inline
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: float = 120.0
    max_retries: int = Field(default=3, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    def resolve_api_key(self) -> str | None:
        """Inline key first, then the configured environment variable."""
        if self.api_key:
            return self.api_key
        return os.environ.get(self.api_key_env) or None


class ExpertConfig(BaseModel):
    """One expert strategy in the fan-out."""

    id: str
    name: str
    instructions: str
    model: str | None = None  # Falls back to the run's model
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


DEFAULT_EXPERTS = [
    ExpertConfig(
        id="analyst",
        name="Analyst",
        instructions=(
            "Reason step by step from first principles. Break the question into "
            "parts, answer each precisely, and state the assumptions you rely on."
        ),
    ),
    ExpertConfig(
        id="critic",
        name="Critic",
        instructions=(
            "Look for what could be wrong: ambiguous wording, missing cases, weak "
            "sources, and common misconceptions. Give the answer that survives scrutiny."
        ),
    ),
    ExpertConfig(
        id="explorer",
        name="Explorer",
        instructions=(
            "Consider alternative interpretations and approaches. Bring in relevant "
            "context from the search results that others may overlook."
        ),
    ),
]


class SynthesisSettings(BaseModel):
    """Settings for the synthesis node."""

    model: str | None = None
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)


class SearchProviderConfig(BaseModel):
    """Configuration for a search provider."""

    name: Literal["tavily", "brave", "serper"]
    api_key_env: str
    priority: int = 1  # Lower runs first
    enabled: bool = True


class SearchSettings(BaseModel):
    """Multi-provider search configuration."""

    providers: list[SearchProviderConfig] = Field(
        default_factory=lambda: [
            SearchProviderConfig(name="tavily", api_key_env="TAVILY_API_KEY")
        ]
    )
    max_results: int = Field(default=5, ge=1, le=50)
    fallback_enabled: bool = True

    def get_api_keys(self) -> dict[str, str | None]:
        """Resolve provider API keys from the environment (missing keys are None)."""
        return {
            provider.name: os.environ.get(provider.api_key_env) or None
            for provider in self.providers
            if provider.enabled
        }


class EngineSettings(BaseModel):
    """Reasoning engine limits and policies."""

    max_rounds_limit: int = Field(default=5, ge=1)
    research_failure_policy: Literal["degrade", "fail"] = "degrade"
    client_cache_size: int = Field(default=20, ge=1)
    file_context_char_limit: int = Field(default=20_000, ge=0)


class ServerSettings(BaseModel):
    """WebSocket server settings."""

    host: str = "127.0.0.1"
    port: int = 8000
    max_message_bytes: int = 1 * 1024 * 1024
    max_query_chars: int = 50_000
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )


class DeepThinkConfig(BaseModel):
    """Complete process configuration."""

    llm: LLMSettings = Field(default_factory=LLMSettings)
    experts: list[ExpertConfig] = Field(default_factory=lambda: list(DEFAULT_EXPERTS))
    synthesis: SynthesisSettings = Field(default_factory=SynthesisSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("experts")
    @classmethod
    def validate_experts(cls, v: list[ExpertConfig]) -> list[ExpertConfig]:
        """At least one expert, and expert ids must be unique."""
        if not v:
            raise ValueError("At least one expert must be configured")
        ids = [expert.id for expert in v]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate expert ids: {', '.join(duplicates)}")
        return v


class RunConfig(BaseModel):
    """
    Per-run overrides sent by the client.

    Only fields that were actually present in the request are set, so an
    absent value never shadows the process-wide default.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    max_rounds: int = Field(default=1, ge=1, alias="maxRounds")
    default_model: str | None = Field(default=None, alias="defaultModel")
    api_key: str | None = Field(default=None, alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseUrl")
    file_context: Any | None = Field(default=None, alias="fileContext")

    @classmethod
    def from_request(cls, data: dict[str, Any]) -> "RunConfig":
        """
        Build a RunConfig from a raw client message.

        The client sends the model as ``model`` (``defaultModel`` is accepted
        too). ``maxRounds`` defaults to 1 when absent or falsy.
        """
        fields: dict[str, Any] = {"maxRounds": data.get("maxRounds") or 1}

        model = data.get("model") or data.get("defaultModel")
        if model:
            fields["defaultModel"] = model
        if data.get("apiKey"):
            fields["apiKey"] = data["apiKey"]
        if data.get("baseUrl"):
            fields["baseUrl"] = data["baseUrl"]
        if data.get("fileContext"):
            fields["fileContext"] = data["fileContext"]

        return cls(**fields)

    def apply_to(self, settings: LLMSettings) -> LLMSettings:
        """Return a copy of ``settings`` with this run's overrides applied."""
        updates: dict[str, Any] = {}
        if self.default_model:
            updates["model"] = self.default_model
        if self.api_key:
            updates["api_key"] = self.api_key
        if self.base_url:
            updates["base_url"] = self.base_url.rstrip("/")
        return settings.model_copy(update=updates)

    def file_context_text(self, limit: int) -> str | None:
        """Render the opaque file context as prompt text, truncated to ``limit``."""
        if self.file_context is None or limit <= 0:
            return None
        if isinstance(self.file_context, str):
            text = self.file_context
        else:
            text = json.dumps(self.file_context, ensure_ascii=False, default=str)
        text = text.strip()
        if not text:
            return None
        if len(text) > limit:
            text = text[:limit] + "\n[...truncated]"
        return text


def load_config(config_path: Path | None = None) -> DeepThinkConfig:
    """
    Load process configuration from a TOML file.

    Args:
        config_path: Path to deepthink.toml, or None for built-in defaults

    Returns:
        Validated DeepThinkConfig

    Raises:
        FileNotFoundError: If an explicit config path doesn't exist
        ValueError: If the config is invalid
    """
    if config_path is None:
        return DeepThinkConfig()

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

    try:
        return DeepThinkConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}") from e


def create_default_config(output_path: Path) -> None:
    """Write a commented deepthink.toml with the default settings."""
    experts_toml = ""
    for expert in DEFAULT_EXPERTS:
        experts_toml += f'''
[[experts]]
id = "{expert.id}"
name = "{expert.name}"
instructions = """{expert.instructions}"""
'''

    template = f'''[llm]
provider = "openai"  # "anthropic", or any OpenAI-compatible endpoint
model = "gpt-4o-mini"
api_key_env = "OPENAI_API_KEY"
base_url = "https://api.openai.com/v1"
timeout_seconds = 120
{experts_toml}
[synthesis]
temperature = 0.3

[search]
max_results = 5
fallback_enabled = true

[[search.providers]]
name = "tavily"
api_key_env = "TAVILY_API_KEY"
priority = 1

[engine]
max_rounds_limit = 5
research_failure_policy = "degrade"  # or "fail"
client_cache_size = 20

[server]
host = "127.0.0.1"
port = 8000
'''

    output_path.write_text(template, encoding="utf-8")
