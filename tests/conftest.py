import pytest

from deepthink.config import DeepThinkConfig, LLMSettings

from tests.fakes import FakeModelClient, FakeSearchClient, cache_for


@pytest.fixture
def config():
    """Default config with an inline API key so no environment is needed."""
    return DeepThinkConfig(llm=LLMSettings(api_key="test-key"))


@pytest.fixture
def model_client():
    return FakeModelClient()


@pytest.fixture
def search_client():
    return FakeSearchClient()


@pytest.fixture
def client_cache(model_client):
    return cache_for(model_client)
