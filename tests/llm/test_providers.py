import pytest

from parley.llm.providers import ProviderKind, ResolvedProviderConfig, get_adapter
from parley.utils.errors import EngineBuildError


class TestProviderKind:
    @pytest.mark.parametrize("name,expected", [
        ("openai", ProviderKind.OPENAI),
        ("OpenAI", ProviderKind.OPENAI),
        ("AzureOpenAI", ProviderKind.AZURE_OPENAI),
        ("azure-openai", ProviderKind.AZURE_OPENAI),
        (" anthropic ", ProviderKind.ANTHROPIC),
    ])
    def test_parse(self, name, expected):
        assert ProviderKind.parse(name) is expected

    def test_unsupported(self):
        with pytest.raises(EngineBuildError) as exc_info:
            ProviderKind.parse("gemini")

        assert exc_info.value.recoverable is False
        assert "openai" in str(exc_info.value)


class TestAdapters:
    def test_openai_params_skip_missing_values(self):
        config = ResolvedProviderConfig(provider=ProviderKind.OPENAI, api_key="sk", model_name="gpt-4o")

        params = get_adapter(ProviderKind.OPENAI).completion_params(config)

        assert params == {"model": "openai/gpt-4o", "api_key": "sk"}

    def test_anthropic_model(self):
        config = ResolvedProviderConfig(provider=ProviderKind.ANTHROPIC, api_key="sk", model_name="claude-sonnet-4-5")

        assert get_adapter(ProviderKind.ANTHROPIC).model_identifier(config) == "anthropic/claude-sonnet-4-5"

    def test_azure_uses_configured_api_version(self):
        config = ResolvedProviderConfig(
            provider=ProviderKind.AZURE_OPENAI,
            api_key="sk",
            endpoint="https://example",
            deployment_name="d",
            api_version="2024-06-01",
        )

        params = get_adapter(ProviderKind.AZURE_OPENAI).completion_params(config, timeout=60)

        assert params["api_version"] == "2024-06-01"
        assert params["timeout"] == 60
        assert params["model"] == "azure/d"

    def test_secret_not_in_repr(self):
        config = ResolvedProviderConfig(provider=ProviderKind.OPENAI, api_key="sk-secret", model_name="m")

        assert "sk-secret" not in repr(config)
