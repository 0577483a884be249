"""Tests for provider configuration resolution.

Precedence for every field: explicit option > environment > server settings.
"""

import pytest

from fakes import CountingSettingsProvider, FailingSettingsProvider

from parley.config import RouterOptions
from parley.llm.config_resolver import ProviderConfigResolver
from parley.llm.providers import ProviderKind
from parley.llm.settings_service import ServerSettings, StaticSettingsProvider
from parley.utils.errors import ConfigurationError, EngineBuildError

FIELDS = ["provider", "api_key", "endpoint", "deployment_name", "model_name"]

ENV_NAMES = {
    "provider": "LLM_PROVIDER",
    "api_key": "LLM_API_KEY",
    "endpoint": "LLM_ENDPOINT",
    "deployment_name": "LLM_DEPLOYMENT_NAME",
    "model_name": "LLM_MODEL_NAME",
}


def _remote(field_name, value):
    if field_name == "provider":
        return ServerSettings(provider_name=value)
    if field_name == "deployment_name":
        return ServerSettings(additional_config={"DeploymentName": value})
    return ServerSettings(**{field_name: value})


class TestPrecedence:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", FIELDS)
    async def test_explicit_option_wins(self, monkeypatch, field_name):
        monkeypatch.setenv(ENV_NAMES[field_name], "from-env")
        resolver = ProviderConfigResolver(StaticSettingsProvider(_remote(field_name, "from-server")))

        value = await resolver.resolve_field(RouterOptions(**{field_name: "explicit"}), field_name)

        assert value == "explicit"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", FIELDS)
    async def test_environment_beats_server(self, monkeypatch, field_name):
        monkeypatch.setenv(ENV_NAMES[field_name], "from-env")
        resolver = ProviderConfigResolver(StaticSettingsProvider(_remote(field_name, "from-server")))

        assert await resolver.resolve_field(RouterOptions(), field_name) == "from-env"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", FIELDS)
    async def test_server_is_last_resort(self, field_name):
        resolver = ProviderConfigResolver(StaticSettingsProvider(_remote(field_name, "from-server")))

        assert await resolver.resolve_field(RouterOptions(), field_name) == "from-server"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", FIELDS)
    async def test_missing_everywhere_names_the_field(self, field_name):
        resolver = ProviderConfigResolver(StaticSettingsProvider(ServerSettings()))

        with pytest.raises(ConfigurationError) as exc_info:
            await resolver.resolve_field(RouterOptions(), field_name)

        assert exc_info.value.field == field_name
        assert exc_info.value.details["field"] == field_name
        assert "is not available" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_blank_option_falls_through_to_environment(self, monkeypatch):
        monkeypatch.setenv("LLM_MODEL_NAME", "gpt-4o-mini")
        resolver = ProviderConfigResolver()

        assert await resolver.get_model_name(RouterOptions(model_name="   ")) == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_injected_environment(self):
        env = {"LLM_API_KEY": "sk-injected"}
        resolver = ProviderConfigResolver(environ=env.get)

        assert await resolver.get_api_key(RouterOptions()) == "sk-injected"


class TestServerSettings:
    @pytest.mark.asyncio
    async def test_fetched_once_per_resolver(self):
        provider = CountingSettingsProvider(ServerSettings(provider_name="openai", api_key="sk", model_name="gpt-4o"))
        resolver = ProviderConfigResolver(provider)

        config = await resolver.resolve(RouterOptions())

        assert config.provider is ProviderKind.OPENAI
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_not_fetched_when_everything_is_local(self, openai_options):
        provider = CountingSettingsProvider(ServerSettings())
        await ProviderConfigResolver(provider).resolve(openai_options)

        assert provider.calls == 0

    @pytest.mark.asyncio
    async def test_fetch_failure_is_a_configuration_error(self):
        resolver = ProviderConfigResolver(FailingSettingsProvider())

        with pytest.raises(ConfigurationError) as exc_info:
            await resolver.get_api_key(RouterOptions())

        assert exc_info.value.field == "api_key"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_server_settings_from_camel_case(self):
        settings = ServerSettings.from_dict({
            "apiKey": "sk-remote",
            "providerName": "AzureOpenAI",
            "baseUrl": "https://example.openai.azure.com",
            "modelName": "gpt-4o",
            "additionalConfig": {"DeploymentName": "prod-gpt4o"},
        })

        assert settings.api_key == "sk-remote"
        assert settings.provider_name == "AzureOpenAI"
        assert settings.endpoint == "https://example.openai.azure.com"
        assert settings.additional_config["DeploymentName"] == "prod-gpt4o"


class TestResolve:
    @pytest.mark.asyncio
    async def test_provider_from_environment_only(self, monkeypatch):
        """Provider unset in options, LLM_PROVIDER=openai, no server settings."""
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        resolver = ProviderConfigResolver(settings_provider=None)

        assert await resolver.get_provider_name(RouterOptions()) == "openai"
        config = await resolver.resolve(RouterOptions(api_key="sk-test", model_name="gpt-4o"))
        assert config.provider is ProviderKind.OPENAI

    @pytest.mark.asyncio
    async def test_azure_requires_endpoint_and_deployment_not_model(self):
        options = RouterOptions(
            provider="AzureOpenAI",
            api_key="sk",
            endpoint="https://example.openai.azure.com",
            deployment_name="prod-gpt4o",
        )

        config = await ProviderConfigResolver().resolve(options)

        assert config.provider is ProviderKind.AZURE_OPENAI
        assert config.deployment_name == "prod-gpt4o"
        assert config.model_name is None

    @pytest.mark.asyncio
    async def test_azure_without_deployment_fails(self):
        options = RouterOptions(provider="azureopenai", api_key="sk", endpoint="https://example")

        with pytest.raises(ConfigurationError) as exc_info:
            await ProviderConfigResolver().resolve(options)

        assert exc_info.value.field == "deployment_name"

    @pytest.mark.asyncio
    async def test_openai_does_not_need_endpoint(self, openai_options):
        config = await ProviderConfigResolver().resolve(openai_options)

        assert config.endpoint is None
        assert config.model_name == "gpt-4o"

    @pytest.mark.asyncio
    async def test_unsupported_provider(self):
        with pytest.raises(EngineBuildError):
            await ProviderConfigResolver().resolve(RouterOptions(provider="cohere", api_key="k", model_name="m"))

    def test_api_key_masked_in_repr(self, openai_options):
        assert "sk-test" not in repr(openai_options)
