"""Tests for the completion engine and its automatic tool-call loop."""

import json
import logging

import pytest

from fakes import ScriptedCompletion, tool_call_response

from parley.llm.engine import CompletionEngine, TerminationGuard
from parley.llm.providers import ProviderKind, ResolvedProviderConfig
from parley.tools.registry import CapabilityFunction, CapabilityRegistry, capability
from parley.utils.errors import ModelInvocationError, ToolLoopTerminatedError


class Weather:
    calls = []

    @staticmethod
    @capability("Get the forecast for a city", parameters={"city": "City name"})
    def forecast(city: str, days: int = 1) -> dict:
        Weather.calls.append((city, days))
        return {"city": city, "days": days, "summary": "sunny"}

    @staticmethod
    @capability("Always fails")
    def broken() -> str:
        raise RuntimeError("backend down")


@pytest.fixture
def provider_config():
    return ResolvedProviderConfig(provider=ProviderKind.OPENAI, api_key="sk-test", model_name="gpt-4o")


@pytest.fixture
def weather():
    Weather.calls = []
    return CapabilityRegistry().register(Weather)


def _engine(provider_config, completion, **kwargs):
    return CompletionEngine(provider_config, timeout_seconds=30, completion_fn=completion, **kwargs)


class TestConnection:
    @pytest.mark.asyncio
    async def test_connection_parameters(self, provider_config):
        completion = ScriptedCompletion("Hi there")
        engine = _engine(provider_config, completion)

        result = await engine.ask([{"role": "user", "content": "Hi"}], max_tokens=100, temperature=0.1)

        assert result == "Hi there"
        call = completion.calls[0]
        assert call["model"] == "openai/gpt-4o"
        assert call["api_key"] == "sk-test"
        assert call["timeout"] == 30
        assert call["max_tokens"] == 100
        assert call["temperature"] == 0.1
        assert "tools" not in call

    def test_azure_model_identifier(self):
        config = ResolvedProviderConfig(
            provider=ProviderKind.AZURE_OPENAI,
            api_key="sk",
            endpoint="https://example.openai.azure.com",
            deployment_name="prod-gpt4o",
        )
        engine = CompletionEngine(config, completion_fn=ScriptedCompletion())

        assert engine.model == "azure/prod-gpt4o"
        assert engine._connection["api_base"] == "https://example.openai.azure.com"
        assert "api_version" in engine._connection

    @pytest.mark.asyncio
    async def test_provider_failure_is_not_recoverable(self, provider_config):
        engine = _engine(provider_config, ScriptedCompletion(ValueError("bad request")))

        with pytest.raises(ModelInvocationError) as exc_info:
            await engine.ask([{"role": "user", "content": "Hi"}])

        assert exc_info.value.recoverable is False
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_transient_failure_is_recoverable(self, provider_config, monkeypatch):
        monkeypatch.setattr("parley.llm.engine._RECOVERABLE_LITELLM_ERRORS", (ConnectionError,))
        engine = _engine(provider_config, ScriptedCompletion(ConnectionError("reset")))

        with pytest.raises(ModelInvocationError) as exc_info:
            await engine.ask([{"role": "user", "content": "Hi"}])

        assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_empty_choices(self, provider_config):
        engine = _engine(provider_config, ScriptedCompletion({"choices": []}))

        with pytest.raises(ModelInvocationError):
            await engine.ask([{"role": "user", "content": "Hi"}])


class TestPlugins:
    def test_tool_schemas(self, provider_config, weather):
        engine = _engine(provider_config, ScriptedCompletion())
        engine.add_plugin("Weather", weather.functions)

        names = [t["function"]["name"] for t in engine.tool_schemas()]
        assert names == ["Weather-forecast", "Weather-broken"]
        params = engine.tool_schemas()[0]["function"]["parameters"]
        assert params["required"] == ["city"]
        assert params["properties"]["city"]["description"] == "City name"

    def test_add_existing_plugin_is_noop(self, provider_config, weather):
        engine = _engine(provider_config, ScriptedCompletion())
        engine.add_plugin("Weather", weather.functions)
        engine.add_plugin("Weather", weather.functions[:1])

        assert set(engine.get_plugin("Weather")) == {"forecast", "broken"}

    def test_replace_plugin(self, provider_config, weather):
        engine = _engine(provider_config, ScriptedCompletion())
        engine.add_plugin("Weather", weather.functions)
        engine.replace_plugin("Weather", weather.functions[:1])

        assert set(engine.get_plugin("Weather")) == {"forecast"}
        engine.remove_plugin("Weather")
        assert not engine.has_plugin("Weather")

    @pytest.mark.asyncio
    async def test_turn_plugins_do_not_leak_into_engine(self, provider_config):
        turn_function = CapabilityFunction(
            name="lookup",
            description="Per-turn lookup",
            parameters={"type": "object", "properties": {}, "required": []},
            handler=lambda: "found",
        )
        completion = ScriptedCompletion(tool_call_response({"name": "Orders-lookup"}), "done")
        engine = _engine(provider_config, completion)

        result = await engine.ask([{"role": "user", "content": "Hi"}], turn_plugins={"Orders": [turn_function]})

        assert result == "done"
        assert completion.calls[0]["tools"][0]["function"]["name"] == "Orders-lookup"
        assert engine.plugin_names == []


class TestToolLoop:
    @pytest.mark.asyncio
    async def test_tool_result_fed_back(self, provider_config, weather):
        completion = ScriptedCompletion(
            tool_call_response({"name": "Weather-forecast", "arguments": {"city": "Oslo", "days": 2}}),
            "It will be sunny in Oslo.",
        )
        engine = _engine(provider_config, completion)
        engine.add_plugin("Weather", weather.functions)

        result = await engine.ask([{"role": "user", "content": "Weather in Oslo?"}])

        assert result == "It will be sunny in Oslo."
        assert Weather.calls == [("Oslo", 2)]
        second = completion.calls[1]["messages"]
        assert second[1]["role"] == "assistant"
        assert second[1]["tool_calls"][0]["function"]["name"] == "Weather-forecast"
        assert second[2]["role"] == "tool"
        assert second[2]["tool_call_id"] == "call_0"
        assert json.loads(second[2]["content"])["summary"] == "sunny"
        assert completion.calls[0]["tool_choice"] == "auto"

    @pytest.mark.asyncio
    async def test_function_error_reported_to_model(self, provider_config, weather):
        completion = ScriptedCompletion(tool_call_response({"name": "Weather-broken"}), "Sorry, try later.")
        engine = _engine(provider_config, completion)
        engine.add_plugin("Weather", weather.functions)

        assert await engine.ask([{"role": "user", "content": "x"}]) == "Sorry, try later."
        tool_message = completion.calls[1]["messages"][-1]
        assert tool_message["content"].startswith("Error: RuntimeError")

    @pytest.mark.asyncio
    async def test_unknown_function_reported_to_model(self, provider_config, weather):
        completion = ScriptedCompletion(tool_call_response({"name": "Weather-missing"}), "fine")
        engine = _engine(provider_config, completion)
        engine.add_plugin("Weather", weather.functions)

        await engine.ask([{"role": "user", "content": "x"}])

        assert "not available" in completion.calls[1]["messages"][-1]["content"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arguments, type_name", [(None, "NoneType"), ([1], "list"), ("Oslo", "str")])
    async def test_non_object_arguments_reported_to_model(self, provider_config, weather, arguments, type_name):
        completion = ScriptedCompletion(
            tool_call_response({"name": "Weather-forecast", "arguments": arguments}),
            "Which city?",
        )
        engine = _engine(provider_config, completion)
        engine.add_plugin("Weather", weather.functions)

        assert await engine.ask([{"role": "user", "content": "Weather?"}]) == "Which city?"
        tool_message = completion.calls[1]["messages"][-1]
        assert tool_message["role"] == "tool"
        assert tool_message["content"] == (
            f"Error: invalid JSON arguments for Weather-forecast: expected an object, got {type_name}"
        )
        assert Weather.calls == []

    @pytest.mark.asyncio
    async def test_malformed_arguments_reported_to_model(self, provider_config, weather):
        response = tool_call_response({"name": "Weather-forecast"})
        response["choices"][0]["message"]["tool_calls"][0]["function"]["arguments"] = "{city: Oslo"
        completion = ScriptedCompletion(response, "Which city?")
        engine = _engine(provider_config, completion)
        engine.add_plugin("Weather", weather.functions)

        await engine.ask([{"role": "user", "content": "Weather?"}])

        assert completion.calls[1]["messages"][-1]["content"].startswith(
            "Error: invalid JSON arguments for Weather-forecast:"
        )

    @pytest.mark.asyncio
    async def test_functions_disabled_sends_no_tools(self, provider_config, weather):
        completion = ScriptedCompletion("plain")
        engine = _engine(provider_config, completion)
        engine.add_plugin("Weather", weather.functions)

        await engine.ask([{"role": "user", "content": "x"}], enable_functions=False)

        assert "tools" not in completion.calls[0]

    @pytest.mark.asyncio
    async def test_repeated_calls_terminate_the_loop(self, provider_config, weather):
        call = {"name": "Weather-forecast", "arguments": {"city": "Oslo"}}
        completion = ScriptedCompletion(*[tool_call_response(call) for _ in range(10)])
        engine = _engine(provider_config, completion, max_consecutive_calls=3)
        engine.add_plugin("Weather", weather.functions)

        with pytest.raises(ToolLoopTerminatedError) as exc_info:
            await engine.ask([{"role": "user", "content": "x"}])

        assert len(Weather.calls) == 3
        assert exc_info.value.details["function"] == "Weather.forecast"


class TestTerminationGuard:
    def test_count_resets_on_different_function(self):
        guard = TerminationGuard(max_consecutive_calls=2)
        guard.record("A", "f")
        guard.record("A", "f")
        guard.record("A", "g")

        assert guard.consecutive_call_count == 1

    def test_raises_past_limit(self):
        guard = TerminationGuard(max_consecutive_calls=2)
        guard.record("A", "f")
        guard.record("A", "f")

        with pytest.raises(ToolLoopTerminatedError):
            guard.record("A", "f")

    def test_warns_past_warning_threshold(self, caplog):
        caplog.set_level(logging.WARNING, logger="parley.llm.engine")
        guard = TerminationGuard(max_consecutive_calls=10)
        for _ in range(6):
            guard.record("A", "f")

        assert "called consecutively 6 times" in caplog.text
