"""Tests for hook system."""

import pytest

from conftest import ScriptedModel, tool_call, tool_response
from sts_agent.agent import Agent
from sts_agent.execution import ChatResponse, Message
from sts_agent.history import ConversationStore
from sts_agent.hooks import (
    AfterCompactionEventData,
    AfterToolCallEventData,
    BeforeRunEventData,
    BeforeToolCallEventData,
    HookEvent,
    HookRegistry,
    HookResponse,
    Middleware,
    OnToolErrorEventData,
)


@pytest.fixture
def make_agent(reader, executor, config):
    def factory(responses=None, **kwargs):
        model = kwargs.pop("model", None) or ScriptedModel(responses)
        return Agent(model=model, executor=executor, reader=reader, config=config, **kwargs)

    return factory


# --- HookRegistry ---


class TestHookRegistryBasic:
    @pytest.mark.asyncio
    async def test_hook_registration_and_triggering(self):
        registry = HookRegistry()
        called = []

        @registry.on("before_run")
        async def handler(event):
            called.append(event)

        event = BeforeRunEventData(agent=None, run=None)
        await registry.trigger("before_run", event)

        assert called == [event]

    @pytest.mark.asyncio
    async def test_first_response_wins(self):
        registry = HookRegistry()

        @registry.on("before_tool_call")
        async def first(event):
            return None

        @registry.on("before_tool_call")
        async def second(event):
            return {"action": "skip", "cached_result": "cached"}

        @registry.on("before_tool_call")
        async def third(event):
            return {"action": "skip", "cached_result": "ignored"}

        response = await registry.trigger("before_tool_call", None)

        assert response.action == "skip"
        assert response.cached_result == "cached"

    @pytest.mark.asyncio
    async def test_hook_exception_does_not_crash(self):
        registry = HookRegistry()
        called = []

        @registry.on("after_run")
        async def bad(event):
            raise RuntimeError("boom")

        @registry.on("after_run")
        async def good(event):
            called.append(True)

        assert await registry.trigger("after_run", None) is None
        assert called == [True]

    def test_invalid_hook_name_raises(self):
        registry = HookRegistry()
        with pytest.raises(ValueError, match="Invalid hook name"):
            registry.register_handler("before_lunch", lambda e: None)

    def test_has_handlers_and_clear(self):
        registry = HookRegistry()
        assert not registry.has_handlers("after_compaction")

        @registry.on("after_compaction")
        async def handler(event):
            pass

        assert registry.has_handlers("after_compaction")
        registry.clear()
        assert not registry.has_handlers("after_compaction")


class TestHookResponse:
    def test_from_dict(self):
        response = HookResponse.from_dict({"action": "abort"})
        assert response.action == "abort"
        assert response.cached_result is None

    def test_from_dict_none(self):
        assert HookResponse.from_dict(None) is None

    def test_from_dict_ignores_unknown_fields(self):
        response = HookResponse.from_dict({"action": "skip", "colour": "red"})
        assert response.action == "skip"


# --- Hooks on the agent ---


class TestAgentHooks:
    @pytest.mark.asyncio
    async def test_decorator_style_hook(self, make_agent):
        agent = make_agent([tool_response(tool_call("get_deck")), ChatResponse("Deck is fine.")])
        seen = []

        @agent.hook("after_tool_call")
        async def log_tool(event: AfterToolCallEventData):
            seen.append((event.tool_name, event.result.success))

        await agent.run_async("chat", "How is my deck?")

        assert seen == [("get_deck", True)]

    @pytest.mark.asyncio
    async def test_shared_registry_across_agents(self, make_agent):
        registry = HookRegistry()
        runs = []

        @registry.on("before_run")
        async def count(event: BeforeRunEventData):
            runs.append(event.run.mode)

        await make_agent(hooks=registry).run_async("chat", "a")
        await make_agent(hooks=registry).run_async("analyze")

        assert runs == ["chat", "analyze"]

    @pytest.mark.asyncio
    async def test_abort_before_iteration(self, make_agent):
        model = ScriptedModel()
        agent = make_agent(model=model)

        @agent.hook("before_iteration")
        async def stop(event):
            return {"action": "abort"}

        run = await agent.run_async("chat", "hi")

        assert run.state == "cancelled"
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_skip_with_cached_result(self, make_agent, reader):
        model = ScriptedModel([tool_response(tool_call("get_map")), ChatResponse("Go left.")])
        agent = make_agent(model=model)

        @agent.hook("before_tool_call")
        async def cache(event: BeforeToolCallEventData):
            return {"action": "skip", "cached_result": '{"floor": 9}'}

        run = await agent.run_async("chat", "Where next?")

        assert reader.queries == []
        assert run.tool_calls[0].result == '{"floor": 9}'
        tool_message = model.calls[1][0][-1]
        assert tool_message.content == '{"floor": 9}'

    @pytest.mark.asyncio
    async def test_on_tool_error(self, make_agent):
        agent = make_agent(
            [tool_response(tool_call("execute_actions", {"actions": []})), ChatResponse("ok")]
        )
        errors = []

        @agent.hook("on_tool_error")
        async def record(event: OnToolErrorEventData):
            errors.append((event.tool_name, event.error_message))

        await agent.run_async("analyze")

        assert errors == [("execute_actions", "Action execution not allowed in analyze mode")]

    @pytest.mark.asyncio
    async def test_after_compaction(self, make_agent):
        model = ScriptedModel([ChatResponse("answer")], completion="condensed")
        store = ConversationStore(model)
        for i in range(7):
            store.append(Message.user(f"q{i}"), Message.assistant(f"a{i}"))
        agent = make_agent(model=model, store=store)
        events = []

        @agent.hook("after_compaction")
        async def record(event: AfterCompactionEventData):
            events.append(event)

        await agent.run_async("chat", "one more")

        assert len(events) == 1
        assert events[0].summary == "condensed"
        assert events[0].kept_messages == 4


class TestAgentMiddleware:
    @pytest.mark.asyncio
    async def test_middleware_class(self, make_agent):
        class Transcript(Middleware):
            def __init__(self):
                self.lines = []

            async def before_model_call(self, event):
                self.lines.append(f"model:{len(event.tools)}")

            async def after_tool_call(self, event):
                self.lines.append(f"tool:{event.tool_name}")

            async def after_run(self, event):
                self.lines.append(f"run:{event.run.state}")

        transcript = Transcript()
        agent = make_agent(
            [tool_response(tool_call("get_screen")), ChatResponse("Proceed.")],
            middlewares=[transcript],
        )

        await agent.run_async("play")

        assert transcript.lines == ["model:8", "tool:get_screen", "model:8", "run:completed"]


class TestAllHookPoints:
    @pytest.mark.asyncio
    async def test_all_hooks_fire_in_order(self, make_agent):
        agent = make_agent([tool_response(tool_call("get_relics")), ChatResponse("Nice relics.")])
        order = []

        for event in HookEvent:
            if event is HookEvent.ON_TOOL_ERROR or event is HookEvent.AFTER_COMPACTION:
                continue

            async def handler(data, name=event.value):
                order.append(name)

            agent.hooks.register_handler(event.value, handler)

        await agent.run_async("chat", "Relics?")

        assert order == [
            "before_run",
            "before_iteration",
            "before_model_call",
            "after_model_call",
            "before_tool_call",
            "after_tool_call",
            "after_iteration",
            "before_iteration",
            "before_model_call",
            "after_model_call",
            "after_run",
        ]


class TestHookEventEnum:
    def test_all_hook_events_exist(self):
        assert {e.value for e in HookEvent} == {
            "before_run",
            "after_run",
            "before_iteration",
            "after_iteration",
            "before_model_call",
            "after_model_call",
            "before_tool_call",
            "after_tool_call",
            "on_tool_error",
            "after_compaction",
        }
