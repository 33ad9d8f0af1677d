from __future__ import annotations

import json

import pytest

from conftest import FakeLLMClient, assistant, tool_call
from lumina.entities import Moc
from lumina.errors import LoopBudgetExceeded, UpstreamServiceError
from lumina.manager import ConversationController
from lumina.prompts import PLAN_REFRESH_PROMPT


def _controller(llm, registry, **kwargs) -> ConversationController:
    return ConversationController(llm_client=llm, registry=registry, system_prompt="You are Lumina.", **kwargs)


def test_plain_reply_ends_the_turn(registry) -> None:
    llm = FakeLLMClient([assistant("Hello there")])
    controller = _controller(llm, registry)

    assert controller.chat("hi") == "Hello there"
    assert controller.history[0] == {"role": "system", "content": "You are Lumina."}
    assert controller.history[1] == {"role": "user", "content": "hi"}
    assert controller.history[-1]["content"] == "Hello there"
    assert len(llm.answer_calls) == 1
    assert llm.answer_calls[0]["tools"] == registry.to_schema()


def test_system_prompt_is_seeded_once(registry) -> None:
    llm = FakeLLMClient([assistant("one"), assistant("two")])
    controller = _controller(llm, registry, plan_refresh=False)

    controller.chat("first")
    controller.chat("second")

    assert [m["role"] for m in controller.history].count("system") == 1
    assert [m["content"] for m in controller.history if m["role"] == "user"] == ["first", "second"]


def test_each_tool_call_gets_a_tool_message_even_on_failure(context, registry) -> None:
    calls = [
        tool_call("call_1", "create_moc", {"title": "Physics"}),
        tool_call("call_2", "no_such_tool", {}),
        tool_call("call_3", "read_memory", "{broken"),
    ]
    llm = FakeLLMClient([assistant("", calls), assistant("done")])
    controller = _controller(llm, registry)

    assert controller.chat("make a moc") == "done"

    tool_messages = [m for m in controller.history if m["role"] == "tool"]
    assert [m["tool_call_id"] for m in tool_messages] == ["call_1", "call_2", "call_3"]
    payloads = [json.loads(m["content"]) for m in tool_messages]
    assert payloads[0]["ok"] is True
    assert payloads[1]["error"]["kind"] == "unknown_tool"
    assert payloads[2]["error"]["kind"] == "invalid_arguments"
    assert Moc.load_by_id(context, payloads[0]["result"]["moc_id"]).name == "Physics"

    # Tool results directly follow the assistant message that requested them.
    requester = controller.history.index(next(m for m in controller.history if m.get("tool_calls")))
    assert [m["role"] for m in controller.history[requester + 1 : requester + 4]] == ["tool"] * 3


def test_plan_refresh_runs_every_iteration_without_tools(registry) -> None:
    llm = FakeLLMClient(
        [assistant("", [tool_call("c1", "moc_search", {"query": "x"})]), assistant("ok")],
        plan="<plan><current-step>search</current-step></plan>",
    )
    controller = _controller(llm, registry)

    controller.chat("go")

    refreshes = [call for call in llm.calls if call["tool_choice"] == "none"]
    assert len(refreshes) == 2
    assert refreshes[0]["messages"][-1] == {"role": "system", "content": PLAN_REFRESH_PROMPT}
    plans = [m for m in controller.history if m.get("content") == llm.plan]
    assert len(plans) == 2
    assert all(m["role"] == "assistant" and "tool_calls" not in m for m in plans)


def test_plan_refresh_can_be_disabled(registry) -> None:
    llm = FakeLLMClient([assistant("ok")])
    _controller(llm, registry, plan_refresh=False).chat("go")
    assert all(call["tool_choice"] is None for call in llm.calls)


def test_iteration_cap_raises_loop_budget_exceeded(registry) -> None:
    looping = [assistant("", [tool_call(f"c{i}", "moc_search", {"query": "x"})]) for i in range(5)]
    llm = FakeLLMClient(looping)
    controller = _controller(llm, registry, max_iterations=2, plan_refresh=False)

    with pytest.raises(LoopBudgetExceeded) as excinfo:
        controller.chat("never ends")

    assert excinfo.value.iterations == 2
    assert len(llm.answer_calls) == 2


def test_time_cap_raises_loop_budget_exceeded(registry) -> None:
    llm = FakeLLMClient([assistant("unused")])
    controller = _controller(llm, registry, max_iterations=None, max_seconds=0)

    with pytest.raises(LoopBudgetExceeded):
        controller.chat("hurry")
    assert llm.calls == []


def test_upstream_errors_propagate(registry) -> None:
    class FailingLLM:
        def complete(self, messages, *, tools=None, tool_choice=None):
            raise UpstreamServiceError("chat service unavailable")

    controller = _controller(FailingLLM(), registry)
    with pytest.raises(UpstreamServiceError):
        controller.chat("hello")


def test_estimate_tokens_rounds_up(registry) -> None:
    controller = _controller(FakeLLMClient([]), registry)
    assert controller.estimate_tokens("") == 0
    assert controller.estimate_tokens("abc") == 1
    assert controller.estimate_tokens("abcde") == 2


def test_truncation_keeps_system_prompt_and_respects_budget(registry) -> None:
    controller = _controller(FakeLLMClient([]), registry, max_tokens=300)
    messages = [{"role": "system", "content": "You are Lumina."}]
    messages += [{"role": "user", "content": f"{i}" * 400} for i in range(6)]

    kept = controller.truncate_messages(messages)

    assert kept[0] == messages[0]
    assert len(kept) < len(messages)
    full = kept[:-1]
    assert sum(controller._message_tokens(m) for m in full) <= controller.max_tokens
    assert kept[-1]["content"] == messages[len(kept) - 1]["content"][: len(kept[-1]["content"])]
    assert len(kept[-1]["content"]) < 400


def test_truncation_is_identity_under_budget(registry) -> None:
    controller = _controller(FakeLLMClient([]), registry)
    messages = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]
    assert controller.truncate_messages(messages) == messages
    assert controller.truncate_messages([]) == []


def test_truncation_keeps_oversized_system_prompt(registry) -> None:
    controller = _controller(FakeLLMClient([]), registry, max_tokens=10)
    messages = [{"role": "system", "content": "s" * 200}, {"role": "user", "content": "hello"}]

    kept = controller.truncate_messages(messages)

    assert kept[0] == messages[0]
    assert kept[1]["content"] == ""
