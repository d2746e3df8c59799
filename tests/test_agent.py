"""Tests for the LangGraph tool-use loop.

Covers:
  - Translation between session turns and LangChain messages
  - The chatbot and tools nodes in isolation
  - End-to-end graph runs with a mocked model
"""

from __future__ import annotations

from unittest.mock import MagicMock

import anthropic
import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from camp_agent.agent import (
    _make_chatbot_node,
    _make_tools_node,
    create_camp_agent,
    extract_text,
    extract_tool_calls,
    recursion_limit_for,
    should_use_tools,
    to_langchain_messages,
)
from camp_agent.conversation import Session, ToolCall, ToolResult, Turn
from camp_agent.errors import ToolLoopExceeded, UpstreamError, UpstreamTimeout
from camp_agent.tools.registry import ToolRegistry

# ── Helpers ──────────────────────────────────────────────────────────


def _tool_msg(*calls: tuple[str, dict, str], text: str = "") -> AIMessage:
    return AIMessage(
        content=text,
        tool_calls=[{"name": n, "args": a, "id": i} for n, a, i in calls],
    )


def _mock_llm(*responses: AIMessage) -> tuple[MagicMock, MagicMock]:
    """Return ``(llm, bound)`` where ``bound.invoke`` yields *responses*."""
    llm = MagicMock()
    bound = MagicMock()
    bound.invoke.side_effect = list(responses)
    llm.bind_tools.return_value = bound
    return llm, bound


def _registry(payload: dict | None = None) -> MagicMock:
    registry = MagicMock(spec=ToolRegistry)
    registry.tools = []
    registry.execute.side_effect = lambda call: ToolResult(
        call_id=call.call_id, payload=payload or {"success": True},
    )
    return registry


def _state(session: Session, response=None, iterations: int = 0) -> dict:
    return {"session": session, "response": response, "iterations": iterations}


# ── Translation ──────────────────────────────────────────────────────


class TestToLangchainMessages:
    def test_user_and_assistant_turns(self):
        messages = to_langchain_messages([Turn.user("Bonjour"), Turn.assistant("Salut!")])
        assert isinstance(messages[0], HumanMessage)
        assert isinstance(messages[1], AIMessage)
        assert messages[1].content == "Salut!"

    def test_tool_exchange_becomes_tool_messages(self):
        call = ToolCall(name="get_camps", input={"age": 10}, call_id="toolu_1")
        turns = [
            Turn.user("Camps pour 10 ans?"),
            Turn.assistant("", (call,)),
            Turn.results([ToolResult(call_id="toolu_1", payload={"success": True})]),
        ]
        messages = to_langchain_messages(turns)

        assert messages[1].tool_calls[0]["id"] == "toolu_1"
        assert messages[1].tool_calls[0]["args"] == {"age": 10}
        assert isinstance(messages[2], ToolMessage)
        assert messages[2].tool_call_id == "toolu_1"
        assert messages[2].status == "success"

    def test_error_result_is_flagged(self):
        call = ToolCall(name="create_booking", input={}, call_id="toolu_2")
        turns = [
            Turn.user("Inscris Léo"),
            Turn.assistant("", (call,)),
            Turn.results([ToolResult("toolu_2", {"success": False}, is_error=True)]),
        ]
        assert to_langchain_messages(turns)[2].status == "error"

    def test_orphaned_results_become_human_message(self):
        """Results whose request was truncated out of the window."""
        turns = [
            Turn.results([ToolResult("toolu_old", {"success": True, "total": 3})]),
            Turn.assistant("Voici les camps."),
        ]
        messages = to_langchain_messages(turns)
        assert isinstance(messages[0], HumanMessage)
        assert "toolu_old" in messages[0].content
        assert not any(isinstance(m, ToolMessage) for m in messages)

    def test_window_opening_on_assistant_starts_with_human(self):
        turns = [
            Turn.assistant("Le camp coûte 350$."),
            Turn.user("Et la semaine 3?"),
        ]
        messages = to_langchain_messages(turns)
        assert len(messages) == 2
        assert all(isinstance(m, HumanMessage) for m in messages)
        assert "350$" in messages[0].content

    def test_leading_tool_request_orphans_its_results(self):
        call = ToolCall(name="get_camps", input={}, call_id="toolu_9")
        turns = [
            Turn.assistant("", (call,)),
            Turn.results([ToolResult("toolu_9", {"success": True})]),
            Turn.assistant("Voici les camps."),
        ]
        messages = to_langchain_messages(turns)
        assert isinstance(messages[0], HumanMessage)
        assert isinstance(messages[1], HumanMessage)
        assert "toolu_9" in messages[1].content
        assert not any(isinstance(m, ToolMessage) for m in messages)


class TestExtraction:
    def test_text_from_string_content(self):
        assert extract_text(AIMessage(content="Bonjour")) == ["Bonjour"]

    def test_blank_string_yields_nothing(self):
        assert extract_text(AIMessage(content="  ")) == []

    def test_text_blocks_skip_tool_use_blocks(self):
        msg = AIMessage(
            content=[
                {"type": "text", "text": "Je vérifie."},
                {"type": "tool_use", "id": "toolu_1", "name": "get_camps", "input": {}},
                {"type": "text", "text": "Un instant."},
            ]
        )
        assert extract_text(msg) == ["Je vérifie.", "Un instant."]

    def test_tool_calls_keep_order_and_ids(self):
        msg = _tool_msg(("get_camps", {}, "a"), ("get_merch", {}, "b"))
        assert [c.call_id for c in extract_tool_calls(msg)] == ["a", "b"]


class TestShouldUseTools:
    def test_tool_calls_route_to_tools(self):
        state = _state(Session("s"), _tool_msg(("get_camps", {}, "1")))
        assert should_use_tools(state) == "tools"

    def test_plain_reply_routes_to_end(self):
        state = _state(Session("s"), AIMessage(content="Voilà!"))
        assert should_use_tools(state) == "__end__"


# ── Nodes ────────────────────────────────────────────────────────────


class TestChatbotNode:
    def test_sends_system_prompt_and_window_only(self):
        session = Session("s")
        for i in range(6):
            session.append(Turn.user(f"message {i}"))
        bound = MagicMock()
        bound.invoke.return_value = AIMessage(content="ok")

        result = _make_chatbot_node(bound, history_window=4)(_state(session))

        sent = bound.invoke.call_args[0][0]
        assert isinstance(sent[0], SystemMessage)
        assert "Hope Basketball" in sent[0].content
        assert [m.content for m in sent[1:]] == [f"message {i}" for i in range(2, 6)]
        assert result["response"].content == "ok"

    def test_timeout_maps_to_upstream_timeout(self):
        bound = MagicMock()
        bound.invoke.side_effect = anthropic.APITimeoutError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"),
        )
        with pytest.raises(UpstreamTimeout):
            _make_chatbot_node(bound, 20)(_state(Session("s")))

    def test_api_error_maps_to_upstream_error(self):
        bound = MagicMock()
        bound.invoke.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"),
        )
        with pytest.raises(UpstreamError):
            _make_chatbot_node(bound, 20)(_state(Session("s")))


class TestToolsNode:
    def test_executes_all_calls_and_records_two_turns(self):
        session = Session("s")
        registry = _registry()
        response = _tool_msg(("get_camps", {}, "a"), ("get_merch", {}, "b"), text="Je regarde.")

        update = _make_tools_node(registry, 8)(_state(session, response))

        assert update == {"iterations": 1}
        assert registry.execute.call_count == 2
        request, results = session.turns
        assert request.role == "assistant"
        assert request.content == "Je regarde."
        assert [c.call_id for c in request.tool_calls] == ["a", "b"]
        assert results.role == "tool_result"
        assert [r.call_id for r in results.tool_results] == ["a", "b"]

    def test_cap_reached_raises_before_executing(self):
        session = Session("s")
        registry = _registry()
        response = _tool_msg(("get_camps", {}, "a"))

        with pytest.raises(ToolLoopExceeded):
            _make_tools_node(registry, 2)(_state(session, response, iterations=2))
        registry.execute.assert_not_called()
        assert len(session) == 0


# ── Graph ────────────────────────────────────────────────────────────


class TestGraph:
    def test_plain_answer_invokes_model_once(self):
        llm, bound = _mock_llm(AIMessage(content="Bonjour!"))
        graph = create_camp_agent(_registry(), llm)
        session = Session("s")
        session.append(Turn.user("Salut"))

        result = graph.invoke(_state(session), config={"recursion_limit": recursion_limit_for(8)})

        assert bound.invoke.call_count == 1
        assert extract_text(result["response"]) == ["Bonjour!"]
        assert len(session) == 1

    def test_tool_round_then_answer(self):
        llm, bound = _mock_llm(
            _tool_msg(("get_camps", {"age": 10}, "toolu_1")),
            AIMessage(content="Il reste 3 places."),
        )
        registry = _registry({"success": True, "total": 1})
        graph = create_camp_agent(registry, llm)
        session = Session("s")
        session.append(Turn.user("Camps pour 10 ans?"))

        result = graph.invoke(_state(session), config={"recursion_limit": recursion_limit_for(8)})

        assert result["iterations"] == 1
        assert bound.invoke.call_count == 2
        # Second model call sees the tool exchange
        second_call = bound.invoke.call_args_list[1][0][0]
        assert isinstance(second_call[-1], ToolMessage)
        assert [t.role for t in session.turns] == ["user", "assistant", "tool_result"]

    def test_endless_tool_requests_stop_at_cap(self):
        llm, bound = _mock_llm(*[_tool_msg(("get_camps", {}, f"t{i}")) for i in range(10)])
        registry = _registry()
        graph = create_camp_agent(registry, llm, max_iterations=3)
        session = Session("s")
        session.append(Turn.user("boucle"))

        with pytest.raises(ToolLoopExceeded):
            graph.invoke(_state(session), config={"recursion_limit": recursion_limit_for(3)})

        assert registry.execute.call_count == 3
        assert bound.invoke.call_count == 4

    def test_binds_registry_tools(self):
        llm, _ = _mock_llm()
        registry = _registry()
        create_camp_agent(registry, llm)
        llm.bind_tools.assert_called_once_with(registry.tools)
