"""LangGraph tool-use loop for the Hope Basketball assistant.

Architecture:
  A two-node StateGraph:

    1. **chatbot** — sends the system prompt plus the most recent
                     ``HISTORY_WINDOW`` turns of the session to Claude,
                     with every registry tool bound.
    2. **tools**   — executes every tool call of the last response
                     through the ``ToolRegistry`` and appends the request
                     turn and one bundled result turn to the session.

  Routing:
    chatbot → (has tool calls?) → tools → chatbot (loop)
            → (no tool calls?)  → END

  The loop is bounded: once ``MAX_TOOL_ITERATIONS`` tool rounds have run,
  a further tool request raises ``ToolLoopExceeded`` before anything is
  executed.

  Memory:
    The graph has no checkpointer.  History lives in the ``Session`` held
    by the session store; the graph only reads a window of it and
    appends to it.  LangChain message types exist only inside this
    module, translated from and to the provider-agnostic ``Turn`` /
    ``ToolCall`` / ``ToolResult`` types.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import anthropic
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AnyMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from camp_agent.config import (
    ANTHROPIC_API_KEY,
    HISTORY_WINDOW,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT_SECONDS,
    MAX_TOOL_ITERATIONS,
    MODEL_NAME,
)
from camp_agent.conversation import Session, ToolCall, Turn
from camp_agent.errors import ToolLoopExceeded, UpstreamError, UpstreamTimeout
from camp_agent.prompts import get_system_prompt
from camp_agent.services.metrics import metrics
from camp_agent.tools.registry import ToolRegistry, default_registry

logger = logging.getLogger(__name__)


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict):
    """The state that flows through the graph.

    ``session`` is the live session object; nodes append turns to it
    directly.  ``response`` is the latest model reply and ``iterations``
    counts completed tool rounds for this chat turn.
    """

    session: Session
    response: AIMessage | None
    iterations: int


# ── Translation: Turn ⇄ LangChain messages ───────────────────────────


def to_langchain_messages(turns: list[Turn]) -> list[AnyMessage]:
    """Translate a window of turns into LangChain messages.

    A tool-result turn whose originating request fell outside the window
    is sent as a plain human message, since the provider rejects results
    that do not answer a visible tool call.  Likewise an assistant turn
    that opens the window is sent as human context, so the conversation
    always starts on the user side.
    """
    messages: list[AnyMessage] = []
    requested: set[str] = set()
    for turn in turns:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.content))
        elif turn.role == "assistant" and not messages:
            messages.append(
                HumanMessage(content=f"[Réponse antérieure de l'assistant] {turn.content}")
            )
        elif turn.role == "assistant":
            if turn.tool_calls:
                requested.update(c.call_id for c in turn.tool_calls)
                messages.append(
                    AIMessage(
                        content=turn.content,
                        tool_calls=[
                            {"name": c.name, "args": dict(c.input), "id": c.call_id}
                            for c in turn.tool_calls
                        ],
                    )
                )
            else:
                messages.append(AIMessage(content=turn.content))
        elif all(r.call_id in requested for r in turn.tool_results):
            messages.extend(
                ToolMessage(
                    content=r.content(),
                    tool_call_id=r.call_id,
                    status="error" if r.is_error else "success",
                )
                for r in turn.tool_results
            )
        else:
            earlier = [{"call_id": r.call_id, "result": r.payload} for r in turn.tool_results]
            messages.append(
                HumanMessage(
                    content="[Résultats d'outils antérieurs] "
                    + json.dumps(earlier, ensure_ascii=False, default=str)
                )
            )
    return messages


def extract_tool_calls(message: AIMessage) -> list[ToolCall]:
    return [
        ToolCall(name=tc["name"], input=dict(tc.get("args") or {}), call_id=tc["id"])
        for tc in (getattr(message, "tool_calls", None) or [])
    ]


def extract_text(message: AIMessage) -> list[str]:
    """Return every non-empty text segment of a model response."""
    content: Any = message.content
    if isinstance(content, str):
        return [content] if content.strip() else []
    segments: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            text = block
        elif isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text", "")
        else:
            continue
        if text.strip():
            segments.append(text)
    return segments


# ── LLM builder ─────────────────────────────────────────────────────


def _build_llm() -> ChatAnthropic:
    """Build the Claude client used for every turn."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.2,
        max_tokens=LLM_MAX_TOKENS,
        default_request_timeout=LLM_TIMEOUT_SECONDS,
        max_retries=2,
    )


# ── Nodes ────────────────────────────────────────────────────────────


def _make_chatbot_node(llm_with_tools, history_window: int):
    """Create the node that calls the model on the session's recent window."""

    def chatbot_node(state: AgentState) -> dict:
        session = state["session"]
        window = session.window(history_window)
        logger.debug(
            "chatbot node invoked — session %s, %d/%d turns in window",
            session.id, len(window), len(session),
        )
        messages = [SystemMessage(content=get_system_prompt())] + to_langchain_messages(window)
        try:
            with metrics.track("anthropic", "llm_invoke"):
                response = llm_with_tools.invoke(messages)
        except anthropic.APITimeoutError as exc:
            raise UpstreamTimeout("Language model request timed out") from exc
        except anthropic.APIError as exc:
            raise UpstreamError(
                f"Language model request failed: {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc
        return {"response": response}

    return chatbot_node


def _make_tools_node(registry: ToolRegistry, max_iterations: int):
    """Create the node that runs requested tools and records the exchange."""

    def tools_node(state: AgentState) -> dict:
        session = state["session"]
        if state["iterations"] >= max_iterations:
            raise ToolLoopExceeded(
                f"Model still requesting tools after {max_iterations} rounds"
            )

        response = state["response"]
        calls = extract_tool_calls(response)
        results = [registry.execute(call) for call in calls]

        session.append(Turn.assistant("\n".join(extract_text(response)), tuple(calls)))
        session.append(Turn.results(results))
        logger.debug(
            "tools node ran %d call(s) for session %s (round %d)",
            len(calls), session.id, state["iterations"] + 1,
        )
        return {"iterations": state["iterations"] + 1}

    return tools_node


# ── Conditional edge ─────────────────────────────────────────────────


def should_use_tools(state: AgentState) -> str:
    """Route to the tools node while the model keeps requesting tools."""
    response = state.get("response")
    if response is not None and getattr(response, "tool_calls", None):
        return "tools"
    return END


# ── Graph assembly ───────────────────────────────────────────────────


def create_camp_agent(
    registry: ToolRegistry | None = None,
    llm: BaseChatModel | None = None,
    *,
    history_window: int = HISTORY_WINDOW,
    max_iterations: int = MAX_TOOL_ITERATIONS,
):
    """Build and compile the tool-use graph.

    Returns a compiled graph that can be invoked with:
        graph.invoke(
            {"session": session, "response": None, "iterations": 0},
            config={"recursion_limit": recursion_limit_for(max_iterations)},
        )
    """
    registry = registry or default_registry()
    llm = llm or _build_llm()
    llm_with_tools = llm.bind_tools(registry.tools)

    graph = StateGraph(AgentState)
    graph.add_node("chatbot", _make_chatbot_node(llm_with_tools, history_window))
    graph.add_node("tools", _make_tools_node(registry, max_iterations))
    graph.set_entry_point("chatbot")
    graph.add_conditional_edges(
        "chatbot", should_use_tools, {"tools": "tools", END: END},
    )
    graph.add_edge("tools", "chatbot")

    compiled = graph.compile()
    logger.debug(
        "Camp agent compiled — model: %s, tools: %d, window: %d, max rounds: %d",
        MODEL_NAME, len(registry.tools), history_window, max_iterations,
    )
    return compiled


def recursion_limit_for(max_iterations: int) -> int:
    """LangGraph step budget that never trips before ``ToolLoopExceeded``."""
    return 2 * (max_iterations + 1) + 2
