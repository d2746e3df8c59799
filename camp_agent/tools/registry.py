"""Static catalog of the tools exposed to the model.

``ToolRegistry.execute`` is the single place where a model-requested
``ToolCall`` becomes a ``ToolResult``.  It never raises: unknown tools,
invalid arguments and unexpected failures all come back as error
results, so the model always receives a well-formed tool-result turn.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from langchain_core.tools import BaseTool
from pydantic import ValidationError

from camp_agent.conversation import ToolCall, ToolResult
from camp_agent.errors import CampAgentError, InvalidInput, UnknownTool, UpstreamError
from camp_agent.tools.camps import (
    check_availability,
    create_booking,
    get_camps,
    get_merch,
    get_order_status,
)
from camp_agent.tools.faq import get_faq
from camp_agent.tools.payments import create_payment_link

logger = logging.getLogger(__name__)

ALL_TOOLS: list[BaseTool] = [
    get_camps,
    check_availability,
    create_booking,
    create_payment_link,
    get_order_status,
    get_merch,
    get_faq,
]


class ToolRegistry:
    """Name-indexed tool catalog with never-raising execution."""

    def __init__(self, tools: Iterable[BaseTool] = ALL_TOOLS) -> None:
        self._tools: dict[str, BaseTool] = {t.name: t for t in tools}

    @property
    def tools(self) -> list[BaseTool]:
        """The tools in registration order (what gets bound to the model)."""
        return list(self._tools.values())

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def execute(self, call: ToolCall) -> ToolResult:
        """Run *call* and capture its outcome as a ``ToolResult``."""
        tool = self._tools.get(call.name)
        if tool is None:
            logger.warning("Model requested unknown tool %r", call.name)
            payload = UnknownTool(f"Outil inconnu: {call.name}").as_result()
            return ToolResult(call_id=call.call_id, payload=payload, is_error=True)

        logger.info("[tool] %s (%s) %s", call.name, call.call_id, call.input)
        try:
            payload = tool.invoke(dict(call.input))
        except ValidationError as exc:
            logger.warning("Invalid arguments for %s: %s", call.name, exc)
            payload = InvalidInput(
                f"Arguments invalides pour {call.name}: {exc.error_count()} erreur(s)."
            ).as_result()
        except CampAgentError as exc:
            payload = exc.as_result()
        except Exception:
            logger.exception("Tool %s failed unexpectedly", call.name)
            payload = UpstreamError(f"L'outil {call.name} a échoué.").as_result()

        if not isinstance(payload, dict):
            payload = {"success": True, "result": payload}
        is_error = payload.get("success") is False
        return ToolResult(call_id=call.call_id, payload=payload, is_error=is_error)


def default_registry() -> ToolRegistry:
    return ToolRegistry(ALL_TOOLS)
