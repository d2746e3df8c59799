"""Error taxonomy for the camp agent.

Every error carries a stable ``code`` so it can be rendered as a
structured failure object (``as_result()``) and fed back to the model
as a tool result instead of crashing the conversation.
"""

from __future__ import annotations

from typing import Any


class CampAgentError(Exception):
    """Base class for all domain and upstream errors."""

    code = "error"

    def as_result(self) -> dict[str, Any]:
        """Render the error as a tool-result payload."""
        return {"success": False, "error": self.code, "message": str(self)}


class InvalidInput(CampAgentError):
    """The caller sent a malformed request (HTTP 400)."""

    code = "invalid_input"


class UpstreamError(CampAgentError):
    """A language-model or gateway call failed."""

    code = "upstream_error"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class UpstreamTimeout(UpstreamError):
    """A language-model or gateway call did not answer in time."""

    code = "upstream_timeout"


class CommerceAPIError(UpstreamError):
    """Raised when a WooCommerce API call fails after all retries."""


class PaymentAPIError(UpstreamError):
    """Raised when a Stripe API call fails."""


class SignatureInvalid(CampAgentError):
    """A payment webhook failed signature verification."""

    code = "signature_invalid"


class NotACamp(CampAgentError):
    """The product exists but is merchandise, not a camp."""

    code = "not_a_camp"


class SoldOut(CampAgentError):
    """The camp has no remaining seats."""

    code = "sold_out"


class InsufficientCapacity(CampAgentError):
    """Fewer seats remain than the number requested."""

    code = "insufficient_capacity"

    def __init__(self, message: str, remaining: int):
        self.remaining = remaining
        super().__init__(message)

    def as_result(self) -> dict[str, Any]:
        return {**super().as_result(), "spots_remaining": self.remaining}


class UnknownTool(CampAgentError):
    """The model asked for a tool that is not registered."""

    code = "unknown_tool"


class ToolLoopExceeded(CampAgentError):
    """The model kept requesting tools past the iteration cap."""

    code = "tool_loop_exceeded"
