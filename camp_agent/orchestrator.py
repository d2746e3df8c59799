"""Conversation orchestrator: one chat turn from message to reply.

``handle`` resolves (or creates) the session, records the parent's
message, runs the tool-use graph and records the final answer.  Upstream
failures and the tool-loop cutoff never surface as errors to the caller:
they become a fixed, friendly fallback reply with the contact address.
"""

from __future__ import annotations

import logging

from camp_agent.agent import create_camp_agent, extract_text, recursion_limit_for
from camp_agent.config import (
    CONTACT_EMAIL,
    MAX_SESSIONS,
    MAX_TOOL_ITERATIONS,
    SESSION_TTL_SECONDS,
)
from camp_agent.conversation import Session, Turn
from camp_agent.errors import InvalidInput, ToolLoopExceeded, UpstreamError
from camp_agent.services.session_store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 2000

EMPTY_REPLY = "Désolé, je n'ai pas pu traiter votre demande."
FALLBACK_REPLY = (
    "Désolé, je ne suis pas disponible pour le moment. Veuillez réessayer dans "
    "quelques instants ou nous écrire à {contact_email}."
)


class ConversationOrchestrator:
    """Runs chat turns against a session store and a compiled agent graph."""

    def __init__(
        self,
        store: SessionStore,
        graph,
        *,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        contact_email: str = CONTACT_EMAIL,
    ) -> None:
        self.store = store
        self._graph = graph
        self._recursion_limit = recursion_limit_for(max_iterations)
        self.fallback_reply = FALLBACK_REPLY.format(contact_email=contact_email)

    def _resolve_session(self, session_id: str | None) -> Session:
        if session_id:
            session = self.store.get(session_id)
            if session is not None:
                return session
            logger.info("Unknown or expired session %s; starting a new one", session_id)
        return self.store.create()

    def handle(self, message: str | None, session_id: str | None = None) -> tuple[str, str]:
        """Process one inbound message and return ``(reply, session_id)``.

        Raises ``InvalidInput`` for an empty or oversized message, before
        any session is created.
        """
        if message is None or not message.strip():
            raise InvalidInput("Message requis")
        if len(message) > MAX_MESSAGE_CHARS:
            raise InvalidInput(f"Message trop long (maximum {MAX_MESSAGE_CHARS} caractères)")

        self.store.sweep()
        session = self._resolve_session(session_id)

        with session.lock:
            session.append(Turn.user(message))
            try:
                result = self._graph.invoke(
                    {"session": session, "response": None, "iterations": 0},
                    config={"recursion_limit": self._recursion_limit},
                )
                reply = "\n".join(extract_text(result["response"])) or EMPTY_REPLY
            except ToolLoopExceeded:
                logger.error("Tool loop cut off for session %s", session.id)
                reply = self.fallback_reply
            except UpstreamError:
                logger.exception("Upstream failure during chat turn for session %s", session.id)
                reply = self.fallback_reply
            session.append(Turn.assistant(reply))

        return reply, session.id


def create_orchestrator(store: SessionStore | None = None, graph=None) -> ConversationOrchestrator:
    """Wire the production orchestrator: in-memory sessions + Claude graph."""
    store = store or InMemorySessionStore(
        ttl_seconds=SESSION_TTL_SECONDS, max_sessions=MAX_SESSIONS,
    )
    return ConversationOrchestrator(store, graph or create_camp_agent())
