"""Hope Basketball camp agent — a registration assistant for summer camps.

Architecture Overview
=====================

Each chat turn flows through a **LangGraph** loop with two nodes:

1. **chatbot** — Invokes Claude with a French system prompt (FAQ
   included), the bound tools and the most recent turns of the session.
   The model decides whether to answer or call tools.

2. **tools** — Executes every requested tool through the ``ToolRegistry``
   (WooCommerce catalog/orders, Stripe payment links, FAQ) and appends the
   exchange to the session.

Routing: chatbot → (tool calls?) → tools → chatbot (bounded loop) → END

Key Design Decisions
--------------------
- **Sessions**: process-local ``InMemorySessionStore`` behind a
  ``SessionStore`` protocol; sessions expire a fixed time after creation.
- **Provider-agnostic history**: sessions store ``Turn`` / ``ToolCall`` /
  ``ToolResult`` values; LangChain messages are built at the model
  boundary only.
- **Failures as data**: gateway errors and sold-out camps come back to
  the model as structured tool results; only request parsing and
  unexpected bugs produce HTTP errors.
- **Payments**: Stripe payment links carry the WooCommerce order id;
  the signed webhook marks orders paid (idempotently) or failed.

Package Structure
-----------------
- ``camp_agent/agent.py`` — LangGraph StateGraph and message translation
- ``camp_agent/orchestrator.py`` — one chat turn: session, graph, reply
- ``camp_agent/conversation.py`` — Turn, ToolCall, ToolResult, Session
- ``camp_agent/config.py`` — configuration from environment variables
- ``camp_agent/prompts.py`` — system prompt with FAQ injection
- ``camp_agent/server.py`` — FastAPI application
- ``camp_agent/main.py`` — CLI chat interface
- ``camp_agent/services/`` — WooCommerce, Stripe, sessions, metrics
- ``camp_agent/tools/`` — LangChain tools and the tool registry
- ``camp_agent/api/`` — FastAPI routes and Pydantic schemas
"""

__version__ = "2.0.0"
