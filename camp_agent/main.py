"""CLI entry point for the Hope Basketball camp agent.

A terminal chat loop for testing and development.  For production, use
the FastAPI server (camp_agent/server.py).

Usage:
    python -m camp_agent.main            # normal mode (quiet)
    python -m camp_agent.main --debug    # debug mode (shows API calls)
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("camp_agent").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Hope Basketball camp agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    # Imported after logging is configured: config validates the env on import.
    from camp_agent.orchestrator import create_orchestrator

    print("\n" + "=" * 60)
    print("  Hope Basketball — Assistant d'inscription (CLI)")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    orchestrator = create_orchestrator()
    session_id: str | None = None

    while True:
        try:
            user_input = input("Vous: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nAu revoir!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nAu revoir! Bon été!")
            break

        if user_input.lower() == "new":
            session_id = None
            print("\n>> New session will start with the next message.\n")
            continue

        try:
            reply, session_id = orchestrator.handle(user_input, session_id)
            print(f"\nHope: {reply}\n")
        except KeyboardInterrupt:
            print("\n\nAu revoir!")
            break
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nHope: Désolé, une erreur s'est produite: {e}")
            print("      Réessayez ou tapez 'new' pour une nouvelle session.\n")


if __name__ == "__main__":
    main()
