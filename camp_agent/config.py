"""Centralized configuration for the Hope Basketball camp agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/camp-agent/<VARIABLE_NAME>``.
Everything is read once at import time; there is no hot reload.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/camp-agent/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /camp-agent/{name} (AWS)."
    )


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-sonnet-4-5")
LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "1024"))
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# ── Conversation ────────────────────────────────────────────────────
HISTORY_WINDOW: int = int(os.getenv("HISTORY_WINDOW", "20"))
MAX_TOOL_ITERATIONS: int = int(os.getenv("MAX_TOOL_ITERATIONS", "8"))
SESSION_TTL_SECONDS: int = int(os.getenv("SESSION_TTL_SECONDS", str(2 * 60 * 60)))
MAX_SESSIONS: int = int(os.getenv("MAX_SESSIONS", "10000"))
CONTACT_EMAIL: str = os.getenv("CONTACT_EMAIL", "info.hopebasketballquebec@gmail.com")

# ── WooCommerce storefront ──────────────────────────────────────────
WOO_URL: str = _require_env("WOO_URL").rstrip("/")
WOO_CONSUMER_KEY: str = _require_env("WOO_CONSUMER_KEY")
WOO_CONSUMER_SECRET: str = _require_env("WOO_CONSUMER_SECRET")

# ── Stripe ──────────────────────────────────────────────────────────
STRIPE_SECRET_KEY: str = _require_env("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET: str = _require_env("STRIPE_WEBHOOK_SECRET")
PAYMENT_CURRENCY: str = os.getenv("PAYMENT_CURRENCY", "cad")

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("PORT", "3001"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGIN",
    "https://hopebasketballquebec.com",
).split(",")
