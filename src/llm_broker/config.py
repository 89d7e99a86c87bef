"""Process-level configuration read from the environment.

Tenant configuration (provider, credentials, vector backends) never comes
from here; see ``llm_broker.settings``. These knobs only tune how the process
talks to upstreams and logs:

  LLM_BROKER_LOG_LEVEL=DEBUG|INFO|WARNING|ERROR (default: INFO)
  LLM_BROKER_HTTP_TIMEOUT=<seconds> (default: unset, no client-side timeout)
  LLM_BROKER_VERSION=<version reported by health checks>
  AZURE_OPENAI_API_VERSION=2024-08-01-preview
"""

from __future__ import annotations
import os
import sys
from typing import Optional
from loguru import logger  # type: ignore
from dotenv import load_dotenv

load_dotenv()  # load from .env if present

LOG_LEVEL = os.getenv("LLM_BROKER_LOG_LEVEL", "INFO").upper()
AZURE_OPENAI_API_VERSION = os.getenv("AZURE_OPENAI_API_VERSION", "2024-08-01-preview")
VERSION_OVERRIDE = os.getenv("LLM_BROKER_VERSION")


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"LLM_BROKER_HTTP_TIMEOUT '{raw}' is not a number; ignoring.")
        return None


HTTP_TIMEOUT = _parse_timeout(os.getenv("LLM_BROKER_HTTP_TIMEOUT"))


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a stderr sink at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=(level or LOG_LEVEL).upper())
