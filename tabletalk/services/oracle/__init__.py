"""
Oracle Service Factory

Provides a single entry point for obtaining the oracle the chat endpoint
consults. The rest of the application stays agnostic about which
implementation is active.

Usage:
    from tabletalk.services.oracle import get_oracle

    oracle = get_oracle()
    reply = await oracle.complete(prompt)

Provider selection (ORACLE_PROVIDER):
    - auto     → GeminiOracle if GEMINI_API_KEY is set, else DisabledOracle
    - gemini   → GeminiOracle (fails fast without a key)
    - scripted → ScriptedOracle with an empty script (always falls back)
    - disabled → DisabledOracle
"""

import logging
from functools import lru_cache

from tabletalk.core.config import OracleProvider, get_settings
from tabletalk.services.oracle.base import BaseOracle, OracleReply
from tabletalk.services.oracle.gemini import GeminiOracle
from tabletalk.services.oracle.mock import DisabledOracle, ScriptedOracle

logger = logging.getLogger(__name__)


@lru_cache()
def get_oracle() -> BaseOracle:
    """
    Get the configured oracle instance.

    The instance is cached so the live client's connection pool is shared
    across requests.

    Returns:
        BaseOracle: Configured oracle
    """
    settings = get_settings()

    if settings.use_live_oracle:
        logger.info(f"Oracle: Using GeminiOracle ({settings.env_mode.value} mode)")
        return GeminiOracle()

    if settings.oracle_provider == OracleProvider.SCRIPTED:
        logger.info("Oracle: Using ScriptedOracle")
        return ScriptedOracle()

    logger.info("Oracle: Using DisabledOracle (deterministic fallback only)")
    return DisabledOracle()


def reset_oracle() -> None:
    """
    Clear the cached oracle instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_oracle.cache_clear()
    logger.debug("Oracle cache cleared")


__all__ = [
    "get_oracle",
    "reset_oracle",
    "BaseOracle",
    "OracleReply",
    "GeminiOracle",
    "ScriptedOracle",
    "DisabledOracle",
]
