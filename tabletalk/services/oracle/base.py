"""
Oracle Service Abstract Base Class

Defines the interface contract for the natural-language oracle consulted on
every chat turn. Implementations return the raw model text; finding and
validating action markers in it is the action extractor's job.

Design Pattern: Strategy Pattern
    - GeminiOracle talks to the live model
    - ScriptedOracle replays canned answers for development and tests
    - DisabledOracle always fails, forcing the deterministic fallback parser

Any failure (transport error, timeout, empty answer) must surface as
OracleError so the caller can fall back without guessing.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class OracleReply:
    """
    Standardized oracle answer.

    Attributes:
        text: Raw model output, possibly containing action markers
        model: Model identifier that produced it
        response_time_ms: Round-trip latency
    """
    text: str
    model: Optional[str] = None
    response_time_ms: float = 0.0


class BaseOracle(ABC):
    """Abstract base class for oracle implementations."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the oracle provider.

        Returns:
            str: Provider name (e.g., "gemini", "scripted", "disabled")
        """
        pass

    @abstractmethod
    async def complete(self, prompt: str) -> OracleReply:
        """
        Ask the oracle to continue the conversation.

        Args:
            prompt: Fully rendered prompt (menu, cart, history, rules)

        Returns:
            OracleReply: Model answer

        Raises:
            OracleError: On any failure, including timeouts
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the oracle is usable.

        Returns:
            bool: True if configured and reachable
        """
        pass

    async def aclose(self) -> None:
        """Release network resources, if any."""
        return None
