"""
Scripted and Disabled Oracles

Stand-ins for the live model, used in development mode and in tests:
    - ScriptedOracle answers from a queue of canned replies (or a callable),
      optionally failing on demand to exercise the fallback path
    - DisabledOracle always raises OracleError, so every turn runs the
      deterministic fallback parser
"""

import asyncio
import logging
from collections import deque
from typing import Callable, Iterable, Optional, Union

from tabletalk.core.exceptions import OracleError
from tabletalk.services.oracle.base import BaseOracle, OracleReply

logger = logging.getLogger(__name__)

Script = Union[str, Exception]


class ScriptedOracle(BaseOracle):
    """
    Oracle that replays prepared answers.

    Each queued entry is either a reply string or an exception instance to
    raise. Once the queue is empty ``responder`` is consulted; without one
    the oracle fails, which sends the turn down the fallback path.

    Example:
        >>> oracle = ScriptedOracle(['Sure! {"action":"ADD_ITEM","name":"Momo","qty":2}'])
        >>> (await oracle.complete("...")).text
        'Sure! {"action":"ADD_ITEM","name":"Momo","qty":2}'
    """

    def __init__(
        self,
        replies: Optional[Iterable[Script]] = None,
        responder: Optional[Callable[[str], str]] = None,
        latency: float = 0.0,
    ):
        self._queue: deque[Script] = deque(replies or [])
        self._responder = responder
        self.latency = latency
        self.prompts: list[str] = []

        logger.info(f"ScriptedOracle initialized ({len(self._queue)} queued replies)")

    @property
    def provider_name(self) -> str:
        return "scripted"

    def queue(self, *replies: Script) -> None:
        self._queue.extend(replies)

    async def complete(self, prompt: str) -> OracleReply:
        self.prompts.append(prompt)
        if self.latency:
            await asyncio.sleep(self.latency)

        if self._queue:
            entry = self._queue.popleft()
        elif self._responder is not None:
            entry = self._responder(prompt)
        else:
            raise OracleError("No scripted reply available")

        if isinstance(entry, Exception):
            if isinstance(entry, OracleError):
                raise entry
            raise OracleError(str(entry)) from entry
        return OracleReply(text=entry, model="scripted")

    async def health_check(self) -> bool:
        return True


class DisabledOracle(BaseOracle):
    """Oracle that is never available."""

    @property
    def provider_name(self) -> str:
        return "disabled"

    async def complete(self, prompt: str) -> OracleReply:
        raise OracleError("Oracle disabled")

    async def health_check(self) -> bool:
        return True
