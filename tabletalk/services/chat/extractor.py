"""
Action Extractor

Asks the oracle first. If the oracle fails, times out, or answers without a
single valid action marker, the deterministic fallback parser decides the
turn instead. Oracle and fallback actions are never mixed.
"""

import logging
from typing import Optional

from tabletalk.core.exceptions import OracleError
from tabletalk.services.chat.actions import ExtractionResult, fallback_extract, parse_oracle_reply
from tabletalk.services.chat.menu import MenuSnapshot
from tabletalk.services.oracle.base import BaseOracle

logger = logging.getLogger(__name__)


class ActionExtractor:
    """
    Per-request extractor bound to one oracle.

    Example:
        >>> extractor = ActionExtractor(get_oracle(), max_qty=20)
        >>> result = await extractor.extract(prompt, "2 momo please", menu, cart_has_items=False)
        >>> result.actions
        [ChatAction(action=<ActionType.ADD_ITEM: 'ADD_ITEM'>, name='Momo', qty=2, table_ref=None)]
    """

    def __init__(self, oracle: BaseOracle, max_qty: int = 20):
        self.oracle = oracle
        self.max_qty = max_qty

    async def _ask_oracle(self, prompt: str) -> Optional[ExtractionResult]:
        try:
            reply = await self.oracle.complete(prompt)
            display, actions = parse_oracle_reply(reply.text, self.max_qty)
        except OracleError as e:
            logger.info(f"Oracle unavailable ({self.oracle.provider_name}): {e.detail}")
            return None
        except Exception:
            logger.exception(f"Oracle call failed unexpectedly ({self.oracle.provider_name})")
            return None

        return ExtractionResult(actions=actions, reply=display or None, source="oracle")

    async def extract(
        self,
        prompt: str,
        message: str,
        menu: MenuSnapshot,
        cart_has_items: bool,
        default_table: Optional[str] = None,
    ) -> ExtractionResult:
        oracle_result = await self._ask_oracle(prompt)
        if oracle_result is not None and oracle_result.actions:
            return oracle_result

        fallback = fallback_extract(
            message,
            menu,
            cart_has_items=cart_has_items,
            default_table=default_table,
            max_qty=self.max_qty,
        )
        if oracle_result is not None:
            # The oracle's prose is still the better reply when it only chatted
            fallback.reply = oracle_result.reply
        logger.debug(f"Fallback parser produced {len(fallback.actions)} action(s)")
        return fallback
