"""
Chat Turn Handler

One guest message in, one bot reply out. A turn runs in three phases:

1. Read phase: tenant, session (created or re-minted if needed), menu
   snapshot, cart, linked order and recent history.
2. Decide: guardrail first, then the action extractor (oracle or fallback).
   A guardrail rejection or a closed session ends the turn here with a
   canned reply and no cart or order changes.
3. Write phase: a single transaction holding the user message, cart
   reduction, order placement or closure, the new session state and the
   bot message. It is retried as a whole when an order-number collision
   surfaces as an IntegrityError.

Order events are queued after the write phase commits.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tabletalk.core.config import Settings, get_settings
from tabletalk.dependencies import get_tenant_by_slug
from tabletalk.models import (
    ChatMessage,
    ChatSession,
    LinkClaim,
    MessageSender,
    Order,
    OrderSessionLink,
    OrderStatus,
    SessionState,
    Tenant,
)
from tabletalk.schemas import OrderResponse
from tabletalk.services.chat import narration
from tabletalk.services.chat.actions import (
    CART_ACTIONS,
    CLOSING_ACTIONS,
    PLACING_ACTIONS,
    ActionType,
    ChatAction,
    ExtractionResult,
)
from tabletalk.services.chat.cart import CartLine, apply_cart_action, decode_cart, encode_cart
from tabletalk.services.chat.extractor import ActionExtractor
from tabletalk.services.chat.guardrail import GuardrailResult, Locale, classify
from tabletalk.services.chat.menu import MenuSnapshot, load_menu_snapshot
from tabletalk.services.chat.prompt import HistoryEntry, LinkedOrderView, build_prompt
from tabletalk.services.events import OrderEvent, emit_order_event, order_event_payload
from tabletalk.services.oracle.base import BaseOracle
from tabletalk.services.orders.reconciler import close_table_order, commit_with_retry, place_cart
from tabletalk.services.orders.tables import normalize_table_label

logger = logging.getLogger(__name__)


@dataclass
class ChatTurnResult:
    """What the chat endpoint sends back to the guest."""
    session_id: str
    reply: str
    cart: list[CartLine] = field(default_factory=list)
    order_placed: bool = False
    order: Optional[OrderResponse] = None
    open_menu_wizard: bool = False


@dataclass
class _TurnContext:
    """Plain values captured in the read phase; they survive rollbacks."""
    tenant_id: str
    tenant_name: str
    currency: str
    session_id: str
    session_state: SessionState
    table_label: Optional[str]
    cart: list[CartLine]
    menu: MenuSnapshot
    linked_order: Optional[LinkedOrderView]
    history: list[HistoryEntry]


@dataclass
class _WriteOutcome:
    reply: str
    cart: list[CartLine]
    order_placed: bool = False
    order: Optional[OrderResponse] = None
    events: list[tuple[OrderEvent, dict]] = field(default_factory=list)


def clean_table_label(raw: Optional[str]) -> Optional[str]:
    if not raw or not raw.strip():
        return None
    return normalize_table_label(raw) or raw.strip()


async def find_linked_order(db: AsyncSession, session_id: str) -> Optional[Order]:
    """Newest order created from or merged by this chat session."""
    result = await db.execute(
        select(Order)
        .join(OrderSessionLink, OrderSessionLink.order_id == Order.id)
        .options(selectinload(Order.table), selectinload(Order.items))
        .where(OrderSessionLink.session_id == session_id)
        .order_by(Order.created_at.desc(), Order.sequence.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def load_history(db: AsyncSession, session_id: str, limit: int) -> list[ChatMessage]:
    """Last ``limit`` messages, oldest first."""
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


class ChatTurnHandler:
    """
    Runs chat turns against one database session.

    Example:
        >>> handler = ChatTurnHandler(db, get_oracle())
        >>> result = await handler.handle("2 momo please", tenant_slug="demo", table_label="T-01")
        >>> [line.qty for line in result.cart]
        [2]
    """

    def __init__(self, db: AsyncSession, oracle: BaseOracle, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.extractor = ActionExtractor(oracle, max_qty=self.settings.max_item_quantity)

    # =========================================================================
    # SESSION RESOLUTION
    # =========================================================================

    async def _link_already_claimed(self, session_id: str, client_id: str) -> bool:
        result = await self.db.execute(
            select(LinkClaim.id).where(
                LinkClaim.session_id == session_id,
                LinkClaim.client_id == client_id,
            )
        )
        return result.first() is not None

    def _new_session(self, tenant: Tenant, table_label: Optional[str]) -> ChatSession:
        session = ChatSession(
            id=str(uuid.uuid4()),
            tenant_id=tenant.id,
            state=SessionState.BROWSING,
            cart=[],
            table_label=table_label,
        )
        self.db.add(session)
        return session

    async def resolve_session(
        self,
        tenant: Tenant,
        session_id: Optional[str],
        table_label: Optional[str],
        client_id: Optional[str],
        via_link: bool,
    ) -> ChatSession:
        """
        Find the session for this turn, creating one when needed.

        Unknown ids and ids of another tenant get a fresh session. A session
        link opened again by a client that already used it, or opened after
        the session completed, also gets a fresh session at the same table.
        Committed before the turn continues.
        """
        session = None
        if session_id:
            candidate = await self.db.get(ChatSession, session_id)
            if candidate is not None and candidate.tenant_id == tenant.id:
                session = candidate
            else:
                logger.info(f"Unknown session {session_id}, starting a new one")

        inherited_label = None
        if session is not None and via_link:
            reused = session.state == SessionState.COMPLETED or (
                client_id and await self._link_already_claimed(session.id, client_id)
            )
            if reused:
                logger.info(f"Session link {session.id} already used, minting a new session")
                inherited_label = session.table_label
                session = None
            elif client_id:
                self.db.add(LinkClaim(session_id=session.id, client_id=client_id))

        if session is None:
            session = self._new_session(tenant, table_label or inherited_label)
        elif table_label and not session.table_label:
            session.table_label = table_label

        try:
            await self.db.commit()
        except IntegrityError:
            # Another request claimed the same link first
            await self.db.rollback()
            await self.db.refresh(tenant)
            session = self._new_session(tenant, table_label)
            await self.db.commit()
        return session

    # =========================================================================
    # TURN
    # =========================================================================

    async def handle(
        self,
        message: str,
        tenant_slug: str,
        session_id: Optional[str] = None,
        table_label: Optional[str] = None,
        client_id: Optional[str] = None,
        via_link: bool = False,
    ) -> ChatTurnResult:
        """
        Process one guest message.

        Raises:
            NotFoundError: unknown tenant, or an order placed at an unknown table
            OrderCreationError: order number allocation kept colliding
        """
        tenant = await get_tenant_by_slug(self.db, tenant_slug)
        session = await self.resolve_session(
            tenant, session_id, clean_table_label(table_label), client_id, via_link
        )
        ctx = await self._read_context(tenant, session)

        verdict = classify(message)
        if not verdict.is_clean:
            return await self._reject(ctx, message, verdict)

        if ctx.session_state == SessionState.COMPLETED:
            return await self._closed_session_turn(ctx, message, verdict.locale)

        prompt = build_prompt(
            ctx.tenant_name,
            ctx.currency,
            ctx.menu,
            ctx.cart,
            ctx.linked_order,
            ctx.history,
            message,
        )
        extraction = await self.extractor.extract(
            prompt,
            message,
            ctx.menu,
            cart_has_items=bool(ctx.cart),
            default_table=ctx.table_label,
        )
        logger.info(
            f"💬 Session {ctx.session_id}: {len(extraction.actions)} action(s) via {extraction.source}"
        )

        async def unit_of_work(db: AsyncSession) -> _WriteOutcome:
            return await self._apply_turn(db, ctx, message, extraction, verdict.locale)

        outcome = await commit_with_retry(
            self.db, unit_of_work, self.settings.order_create_max_attempts
        )

        for event, payload in outcome.events:
            emit_order_event(ctx.tenant_id, event, payload)

        return ChatTurnResult(
            session_id=ctx.session_id,
            reply=outcome.reply,
            cart=outcome.cart,
            order_placed=outcome.order_placed,
            order=outcome.order,
            open_menu_wizard=extraction.open_menu_wizard,
        )

    async def _read_context(self, tenant: Tenant, session: ChatSession) -> _TurnContext:
        menu = await load_menu_snapshot(self.db, tenant.id)
        linked = await find_linked_order(self.db, session.id)
        history = await load_history(self.db, session.id, self.settings.chat_history_limit)

        linked_view = None
        if linked is not None:
            linked_view = LinkedOrderView(
                order_number=linked.order_number,
                status=linked.status.value,
                table_label=linked.table.label if linked.table else None,
                total=linked.total,
            )

        return _TurnContext(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            currency=tenant.currency_symbol or "Rs.",
            session_id=session.id,
            session_state=session.state,
            table_label=session.table_label,
            cart=decode_cart(session.cart),
            menu=menu,
            linked_order=linked_view,
            history=[HistoryEntry(m.sender.value, m.content) for m in history],
        )

    def _add_message(self, db: AsyncSession, session_id: str, sender: MessageSender, content: str,
                     meta: Optional[dict] = None) -> None:
        db.add(ChatMessage(session_id=session_id, sender=sender, content=content, meta=meta))

    async def _reject(self, ctx: _TurnContext, message: str, verdict: GuardrailResult) -> ChatTurnResult:
        reply = narration.guardrail_reply(verdict.verdict, verdict.locale)
        logger.info(f"🛡️ Session {ctx.session_id}: guardrail {verdict.verdict.value}")

        self._add_message(self.db, ctx.session_id, MessageSender.USER, message)
        self._add_message(self.db, ctx.session_id, MessageSender.BOT, reply,
                          {"guardrail": verdict.verdict.value})
        await self.db.commit()
        return ChatTurnResult(session_id=ctx.session_id, reply=reply, cart=[])

    async def _closed_session_turn(self, ctx: _TurnContext, message: str, locale: Locale) -> ChatTurnResult:
        reply = narration.session_closed_reply(locale)
        self._add_message(self.db, ctx.session_id, MessageSender.USER, message)
        self._add_message(self.db, ctx.session_id, MessageSender.BOT, reply, {"sessionClosed": True})
        await self.db.commit()
        return ChatTurnResult(session_id=ctx.session_id, reply=reply)

    async def _apply_turn(
        self,
        db: AsyncSession,
        ctx: _TurnContext,
        message: str,
        extraction: ExtractionResult,
        locale: Locale,
    ) -> _WriteOutcome:
        """The write phase. Everything is re-read by id, so it can be retried."""
        tenant = await db.get(Tenant, ctx.tenant_id)
        session = await db.get(ChatSession, ctx.session_id)

        self._add_message(db, session.id, MessageSender.USER, message)

        cart = list(ctx.cart)
        outcome = _WriteOutcome(reply="", cart=cart)
        executed: list[ChatAction] = []
        forced_reply = None
        closed = False

        for action in extraction.actions:
            if action.action in CART_ACTIONS:
                cart = apply_cart_action(cart, action, ctx.menu)
                executed.append(action)

            elif action.action in PLACING_ACTIONS:
                if not cart:
                    continue
                label = action.table_ref or session.table_label
                placement = await place_cart(db, tenant, session.id, label, cart)
                if placement.table_label and not session.table_label:
                    session.table_label = placement.table_label
                cart = []
                executed.append(action)
                outcome.order_placed = True
                outcome.order = OrderResponse.from_order(placement.order, placement.table_label)
                event = OrderEvent.ORDER_CREATED if placement.created else OrderEvent.ORDER_UPDATED
                outcome.events.append(
                    (event, order_event_payload(placement.order, placement.table_label))
                )

            elif action.action in CLOSING_ACTIONS:
                # An order placed this turn cannot also be settled or cancelled by it
                if outcome.order_placed:
                    continue
                target = (
                    OrderStatus.PAID
                    if action.action == ActionType.CONFIRM_PAYMENT
                    else OrderStatus.CANCELLED
                )
                label = action.table_ref or session.table_label
                transition = await close_table_order(db, ctx.tenant_id, label, target, session.id)
                executed.append(action)
                if transition is None:
                    forced_reply = narration.no_open_order_reply(clean_table_label(label))
                    continue
                order = transition.order
                forced_reply = narration.order_closed_reply(order.order_number, order.status)
                outcome.events.append(
                    (OrderEvent.ORDER_STATUS_CHANGED, order_event_payload(order, clean_table_label(label)))
                )
                closed = True
                # Nothing after a payment or cancellation applies
                break

        if closed:
            session.state = SessionState.COMPLETED
            cart = []
        elif outcome.order_placed:
            session.state = SessionState.CONFIRMING
        elif cart:
            session.state = SessionState.ORDERING
        else:
            session.state = SessionState.BROWSING
        session.cart = encode_cart(cart)
        outcome.cart = cart

        outcome.reply = forced_reply or self._compose_reply(ctx, extraction, executed, outcome, locale)
        self._add_message(db, session.id, MessageSender.BOT, outcome.reply, {
            "source": extraction.source,
            "actions": [a.to_dict() for a in executed],
        })
        await db.flush()
        return outcome

    def _compose_reply(
        self,
        ctx: _TurnContext,
        extraction: ExtractionResult,
        executed: list[ChatAction],
        outcome: _WriteOutcome,
        locale: Locale,
    ) -> str:
        if outcome.order_placed and outcome.order is not None:
            return narration.order_placed_reply(outcome.order.order_number)
        if extraction.reply:
            return extraction.reply
        if executed:
            return narration.cart_updated_reply()
        if extraction.wants_status:
            linked = ctx.linked_order
            return narration.status_narration(
                linked.order_number if linked else None,
                OrderStatus(linked.status) if linked else None,
                locale,
            )
        if extraction.source == "oracle":
            return narration.THINKING_FALLBACK
        featured = [entry.name for entry in ctx.menu.entries]
        return narration.idle_reply(locale, featured, list(ctx.menu.categories), extraction.open_menu_wizard)


async def load_transcript(db: AsyncSession, session_id: str, limit: int = 100):
    """Session, its messages and linked order for GET /chat."""
    session = await db.get(ChatSession, session_id)
    if session is None:
        return None, [], None
    messages = await load_history(db, session_id, limit)
    order = await find_linked_order(db, session_id)
    return session, messages, order
