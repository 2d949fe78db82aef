"""
Chat endpoints: guest turns, transcripts and QR session links.
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletalk.core.exceptions import NotFoundError
from tabletalk.database import get_db
from tabletalk.dependencies import current_tenant
from tabletalk.models import ChatSession, SessionState, Table, Tenant
from tabletalk.schemas import (
    ChatHistoryResponse,
    ChatMessageResponse,
    ChatRequest,
    ChatResponse,
    ChatSessionCreate,
    ChatSessionCreateResponse,
    ErrorResponse,
    OrderResponse,
)
from tabletalk.services.chat.cart import decode_cart
from tabletalk.services.chat.handler import ChatTurnHandler, load_transcript
from tabletalk.services.oracle import BaseOracle, get_oracle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.post(
    "",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Send a guest message",
)
async def chat_turn(
    request: ChatRequest,
    db: AsyncSession = Depends(get_db),
    oracle: BaseOracle = Depends(get_oracle),
) -> ChatResponse:
    """
    Run one conversational turn.

    Guardrail rejections are normal 200 responses with a canned reply.
    """
    handler = ChatTurnHandler(db, oracle)
    result = await handler.handle(
        request.message,
        tenant_slug=request.tenant_slug,
        session_id=request.session_id,
        table_label=request.table_label,
        client_id=request.client_id,
        via_link=request.via_link,
    )
    return ChatResponse(
        session_id=result.session_id,
        message=result.reply,
        cart=result.cart,
        order_placed=result.order_placed,
        order_details=result.order,
        open_menu_wizard=result.open_menu_wizard,
    )


@router.get(
    "",
    response_model=ChatHistoryResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Session transcript",
)
async def chat_history(
    session_id: str = Query(..., alias="sessionId", min_length=1),
    db: AsyncSession = Depends(get_db),
) -> ChatHistoryResponse:
    session, messages, order = await load_transcript(db, session_id)
    if session is None:
        raise NotFoundError(f"Chat session {session_id} not found")

    return ChatHistoryResponse(
        session_id=session.id,
        state=session.state,
        table_label=session.table_label,
        cart=decode_cart(session.cart),
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
        order=OrderResponse.from_order(order, order.table.label if order.table else None) if order else None,
    )


@router.post(
    "/session",
    response_model=ChatSessionCreateResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Create a table-bound session link",
)
async def create_chat_session(
    body: ChatSessionCreate,
    tenant: Tenant = Depends(current_tenant),
    db: AsyncSession = Depends(get_db),
) -> ChatSessionCreateResponse:
    """Mint a fresh session for a table QR code."""
    result = await db.execute(
        select(Table).where(Table.id == body.table_id, Table.tenant_id == tenant.id)
    )
    table = result.scalar_one_or_none()
    if table is None:
        raise NotFoundError("Table not found")

    session = ChatSession(
        tenant_id=tenant.id,
        state=SessionState.BROWSING,
        cart=[],
        table_label=table.label,
    )
    db.add(session)
    await db.commit()
    logger.info(f"🔗 Session link {session.id} created for {table.label}")

    return ChatSessionCreateResponse(
        session_id=session.id,
        table_id=table.id,
        table_label=table.label,
        url_path=f"/{tenant.slug}?table={quote(table.label)}&session={session.id}",
    )
