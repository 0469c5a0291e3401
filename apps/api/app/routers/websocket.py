"""
WebSocket router for real-time ticket updates.

Provides a WebSocket endpoint that:
1. Authenticates users via JWT cookie or ?token= query parameter
2. Checks the ticket is in the user's visible set
3. Streams ticket events (new message, status/assignee change) for that ticket
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.deps import COOKIE_NAME, get_db
from app.core.security import decode_session_token
from app.core.websocket import manager
from app.db.models import User
from app.schemas.auth import UserSession
from app.services import ticket_service

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _authorize(db: Session, token: str, ticket_id: UUID) -> bool:
    """Same checks as the HTTP session dependency, plus ticket visibility."""
    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
    except Exception:
        return False

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active or user.token_version != payload.get("token_version"):
        return False

    session = UserSession(
        user_id=user.id,
        org_id=user.organization_id,
        role=user.role,
        email=user.email,
        display_name=user.display_name,
    )
    try:
        ticket_service.get_visible_ticket(db, session, ticket_id)
    except HTTPException:
        return False
    return True


@router.websocket("/tickets/{ticket_id}")
async def websocket_ticket_events(
    websocket: WebSocket,
    ticket_id: UUID,
    token: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """
    Subscribe to events for one ticket.

    Close codes: 4001 authentication required/invalid, 4004 ticket not visible.
    """
    token = token or websocket.cookies.get(COOKIE_NAME)
    if not token:
        await websocket.close(code=4001, reason="Authentication required")
        return

    allowed = await run_in_threadpool(_authorize, db, token, ticket_id)
    if not allowed:
        await websocket.close(code=4004, reason="Ticket not found")
        return

    await manager.connect(websocket, ticket_id)
    try:
        # Keep connection alive, handle heartbeat pings
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    finally:
        await manager.disconnect(websocket, ticket_id)
