"""
WebSocket endpoint.
Real-time supplier email status of one order.
"""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from supabase import AsyncClient

from supplai.core.dependencies import get_supabase
from supplai.core.realtime import OrderEmailStatusWatcher
from supplai.core.security import extract_access_token, read_claims
from supplai.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter()

# Close codes
WS_UNAUTHORIZED = 4001
WS_FORBIDDEN = 4003
WS_NOT_FOUND = 4004


async def _authorize_order(service: SessionService, order_id: str) -> int | None:
    """Close code if the caller may not watch `order_id`, else None."""
    try:
        await service.get_order_context(order_id)
    except HTTPException as exc:
        if exc.status_code == 401:
            return WS_UNAUTHORIZED
        if exc.status_code == 404:
            return WS_NOT_FOUND
        return WS_FORBIDDEN
    return None


async def _forward_events(websocket: WebSocket, watcher: OrderEmailStatusWatcher) -> None:
    async for event in watcher.events():
        await websocket.send_json(event.model_dump(mode="json"))


@router.websocket("/orders/{order_id}/email-status")
async def order_email_status(
    websocket: WebSocket,
    order_id: UUID,
    client: AsyncClient = Depends(get_supabase),
) -> None:
    """
    Connect: WS /api/v1/orders/{order_id}/email-status?token={access_token}

    On connect:
    - Validate the access token and the caller's membership in the order's
      organization (close 4001 / 4003 / 4004 otherwise)
    - Subscribe to the order's realtime channel

    While connected:
    - Push {"type": "email_status", "status": "sent", ...} when a supplier
      email goes out
    - {"type": "watch", "order_id": ...} switches to another order

    On disconnect:
    - Remove the realtime channel
    """
    claims = read_claims(websocket)
    if claims is None:
        await websocket.close(code=WS_UNAUTHORIZED)
        return

    service = SessionService(client, claims)
    close_code = await _authorize_order(service, str(order_id))
    if close_code is not None:
        await websocket.close(code=close_code)
        return

    await websocket.accept()

    watcher = OrderEmailStatusWatcher(client, str(order_id), extract_access_token(websocket))
    async with watcher:
        await websocket.send_json({"type": "connected", "order_id": str(order_id)})
        forward = asyncio.create_task(_forward_events(websocket, watcher))
        try:
            while True:
                try:
                    message = await websocket.receive_json()
                except ValueError:
                    logger.debug("Ignoring non-JSON frame on order %s", watcher.order_id)
                    continue
                if not isinstance(message, dict):
                    continue
                if message.get("type") != "watch" or not message.get("order_id"):
                    continue

                new_order_id = str(message["order_id"])
                close_code = await _authorize_order(service, new_order_id)
                if close_code is not None:
                    await websocket.send_json(
                        {"type": "error", "order_id": new_order_id, "code": close_code}
                    )
                    continue

                forward.cancel()
                await watcher.switch(new_order_id)
                forward = asyncio.create_task(_forward_events(websocket, watcher))
                await websocket.send_json({"type": "connected", "order_id": new_order_id})

        except WebSocketDisconnect:
            logger.info("Email status websocket closed for order %s", watcher.order_id)
        finally:
            forward.cancel()
