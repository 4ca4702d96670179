"""
Order email status over Supabase Realtime.

One channel per order (`order-email-status-<order_id>`), listening to UPDATE
events on supplier_orders for that order. Only transitions to `sent` are
reported.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from supabase import AsyncClient

from supplai.models.order import SupplierOrderStatus
from supplai.schemas.order import EmailStatusEvent

logger = logging.getLogger(__name__)


def channel_name(order_id: str) -> str:
    return f"order-email-status-{order_id}"


def _extract_record(payload: dict[str, Any]) -> dict[str, Any]:
    """New row of a postgres_changes payload."""
    data = payload.get("data") or {}
    record = data.get("record") or payload.get("new") or payload.get("record")
    return record or {}


class OrderEmailStatusWatcher:
    """
    Watches the supplier orders of one order and queues `sent` events.

    Usage:
        async with OrderEmailStatusWatcher(client, order_id) as watcher:
            async for event in watcher.events():
                ...
    """

    def __init__(
        self, client: AsyncClient, order_id: str, access_token: str | None = None
    ) -> None:
        self.client = client
        self.order_id = str(order_id)
        self.access_token = access_token
        self.email_status: str | None = None
        self._channel = None
        self._queue: asyncio.Queue[EmailStatusEvent] = asyncio.Queue()

    async def __aenter__(self) -> OrderEmailStatusWatcher:
        await self.subscribe()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.unsubscribe()

    @property
    def subscribed(self) -> bool:
        return self._channel is not None

    async def subscribe(self) -> None:
        if self._channel is not None:
            return
        if self.access_token:
            # Realtime checks row level security with its own token
            await self.client.realtime.set_auth(self.access_token)
        channel = self.client.channel(channel_name(self.order_id))
        channel.on_postgres_changes(
            "UPDATE",
            callback=self._on_update,
            table="supplier_orders",
            schema="public",
            filter=f"order_id=eq.{self.order_id}",
        )
        await channel.subscribe()
        self._channel = channel
        logger.info("Subscribed to email status of order %s", self.order_id)

    async def unsubscribe(self) -> None:
        if self._channel is None:
            return
        channel, self._channel = self._channel, None
        await self.client.remove_channel(channel)
        logger.info("Unsubscribed from email status of order %s", self.order_id)

    async def switch(self, order_id: str) -> None:
        """Watch another order; the previous channel is removed first."""
        await self.unsubscribe()
        self.order_id = str(order_id)
        self.email_status = None
        self._queue = asyncio.Queue()
        await self.subscribe()

    def _on_update(self, payload: dict[str, Any]) -> None:
        record = _extract_record(payload)
        if record.get("status") != SupplierOrderStatus.sent.value:
            return
        self.email_status = SupplierOrderStatus.sent.value
        self._queue.put_nowait(
            EmailStatusEvent(order_id=self.order_id, supplier_order_id=record.get("id"))
        )

    async def events(self) -> AsyncIterator[EmailStatusEvent]:
        while True:
            yield await self._queue.get()
