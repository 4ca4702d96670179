"""
Order history.

Merges supplier orders (what was sent to each supplier) with open order
bundles (drafts and orders in review) into one list, newest first.
"""

from __future__ import annotations

import logging
from collections import Counter
from uuid import UUID

from supabase import AsyncClient

from supplai.models.order import OrderStatus, SupplierOrderStatus
from supplai.schemas.history import HistoryEntry, HistoryFilter, HistoryResponse

logger = logging.getLogger(__name__)

SUPPLIER_ORDER_STATUSES = {s.value for s in SupplierOrderStatus}
DEFAULT_BUNDLE_STATUSES = [OrderStatus.draft.value, OrderStatus.review.value]
BUNDLE_STATUSES = {*DEFAULT_BUNDLE_STATUSES, OrderStatus.archived.value}


class HistoryService:
    """Builds the history list of one organization."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def get_history(
        self, organization_id: UUID, filters: HistoryFilter | None = None
    ) -> HistoryResponse:
        filters = filters or HistoryFilter()

        supplier_order_statuses = [s for s in filters.status if s in SUPPLIER_ORDER_STATUSES]
        bundle_statuses = [s for s in filters.status if s in BUNDLE_STATUSES]
        if filters.status:
            show_supplier_orders = bool(supplier_order_statuses)
            show_bundles = bool(bundle_statuses)
        else:
            show_supplier_orders = show_bundles = True
            bundle_statuses = DEFAULT_BUNDLE_STATUSES

        # Filtering by supplier only makes sense for supplier orders
        if filters.supplier_id is not None:
            show_bundles = False

        entries: list[HistoryEntry] = []
        if show_supplier_orders:
            entries += await self._supplier_order_entries(
                organization_id, supplier_order_statuses, filters
            )
        if show_bundles:
            entries += await self._bundle_entries(organization_id, bundle_statuses, filters)

        # Each query is already limited; merging can still yield twice as many
        entries.sort(key=lambda e: e.created_at, reverse=True)
        entries = entries[: filters.limit]
        logger.debug("History of org %s: %d entries", organization_id, len(entries))
        await self._decorate(entries)

        return HistoryResponse(entries=entries, total=len(entries))

    async def _supplier_order_entries(
        self,
        organization_id: UUID,
        statuses: list[str],
        filters: HistoryFilter,
    ) -> list[HistoryEntry]:
        query = (
            self.client.table("supplier_orders")
            .select(
                "id, order_id, supplier_id, status, created_at, sent_at, "
                "orders!inner(organization_id, created_by)"
            )
            .eq("orders.organization_id", str(organization_id))
        )
        if filters.member_id is not None:
            query = query.eq("orders.created_by", str(filters.member_id))
        if statuses:
            query = query.in_("status", statuses)
        if filters.supplier_id is not None:
            query = query.eq("supplier_id", str(filters.supplier_id))
        if filters.date_from is not None:
            query = query.gte("created_at", filters.date_from.isoformat())
        if filters.date_to is not None:
            query = query.lte("created_at", filters.date_to.isoformat())
        result = await query.order("created_at", desc=True).limit(filters.limit).execute()

        return [
            HistoryEntry(
                kind="supplier_order",
                id=so["id"],
                order_id=so["order_id"],
                status=so["status"],
                supplier_id=so["supplier_id"],
                created_by=so["orders"].get("created_by"),
                created_at=so["created_at"],
                sent_at=so.get("sent_at"),
            )
            for so in result.data or []
        ]

    async def _bundle_entries(
        self, organization_id: UUID, statuses: list[str], filters: HistoryFilter
    ) -> list[HistoryEntry]:
        query = (
            self.client.table("orders")
            .select("id, status, created_by, created_at, sent_at")
            .eq("organization_id", str(organization_id))
            .in_("status", statuses)
        )
        if filters.member_id is not None:
            query = query.eq("created_by", str(filters.member_id))
        if filters.date_from is not None:
            query = query.gte("created_at", filters.date_from.isoformat())
        if filters.date_to is not None:
            query = query.lte("created_at", filters.date_to.isoformat())
        result = await query.order("created_at", desc=True).limit(filters.limit).execute()

        return [
            HistoryEntry(
                kind="order",
                id=o["id"],
                order_id=o["id"],
                status=o["status"],
                created_by=o.get("created_by"),
                created_at=o["created_at"],
                sent_at=o.get("sent_at"),
            )
            for o in result.data or []
        ]

    async def _decorate(self, entries: list[HistoryEntry]) -> None:
        """Fill in supplier names, author names and item counts."""
        if not entries:
            return

        supplier_ids = {str(e.supplier_id) for e in entries if e.supplier_id}
        user_ids = {str(e.created_by) for e in entries if e.created_by}
        order_ids = {str(e.order_id) for e in entries}

        suppliers: dict[str, str] = {}
        if supplier_ids:
            result = await (
                self.client.table("suppliers")
                .select("id, name")
                .in_("id", list(supplier_ids))
                .execute()
            )
            suppliers = {r["id"]: r["name"] for r in result.data or []}

        names: dict[str, str | None] = {}
        if user_ids:
            result = await (
                self.client.table("profiles")
                .select("id, full_name")
                .in_("id", list(user_ids))
                .execute()
            )
            names = {r["id"]: r.get("full_name") for r in result.data or []}

        result = await (
            self.client.table("order_items")
            .select("order_id, supplier_id")
            .in_("order_id", list(order_ids))
            .execute()
        )
        items = result.data or []
        per_order = Counter(i["order_id"] for i in items)
        per_supplier_order = Counter((i["order_id"], i.get("supplier_id")) for i in items)

        for e in entries:
            if e.supplier_id:
                e.supplier_name = suppliers.get(str(e.supplier_id))
                e.item_count = per_supplier_order[(str(e.order_id), str(e.supplier_id))]
            else:
                e.item_count = per_order[str(e.order_id)]
            if e.created_by:
                e.created_by_name = names.get(str(e.created_by))
