"""
Scheduled maintenance.

Runs with the service role client: there is no signed-in user and the
work spans every organization.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from supabase import AsyncClient, PostgrestAPIError

from supplai.core.config import settings
from supplai.models.order import OrderStatus, SupplierOrderStatus
from supplai.schemas.job import DraftCleanupResult, ProcessJobsResponse

logger = logging.getLogger(__name__)

# Supplier orders still pending after this are assumed to have lost their job
STALE_PENDING_AFTER = timedelta(minutes=1)


class JobService:
    """Fallback processing for email jobs and draft cleanup."""

    def __init__(self, admin_client: AsyncClient) -> None:
        self.client = admin_client

    async def requeue_pending_supplier_orders(
        self, older_than: timedelta = STALE_PENDING_AFTER
    ) -> int:
        """Queue the email job again for supplier orders stuck in pending."""
        from supplai.workers.email_tasks import send_supplier_order_email

        cutoff = (datetime.now(UTC) - older_than).isoformat()
        result = await (
            self.client.table("supplier_orders")
            .select("id")
            .eq("status", SupplierOrderStatus.pending.value)
            .lt("created_at", cutoff)
            .execute()
        )
        rows = result.data or []
        for row in rows:
            send_supplier_order_email.delay(row["id"])

        logger.info("[Cron] Re-queued %d pending supplier orders", len(rows))
        return len(rows)

    async def cleanup_empty_drafts(self, days: int = 7) -> DraftCleanupResult:
        """Delete draft orders older than `days` that never got an item."""
        cutoff = (datetime.now(UTC) - timedelta(days=days)).isoformat()
        drafts = await (
            self.client.table("orders")
            .select("id")
            .eq("status", OrderStatus.draft.value)
            .lt("created_at", cutoff)
            .execute()
        )
        draft_ids = [row["id"] for row in drafts.data or []]
        if not draft_ids:
            return DraftCleanupResult(deleted_drafts=0)

        items = await (
            self.client.table("order_items")
            .select("order_id")
            .in_("order_id", draft_ids)
            .execute()
        )
        with_items = {row["order_id"] for row in items.data or []}

        deleted = 0
        errors: list[str] = []
        for order_id in draft_ids:
            if order_id in with_items:
                continue
            try:
                await self.client.table("orders").delete().eq("id", order_id).execute()
            except PostgrestAPIError as exc:
                logger.error("[Cron] Could not delete draft %s: %s", order_id, exc.message)
                errors.append(f"{order_id}: {exc.message}")
                continue
            deleted += 1

        logger.info("[Cron] Draft cleanup completed: %d orders deleted", deleted)
        return DraftCleanupResult(deleted_drafts=deleted, errors=errors)

    async def process_jobs(self) -> ProcessJobsResponse:
        logger.info("[Cron] Starting job processing")
        requeued = await self.requeue_pending_supplier_orders()
        cleanup = await self.cleanup_empty_drafts(settings.DRAFT_RETENTION_DAYS)
        return ProcessJobsResponse(
            success=True,
            message="Jobs processed successfully",
            timestamp=datetime.now(UTC),
            requeued_supplier_orders=requeued,
            cleanup=cleanup,
        )
