"""
Email background tasks.

Supplier order emails and invitation emails, sent through Resend.
"""

from __future__ import annotations

import asyncio
import html
import logging
from datetime import UTC, datetime
from typing import Any, Coroutine

import redis

from supplai.core.config import settings
from supplai.models.order import SupplierOrderStatus
from supplai.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

# Long enough to cover one delivery attempt including the Resend call
LOCK_TTL_SECONDS = 120

_redis_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(str(settings.REDIS_URL), decode_responses=True)
    return _redis_client


def supplier_order_lock_key(supplier_order_id: str) -> str:
    return f"supplier_order_email:{supplier_order_id}"


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    # Always create a fresh event loop: forked workers inherit a closed one
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ---------------------------------------------------------------------------
# Supplier order email
# ---------------------------------------------------------------------------

@celery_app.task(
    name="supplai.workers.email_tasks.send_supplier_order_email",
    bind=True,
    max_retries=3,
)
def send_supplier_order_email(self, supplier_order_id: str) -> dict[str, str]:  # type: ignore[no-untyped-def]
    """
    Email one supplier its share of an order.

    Only one worker handles a supplier order at a time (Redis lock). A
    transient failure puts the supplier order back to pending and retries;
    once retries are exhausted it is marked failed.
    """
    lock_key = supplier_order_lock_key(supplier_order_id)
    if not get_redis().set(lock_key, self.request.id or "1", nx=True, ex=LOCK_TTL_SECONDS):
        logger.info("Supplier order %s is being sent by another worker", supplier_order_id)
        return {"status": "locked", "supplier_order_id": supplier_order_id}

    try:
        return _run(_deliver_supplier_order(supplier_order_id))
    except Exception as exc:
        logger.error("send_supplier_order_email failed for %s: %s", supplier_order_id, exc)
        if self.request.retries >= self.max_retries:
            _run(_mark_supplier_order(supplier_order_id, SupplierOrderStatus.failed.value, str(exc)))
            raise
        _run(_mark_supplier_order(supplier_order_id, SupplierOrderStatus.pending.value, str(exc)))
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
    finally:
        get_redis().delete(lock_key)


async def _mark_supplier_order(
    supplier_order_id: str,
    status: str,
    error_message: str | None = None,
    client: Any = None,
) -> None:
    from supplai.core.supabase import create_admin_client

    client = client or await create_admin_client()
    changes: dict[str, Any] = {"status": status, "error_message": error_message}
    if status == SupplierOrderStatus.sent.value:
        changes["sent_at"] = datetime.now(UTC).isoformat()
    await client.table("supplier_orders").update(changes).eq("id", supplier_order_id).execute()


async def _deliver_supplier_order(supplier_order_id: str) -> dict[str, str]:
    """Async helper: load the supplier order, send it, record the outcome."""
    import resend

    from supplai.core.supabase import create_admin_client

    client = await create_admin_client()

    result = await (
        client.table("supplier_orders").select("*").eq("id", supplier_order_id).limit(1).execute()
    )
    if not result.data:
        logger.warning("Supplier order %s not found", supplier_order_id)
        return {"status": "missing", "supplier_order_id": supplier_order_id}
    supplier_order = result.data[0]

    if supplier_order["status"] == SupplierOrderStatus.sent.value:
        return {"status": "skipped", "supplier_order_id": supplier_order_id}

    supplier_result = await (
        client.table("suppliers")
        .select("id, name, email")
        .eq("id", supplier_order["supplier_id"])
        .limit(1)
        .execute()
    )
    supplier = supplier_result.data[0] if supplier_result.data else {}

    if not supplier.get("email"):
        await _mark_supplier_order(
            supplier_order_id, SupplierOrderStatus.failed.value, "Supplier has no email address", client
        )
        return {"status": "failed", "supplier_order_id": supplier_order_id}

    items_result = await (
        client.table("order_items")
        .select("product, quantity, unit")
        .eq("order_id", supplier_order["order_id"])
        .eq("supplier_id", supplier_order["supplier_id"])
        .execute()
    )
    items = items_result.data or []
    if not items:
        await _mark_supplier_order(
            supplier_order_id, SupplierOrderStatus.failed.value, "No items for this supplier", client
        )
        return {"status": "failed", "supplier_order_id": supplier_order_id}

    organization_name = await _organization_name(client, supplier_order["order_id"])

    await _mark_supplier_order(supplier_order_id, SupplierOrderStatus.sending.value, None, client)

    resend.api_key = settings.RESEND_API_KEY
    params: resend.Emails.SendParams = {
        "from": settings.EMAIL_FROM,
        "to": [supplier["email"]],
        "subject": f"New order from {organization_name}",
        "html": render_order_email(organization_name, supplier.get("name") or "", items),
    }
    response = resend.Emails.send(params)

    await _mark_supplier_order(supplier_order_id, SupplierOrderStatus.sent.value, None, client)
    logger.info("Supplier order %s sent to %s", supplier_order_id, supplier["email"])
    return {"status": "sent", "message_id": response["id"]}


async def _organization_name(client: Any, order_id: str) -> str:
    order = await (
        client.table("orders").select("organization_id").eq("id", order_id).limit(1).execute()
    )
    if not order.data:
        return "Your customer"
    org = await (
        client.table("organizations")
        .select("name")
        .eq("id", order.data[0]["organization_id"])
        .limit(1)
        .execute()
    )
    return org.data[0]["name"] if org.data else "Your customer"


def render_order_email(organization_name: str, supplier_name: str, items: list[dict[str, Any]]) -> str:
    rows = "".join(
        f"<li><strong>{html.escape(str(item['quantity']))} {html.escape(item['unit'])}</strong>"
        f" of {html.escape(item['product'])}</li>"
        for item in items
    )
    return f"""
        <h2>New order</h2>
        <p>Hello, <strong>{html.escape(organization_name)}</strong> has placed a new order.</p>
        <h3>{html.escape(supplier_name)}</h3>
        <ul>{rows}</ul>
        <p style="color:#64748b;font-size:14px;">This is an automated message sent from Supplai.</p>
    """


# ---------------------------------------------------------------------------
# Invitation email
# ---------------------------------------------------------------------------

@celery_app.task(name="supplai.workers.email_tasks.send_invitation_email", bind=True, max_retries=3)
def send_invitation_email(
    self,  # type: ignore[no-untyped-def]
    to_email: str,
    inviter_name: str,
    organization_name: str,
    role: str,
    invitation_token: str,
    site_url: str,
) -> dict[str, str]:
    """
    Send an invitation email via Resend.

    Args:
        to_email: Recipient email address.
        inviter_name: Display name of the person who sent the invite.
        organization_name: Organization display name.
        role: Role being assigned (admin/member).
        invitation_token: Token of the invitation link.
        site_url: Base URL for constructing the invitation link.

    Returns:
        Dict with status and message_id.
    """
    try:
        import resend

        resend.api_key = settings.RESEND_API_KEY

        invite_url = f"{site_url}/invite/{invitation_token}"
        role_text = "an admin" if role == "admin" else "a member"

        params: resend.Emails.SendParams = {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": f"You've been invited to join {organization_name} on Supplai",
            "html": f"""
                <h2>You've been invited to Supplai</h2>
                <p><strong>{html.escape(inviter_name)}</strong> has invited you to join
                <strong>{html.escape(organization_name)}</strong> as {role_text}.</p>
                <p>
                    <a href="{invite_url}"
                       style="background:#2563eb;color:#fff;padding:12px 24px;
                              border-radius:6px;text-decoration:none;display:inline-block;">
                        Accept invitation
                    </a>
                </p>
                <p>Or paste this link into your browser: {invite_url}</p>
                <p>This invitation expires in 48 hours.</p>
                <p>If you did not expect this invitation, you can safely ignore this email.</p>
            """,
        }

        response = resend.Emails.send(params)
        return {"status": "sent", "message_id": response["id"]}

    except Exception as exc:
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
