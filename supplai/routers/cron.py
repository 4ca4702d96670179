"""
Scheduled job endpoint.

Called by Vercel Cron (which sends `x-vercel-cron-id`) or manually with
`Authorization: Bearer <CRON_SECRET>`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from supabase import AsyncClient

from supplai.core.config import settings
from supplai.core.dependencies import get_admin_supabase
from supplai.schemas.job import ProcessJobsResponse
from supplai.services.job_service import JobService

logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_cron_request(
    x_vercel_cron_id: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
) -> None:
    is_vercel_cron = bool(x_vercel_cron_id)
    has_valid_secret = bool(settings.CRON_SECRET) and authorization == f"Bearer {settings.CRON_SECRET}"

    if not is_vercel_cron and not has_valid_secret:
        logger.warning(
            "Unauthorized cron job attempt (vercel_cron_id=%s, auth_header=%s, secret_configured=%s)",
            bool(x_vercel_cron_id),
            bool(authorization),
            bool(settings.CRON_SECRET),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Unauthorized"},
        )


def get_job_service(admin_client: AsyncClient = Depends(get_admin_supabase)) -> JobService:
    return JobService(admin_client=admin_client)


@router.get(
    "/process-jobs",
    response_model=ProcessJobsResponse,
    dependencies=[Depends(verify_cron_request)],
    summary="Process pending jobs",
)
async def process_jobs(service: JobService = Depends(get_job_service)) -> ProcessJobsResponse:
    """
    Re-queue supplier order emails stuck in pending and delete old empty
    drafts.
    """
    return await service.process_jobs()
