"""
Celery application instance.

Configured with Redis broker and backend. All tasks send email, so they
share the `email` queue.
"""

from celery import Celery

from supplai.core.config import settings

celery_app = Celery(
    "supplai",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "supplai.workers.email_tasks",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Results
    result_expires=3600,
    # Retry policy
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Concurrency
    worker_prefetch_multiplier=1,
    # Routing
    task_default_queue="default",
    task_queues={
        "default": {},
        "email": {},
    },
    task_routes={
        "supplai.workers.email_tasks.*": {"queue": "email"},
    },
)
