# storefront/worker.py
from celery import Celery
from storefront.core.config import settings

celery = Celery(
    "storefront",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["storefront.tasks.notifications", "storefront.tasks.reservations"]
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes per task
    worker_max_tasks_per_child=1000,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_retry_delay=60,
    task_max_retries=3,
    # Tests run tasks inline, no broker needed
    task_always_eager=settings.ENVIRONMENT == "testing",
)

# Periodic tasks
celery.conf.beat_schedule = {
    'expire-reservations': {
        'task': 'storefront.tasks.reservations.expire_reservations_task',
        'schedule': settings.RESERVATION_SWEEP_SECONDS,
    }
}
