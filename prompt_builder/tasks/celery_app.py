from celery import Celery
from prompt_builder.core.config import settings

celery_app = Celery("prompt_builder", broker=settings.redis_url, backend=settings.redis_url,
                    include=["prompt_builder.tasks.generations"])
celery_app.conf.update(task_track_started=True, result_expires=3600, broker_connection_retry_on_startup=True,)
