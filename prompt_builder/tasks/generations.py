from __future__ import annotations
import asyncio
import logging
from sqlalchemy.orm import Session
from prompt_builder.core.errors import GenerationCancelledError
from prompt_builder.core.logging import ctx
from prompt_builder.core.workflow import GenerationStatus
from prompt_builder.db.models import AppBuilderGeneration
from prompt_builder.db.session import SessionLocal
from prompt_builder.driver.backend import ServiceBackend
from prompt_builder.driver.engine import GenerationDriver
from prompt_builder.driver.stores import KeyValueStore, ProgressStore
from prompt_builder.driver.worker import WorkerStatus
from prompt_builder.llm.openrouter import OpenRouterClient
from prompt_builder.services.generations import GenerationService
from prompt_builder.tasks.celery_app import celery_app

log = logging.getLogger(__name__)


def _finish(service: GenerationService, generation_id: str, status: WorkerStatus, error: str | None) -> WorkerStatus:
    # A cancel recorded while the driver ran wins over whatever the run produced.
    if service.get_generation(generation_id).status is GenerationStatus.CANCELLED:
        log.info("Workflow stopped: generation was cancelled", extra=ctx(generation_id, "prompts"))
        return WorkerStatus.CANCELLED

    if status is WorkerStatus.DONE:
        service.update_status(generation_id, GenerationStatus.COMPLETED, last_error=None)
        log.info("Workflow completed successfully", extra=ctx(generation_id, "summary"))
    elif status is WorkerStatus.ERROR:
        service.update_status(generation_id, GenerationStatus.GENERATING_PROMPTS, last_error=error)
        log.warning("Workflow stopped: %s", error, extra=ctx(generation_id, "prompts"))
    return status


@celery_app.task(name="run_generation_workflow")
def run_generation_workflow(generation_id: str) -> str:
    db: Session = SessionLocal()
    service = GenerationService(db, OpenRouterClient())
    try:
        gen = db.get(AppBuilderGeneration, generation_id)
        if not gen:
            log.error("Generation not found", extra=ctx(generation_id))
            return "missing"

        driver = GenerationDriver.from_record(
            ServiceBackend(service), gen, progress_store=ProgressStore(KeyValueStore()))
        log.info("Starting workflow", extra=ctx(generation_id, driver.step.value))

        try:
            status = asyncio.run(driver.run_all())
        except GenerationCancelledError:
            status = WorkerStatus.CANCELLED
        return _finish(service, generation_id, status, driver.error).value

    except Exception as e:
        db.rollback()
        gen = db.get(AppBuilderGeneration, generation_id)
        log.exception("Workflow failed", extra=ctx(generation_id))
        if gen:
            gen.last_error = str(e)
            db.commit()
        return WorkerStatus.ERROR.value
    finally:
        try:
            service.release_workflow(generation_id)
        except Exception:
            log.exception("Could not release workflow claim", extra=ctx(generation_id))
        db.close()
