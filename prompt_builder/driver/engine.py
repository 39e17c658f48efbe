from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from prompt_builder.core.config import settings
from prompt_builder.core.errors import (
    EmptyResultError,
    MissingPrerequisiteError,
    QuotaExceededError,
    ValidationError,
)
from prompt_builder.core.logging import ctx
from prompt_builder.core.workflow import ApprovalStep, GenerationStatus, GenerationStep, PromptCategory
from prompt_builder.driver.backend import GenerationBackend, quota_blocked
from prompt_builder.driver.stores import ProgressStore
from prompt_builder.driver.worker import ItemContext, PromptWorker, WorkerStatus
from prompt_builder.schemas.form import SelectedPromptTypes, WizardForm

log = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    project_name: str
    form: WizardForm
    prd: Optional[str]
    user_flows: Optional[str]
    task_file: Optional[str]
    lists: Dict[PromptCategory, List[str]]
    prompts: Dict[PromptCategory, List[Dict[str, Any]]]


@dataclass
class GenerationDriver:
    """
    Walks one generation through its stages:
    form -> prd -> user_flows -> tasks -> lists -> prompts -> summary.

    Each stage needs the outputs of the previous ones. A failed stage leaves
    ``step`` where it was and records ``error``; calling the stage again (or
    ``retry``) resumes from there.
    """
    backend: GenerationBackend
    user_id: str
    form: WizardForm
    progress_store: Optional[ProgressStore] = None
    worker: Optional[PromptWorker] = None
    # Checked before submission and again before the item loop.
    quota_threshold: int = field(default_factory=lambda: settings.submit_quota_threshold)

    generation_id: Optional[str] = None
    step: GenerationStep = GenerationStep.FORM
    prd: Optional[str] = None
    user_flows: Optional[str] = None
    task_file: Optional[str] = None
    lists: Optional[Dict[PromptCategory, List[str]]] = None
    error: Optional[str] = None
    is_submitting: bool = False

    def __post_init__(self):
        if self.worker is None:
            self.worker = PromptWorker(self.backend, progress_store=self.progress_store)

    @classmethod
    def from_record(cls, backend: GenerationBackend, record, **kwargs) -> "GenerationDriver":
        """Rebuild a driver from a stored generation record (resume after failure)."""
        form = WizardForm.model_validate(record.form_data or {})
        form = form.model_copy(update={
            "project_name": form.project_name or record.project_name,
            "selected_prompt_types": SelectedPromptTypes.from_categories(record.selected_prompt_types),
        })
        driver = cls(backend=backend, user_id=record.user_id, form=form, **kwargs)
        driver.generation_id = record.id
        driver.prd = record.prd
        driver.user_flows = record.user_flows
        driver.task_file = record.task_file
        lists = {c: list(getattr(record, c.list_field)) for c in PromptCategory
                 if getattr(record, c.list_field) is not None}
        driver.lists = lists or None
        driver.worker.seed(record.generated_prompts or {})
        driver.step = driver._furthest_step()
        return driver

    @classmethod
    async def resume(cls, backend: GenerationBackend, generation_id: str, user_id: str,
                     **kwargs) -> "GenerationDriver":
        """Load a stored generation and continue from its furthest completed stage."""
        record = await backend.get_generation(generation_id, user_id)
        driver = cls.from_record(backend, record, **kwargs)
        added = await driver.restore()
        log.info("Resuming at %s (%d cached prompts restored)", driver.step.value, added,
                 extra=driver._extra(driver.step))
        return driver

    # Helpers

    @property
    def categories(self) -> List[PromptCategory]:
        return self.form.categories()

    @property
    def form_data(self) -> Dict[str, Any]:
        return self.form.snapshot()

    def _extra(self, step: GenerationStep | str) -> dict:
        return ctx(self.generation_id, getattr(step, "value", step))

    def _furthest_step(self) -> GenerationStep:
        if self.lists:
            return GenerationStep.LISTS
        if self.task_file:
            return GenerationStep.TASKS
        if self.user_flows:
            return GenerationStep.USER_FLOWS
        if self.prd:
            return GenerationStep.PRD
        return GenerationStep.FORM

    def _require(self, stage: str, **inputs) -> None:
        missing = [name for name, value in inputs.items() if not value]
        if missing:
            raise MissingPrerequisiteError(stage, [m.replace("_", " ") for m in missing])

    def _fail(self, step: GenerationStep, e: Exception) -> None:
        self.error = str(e)
        log.error("Stage %s failed: %s", step.value, e, extra=self._extra(step))

    async def _approve(self, step: ApprovalStep) -> None:
        try:
            await self.backend.approve_step(self.generation_id, step)
        except Exception as e:
            log.warning("Could not record approval of %s: %s", step.value, e, extra=self._extra(step.value))

    async def _check_quota(self, minimum: int) -> None:
        stats = await self.backend.get_user_stats(self.user_id)
        if quota_blocked(stats, minimum):
            log.warning("Quota check failed: %d remaining, %d required", stats.remaining_prompts, minimum,
                        extra=self._extra(self.step))
            raise QuotaExceededError(
                f"Daily prompt limit reached: {stats.remaining_prompts} prompts remaining, "
                f"{minimum} required. Upgrade to Pro for unlimited prompts.",
                remaining=stats.remaining_prompts,
            )

    # Stages

    async def submit(self) -> str:
        """Create the generation record, then generate the PRD."""
        if self.is_submitting:
            raise ValidationError("Submission already in progress")
        if not self.form.project_name.strip():
            raise ValidationError("Project name is required")
        if not self.categories:
            raise ValidationError("Select at least one prompt type")

        self.is_submitting = True
        self.error = None
        try:
            await self._check_quota(self.quota_threshold)
            if self.generation_id is None:
                self.generation_id = await self.backend.create_generation(
                    self.user_id, self.form.project_name, self.form_data, self.categories)
                log.info("Created generation", extra=self._extra(GenerationStep.FORM))
        except Exception as e:
            self._fail(GenerationStep.FORM, e)
            raise
        finally:
            self.is_submitting = False

        return await self.generate_prd()

    async def generate_prd(self) -> str:
        step = GenerationStep.PRD
        self.error = None
        try:
            self._require("PRD", generation=self.generation_id)
            text = await self.backend.generate_prd(self.generation_id, self.user_id, self.form_data)
            if not text or not text.strip():
                raise EmptyResultError("PRD")
        except Exception as e:
            self._fail(step, e)
            raise
        self.prd = text
        self.step = step
        log.info("PRD ready", extra=self._extra(step))
        return text

    async def generate_user_flows(self) -> str:
        step = GenerationStep.USER_FLOWS
        self.error = None
        try:
            self._require("user flows", generation=self.generation_id, PRD=self.prd)
            text = await self.backend.generate_user_flows(
                self.generation_id, self.user_id, self.form_data, self.prd)
            if not text or not text.strip():
                raise EmptyResultError("User flows")
        except Exception as e:
            self._fail(step, e)
            raise
        self.user_flows = text
        self.step = step
        await self._approve(ApprovalStep.PRD)
        log.info("User flows ready", extra=self._extra(step))
        return text

    async def generate_tasks(self) -> str:
        step = GenerationStep.TASKS
        self.error = None
        try:
            self._require("tasks", generation=self.generation_id, PRD=self.prd, user_flows=self.user_flows)
            text = await self.backend.generate_task_file(
                self.generation_id, self.user_id, self.form_data, self.prd, self.user_flows)
            if not text or not text.strip():
                raise EmptyResultError("Task file")
        except Exception as e:
            self._fail(step, e)
            raise
        self.task_file = text
        self.step = step
        await self._approve(ApprovalStep.USER_FLOWS)
        log.info("Task file ready", extra=self._extra(step))
        return text

    async def generate_lists(self) -> Dict[PromptCategory, List[str]]:
        step = GenerationStep.LISTS
        self.error = None
        try:
            self._require("lists", generation=self.generation_id, PRD=self.prd,
                          user_flows=self.user_flows, task_file=self.task_file)
            lists = await self.backend.generate_lists(
                self.generation_id, self.user_id, self.form_data, self.prd, self.user_flows,
                self.task_file, self.categories)
            lists = {PromptCategory(c): [n for n in names if n and n.strip()] for c, names in (lists or {}).items()}
            if not any(lists.values()):
                raise EmptyResultError("Lists")
        except Exception as e:
            self._fail(step, e)
            raise
        self.lists = lists
        self.step = step
        await self._approve(ApprovalStep.TASKS)
        log.info("Lists ready: %s", {c.value: len(v) for c, v in lists.items()}, extra=self._extra(step))
        return lists

    async def generate_prompts(self) -> WorkerStatus:
        """Run the per-item loop; moves to ``summary`` once every item is done."""
        step = GenerationStep.PROMPTS
        self.error = None
        try:
            self._require("prompts", generation=self.generation_id, PRD=self.prd, user_flows=self.user_flows,
                          task_file=self.task_file, lists=self.lists)
            await self._check_quota(self.quota_threshold)
        except Exception as e:
            self._fail(step, e)
            raise

        self.step = step
        context = ItemContext(
            generation_id=self.generation_id,
            user_id=self.user_id,
            form_data=self.form_data,
            prd=self.prd,
            user_flows=self.user_flows,
            task_file=self.task_file,
            prebuilt_components=self.form.prebuilt_components,
        )
        status = await self.worker.run(context, self.lists, self.categories)

        if status is WorkerStatus.DONE:
            self.step = GenerationStep.SUMMARY
            log.info("All %d prompts generated", self.worker.completed_count, extra=self._extra(GenerationStep.SUMMARY))
        elif status is WorkerStatus.ERROR and self.worker.failure:
            self.error = self.worker.failure.describe()
        return status

    async def retry(self):
        """Re-run the next stage that has not completed."""
        if self.generation_id is None:
            return await self.submit()
        if not self.prd:
            return await self.generate_prd()
        if not self.user_flows:
            return await self.generate_user_flows()
        if not self.task_file:
            return await self.generate_tasks()
        if not self.lists:
            return await self.generate_lists()
        return await self.generate_prompts()

    async def run_all(self) -> WorkerStatus:
        """Run every remaining stage in order without pausing for review."""
        if self.generation_id is None:
            await self.submit()
        elif not self.prd:
            await self.generate_prd()
        if not self.user_flows:
            await self.generate_user_flows()
        if not self.task_file:
            await self.generate_tasks()
        if not self.lists:
            await self.generate_lists()
        return await self.generate_prompts()

    # Navigation

    def back_to(self, step: GenerationStep) -> None:
        """Return to an earlier step. Generated content is kept."""
        step = GenerationStep(step)
        if not step.is_before(self.step):
            raise ValidationError(f"Cannot go back from {self.step.value} to {step.value}")
        log.info("Back to %s", step.value, extra=self._extra(self.step))
        self.step = step
        self.error = None

    async def cancel(self) -> None:
        """
        Stop the item loop before its next item and mark the record cancelled.

        A remote call already in flight is not aborted; its result is still
        recorded when it arrives.
        """
        self.worker.cancel()
        self.is_submitting = False
        self.error = None
        if self.generation_id is None:
            return
        try:
            await self.backend.update_status(self.generation_id, GenerationStatus.CANCELLED)
            log.info("Generation cancelled", extra=self._extra(self.step))
        except Exception as e:
            log.warning("Could not record cancellation: %s", e, extra=self._extra(self.step))

    async def restore(self) -> int:
        """Seed item progress from the local cache, falling back to the backend."""
        if self.generation_id is None:
            return 0
        added = self.worker.restore(self.generation_id)
        if added:
            return added
        progress = await self.backend.get_progress(self.generation_id)
        if progress:
            added = self.worker.seed(progress.get("generated_prompts") or {})
        return added

    def result(self) -> GenerationResult:
        return GenerationResult(
            project_name=self.form.project_name,
            form=self.form,
            prd=self.prd,
            user_flows=self.user_flows,
            task_file=self.task_file,
            lists=dict(self.lists or {}),
            prompts={c: [item.to_dict() for item in items] for c, items in self.worker.generated.items()},
        )
