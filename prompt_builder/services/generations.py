from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol
from sqlalchemy import or_, update
from sqlalchemy.orm import Session
from prompt_builder.core.config import settings
from prompt_builder.core.errors import (
    ConflictError,
    EmptyResultError,
    GenerationCancelledError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from prompt_builder.core.logging import ctx
from prompt_builder.core.workflow import ApprovalStep, GenerationStatus, PromptCategory
from prompt_builder.db.models import AppBuilderGeneration
from prompt_builder.llm.parsing import parse_name_list
from prompt_builder.services import prompts
from prompt_builder.services.users import UserService

log = logging.getLogger(__name__)

MAX_PROJECT_NAME = 100


class LLM(Protocol):
    async def generate(self, prompt: str, tier: str = "free", model: Optional[str] = None) -> str: ...


def record_lists(gen: AppBuilderGeneration) -> Dict[PromptCategory, List[str]]:
    lists = {}
    for category in PromptCategory:
        value = getattr(gen, category.list_field)
        if value is not None:
            lists[category] = list(value)
    return lists


def total_items(gen: AppBuilderGeneration) -> int:
    return sum(len(v) for v in record_lists(gen).values())


def completed_items(gen: AppBuilderGeneration) -> int:
    return sum(len(v) for v in (gen.generated_prompts or {}).values())


class GenerationService:
    """Server-side operations on generation records."""

    def __init__(self, db: Session, llm: LLM, users: UserService | None = None):
        self.db = db
        self.llm = llm
        self.users = users or UserService(db)

    # Records

    def create_generation(self, user_id: str, project_name: str, form_data: Dict[str, Any],
                          selected_prompt_types: List[str]) -> str:
        if not project_name or not project_name.strip():
            raise ValidationError("INVALID_INPUT: Project name cannot be empty")
        if len(project_name) > MAX_PROJECT_NAME:
            raise ValidationError(f"INVALID_INPUT: Project name cannot exceed {MAX_PROJECT_NAME} characters")
        if not isinstance(form_data, dict):
            raise ValidationError("INVALID_INPUT: formData must be an object")
        categories = PromptCategory.ordered(selected_prompt_types or [])
        if not categories:
            raise ValidationError("INVALID_INPUT: At least one prompt type must be selected")

        gen = AppBuilderGeneration(
            user_id=user_id,
            project_name=project_name.strip(),
            form_data=form_data,
            selected_prompt_types=[c.value for c in categories],
            status=GenerationStatus.PRD_PENDING,
            generated_prompts={},
        )
        self.db.add(gen)
        self.db.commit()
        self.db.refresh(gen)
        log.info("Created generation for user %s", user_id, extra=ctx(gen.id, "form"))
        return gen.id

    def _load(self, generation_id: str) -> AppBuilderGeneration:
        # Other sessions may have changed the row (a cancel from the API while a worker runs).
        gen = self.db.get(AppBuilderGeneration, generation_id, populate_existing=True)
        if not gen:
            raise NotFoundError("RESOURCE_NOT_FOUND: Generation not found")
        return gen

    def get_generation(self, generation_id: str, user_id: Optional[str] = None) -> AppBuilderGeneration:
        gen = self._load(generation_id)
        if user_id is not None and gen.user_id != user_id:
            raise PermissionDeniedError("UNAUTHORIZED: Not authorized to access this generation (permission denied)")
        return gen

    def _active(self, generation_id: str, user_id: str, stage: str) -> AppBuilderGeneration:
        gen = self.get_generation(generation_id, user_id)
        if gen.status is GenerationStatus.CANCELLED:
            log.info("Refusing %s for cancelled generation", stage, extra=ctx(generation_id, stage))
            raise GenerationCancelledError("CANCELLED: Generation was cancelled")
        return gen

    # Workflow runs

    def claim_workflow(self, generation_id: str) -> None:
        """
        Mark a background workflow as running for this generation.

        Raises ``ConflictError`` when another run holds the claim. A claim older
        than ``workflow_stale_minutes`` is treated as abandoned.
        """
        now = datetime.utcnow()
        cutoff = now - timedelta(minutes=settings.workflow_stale_minutes)
        result = self.db.execute(
            update(AppBuilderGeneration)
            .where(AppBuilderGeneration.id == generation_id)
            .where(or_(AppBuilderGeneration.workflow_started_at.is_(None),
                       AppBuilderGeneration.workflow_started_at < cutoff))
            .values(workflow_started_at=now)
        )
        self.db.commit()
        if result.rowcount == 0:
            self._load(generation_id)
            raise ConflictError("ALREADY_RUNNING: A workflow is already running for this generation")
        log.info("Workflow claimed", extra=ctx(generation_id))

    def release_workflow(self, generation_id: str) -> None:
        self.db.execute(
            update(AppBuilderGeneration)
            .where(AppBuilderGeneration.id == generation_id)
            .values(workflow_started_at=None)
        )
        self.db.commit()

    def _patch(self, gen: AppBuilderGeneration, status: Optional[GenerationStatus] = None, **fields) -> None:
        if status is not None:
            gen.status = status
        for name, value in fields.items():
            setattr(gen, name, value)
        gen.updated_at = datetime.utcnow()
        self.db.commit()

    def _store_stage(self, gen: AppBuilderGeneration, status: Optional[GenerationStatus], **fields) -> None:
        """Store stage output; a cancellation recorded meanwhile keeps its status."""
        self.db.refresh(gen)
        if gen.status is GenerationStatus.CANCELLED:
            status = None
        self._patch(gen, status, **fields)

    def update_status(self, generation_id: str, status: GenerationStatus, **fields) -> None:
        gen = self._load(generation_id)
        self._patch(gen, GenerationStatus(status), **fields)
        log.info("Status -> %s", gen.status.value, extra=ctx(generation_id))

    def approve_step(self, generation_id: str, step: ApprovalStep) -> None:
        step = ApprovalStep(step)
        gen = self._load(generation_id)
        self._patch(gen, step.approved_status)
        log.info("Approved %s", step.value, extra=ctx(generation_id, step.value))

    # Stage generation

    def _tier(self, user_id: str) -> str:
        return "pro" if self.users.get_user_stats(user_id).is_pro else "free"

    async def _generate_text(self, user_id: str, prompt: str, stage_label: str, prompt_type: str) -> str:
        self.users.reserve_prompt_count(user_id, prompt_type)
        text = await self.llm.generate(prompt, self._tier(user_id))
        if not text or not text.strip():
            raise EmptyResultError(stage_label)
        return text

    async def generate_prd(self, generation_id: str, user_id: str, form_data: Dict[str, Any]) -> str:
        gen = self._active(generation_id, user_id, "prd")
        text = await self._generate_text(user_id, prompts.prd_prompt(form_data), "PRD", "prd")
        self._store_stage(gen, GenerationStatus.PRD_PENDING, prd=text)
        log.info("PRD generated (%d chars)", len(text), extra=ctx(generation_id, "prd"))
        return text

    async def generate_user_flows(self, generation_id: str, user_id: str, form_data: Dict[str, Any],
                                  prd: str) -> str:
        gen = self._active(generation_id, user_id, "user_flows")
        text = await self._generate_text(
            user_id, prompts.user_flows_prompt(form_data, prd), "User flows", "user_flows")
        self._store_stage(gen, GenerationStatus.USER_FLOWS_PENDING, user_flows=text)
        log.info("User flows generated (%d chars)", len(text), extra=ctx(generation_id, "user_flows"))
        return text

    async def generate_task_file(self, generation_id: str, user_id: str, form_data: Dict[str, Any],
                                 prd: str, user_flows: str) -> str:
        gen = self._active(generation_id, user_id, "tasks")
        text = await self._generate_text(
            user_id, prompts.task_file_prompt(form_data, prd, user_flows), "Task file", "tasks")
        self._store_stage(gen, GenerationStatus.TASKS_PENDING, task_file=text)
        log.info("Task file generated (%d chars)", len(text), extra=ctx(generation_id, "tasks"))
        return text

    async def generate_lists(self, generation_id: str, user_id: str, form_data: Dict[str, Any],
                             prd: str, user_flows: str,
                             selected_prompt_types: List[str]) -> Dict[PromptCategory, List[str]]:
        gen = self._active(generation_id, user_id, "lists")
        tier = self._tier(user_id)
        lists: Dict[PromptCategory, List[str]] = {}

        for category in PromptCategory.ordered(selected_prompt_types):
            text = await self.llm.generate(prompts.list_prompt(category, form_data, prd, user_flows), tier)
            if not text or not text.strip():
                raise EmptyResultError(f"{category.label} list")
            lists[category] = parse_name_list(text)

        total = sum(len(v) for v in lists.values())
        if total == 0:
            log.error("No items generated in any list", extra=ctx(generation_id, "lists"))
            raise EmptyResultError("Lists")

        self._store_stage(gen, GenerationStatus.GENERATING_PROMPTS,
                    **{category.list_field: names for category, names in lists.items()})
        log.info("Lists generated: %s", {c.value: len(v) for c, v in lists.items()},
                 extra=ctx(generation_id, "lists"))
        return lists

    async def generate_item_prompt(self, generation_id: str, user_id: str, item_type: PromptCategory,
                                   item_name: str, form_data: Dict[str, Any], prd: str, user_flows: str,
                                   task_file: str, prebuilt_components: Optional[str] = None) -> str:
        gen = self._active(generation_id, user_id, "prompts")
        category = PromptCategory(item_type)
        stored = self._stored_item(gen, category, item_name)
        if stored is not None:
            log.info("Returning stored %s prompt '%s'", category.value, item_name, extra=ctx(generation_id, "prompts"))
            return stored

        text = await self._generate_text(
            user_id,
            prompts.item_prompt(category, item_name, form_data, prd, user_flows, task_file, prebuilt_components),
            f"{category.value} prompt for '{item_name}'",
            category.value,
        )
        self._record_item(gen, category, item_name, text)
        return text

    @staticmethod
    def _stored_item(gen: AppBuilderGeneration, category: PromptCategory, title: str) -> Optional[str]:
        for item in (gen.generated_prompts or {}).get(category.value) or []:
            if item.get("title") == title:
                return item.get("prompt", "")
        return None

    def _record_item(self, gen: AppBuilderGeneration, category: PromptCategory, title: str, prompt: str) -> None:
        self.db.refresh(gen)
        current = {k: list(v) for k, v in (gen.generated_prompts or {}).items()}
        items = current.setdefault(category.value, [])
        if any(item.get("title") == title for item in items):
            return
        items.append({"title": title, "prompt": prompt, "order": len(items)})
        # Reassign so the JSON column is flagged dirty.
        self._patch(gen, generated_prompts=current)
        log.info("Stored %s prompt '%s'", category.value, title, extra=ctx(gen.id, "prompts"))

    # Progress

    def get_progress(self, generation_id: str) -> Optional[Dict[str, Any]]:
        gen = self.db.get(AppBuilderGeneration, generation_id, populate_existing=True)
        if not gen:
            return None
        total = total_items(gen)
        completed = completed_items(gen)
        return {
            "generation_id": gen.id,
            "status": gen.status,
            "completed_prompts": completed,
            "total_prompts": total,
            "progress": (completed / total) * 100 if total > 0 else 0.0,
            "generated_prompts": dict(gen.generated_prompts or {}),
            "lists": record_lists(gen),
            "last_error": gen.last_error,
        }
