"""Per-item prompt loop.

``PromptWorker`` drains a queue of pending items one at a time. Its state is
explicit: a status, the pending queue and the map of completed items. Only
one ``run`` is active at a time; a second call while generating is dropped.
"""
from __future__ import annotations
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Set, Tuple
from prompt_builder.core.config import settings
from prompt_builder.core.errors import EmptyResultError, GenerationCancelledError
from prompt_builder.core.logging import ctx
from prompt_builder.core.retry import retry_with_backoff, with_timeout
from prompt_builder.core.workflow import PromptCategory
from prompt_builder.driver.backend import GenerationBackend
from prompt_builder.driver.stores import ProgressStore

log = logging.getLogger(__name__)

ItemKey = Tuple[PromptCategory, str]


class WorkerStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    ERROR = "error"
    CANCELLED = "cancelled"
    DONE = "done"


@dataclass(frozen=True)
class PendingItem:
    category: PromptCategory
    title: str
    index: int


@dataclass
class GeneratedItem:
    title: str
    prompt: str
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "prompt": self.prompt, "order": self.order}


@dataclass(frozen=True)
class ItemFailure:
    category: PromptCategory
    title: str
    message: str

    def describe(self) -> str:
        return f"Failed to generate {self.category.value} prompt for '{self.title}': {self.message}"


@dataclass(frozen=True)
class ItemContext:
    """Everything the remote item call needs besides the item itself."""
    generation_id: str
    user_id: str
    form_data: Dict[str, Any]
    prd: str
    user_flows: str
    task_file: str
    prebuilt_components: Optional[str] = None


class CancelToken:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class PromptWorker:
    backend: GenerationBackend
    progress_store: Optional[ProgressStore] = None
    attempts: int = field(default_factory=lambda: settings.retry_attempts)
    base_delay: float = field(default_factory=lambda: settings.retry_base_delay)
    timeout: float = field(default_factory=lambda: settings.item_timeout_seconds)
    item_delay: float = field(default_factory=lambda: settings.item_delay_seconds)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    status: WorkerStatus = WorkerStatus.IDLE
    queue: Deque[PendingItem] = field(default_factory=deque)
    generated: Dict[PromptCategory, List[GeneratedItem]] = field(default_factory=dict)
    completed: Set[ItemKey] = field(default_factory=set)
    failure: Optional[ItemFailure] = None
    current: Optional[PendingItem] = None
    total: int = 0
    token: CancelToken = field(default_factory=CancelToken)

    # State

    def seed(self, generated_prompts: Mapping[str, Iterable[Mapping[str, Any]]]) -> int:
        """Merge previously generated prompts; returns how many were added."""
        added = 0
        for raw_category, items in (generated_prompts or {}).items():
            category = PromptCategory(raw_category)
            for item in items or []:
                title = item.get("title")
                if not title or (category, title) in self.completed:
                    continue
                self._append(category, title, item.get("prompt", ""))
                added += 1
        return added

    def restore(self, generation_id: str) -> int:
        if not self.progress_store:
            return 0
        cached = self.progress_store.load(generation_id)
        if not cached:
            return 0
        added = self.seed(cached)
        log.info("Restored %d cached prompts", added, extra=ctx(generation_id, "prompts"))
        return added

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        return {c.value: [item.to_dict() for item in items] for c, items in self.generated.items()}

    def plan(self, lists: Mapping[PromptCategory, Iterable[str]], categories: Iterable[PromptCategory]) -> int:
        """Queue every not-yet-generated item of the selected categories in fixed order."""
        self.queue.clear()
        selected = PromptCategory.ordered(categories)
        done = 0
        for category in selected:
            seen: Set[str] = set()
            for index, title in enumerate(lists.get(category) or []):
                if title in seen:
                    continue
                seen.add(title)
                if (category, title) in self.completed:
                    done += 1
                else:
                    self.queue.append(PendingItem(category, title, index))
        self.total = done + len(self.queue)
        return len(self.queue)

    @property
    def completed_count(self) -> int:
        return sum(len(items) for items in self.generated.values())

    @property
    def progress(self) -> float:
        if self.total == 0:
            return 0.0
        return min(100.0, (self.total - len(self.queue)) / self.total * 100)

    def cancel(self) -> None:
        self.token.cancel()

    def _append(self, category: PromptCategory, title: str, prompt: str) -> GeneratedItem:
        items = self.generated.setdefault(category, [])
        item = GeneratedItem(title=title, prompt=prompt, order=len(items))
        items.append(item)
        self.completed.add((category, title))
        return item

    # Loop

    async def run(self, context: ItemContext, lists: Mapping[PromptCategory, Iterable[str]],
                  categories: Iterable[PromptCategory]) -> WorkerStatus:
        extra = ctx(context.generation_id, "prompts")
        if self.status is WorkerStatus.GENERATING:
            log.info("Prompt generation already in progress, dropping duplicate run", extra=extra)
            return self.status

        self.status = WorkerStatus.GENERATING
        self.failure = None
        self.token = CancelToken()
        self.plan(lists, categories)
        log.info("Generating %d item prompts (%d already done)", len(self.queue),
                 self.total - len(self.queue), extra=extra)

        try:
            while self.queue:
                if self.token.cancelled:
                    log.info("Prompt generation cancelled with %d items pending", len(self.queue), extra=extra)
                    self.status = WorkerStatus.CANCELLED
                    return self.status

                item = self.queue.popleft()
                if (item.category, item.title) in self.completed:
                    log.info("Skipping already generated %s '%s'", item.category.value, item.title, extra=extra)
                    continue

                self.current = item
                try:
                    prompt = await self._generate(context, item, extra)
                except GenerationCancelledError:
                    self.queue.appendleft(item)
                    self.status = WorkerStatus.CANCELLED
                    log.info("Generation was cancelled remotely with %d items pending", len(self.queue), extra=extra)
                    return self.status
                except Exception as e:
                    self.queue.appendleft(item)
                    self.failure = ItemFailure(item.category, item.title, str(e))
                    self.status = WorkerStatus.ERROR
                    log.error(self.failure.describe(), extra=extra)
                    return self.status

                self._append(item.category, item.title, prompt)
                if self.progress_store:
                    self.progress_store.save(context.generation_id, self.snapshot())
                log.info("Generated %s prompt '%s' (%d/%d)", item.category.value, item.title,
                         self.total - len(self.queue), self.total, extra=extra)

                if self.item_delay and self.queue:
                    await self.sleep(self.item_delay)

            self.status = WorkerStatus.DONE
            return self.status
        finally:
            self.current = None
            if self.status is WorkerStatus.GENERATING:
                self.status = WorkerStatus.IDLE

    async def _generate(self, context: ItemContext, item: PendingItem, extra: dict) -> str:
        what = f"{item.category.value} prompt for '{item.title}'"
        title = what[:1].upper() + what[1:]

        async def attempt() -> str:
            return await with_timeout(
                self.backend.generate_item_prompt(
                    context.generation_id,
                    context.user_id,
                    item.category,
                    item.title,
                    context.form_data,
                    context.prd,
                    context.user_flows,
                    context.task_file,
                    context.prebuilt_components,
                ),
                self.timeout,
                what=title,
            )

        prompt = await retry_with_backoff(
            attempt,
            attempts=self.attempts,
            base_delay=self.base_delay,
            sleep=self.sleep,
            label=what,
            extra=extra,
        )
        if not prompt or not prompt.strip():
            raise EmptyResultError(title)
        return prompt
