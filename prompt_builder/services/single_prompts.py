from __future__ import annotations
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Type, TypeVar
import pydantic
from sqlalchemy.orm import Session
from prompt_builder.core.config import settings
from prompt_builder.core.errors import EmptyResultError, TransientError, ValidationError
from prompt_builder.core.retry import retry_with_backoff
from prompt_builder.core.workflow import SinglePromptKind
from prompt_builder.llm.parsing import parse_llm_json
from prompt_builder.schemas.prompts import (
    DEFAULT_VIDEO_DURATION,
    GenericPromptResult,
    ImagePromptResult,
    LLMResult,
    VideoPromptResult,
)
from prompt_builder.services import prompts
from prompt_builder.services.generations import LLM
from prompt_builder.services.users import UserService

log = logging.getLogger(__name__)

R = TypeVar("R", bound=LLMResult)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class SinglePromptService:
    """Generic, image and video prompts produced in a single LLM call."""

    def __init__(self, db: Session, llm: LLM, users: UserService | None = None,
                 attempts: int | None = None, base_delay: float | None = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.db = db
        self.llm = llm
        self.users = users or UserService(db)
        self.attempts = attempts if attempts is not None else settings.retry_attempts
        self.base_delay = base_delay if base_delay is not None else settings.retry_base_delay
        self.sleep = sleep

    async def _run(self, user_id: str, kind: SinglePromptKind, prompt: str, result_type: Type[R]) -> R:
        label = f"{kind.value.capitalize()} prompt"
        self.users.reserve_prompt_count(user_id, kind.value)
        tier = "pro" if self.users.get_user_stats(user_id).is_pro else "free"

        text = await retry_with_backoff(
            lambda: self.llm.generate(prompt, tier),
            attempts=self.attempts,
            base_delay=self.base_delay,
            sleep=self.sleep,
            label=label,
            extra={"stage": kind.value},
        )
        if not text or not text.strip():
            raise EmptyResultError(label)

        data = parse_llm_json(text, fallback=None)
        if not isinstance(data, dict):
            raise TransientError(f"{label} generation returned malformed JSON")
        try:
            result = result_type.model_validate(data)
        except pydantic.ValidationError as e:
            raise TransientError(f"{label} generation returned unexpected fields: {e.error_count()} errors") from e

        primary = next(iter(type(result).model_fields))
        if not getattr(result, primary).strip():
            raise EmptyResultError(label)
        log.info("%s generated for user %s", label, user_id, extra={"stage": kind.value})
        return result

    async def generate_generic(self, user_id: str, user_goal: str, context: Optional[str] = None,
                               output_format: Optional[str] = None,
                               tone: Optional[str] = None) -> GenericPromptResult:
        goal = _clean(user_goal)
        if not goal:
            raise ValidationError("INVALID_INPUT: Describe what the prompt should achieve")
        prompt = prompts.generic_prompt(goal, _clean(context), _clean(output_format), _clean(tone))
        return await self._run(user_id, SinglePromptKind.GENERIC, prompt, GenericPromptResult)

    async def generate_image(self, user_id: str, description: str, style: Optional[str] = None,
                             mood: Optional[str] = None, details: Sequence[str] = ()) -> ImagePromptResult:
        description = _clean(description)
        if not description:
            raise ValidationError("INVALID_INPUT: Image description cannot be empty")
        # Tags keep their first-seen order.
        tags = list(dict.fromkeys(t.strip() for t in details or [] if t and t.strip()))
        prompt = prompts.image_prompt(description, _clean(style), _clean(mood), ", ".join(tags) or None)
        return await self._run(user_id, SinglePromptKind.IMAGE, prompt, ImagePromptResult)

    async def generate_video(self, user_id: str, description: str, style: Optional[str] = None,
                             mood: Optional[str] = None, duration: Optional[str] = DEFAULT_VIDEO_DURATION,
                             audio: Optional[str] = None) -> VideoPromptResult:
        description = _clean(description)
        if not description:
            raise ValidationError("INVALID_INPUT: Video description cannot be empty")
        prompt = prompts.video_prompt(description, _clean(style), _clean(mood), _clean(duration), _clean(audio))
        return await self._run(user_id, SinglePromptKind.VIDEO, prompt, VideoPromptResult)
