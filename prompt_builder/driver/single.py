"""Single-action prompt pages: one pre-flight quota read, then one remote call."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Type, TypeVar
from prompt_builder.core.config import settings
from prompt_builder.core.errors import QuotaExceededError, ValidationError
from prompt_builder.core.workflow import SinglePromptKind
from prompt_builder.driver.backend import GenerationBackend, quota_blocked
from prompt_builder.schemas.prompts import (
    DEFAULT_VIDEO_DURATION,
    GenericPromptResult,
    ImagePromptResult,
    LLMResult,
    VideoPromptResult,
)

log = logging.getLogger(__name__)

R = TypeVar("R", bound=LLMResult)


@dataclass
class SinglePromptClient:
    backend: GenerationBackend
    user_id: str
    # Free users are refused once remaining prompts drop to this value.
    quota_threshold: int = field(default_factory=lambda: settings.single_quota_threshold)
    is_generating: bool = False

    async def _check_quota(self, kind: SinglePromptKind) -> None:
        stats = await self.backend.get_user_stats(self.user_id)
        if quota_blocked(stats, self.quota_threshold + 1):
            log.warning("Quota check failed: %d remaining", stats.remaining_prompts, extra={"stage": kind.value})
            raise QuotaExceededError("Daily limit reached. Please upgrade to continue.",
                                     remaining=stats.remaining_prompts)

    async def _generate(self, kind: SinglePromptKind, required: str, fields: Dict[str, Any],
                        result_type: Type[R]) -> R:
        if not (fields.get(required) or "").strip():
            raise ValidationError(f"{required.replace('_', ' ').capitalize()} is required")
        if self.is_generating:
            raise ValidationError("Generation already in progress")

        self.is_generating = True
        try:
            await self._check_quota(kind)
            data = await self.backend.generate_single_prompt(kind, self.user_id, fields)
        finally:
            self.is_generating = False
        return result_type.model_validate(data)

    async def generic(self, user_goal: str, context: Optional[str] = None, output_format: Optional[str] = None,
                      tone: Optional[str] = None) -> GenericPromptResult:
        fields = {"user_goal": user_goal, "context": context, "output_format": output_format, "tone": tone}
        return await self._generate(SinglePromptKind.GENERIC, "user_goal", fields, GenericPromptResult)

    async def image(self, description: str, style: Optional[str] = None, mood: Optional[str] = None,
                    details: Sequence[str] = ()) -> ImagePromptResult:
        fields = {"description": description, "style": style, "mood": mood, "details": list(details)}
        return await self._generate(SinglePromptKind.IMAGE, "description", fields, ImagePromptResult)

    async def video(self, description: str, style: Optional[str] = None, mood: Optional[str] = None,
                    duration: Optional[str] = DEFAULT_VIDEO_DURATION,
                    audio: Optional[str] = None) -> VideoPromptResult:
        fields = {"description": description, "style": style, "mood": mood, "duration": duration, "audio": audio}
        return await self._generate(SinglePromptKind.VIDEO, "description", fields, VideoPromptResult)
