from __future__ import annotations
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict
from sqlalchemy.orm import Session
from prompt_builder.core.config import settings
from prompt_builder.core.errors import QuotaExceededError
from prompt_builder.db.models import User

log = logging.getLogger(__name__)

UNLIMITED = sys.maxsize


def utc_day_key(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%d")


@dataclass
class UserStats:
    user_id: str
    is_pro: bool
    remaining_prompts: int
    prompts_today: int
    total_prompts: int
    prompt_type_breakdown: Dict[str, int]


class UserService:
    """Owns users and their daily prompt quota."""

    def __init__(self, db: Session, daily_limit: int | None = None, clock: Callable[[], datetime] | None = None):
        self.db = db
        self.daily_limit = daily_limit if daily_limit is not None else settings.daily_free_prompt_limit
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def get_or_create_user(self, clerk_id: str, email: str = "") -> User:
        user = self.db.get(User, clerk_id)
        if user:
            return user
        user = User(clerk_id=clerk_id, email=email, prompt_type_breakdown={})
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        log.info("Created user %s", clerk_id)
        return user

    def _prompts_today(self, user: User) -> int:
        if user.last_prompt_reset_date != utc_day_key(self.clock()):
            return 0
        return user.prompts_created_today or 0

    def get_user_stats(self, user_id: str) -> UserStats:
        user = self.db.get(User, user_id)
        if not user:
            return UserStats(user_id, False, self.daily_limit, 0, 0, {})

        today = self._prompts_today(user)
        remaining = UNLIMITED if user.is_pro else max(0, self.daily_limit - today)
        return UserStats(
            user_id=user_id,
            is_pro=user.is_pro,
            remaining_prompts=remaining,
            prompts_today=today,
            total_prompts=user.total_prompts or 0,
            prompt_type_breakdown=dict(user.prompt_type_breakdown or {}),
        )

    def reserve_prompt_count(self, user_id: str, prompt_type: str = "generic") -> int:
        """
        Check the limit and count one prompt in the same transaction.

        Returns the remaining quota after the reservation.
        """
        user = self.get_or_create_user(user_id)
        key = utc_day_key(self.clock())
        today = self._prompts_today(user)

        if not user.is_pro and today >= self.daily_limit:
            log.warning("Prompt limit reached for user %s (%d/%d)", user_id, today, self.daily_limit)
            raise QuotaExceededError(remaining=0)

        user.prompts_created_today = today + 1
        user.last_prompt_reset_date = key
        user.total_prompts = (user.total_prompts or 0) + 1
        breakdown = dict(user.prompt_type_breakdown or {})
        breakdown[prompt_type] = breakdown.get(prompt_type, 0) + 1
        user.prompt_type_breakdown = breakdown
        self.db.commit()

        return UNLIMITED if user.is_pro else self.daily_limit - user.prompts_created_today
