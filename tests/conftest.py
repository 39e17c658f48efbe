import os
import tempfile

# Settings are read at import time; point them at throwaway locations first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STATE_DIR", tempfile.mkdtemp(prefix="prompt-builder-state-"))

from unittest.mock import AsyncMock
import pytest
from prompt_builder.core.errors import NotFoundError
from prompt_builder.driver.backend import GenerationBackend, UsageStats


class FakeBackend(GenerationBackend):
    """In-memory backend; every remote operation is an AsyncMock."""
    def __init__(self, remaining: int = 20, is_pro: bool = False):
        self.create_generation = AsyncMock(return_value="gen-1")
        self.generate_prd = AsyncMock(return_value="# PRD\nA planner.")
        self.generate_user_flows = AsyncMock(return_value="# Flows\nSign in, plan.")
        self.generate_task_file = AsyncMock(return_value="# Tasks\n1. Scaffold")
        self.generate_lists = AsyncMock(return_value={"frontend": ["Home Screen", "Settings Screen"]})
        self.generate_item_prompt = AsyncMock(side_effect=self._item_prompt)
        self.approve_step = AsyncMock(return_value=None)
        self.update_status = AsyncMock(return_value=None)
        self.get_progress = AsyncMock(return_value=None)
        self.get_user_stats = AsyncMock(return_value=UsageStats(remaining_prompts=remaining, is_pro=is_pro))
        self.get_generation = AsyncMock(side_effect=NotFoundError("RESOURCE_NOT_FOUND: Generation not found"))
        self.generate_single_prompt = AsyncMock(return_value={})

    @staticmethod
    def _item_prompt(generation_id, user_id, item_type, item_name, *args, **kwargs):
        return f"Build the {item_name}"

    def item_names(self):
        return [c.args[3] for c in self.generate_item_prompt.await_args_list]


@pytest.fixture
def backend():
    return FakeBackend()
