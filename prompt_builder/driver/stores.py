"""Client-local persisted state: wizard snapshots and generation progress."""
from __future__ import annotations
import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from prompt_builder.core.config import settings
from prompt_builder.schemas.form import WizardForm

log = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")

PREFILL_KEY = "wizard-prefill"


class KeyValueStore:
    """One JSON file per key under ``root``; writes replace the file atomically."""

    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.state_dir)

    def _path(self, key: str) -> Path:
        return self.root / f"{_UNSAFE.sub('_', key)}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            log.warning("Discarding unreadable state file %s", path)
            path.unlink(missing_ok=True)
            return None

    def set(self, key: str, value: Any) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class FormStore:
    """Wizard snapshots, one key per wizard, plus a one-shot prefill payload."""

    def __init__(self, kv: KeyValueStore, wizard: str = "cursor-builder"):
        self.kv = kv
        self.key = f"form-{wizard}"

    def save(self, form: WizardForm) -> None:
        self.kv.set(self.key, form.snapshot())

    def load(self) -> WizardForm:
        data = self.kv.get(self.key)
        if not isinstance(data, dict):
            return WizardForm()
        return WizardForm.model_validate(data)

    def clear(self) -> None:
        self.kv.delete(self.key)

    def put_prefill(self, payload: Dict[str, Any]) -> None:
        self.kv.set(PREFILL_KEY, payload)

    def take_prefill(self) -> Optional[Dict[str, Any]]:
        payload = self.kv.get(PREFILL_KEY)
        self.kv.delete(PREFILL_KEY)
        return payload


class ProgressStore:
    """Per-generation cache of generated prompts with a freshness window."""

    def __init__(self, kv: KeyValueStore, ttl_hours: float | None = None,
                 clock: Callable[[], float] = time.time):
        self.kv = kv
        self.ttl_seconds = (ttl_hours if ttl_hours is not None else settings.progress_ttl_hours) * 3600
        self.clock = clock

    @staticmethod
    def _key(generation_id: str) -> str:
        return f"generation-progress-{generation_id}"

    def save(self, generation_id: str, generated_prompts: Dict[str, List[Dict[str, Any]]]) -> None:
        self.kv.set(self._key(generation_id), {
            "generation_id": generation_id,
            "saved_at": self.clock(),
            "generated_prompts": generated_prompts,
        })

    def load(self, generation_id: str) -> Optional[Dict[str, List[Dict[str, Any]]]]:
        entry = self.kv.get(self._key(generation_id))
        if not isinstance(entry, dict):
            return None
        age = self.clock() - float(entry.get("saved_at", 0))
        if age > self.ttl_seconds:
            log.info("Dropping stale progress cache (%.1fh old)", age / 3600,
                     extra={"generation_id": generation_id, "stage": "prompts"})
            self.kv.delete(self._key(generation_id))
            return None
        return entry.get("generated_prompts") or {}

    def clear(self, generation_id: str) -> None:
        self.kv.delete(self._key(generation_id))
