"""The remote operations the generation driver depends on.

``ServiceBackend`` calls the generation service in-process (used by the
Celery worker); ``HttpBackend`` talks to the HTTP API. Both raise the typed
errors of ``prompt_builder.core.errors``.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import httpx
from prompt_builder.core.config import settings
from prompt_builder.core.errors import NotFoundError, TransientError, error_from_payload
from prompt_builder.core.workflow import ApprovalStep, GenerationStatus, PromptCategory, SinglePromptKind
from prompt_builder.services.single_prompts import SinglePromptService


@dataclass(frozen=True)
class UsageStats:
    remaining_prompts: int
    is_pro: bool


@dataclass
class GenerationSnapshot:
    """A stored generation as the driver sees it; attribute names follow the database record."""
    id: str
    user_id: str
    project_name: str
    status: GenerationStatus
    form_data: Dict[str, Any] = field(default_factory=dict)
    selected_prompt_types: List[str] = field(default_factory=list)
    prd: Optional[str] = None
    user_flows: Optional[str] = None
    task_file: Optional[str] = None
    screen_list: Optional[List[str]] = None
    endpoint_list: Optional[List[str]] = None
    security_feature_list: Optional[List[str]] = None
    functionality_feature_list: Optional[List[str]] = None
    error_scenario_list: Optional[List[str]] = None
    generated_prompts: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record) -> "GenerationSnapshot":
        return cls(
            id=record.id,
            user_id=record.user_id,
            project_name=record.project_name,
            status=GenerationStatus(record.status),
            form_data=dict(record.form_data or {}),
            selected_prompt_types=list(record.selected_prompt_types or []),
            prd=record.prd,
            user_flows=record.user_flows,
            task_file=record.task_file,
            generated_prompts={k: list(v) for k, v in (record.generated_prompts or {}).items()},
            **{c.list_field: _copy_list(getattr(record, c.list_field)) for c in PromptCategory},
        )

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "GenerationSnapshot":
        """Build from a ``GET /generations/{id}`` response body."""
        lists = {PromptCategory(k).list_field: list(v) for k, v in (data.get("lists") or {}).items()}
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            project_name=data["project_name"],
            status=GenerationStatus(data["status"]),
            form_data=data.get("form_data") or {},
            selected_prompt_types=list(data.get("selected_prompt_types") or []),
            prd=data.get("prd"),
            user_flows=data.get("user_flows"),
            task_file=data.get("task_file"),
            generated_prompts=data.get("generated_prompts") or {},
            **lists,
        )


def _copy_list(value) -> Optional[List[str]]:
    return None if value is None else list(value)


def quota_blocked(stats: UsageStats, minimum: int) -> bool:
    """True when a free user has fewer than ``minimum`` prompts left."""
    return not stats.is_pro and stats.remaining_prompts < minimum


class GenerationBackend:
    async def create_generation(self, user_id: str, project_name: str, form_data: Dict[str, Any],
                                selected_prompt_types: List[PromptCategory]) -> str:
        raise NotImplementedError

    async def generate_prd(self, generation_id: str, user_id: str, form_data: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def generate_user_flows(self, generation_id: str, user_id: str, form_data: Dict[str, Any],
                                  prd: str) -> str:
        raise NotImplementedError

    async def generate_task_file(self, generation_id: str, user_id: str, form_data: Dict[str, Any],
                                 prd: str, user_flows: str) -> str:
        raise NotImplementedError

    async def generate_lists(self, generation_id: str, user_id: str, form_data: Dict[str, Any],
                             prd: str, user_flows: str, task_file: str,
                             selected_prompt_types: List[PromptCategory]) -> Dict[PromptCategory, List[str]]:
        raise NotImplementedError

    async def generate_item_prompt(self, generation_id: str, user_id: str, item_type: PromptCategory,
                                   item_name: str, form_data: Dict[str, Any], prd: str, user_flows: str,
                                   task_file: str, prebuilt_components: Optional[str] = None) -> str:
        raise NotImplementedError

    async def approve_step(self, generation_id: str, step: ApprovalStep) -> None:
        raise NotImplementedError

    async def update_status(self, generation_id: str, status: GenerationStatus) -> None:
        raise NotImplementedError

    async def get_progress(self, generation_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def get_generation(self, generation_id: str, user_id: str) -> GenerationSnapshot:
        raise NotImplementedError

    async def get_user_stats(self, user_id: str) -> UsageStats:
        raise NotImplementedError

    async def generate_single_prompt(self, kind: SinglePromptKind, user_id: str,
                                     fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class ServiceBackend(GenerationBackend):
    def __init__(self, service, single: SinglePromptService | None = None):
        self.service = service
        self.single = single or SinglePromptService(service.db, service.llm, service.users)

    async def create_generation(self, user_id, project_name, form_data, selected_prompt_types):
        return self.service.create_generation(user_id, project_name, form_data,
                                              [PromptCategory(c).value for c in selected_prompt_types])

    async def generate_prd(self, generation_id, user_id, form_data):
        return await self.service.generate_prd(generation_id, user_id, form_data)

    async def generate_user_flows(self, generation_id, user_id, form_data, prd):
        return await self.service.generate_user_flows(generation_id, user_id, form_data, prd)

    async def generate_task_file(self, generation_id, user_id, form_data, prd, user_flows):
        return await self.service.generate_task_file(generation_id, user_id, form_data, prd, user_flows)

    async def generate_lists(self, generation_id, user_id, form_data, prd, user_flows, task_file,
                             selected_prompt_types):
        return await self.service.generate_lists(generation_id, user_id, form_data, prd, user_flows,
                                                 [PromptCategory(c).value for c in selected_prompt_types])

    async def generate_item_prompt(self, generation_id, user_id, item_type, item_name, form_data, prd,
                                   user_flows, task_file, prebuilt_components=None):
        return await self.service.generate_item_prompt(generation_id, user_id, item_type, item_name,
                                                       form_data, prd, user_flows, task_file,
                                                       prebuilt_components)

    async def approve_step(self, generation_id, step):
        self.service.approve_step(generation_id, step)

    async def update_status(self, generation_id, status):
        self.service.update_status(generation_id, status)

    async def get_progress(self, generation_id):
        return self.service.get_progress(generation_id)

    async def get_generation(self, generation_id, user_id):
        return GenerationSnapshot.from_record(self.service.get_generation(generation_id, user_id))

    async def get_user_stats(self, user_id):
        stats = self.service.users.get_user_stats(user_id)
        return UsageStats(remaining_prompts=stats.remaining_prompts, is_pro=stats.is_pro)

    async def generate_single_prompt(self, kind, user_id, fields):
        generate = getattr(self.single, f"generate_{SinglePromptKind(kind).value}")
        result = await generate(user_id, **fields)
        return result.model_dump()


class HttpBackend(GenerationBackend):
    """Client for the ``/v1`` HTTP API."""

    def __init__(self, base_url: str | None = None, timeout: float = 180.0,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, json: dict | None = None,
                       params: dict | None = None) -> Any:
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout,
                                         transport=self.transport) as client:
                r = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise TransientError(f"{method} {path} failed: {e}") from e

        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            if isinstance(payload, dict) and isinstance(payload.get("detail"), dict):
                payload = payload["detail"]
            raise error_from_payload(r.status_code, payload if isinstance(payload, dict) else {})
        if not r.content:
            return None
        return r.json()

    async def create_generation(self, user_id, project_name, form_data, selected_prompt_types):
        data = await self._request("POST", "/generations", json={
            "user_id": user_id,
            "project_name": project_name,
            "form_data": form_data,
            "selected_prompt_types": [PromptCategory(c).value for c in selected_prompt_types],
        })
        return data["generation_id"]

    async def generate_prd(self, generation_id, user_id, form_data):
        data = await self._request("POST", f"/generations/{generation_id}/prd",
                                   json={"user_id": user_id, "form_data": form_data})
        return data["text"]

    async def generate_user_flows(self, generation_id, user_id, form_data, prd):
        data = await self._request("POST", f"/generations/{generation_id}/user-flows",
                                   json={"user_id": user_id, "form_data": form_data, "prd": prd})
        return data["text"]

    async def generate_task_file(self, generation_id, user_id, form_data, prd, user_flows):
        data = await self._request("POST", f"/generations/{generation_id}/task-file", json={
            "user_id": user_id, "form_data": form_data, "prd": prd, "user_flows": user_flows,
        })
        return data["text"]

    async def generate_lists(self, generation_id, user_id, form_data, prd, user_flows, task_file,
                             selected_prompt_types):
        data = await self._request("POST", f"/generations/{generation_id}/lists", json={
            "user_id": user_id,
            "form_data": form_data,
            "prd": prd,
            "user_flows": user_flows,
            "task_file": task_file,
            "selected_prompt_types": [PromptCategory(c).value for c in selected_prompt_types],
        })
        return {PromptCategory(k): list(v) for k, v in data["lists"].items()}

    async def generate_item_prompt(self, generation_id, user_id, item_type, item_name, form_data, prd,
                                   user_flows, task_file, prebuilt_components=None):
        data = await self._request("POST", f"/generations/{generation_id}/item-prompt", json={
            "user_id": user_id,
            "item_type": PromptCategory(item_type).value,
            "item_name": item_name,
            "form_data": form_data,
            "prd": prd,
            "user_flows": user_flows,
            "task_file": task_file,
            "prebuilt_components": prebuilt_components,
        })
        return data["prompt"]

    async def approve_step(self, generation_id, step):
        await self._request("POST", f"/generations/{generation_id}/approve",
                            json={"step": ApprovalStep(step).value})

    async def update_status(self, generation_id, status):
        await self._request("PATCH", f"/generations/{generation_id}/status",
                            json={"status": GenerationStatus(status).value})

    async def get_progress(self, generation_id):
        try:
            return await self._request("GET", f"/generations/{generation_id}/progress")
        except NotFoundError:
            return None

    async def get_user_stats(self, user_id):
        data = await self._request("GET", f"/users/{user_id}/stats")
        return UsageStats(remaining_prompts=int(data["remaining_prompts"]), is_pro=bool(data["is_pro"]))

    async def get_generation(self, generation_id, user_id):
        data = await self._request("GET", f"/generations/{generation_id}", params={"user_id": user_id})
        return GenerationSnapshot.from_payload(data)

    async def generate_single_prompt(self, kind, user_id, fields):
        return await self._request("POST", f"/prompts/{SinglePromptKind(kind).value}",
                                   json={"user_id": user_id, **fields})
