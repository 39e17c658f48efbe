"""HTTP API with the database and LLM dependencies overridden."""
import asyncio
import io
import zipfile
from unittest.mock import patch
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from prompt_builder.api.deps import get_llm
from prompt_builder.db.session import Base, get_db
from prompt_builder.driver.backend import HttpBackend
from prompt_builder.driver.engine import GenerationDriver
from prompt_builder.driver.worker import PromptWorker, WorkerStatus
from prompt_builder.core.workflow import GenerationStep, PromptCategory
from prompt_builder.main import app
from prompt_builder.schemas.form import SelectedPromptTypes, WizardForm


class FakeLLM:
    def __init__(self):
        self.prompts = []

    async def generate(self, prompt, tier="free", model=None):
        self.prompts.append(prompt)
        if "Return ONLY a JSON array" in prompt:
            return '["Home Screen", "Settings Screen"]'
        if "midjourneyPrompt" in prompt:
            return '```json\n{"midjourneyPrompt": "lighthouse --ar 16:9", "dallePrompt": "a lighthouse", ' \
                   '"stableDiffusionPrompt": "lighthouse, dawn", "tips": ["add lens"], "negativePrompts": ["blurry"]}\n```'
        return f"generated #{len(self.prompts)}"


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def client(llm):
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_llm] = lambda: llm
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        engine.dispose()


def _create(client, **overrides):
    body = {
        "user_id": "user-1",
        "project_name": "Recipe Planner",
        "form_data": {"projectName": "Recipe Planner"},
        "selected_prompt_types": ["frontend"],
    }
    body.update(overrides)
    return client.post("/v1/generations", json=body)


def test_create_and_get_generation(client):
    r = _create(client)
    assert r.status_code == 200
    generation_id = r.json()["generation_id"]

    r = client.get(f"/v1/generations/{generation_id}", params={"user_id": "user-1"})
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "prd_pending"
    assert data["selected_prompt_types"] == ["frontend"]


def test_validation_error_uses_error_body(client):
    r = _create(client, project_name="  ")
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_INPUT"


def test_other_users_generation_is_forbidden(client):
    generation_id = _create(client).json()["generation_id"]
    r = client.get(f"/v1/generations/{generation_id}", params={"user_id": "intruder"})
    assert r.status_code == 403
    assert r.json()["code"] == "UNAUTHORIZED"


def test_prd_stage_and_user_stats(client):
    generation_id = _create(client).json()["generation_id"]
    r = client.post(f"/v1/generations/{generation_id}/prd",
                    json={"user_id": "user-1", "form_data": {"projectName": "Recipe Planner"}})
    assert r.status_code == 200
    assert r.json()["text"] == "generated #1"

    stats = client.get("/v1/users/user-1/stats").json()
    assert stats["prompts_today"] == 1
    assert stats["prompt_type_breakdown"] == {"prd": 1}


def test_progress_for_unknown_generation_is_404(client):
    r = client.get("/v1/generations/missing/progress")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "RESOURCE_NOT_FOUND"


def test_run_enqueues_workflow(client):
    generation_id = _create(client).json()["generation_id"]
    with patch("prompt_builder.api.routes_generations.run_generation_workflow") as task:
        r = client.post(f"/v1/generations/{generation_id}/run", params={"user_id": "user-1"})
    assert r.status_code == 202
    task.delay.assert_called_once_with(generation_id)


def test_approve_and_status_update(client):
    generation_id = _create(client).json()["generation_id"]
    assert client.post(f"/v1/generations/{generation_id}/approve", json={"step": "prd"}).json() == {"ok": True}
    client.patch(f"/v1/generations/{generation_id}/status", json={"status": "cancelled"})
    data = client.get(f"/v1/generations/{generation_id}", params={"user_id": "user-1"}).json()
    assert data["status"] == "cancelled"


def test_driver_over_http_runs_to_summary_and_exports(client, llm):
    async def no_sleep(delay):
        return None

    backend = HttpBackend("http://testserver/v1", transport=httpx.ASGITransport(app=app))
    form = WizardForm(project_name="Recipe Planner",
                      selected_prompt_types=SelectedPromptTypes.from_categories(["frontend"]))
    driver = GenerationDriver(backend=backend, user_id="user-1", form=form,
                              worker=PromptWorker(backend, sleep=no_sleep, item_delay=0))

    status = asyncio.run(driver.run_all())

    assert status is WorkerStatus.DONE
    assert driver.step is GenerationStep.SUMMARY
    assert driver.lists == {PromptCategory.FRONTEND: ["Home Screen", "Settings Screen"]}

    progress = client.get(f"/v1/generations/{driver.generation_id}/progress").json()
    assert progress["completed_prompts"] == 2
    assert progress["progress"] == 100.0
    assert progress["status"] == "tasks_approved"

    r = client.get(f"/v1/generations/{driver.generation_id}/export", params={"user_id": "user-1"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/zip"
    with zipfile.ZipFile(io.BytesIO(r.content)) as zf:
        assert "frontend/01-home-screen.md" in zf.namelist()


def test_health(client):
    assert client.get("/v1/health").json() == {"status": "ok"}


def test_lists_stage_accepts_prior_stage_texts(client):
    generation_id = _create(client).json()["generation_id"]
    r = client.post(f"/v1/generations/{generation_id}/lists", json={
        "user_id": "user-1",
        "form_data": {"projectName": "Recipe Planner"},
        "prd": "prd",
        "user_flows": "flows",
        "task_file": "tasks",
        "selected_prompt_types": ["frontend"],
    })
    assert r.status_code == 200
    assert r.json()["lists"] == {"frontend": ["Home Screen", "Settings Screen"]}


def test_second_run_is_rejected_while_first_is_active(client):
    generation_id = _create(client).json()["generation_id"]
    with patch("prompt_builder.api.routes_generations.run_generation_workflow") as task:
        first = client.post(f"/v1/generations/{generation_id}/run", params={"user_id": "user-1"})
        second = client.post(f"/v1/generations/{generation_id}/run", params={"user_id": "user-1"})
    assert first.status_code == 202
    assert second.status_code == 409
    assert second.json()["code"] == "ALREADY_RUNNING"
    task.delay.assert_called_once_with(generation_id)


def test_run_releases_claim_when_enqueue_fails(client):
    generation_id = _create(client).json()["generation_id"]
    with patch("prompt_builder.api.routes_generations.run_generation_workflow") as task:
        task.delay.side_effect = ConnectionError("broker down")
        with pytest.raises(ConnectionError):
            client.post(f"/v1/generations/{generation_id}/run", params={"user_id": "user-1"})

        task.delay.side_effect = None
        r = client.post(f"/v1/generations/{generation_id}/run", params={"user_id": "user-1"})
    assert r.status_code == 202


def test_resume_over_http_continues_without_regenerating_stages(client, llm):
    async def no_sleep(delay):
        return None

    backend = HttpBackend("http://testserver/v1", transport=httpx.ASGITransport(app=app))
    form = WizardForm(project_name="Recipe Planner",
                      selected_prompt_types=SelectedPromptTypes.from_categories(["frontend"]))
    first = GenerationDriver(backend=backend, user_id="user-1", form=form)
    asyncio.run(first.submit())
    asyncio.run(first.generate_user_flows())

    resumed = asyncio.run(GenerationDriver.resume(
        backend, first.generation_id, "user-1", worker=PromptWorker(backend, sleep=no_sleep, item_delay=0)))
    assert resumed.step is GenerationStep.USER_FLOWS
    assert resumed.prd == first.prd
    assert resumed.form.project_name == "Recipe Planner"

    assert asyncio.run(resumed.run_all()) is WorkerStatus.DONE
    stats = client.get("/v1/users/user-1/stats").json()
    assert stats["prompt_type_breakdown"] == {"prd": 1, "user_flows": 1, "tasks": 1, "frontend": 2}


def test_image_prompt_route_returns_snake_case_and_counts_quota(client, llm):
    r = client.post("/v1/prompts/image", json={
        "user_id": "user-1",
        "description": "A lighthouse at dawn",
        "style": "Realistic",
        "details": ["fog", "fog", "seagulls"],
    })
    assert r.status_code == 200
    data = r.json()
    assert data["midjourney_prompt"] == "lighthouse --ar 16:9"
    assert data["negative_prompts"] == ["blurry"]
    assert "Details: fog, seagulls" in llm.prompts[-1]

    stats = client.get("/v1/users/user-1/stats").json()
    assert stats["prompt_type_breakdown"] == {"image": 1}


def test_blank_video_description_is_rejected(client):
    r = client.post("/v1/prompts/video", json={"user_id": "user-1", "description": "   "})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_INPUT"
