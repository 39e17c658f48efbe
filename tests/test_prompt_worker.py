"""Per-item prompt loop: ordering, dedup, failure, resume and cancellation."""
import asyncio
import tempfile
from prompt_builder.core.errors import GenerationCancelledError, TransientError, ValidationError
from prompt_builder.core.workflow import PromptCategory
from prompt_builder.driver.stores import KeyValueStore, ProgressStore
from prompt_builder.driver.worker import ItemContext, PromptWorker, WorkerStatus
from conftest import FakeBackend

FRONTEND = PromptCategory.FRONTEND
BACKEND = PromptCategory.BACKEND

CONTEXT = ItemContext(
    generation_id="gen-1",
    user_id="user-1",
    form_data={"projectName": "Planner"},
    prd="prd",
    user_flows="flows",
    task_file="tasks",
    prebuilt_components="shadcn-ui",
)


def _sleep_recorder():
    delays = []

    async def sleep(delay):
        delays.append(delay)

    return sleep, delays


def _worker(backend, **kwargs):
    sleep, _ = _sleep_recorder()
    kwargs.setdefault("sleep", sleep)
    kwargs.setdefault("item_delay", 0)
    return PromptWorker(backend, **kwargs)


def test_items_generated_in_list_order_then_done():
    backend = FakeBackend()
    worker = _worker(backend)

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home Screen", "Settings Screen"]}, [FRONTEND]))

    assert status is WorkerStatus.DONE
    assert backend.item_names() == ["Home Screen", "Settings Screen"]
    assert [i.title for i in worker.generated[FRONTEND]] == ["Home Screen", "Settings Screen"]
    assert [i.order for i in worker.generated[FRONTEND]] == [0, 1]
    assert worker.progress == 100.0


def test_categories_follow_fixed_order_and_selection():
    backend = FakeBackend()
    worker = _worker(backend)
    lists = {
        BACKEND: ["GET /recipes"],
        FRONTEND: ["Home"],
        PromptCategory.SECURITY: ["Rate limiting"],
    }

    asyncio.run(worker.run(CONTEXT, lists, [BACKEND, FRONTEND]))

    assert backend.item_names() == ["Home", "GET /recipes"]
    assert PromptCategory.SECURITY not in worker.generated


def test_each_title_generated_at_most_once():
    backend = FakeBackend()
    worker = _worker(backend)
    worker.seed({"frontend": [{"title": "Home", "prompt": "old", "order": 0}]})

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home", "Settings", "Settings"]}, [FRONTEND]))

    assert status is WorkerStatus.DONE
    assert backend.item_names() == ["Settings"]
    assert [i.title for i in worker.generated[FRONTEND]] == ["Home", "Settings"]
    assert worker.total == 2


def test_failure_stops_loop_and_resume_continues_from_failed_item():
    backend = FakeBackend()
    calls = []

    def flaky(generation_id, user_id, item_type, item_name, *args):
        calls.append(item_name)
        if item_name == "Settings":
            raise ValidationError("Validation failed: bad item")
        return f"Build {item_name}"

    backend.generate_item_prompt.side_effect = flaky
    worker = _worker(backend)
    lists = {FRONTEND: ["Home", "Settings", "Profile"]}

    status = asyncio.run(worker.run(CONTEXT, lists, [FRONTEND]))

    assert status is WorkerStatus.ERROR
    assert calls == ["Home", "Settings"]
    assert worker.failure.title == "Settings"
    assert "Failed to generate frontend prompt for 'Settings'" in worker.failure.describe()
    assert worker.queue[0].title == "Settings"

    backend.generate_item_prompt.side_effect = FakeBackend._item_prompt
    status = asyncio.run(worker.run(CONTEXT, lists, [FRONTEND]))

    assert status is WorkerStatus.DONE
    assert backend.item_names()[len(calls):] == ["Settings", "Profile"]
    assert [i.title for i in worker.generated[FRONTEND]] == ["Home", "Settings", "Profile"]
    assert worker.failure is None


def test_transient_failures_are_retried_with_backoff():
    backend = FakeBackend()
    backend.generate_item_prompt.side_effect = [TransientError("502"), TransientError("502"), "Build Home"]
    sleep, delays = _sleep_recorder()
    worker = _worker(backend, sleep=sleep)

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home"]}, [FRONTEND]))

    assert status is WorkerStatus.DONE
    assert backend.generate_item_prompt.await_count == 3
    assert delays == [1.0, 2.0]


def test_quota_failure_is_not_retried():
    backend = FakeBackend()
    backend.generate_item_prompt.side_effect = RuntimeError("Daily prompt limit reached. Please upgrade to Pro.")
    worker = _worker(backend)

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home"]}, [FRONTEND]))

    assert status is WorkerStatus.ERROR
    assert backend.generate_item_prompt.await_count == 1
    assert "limit reached" in worker.failure.message


def test_slow_item_times_out():
    backend = FakeBackend()

    async def hang(*args, **kwargs):
        await asyncio.sleep(5)

    backend.generate_item_prompt.side_effect = hang
    worker = _worker(backend, timeout=0.01, attempts=1)

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home"]}, [FRONTEND]))

    assert status is WorkerStatus.ERROR
    assert "timed out" in worker.failure.message


def test_blank_prompt_is_an_error():
    backend = FakeBackend()
    backend.generate_item_prompt.side_effect = None
    backend.generate_item_prompt.return_value = "   "
    worker = _worker(backend)

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home"]}, [FRONTEND]))

    assert status is WorkerStatus.ERROR
    assert backend.generate_item_prompt.await_count == 1
    assert "empty content" in worker.failure.message


def test_cancel_stops_before_next_item_and_keeps_in_flight_result():
    backend = FakeBackend()
    worker = _worker(backend)

    def cancel_during_call(generation_id, user_id, item_type, item_name, *args):
        worker.cancel()
        return f"Build {item_name}"

    backend.generate_item_prompt.side_effect = cancel_during_call

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home", "Settings"]}, [FRONTEND]))

    assert status is WorkerStatus.CANCELLED
    assert backend.item_names() == ["Home"]
    assert [i.title for i in worker.generated[FRONTEND]] == ["Home"]


def test_second_run_while_generating_is_dropped():
    backend = FakeBackend()

    async def slow(generation_id, user_id, item_type, item_name, *args):
        await asyncio.sleep(0)
        return f"Build {item_name}"

    backend.generate_item_prompt.side_effect = slow
    worker = _worker(backend)
    lists = {FRONTEND: ["Home", "Settings"]}

    async def scenario():
        return await asyncio.gather(
            worker.run(CONTEXT, lists, [FRONTEND]),
            worker.run(CONTEXT, lists, [FRONTEND]),
        )

    first, second = asyncio.run(scenario())

    assert first is WorkerStatus.DONE
    assert second is WorkerStatus.GENERATING
    assert backend.item_names() == ["Home", "Settings"]


def test_item_delay_only_between_items():
    backend = FakeBackend()
    sleep, delays = _sleep_recorder()
    worker = _worker(backend, sleep=sleep, item_delay=0.5)

    asyncio.run(worker.run(CONTEXT, {FRONTEND: ["A", "B", "C"]}, [FRONTEND]))

    assert delays == [0.5, 0.5]


def test_progress_saved_after_each_item_and_restored():
    with tempfile.TemporaryDirectory() as tmp:
        store = ProgressStore(KeyValueStore(tmp))
        worker = _worker(FakeBackend(), progress_store=store)
        asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home", "Settings"]}, [FRONTEND]))

        cached = store.load("gen-1")
        assert [i["title"] for i in cached["frontend"]] == ["Home", "Settings"]

        fresh = _worker(FakeBackend(), progress_store=store)
        assert fresh.restore("gen-1") == 2
        assert ("frontend", "Settings") in {(c.value, t) for c, t in fresh.completed}


def test_remote_cancellation_stops_loop_without_failure():
    backend = FakeBackend()

    def item_prompt(generation_id, user_id, item_type, item_name, *args):
        if item_name == "Settings Screen":
            raise GenerationCancelledError("CANCELLED: Generation was cancelled")
        return f"Build the {item_name}"

    backend.generate_item_prompt.side_effect = item_prompt
    worker = _worker(backend)

    status = asyncio.run(worker.run(CONTEXT, {FRONTEND: ["Home Screen", "Settings Screen", "Profile"]}, [FRONTEND]))

    assert status is WorkerStatus.CANCELLED
    assert worker.failure is None
    assert backend.item_names() == ["Home Screen", "Settings Screen"]
    assert [i.title for i in worker.queue] == ["Settings Screen", "Profile"]
