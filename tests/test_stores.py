import tempfile
from pathlib import Path
import pytest
from prompt_builder.driver.stores import FormStore, KeyValueStore, ProgressStore
from prompt_builder.driver.worker import PromptWorker
from prompt_builder.schemas.form import WizardForm
from conftest import FakeBackend

PROMPTS = {"frontend": [{"title": "Home", "prompt": "Build Home", "order": 0}]}


class Clock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_fresh_progress_is_loaded():
    with tempfile.TemporaryDirectory() as tmp:
        clock = Clock()
        store = ProgressStore(KeyValueStore(tmp), ttl_hours=24, clock=clock)
        store.save("gen-1", PROMPTS)
        clock.now += 23 * 3600

        assert store.load("gen-1") == PROMPTS


def test_stale_progress_is_discarded_and_not_restored():
    with tempfile.TemporaryDirectory() as tmp:
        clock = Clock()
        kv = KeyValueStore(tmp)
        store = ProgressStore(kv, ttl_hours=24, clock=clock)
        store.save("gen-1", PROMPTS)
        clock.now += 25 * 3600

        worker = PromptWorker(FakeBackend(), progress_store=store)
        assert worker.restore("gen-1") == 0
        assert worker.generated == {}
        assert kv.get("generation-progress-gen-1") is None


def test_progress_keys_are_per_generation():
    with tempfile.TemporaryDirectory() as tmp:
        store = ProgressStore(KeyValueStore(tmp))
        store.save("gen-1", PROMPTS)
        assert store.load("gen-2") is None
        store.clear("gen-1")
        assert store.load("gen-1") is None


def test_unreadable_state_file_is_dropped():
    with tempfile.TemporaryDirectory() as tmp:
        kv = KeyValueStore(tmp)
        Path(tmp, "broken.json").write_text("{not json", encoding="utf-8")
        assert kv.get("broken") is None
        assert not Path(tmp, "broken.json").exists()


def test_key_names_are_sanitized():
    with tempfile.TemporaryDirectory() as tmp:
        kv = KeyValueStore(tmp)
        kv.set("../escape/me", {"a": 1})
        assert kv.get("../escape/me") == {"a": 1}
        assert [p.name for p in Path(tmp).iterdir()] == [".._escape_me.json"]


def test_form_snapshot_round_trip_and_clear():
    with tempfile.TemporaryDirectory() as tmp:
        forms = FormStore(KeyValueStore(tmp))
        assert forms.load() == WizardForm()

        forms.save(WizardForm(project_name="Planner", platforms=["web"]))
        loaded = forms.load()
        assert loaded.project_name == "Planner"
        assert loaded.platforms == ["web"]

        forms.clear()
        assert forms.load().project_name == ""


def test_prefill_is_consumed_once():
    with tempfile.TemporaryDirectory() as tmp:
        forms = FormStore(KeyValueStore(tmp))
        forms.put_prefill({"projectName": "From template"})
        assert forms.take_prefill() == {"projectName": "From template"}
        assert forms.take_prefill() is None


def test_failed_write_leaves_no_temp_file_and_keeps_old_value():
    with tempfile.TemporaryDirectory() as tmp:
        kv = KeyValueStore(tmp)
        kv.set("k", {"v": 1})

        with pytest.raises(TypeError):
            kv.set("k", {"v": object()})

        assert list(Path(tmp).glob(".tmp-*")) == []
        assert kv.get("k") == {"v": 1}
