import json
import pytest
from prompt_builder.core.workflow import PromptCategory
from prompt_builder.schemas.form import (
    SelectedPromptTypes,
    WizardForm,
    summarize_form,
    update_array_field,
    update_field,
)


def test_defaults():
    form = WizardForm()
    assert form.project_type == "web app"
    assert form.prebuilt_components == "shadcn-ui"
    assert form.categories() == list(PromptCategory)


def test_camel_case_aliases_accepted():
    form = WizardForm.model_validate({
        "projectName": "Planner",
        "selectedPromptTypes": {"frontend": True, "backend": False, "security": False,
                                "functionality": True, "errorFixing": False},
    })
    assert form.project_name == "Planner"
    assert form.categories() == [PromptCategory.FRONTEND, PromptCategory.FUNCTIONALITY]


def test_update_field_by_alias_returns_copy():
    form = WizardForm()
    updated = update_field(form, "projectName", "Planner")
    assert updated.project_name == "Planner"
    assert form.project_name == ""


def test_update_field_unknown_name():
    with pytest.raises(KeyError):
        update_field(WizardForm(), "nope", 1)


def test_array_actions():
    form = WizardForm()
    form = update_array_field(form, "platforms", "web", "add")
    form = update_array_field(form, "platforms", "ios", "toggle")
    assert form.platforms == ["web", "ios"]
    form = update_array_field(form, "platforms", "web", "toggle")
    form = update_array_field(form, "platforms", "ios", "remove")
    assert form.platforms == []


def test_array_action_on_scalar_field_is_noop():
    form = WizardForm(project_name="Planner")
    assert update_array_field(form, "project_name", "x", "add") is form


def test_unknown_array_action():
    with pytest.raises(ValueError):
        update_array_field(WizardForm(), "platforms", "web", "shuffle")


def test_selected_types_from_categories():
    selected = SelectedPromptTypes.from_categories(["security", PromptCategory.FRONTEND])
    assert selected.categories() == [PromptCategory.FRONTEND, PromptCategory.SECURITY]


def test_summarize_form_keeps_only_llm_fields():
    summary = json.loads(summarize_form({
        "projectName": "Planner",
        "projectDescription": "Plan meals",
        "features": [{"id": "f1", "name": "Recipes", "description": "Save recipes"}],
        "problemStatement": "Meal planning is slow",
        "githubUrl": "https://example.com/repo",
    }))
    assert summary["projectName"] == "Planner"
    assert summary["features"] == [{"name": "Recipes", "description": "Save recipes"}]
    assert summary["requirements"] == "Meal planning is slow"
    assert "githubUrl" not in summary
    assert "React" in summary["techStack"]
