"""Wizard form snapshot.

Every answer collected by the builder wizard lives on ``WizardForm``. Field
names are snake_case; the camelCase names used by browser clients are
accepted as aliases.
"""
from __future__ import annotations
import json
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from prompt_builder.core.workflow import PromptCategory

ArrayAction = Literal["add", "remove", "toggle"]


class _FormModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Feature(_FormModel):
    id: str = ""
    name: str
    description: str = ""


class AudienceSummary(_FormModel):
    age_range: str = ""
    profession: str = ""
    expertise_level: str = ""
    industry: str = ""
    use_case: str = ""


class SelectedPromptTypes(_FormModel):
    frontend: bool = True
    backend: bool = True
    security: bool = True
    functionality: bool = True
    error_fixing: bool = True

    def categories(self) -> List[PromptCategory]:
        return [c for c in PromptCategory if getattr(self, c.value)]

    @classmethod
    def from_categories(cls, categories) -> "SelectedPromptTypes":
        chosen = {PromptCategory(c) for c in categories}
        return cls(**{c.value: c in chosen for c in PromptCategory})


class WizardForm(_FormModel):
    # Overview
    project_name: str = ""
    project_description: str = ""
    project_type: str = "web app"
    one_sentence: str = ""
    is_new_app: Literal["new", "enhancement", "prototype"] = "new"
    github_url: str = ""
    timeline: str = ""
    budget: str = ""
    resource_constraints: str = ""
    competitors: str = ""

    # Audience
    audience_summary: AudienceSummary = Field(default_factory=AudienceSummary)
    platforms: List[str] = Field(default_factory=list)

    # Problem & goals
    problem_statement: str = ""
    primary_goal: str = ""
    success_criteria: List[str] = Field(default_factory=list)
    analytics_tracking: str = ""

    # Features
    features: List[Feature] = Field(default_factory=list)
    feature_priorities: Dict[str, Literal["must-have", "nice-to-have"]] = Field(default_factory=dict)
    data_handling: str = ""
    offline_support: bool = False
    push_notifications: bool = False
    background_processes: bool = False
    error_handling: str = ""
    third_party_integrations: str = ""
    real_time_features: bool = False

    # User experience & design
    look_and_feel: str = ""
    branding_guidelines: str = ""
    uiux_patterns: List[str] = Field(default_factory=list)
    navigation_structure: str = ""
    key_screens: List[str] = Field(default_factory=list)
    multi_language_support: bool = False
    theme_customization: bool = False
    accessibility_features: List[str] = Field(default_factory=list)
    prebuilt_components: str = "shadcn-ui"

    # Tech stack: frontend
    frontend: str = "React"
    frontend_frameworks: List[str] = Field(default_factory=list)
    build_tools: str = ""
    browser_compatibility: str = ""
    state_management: str = ""
    ui_libraries: str = ""
    frontend_optimization: List[str] = Field(default_factory=list)
    api_structure: str = ""
    frontend_testing: str = ""

    # Tech stack: backend
    backend: str = "Node.js"
    database: str = "PostgreSQL"
    tools: List[str] = Field(default_factory=list)
    backend_frameworks: List[str] = Field(default_factory=list)
    hosting_preferences: str = ""
    caching_needs: str = ""
    api_versioning: str = ""
    expected_traffic: str = ""
    data_fetching: str = ""
    logging_monitoring: str = ""

    # Security & compliance
    security_reqs: List[str] = Field(default_factory=list)
    compliance: List[str] = Field(default_factory=list)
    data_retention: str = ""
    backup_frequency: str = ""
    sensitive_data: str = ""
    authentication_methods: List[str] = Field(default_factory=list)
    authorization_levels: str = ""
    encryption_hashing: str = ""
    vulnerability_prevention: List[str] = Field(default_factory=list)
    security_auditing: bool = False
    rate_limiting: str = ""
    data_privacy: List[str] = Field(default_factory=list)

    # Functionality & logic
    core_business_logic: str = ""
    ai_ml_integrations: str = ""
    payments_monetization: str = ""
    custom_functionalities: str = ""
    external_systems: str = ""
    validation_rules: str = ""
    background_jobs: str = ""
    multi_tenancy: bool = False
    update_migrations: str = ""

    # Error fixing & maintenance
    common_errors: str = ""
    error_log_templates: bool = False
    debugging_strategies: str = ""
    versioning_updates: str = ""
    maintenance_tasks: str = ""
    testing_types: List[str] = Field(default_factory=list)
    cicd_tools: str = ""
    rollback_plans: str = ""
    user_feedback_loops: str = ""

    # Performance & scale
    expected_users: str = ""
    perf_requirements: List[str] = Field(default_factory=list)
    performance_benchmarks: str = ""
    device_network_optimization: str = ""
    scalability_plans: str = ""
    caching_strategies: str = ""
    seo_considerations: str = ""
    mobile_optimizations: str = ""
    load_testing: bool = False
    environmental_considerations: str = ""
    success_metrics: str = ""

    # Dev preferences
    code_style: str = "Clean, readable, typed where applicable"
    testing_approach: str = "Unit + integration with mocks"
    docs_level: str = "Pragmatic with examples"
    version_control: str = ""
    deployment_details: str = ""

    # Additional context
    similar_projects: str = ""
    design_inspiration: str = ""
    special_requirements: str = ""
    ethical_guidelines: str = ""
    legal_requirements: str = ""
    sustainability_goals: str = ""
    future_expansions: str = ""
    unique_aspects: str = ""

    # Constraints
    mvp_date: str = ""
    launch_date: str = ""
    dev_budget: str = ""
    infra_budget: str = ""
    team_size: str = ""

    selected_prompt_types: SelectedPromptTypes = Field(default_factory=SelectedPromptTypes)

    def categories(self) -> List[PromptCategory]:
        return self.selected_prompt_types.categories()

    def tech_stack(self) -> List[str]:
        stack = [self.frontend, *self.frontend_frameworks, self.backend, *self.backend_frameworks, self.database, *self.tools]
        seen: List[str] = []
        for item in stack:
            if item and item not in seen:
                seen.append(item)
        return seen

    def snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def _field_name(name: str) -> str:
    if name in WizardForm.model_fields:
        return name
    for field_name, info in WizardForm.model_fields.items():
        if info.alias == name:
            return field_name
    raise KeyError(f"Unknown form field: {name}")


def update_field(form: WizardForm, name: str, value: Any) -> WizardForm:
    """Return a copy of ``form`` with one field replaced (validated)."""
    data = form.model_dump()
    data[_field_name(name)] = value
    return WizardForm.model_validate(data)


def update_array_field(form: WizardForm, name: str, value: str, action: ArrayAction) -> WizardForm:
    """Add, remove or toggle ``value`` in a list field. Non-list fields are left untouched."""
    field_name = _field_name(name)
    current = getattr(form, field_name)
    if not isinstance(current, list):
        return form

    items = list(current)
    if action == "add":
        items.append(value)
    elif action == "remove":
        items = [v for v in items if v != value]
    elif action == "toggle":
        if value in items:
            items.remove(value)
        else:
            items.append(value)
    else:
        raise ValueError(f"Unknown array action: {action}")
    return update_field(form, field_name, items)


def summarize_form(form: WizardForm | Dict[str, Any]) -> str:
    """JSON of the subset of answers that is sent to the LLM."""
    if not isinstance(form, WizardForm):
        form = WizardForm.model_validate(form or {})
    safe = {
        "projectName": form.project_name,
        "projectDescription": form.project_description,
        "techStack": form.tech_stack(),
        "features": [f.model_dump(include={"name", "description"}) for f in form.features],
        "audience": form.audience_summary.model_dump(by_alias=True),
        "requirements": form.problem_statement,
        "goals": form.primary_goal,
    }
    return json.dumps(safe, indent=2)
