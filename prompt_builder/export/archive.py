"""Copy/download/zip export of a finished generation."""
from __future__ import annotations
import io
import re
import zipfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from prompt_builder.core.workflow import PromptCategory
from prompt_builder.driver.engine import GenerationResult
from prompt_builder.schemas.form import WizardForm

_SLUG = re.compile(r"[^a-z0-9]+")

DOCUMENTS = (
    ("prd", "PRD.md", "Product Requirements Document"),
    ("user_flows", "user-flows.md", "User Flows"),
    ("task_file", "tasks.md", "Task Breakdown"),
)


def slugify(text: str, fallback: str = "item") -> str:
    slug = _SLUG.sub("-", (text or "").lower()).strip("-")
    return slug[:60].rstrip("-") or fallback


def download_filename(title: str, ext: str = "md") -> str:
    return f"{slugify(title, 'prompt')}.{ext.lstrip('.')}"


def render_item_markdown(item: Dict[str, Any], category: Optional[PromptCategory] = None) -> str:
    heading = f"# {item['title']}\n\n"
    if category is not None:
        heading += f"_{category.label}_\n\n"
    return heading + item["prompt"].rstrip() + "\n"


def render_all_markdown(result: GenerationResult) -> str:
    """All prompts of a generation as one Markdown document."""
    parts: List[str] = [f"# {result.project_name or 'Project'} prompts\n"]
    for category in PromptCategory:
        items = result.prompts.get(category) or []
        if not items:
            continue
        parts.append(f"## {category.label}\n")
        for item in sorted(items, key=lambda i: i["order"]):
            parts.append(f"### {item['order'] + 1}. {item['title']}\n\n{item['prompt'].rstrip()}\n")
    return "\n".join(parts)


def render_cursor_rules(form: WizardForm) -> str:
    stack = ", ".join(form.tech_stack()) or "Not specified"
    lines = [
        f"# {form.project_name or 'Project'} rules",
        "",
        f"Project: {form.one_sentence or form.project_description or form.project_name}",
        f"Tech stack: {stack}",
    ]
    if form.prebuilt_components and form.prebuilt_components != "custom":
        lines.append(f"UI components: prefer {form.prebuilt_components}")
    if form.state_management:
        lines.append(f"State management: {form.state_management}")
    lines += [
        "",
        "## Conventions",
        f"- Code style: {form.code_style}",
        f"- Testing: {form.testing_approach}",
        f"- Documentation: {form.docs_level}",
    ]
    if form.version_control:
        lines.append(f"- Version control: {form.version_control}")
    if form.security_reqs:
        lines.append(f"- Security: {', '.join(form.security_reqs)}")
    if form.accessibility_features:
        lines.append(f"- Accessibility: {', '.join(form.accessibility_features)}")
    lines += [
        "",
        "## Workflow",
        "- Read docs/PRD.md and docs/tasks.md before starting a task.",
        "- Implement one prompt at a time, in folder order.",
        "- Keep changes small and run the tests after each one.",
    ]
    return "\n".join(lines) + "\n"


def render_readme(result: GenerationResult, generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        f"{result.project_name or 'Project'} - generated prompts",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}",
        "",
        "Contents:",
    ]
    for attr, filename, title in DOCUMENTS:
        if getattr(result, attr):
            lines.append(f"  docs/{filename} - {title}")
    for category in PromptCategory:
        items = result.prompts.get(category) or []
        if items:
            lines.append(f"  {category.value}/ - {category.label} ({len(items)} prompts)")
    lines += [
        "  .cursorrules - editor rules for this project",
        "",
        "Use each prompt file in order; every prompt is self-contained.",
    ]
    return "\n".join(lines) + "\n"


def build_zip(result: GenerationResult, generated_at: Optional[datetime] = None) -> bytes:
    """Zip with one folder per category, docs, README.txt and .cursorrules."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("README.txt", render_readme(result, generated_at))
        zf.writestr(".cursorrules", render_cursor_rules(result.form))
        for attr, filename, _ in DOCUMENTS:
            content = getattr(result, attr)
            if content:
                zf.writestr(f"docs/{filename}", content)
        for category in PromptCategory:
            items = sorted(result.prompts.get(category) or [], key=lambda i: i["order"])
            for item in items:
                name = f"{category.value}/{item['order'] + 1:02d}-{slugify(item['title'])}.md"
                zf.writestr(name, render_item_markdown(item, category))
    return buf.getvalue()


def result_from_record(record) -> GenerationResult:
    """Export view of a stored generation record."""
    form = WizardForm.model_validate(record.form_data or {})
    lists = {c: list(getattr(record, c.list_field)) for c in PromptCategory
             if getattr(record, c.list_field) is not None}
    prompts = {PromptCategory(k): list(v) for k, v in (record.generated_prompts or {}).items()}
    return GenerationResult(
        project_name=record.project_name,
        form=form,
        prd=record.prd,
        user_flows=record.user_flows,
        task_file=record.task_file,
        lists=lists,
        prompts=prompts,
    )
