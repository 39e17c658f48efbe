"""Prompt texts sent to the LLM for each stage of a generation."""
from typing import Any, Dict, Optional
from prompt_builder.core.workflow import PromptCategory
from prompt_builder.schemas.form import WizardForm, summarize_form

EXPLANATION_FOOTER = (
    "The prompt should be self-contained and ready to paste into a coding AI. "
    "Include a 5-line explanation in simple language at the end explaining what this prompt will generate."
)


def prd_prompt(form_data: Dict[str, Any]) -> str:
    return f"""You are an expert product manager and technical writer. Generate a comprehensive Product Requirements Document (PRD) based on the following project information:

{summarize_form(form_data)}

The PRD should include:
1. Executive Summary
2. Problem Statement
3. Target Audience
4. User Stories
5. Functional Requirements
6. Non-Functional Requirements
7. Technical Requirements
8. Success Criteria
9. Timeline and Milestones
10. Dependencies and Constraints

Format the output as a well-structured markdown document."""


def user_flows_prompt(form_data: Dict[str, Any], prd: str) -> str:
    return f"""You are a UX designer and product strategist. Based on the following PRD and project information, generate comprehensive User Flow documentation:

PRD:
{prd}

Project Information:
{summarize_form(form_data)}

The User Flows document should include:
1. User Personas
2. User Journey Maps
3. Flow Diagrams (text-based)
4. Screen-by-Screen Navigation
5. User Actions and System Responses
6. Edge Cases and Error Flows
7. Decision Points

Format as a well-structured markdown document."""


def task_file_prompt(form_data: Dict[str, Any], prd: str, user_flows: str) -> str:
    return f"""You are a project manager and technical lead. Based on the following PRD, User Flows, and project information, generate a comprehensive Task Breakdown with milestone-based organization:

PRD:
{prd}

User Flows:
{user_flows}

Project Information:
{summarize_form(form_data)}

The Task File should include:
1. Milestone 1: Foundation (Setup, Infrastructure)
2. Milestone 2: Core Features
3. Milestone 3: Advanced Features
4. Milestone 4: Polish & Optimization
5. Each milestone should have:
   - Task name
   - Description
   - Dependencies
   - Estimated effort
   - Acceptance criteria

Format as a well-structured markdown document with clear milestones and tasks."""


_LIST_SPECS = {
    PromptCategory.FRONTEND: (
        "a list of all screens/pages needed for the frontend",
        "screen names",
        '["Hero Page", "Login Screen", "Dashboard"]',
        True,
    ),
    PromptCategory.BACKEND: (
        "a list of all API endpoints needed for the backend",
        "endpoint names",
        '["POST /api/auth/login", "GET /api/users"]',
        True,
    ),
    PromptCategory.SECURITY: (
        "a list of security features to implement",
        "security features",
        '["JWT Authentication", "Password Hashing"]',
        False,
    ),
    PromptCategory.FUNCTIONALITY: (
        "a list of core functionality features",
        "functionality feature names as strings",
        '["Contact Management", "User Authentication", "Payment Processing"]',
        False,
    ),
    PromptCategory.ERROR_FIXING: (
        "a list of potential error scenarios",
        "error scenarios",
        '["Network timeout", "Invalid input validation"]',
        False,
    ),
}


def list_prompt(category: PromptCategory, form_data: Dict[str, Any], prd: str, user_flows: str) -> str:
    what, noun, example, with_flows = _LIST_SPECS[category]
    parts = [f"Based on the PRD{' and User Flows' if with_flows else ''}, generate {what}:", "", "PRD:", prd]
    if with_flows:
        parts += ["", "User Flows:", user_flows]
    if category is PromptCategory.ERROR_FIXING:
        stack = WizardForm.model_validate(form_data or {}).tech_stack()
        parts += ["", f"Tech Stack: {', '.join(stack) or 'Not specified'}"]
    parts += ["", f"Return ONLY a JSON array of {noun}, like: {example}"]
    return "\n".join(parts)


_ITEM_SPECS = {
    PromptCategory.FRONTEND: (
        "an expert frontend developer", "building", "screen/component", "senior frontend developer",
        ["Component specifications", "State management approach", "API integration points"], True,
    ),
    PromptCategory.BACKEND: (
        "an expert backend developer", "implementing", "endpoint/feature", "senior backend developer",
        ["API specifications (method, route, params, response)", "Database interactions", "Error handling"], True,
    ),
    PromptCategory.SECURITY: (
        "an expert security engineer", "implementing", "security feature", "senior security engineer",
        ["Implementation details", "Best practices and compliance", "Testing and verification"], False,
    ),
    PromptCategory.FUNCTIONALITY: (
        "an expert full-stack developer", "implementing", "functionality", "senior developer",
        ["Business logic details", "Data flow and state management", "Integration points"], False,
    ),
    PromptCategory.ERROR_FIXING: (
        "an expert QA engineer and developer", "handling", "error scenario", "senior QA engineer",
        ["Error reproduction steps", "Fix implementation details", "Prevention strategies"], False,
    ),
}


def item_prompt(
    category: PromptCategory,
    item_name: str,
    form_data: Dict[str, Any],
    prd: str,
    user_flows: str,
    task_file: str,
    prebuilt_components: Optional[str] = None,
) -> str:
    persona, verb, noun, expert, specifics, full_context = _ITEM_SPECS[category]
    parts = [
        f'You are {persona}. Generate a comprehensive prompt for {verb} the "{item_name}" {noun}.',
        "",
        "PRD:",
        prd,
    ]
    if full_context:
        parts += ["", "User Flows:", user_flows, "", "Task File:", task_file]
    parts += ["", "Project Information:", summarize_form(form_data)]

    if category is PromptCategory.FRONTEND:
        if prebuilt_components and prebuilt_components != "custom":
            instruction = (f"Use {prebuilt_components} components. Specifically reference which components "
                           f"to use (e.g., Button from {prebuilt_components}, Card from {prebuilt_components}).")
        else:
            instruction = "Build custom components from scratch."
        parts += ["", f"Component Library: {instruction}"]

    context = "PRD and User Flows" if full_context else "PRD"
    checklist = [
        "Clear command for what to build" + ("/fix" if category is PromptCategory.ERROR_FIXING else ""),
        f"Full context from {context}",
        "Step-by-step logic",
        f"Expert persona ({expert})",
        "Precise formatting requirements",
        *specifics,
    ]
    parts += ["", "Generate a detailed, context-engineered prompt that includes:"]
    parts += [f"{i}. {line}" for i, line in enumerate(checklist, start=1)]
    parts += ["", EXPLANATION_FOOTER]
    return "\n".join(parts)


# Single-action pages


def _optional_lines(**labelled: Optional[str]) -> str:
    return "".join(f"{label}: {value}\n" for label, value in labelled.items() if value)


def generic_prompt(user_goal: str, context: Optional[str] = None, output_format: Optional[str] = None,
                   tone: Optional[str] = None) -> str:
    system = (
        "You are an expert prompt engineer. Return STRICT JSON only with keys: "
        "optimizedPrompt (string), explanation (string), tips (string[]), exampleOutput (string). "
        "Design optimizedPrompt using best practices: clear role, explicit instructions, constraints, "
        "step-by-step, and desired format. "
        "If context/outputFormat/tone provided, incorporate them. No markdown fences."
    )
    extra = _optional_lines(**{"Context": context, "Desired output format": output_format, "Desired tone": tone})
    return f"{system}\n\nUser goal: {user_goal}\n{extra}\nGenerate JSON now."


def image_prompt(description: str, style: Optional[str] = None, mood: Optional[str] = None,
                 details: Optional[str] = None) -> str:
    system = (
        "You are an expert image prompt engineer for Midjourney, DALL-E 3, and Stable Diffusion. "
        "Return STRICT JSON only with keys: midjourneyPrompt, dallePrompt, stableDiffusionPrompt, "
        "tips (string[]), negativePrompts (string[]). "
        "Each prompt should include descriptive keywords, optional photography terms (lens, lighting), "
        "style references, aspect ratio hints, quality modifiers. "
        "Do not include markdown fences."
    )
    extra = _optional_lines(Style=style, Mood=mood, Details=details)
    return (f"{system}\n\nDescription: {description}\n{extra}\n"
            "Generate JSON with platform-optimized prompts and common negative prompts "
            "(e.g., low-res, blurry, artifacts).")


def video_prompt(description: str, style: Optional[str] = None, mood: Optional[str] = None,
                 duration: Optional[str] = None, audio: Optional[str] = None) -> str:
    system = (
        "You are an expert video prompt engineer for Google Veo 3, Runway, and Pika. "
        "Return STRICT JSON only with keys: veo3Prompt, runwayPrompt, pikaPrompt, "
        "tips (string[]), audioElements (string[]). "
        "Each prompt should describe the subject, camera movement, shot composition, lighting "
        "and pacing across the requested duration. "
        "Do not include markdown fences."
    )
    extra = _optional_lines(Style=style, Mood=mood, Duration=duration, Audio=audio)
    return (f"{system}\n\nDescription: {description}\n{extra}\n"
            "Generate JSON with platform-optimized prompts and the audio elements "
            "(dialogue, ambience, music, sound effects) to include.")
