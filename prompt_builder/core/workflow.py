from enum import Enum


class GenerationStep(str, Enum):
    """Stage of a generation as seen by the driver."""
    FORM = "form"
    PRD = "prd"
    USER_FLOWS = "user_flows"
    TASKS = "tasks"
    LISTS = "lists"
    PROMPTS = "prompts"
    SUMMARY = "summary"

    @property
    def position(self) -> int:
        return STEP_ORDER.index(self)

    def is_before(self, other: "GenerationStep") -> bool:
        return self.position < other.position


STEP_ORDER = [
    GenerationStep.FORM,
    GenerationStep.PRD,
    GenerationStep.USER_FLOWS,
    GenerationStep.TASKS,
    GenerationStep.LISTS,
    GenerationStep.PROMPTS,
    GenerationStep.SUMMARY,
]


class GenerationStatus(str, Enum):
    """Status stored on the generation record."""
    PRD_PENDING = "prd_pending"
    PRD_APPROVED = "prd_approved"
    USER_FLOWS_PENDING = "user_flows_pending"
    USER_FLOWS_APPROVED = "user_flows_approved"
    TASKS_PENDING = "tasks_pending"
    TASKS_APPROVED = "tasks_approved"
    GENERATING_PROMPTS = "generating_prompts"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApprovalStep(str, Enum):
    PRD = "prd"
    USER_FLOWS = "user_flows"
    TASKS = "tasks"

    @property
    def approved_status(self) -> GenerationStatus:
        return {
            ApprovalStep.PRD: GenerationStatus.PRD_APPROVED,
            ApprovalStep.USER_FLOWS: GenerationStatus.USER_FLOWS_APPROVED,
            ApprovalStep.TASKS: GenerationStatus.TASKS_APPROVED,
        }[self]


class PromptCategory(str, Enum):
    """Item categories; declaration order is the generation order."""
    FRONTEND = "frontend"
    BACKEND = "backend"
    SECURITY = "security"
    FUNCTIONALITY = "functionality"
    ERROR_FIXING = "error_fixing"

    @property
    def list_field(self) -> str:
        return LIST_FIELDS[self]

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @classmethod
    def ordered(cls, selected) -> list["PromptCategory"]:
        """Return the selected categories in fixed generation order."""
        chosen = {cls(c) for c in selected}
        return [c for c in cls if c in chosen]


LIST_FIELDS = {
    PromptCategory.FRONTEND: "screen_list",
    PromptCategory.BACKEND: "endpoint_list",
    PromptCategory.SECURITY: "security_feature_list",
    PromptCategory.FUNCTIONALITY: "functionality_feature_list",
    PromptCategory.ERROR_FIXING: "error_scenario_list",
}

CATEGORY_LABELS = {
    PromptCategory.FRONTEND: "Frontend screens",
    PromptCategory.BACKEND: "Backend endpoints",
    PromptCategory.SECURITY: "Security features",
    PromptCategory.FUNCTIONALITY: "Functionality features",
    PromptCategory.ERROR_FIXING: "Error scenarios",
}



class SinglePromptKind(str, Enum):
    """Prompts generated in one call outside the wizard; the value is the quota breakdown key."""
    GENERIC = "generic"
    IMAGE = "image"
    VIDEO = "video"
