from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime
from prompt_builder.core.workflow import ApprovalStep, GenerationStatus, PromptCategory


class GenerationCreateRequest(BaseModel):
    user_id: str
    project_name: str = Field(..., examples=["Recipe Planner"])
    form_data: Dict[str, Any] = {}
    selected_prompt_types: List[PromptCategory] = Field(..., examples=[["frontend", "backend"]])


class GenerationCreateResponse(BaseModel):
    generation_id: str


class StageRequest(BaseModel):
    user_id: str
    form_data: Dict[str, Any] = {}


class UserFlowsRequest(StageRequest):
    prd: str


class TaskFileRequest(UserFlowsRequest):
    user_flows: str


class ListsRequest(TaskFileRequest):
    task_file: Optional[str] = None
    selected_prompt_types: List[PromptCategory]


class ItemPromptRequest(TaskFileRequest):
    item_type: PromptCategory
    item_name: str
    task_file: str
    prebuilt_components: Optional[str] = None


class TextResponse(BaseModel):
    text: str


class ListsResponse(BaseModel):
    lists: Dict[PromptCategory, List[str]]


class ItemPromptResponse(BaseModel):
    prompt: str


class ApproveRequest(BaseModel):
    step: ApprovalStep


class StatusUpdateRequest(BaseModel):
    status: GenerationStatus


class AckResponse(BaseModel):
    ok: bool = True


class GeneratedItemOut(BaseModel):
    title: str
    prompt: str
    order: int


class GenerationResponse(BaseModel):
    id: str
    user_id: str
    project_name: str
    status: GenerationStatus
    form_data: Dict[str, Any] = {}
    selected_prompt_types: List[PromptCategory] = []
    prd: Optional[str] = None
    user_flows: Optional[str] = None
    task_file: Optional[str] = None
    lists: Dict[PromptCategory, List[str]] = {}
    generated_prompts: Dict[PromptCategory, List[GeneratedItemOut]] = {}
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProgressResponse(BaseModel):
    generation_id: str
    status: GenerationStatus
    completed_prompts: int
    total_prompts: int
    progress: float
    generated_prompts: Dict[PromptCategory, List[GeneratedItemOut]] = {}
    lists: Dict[PromptCategory, List[str]] = {}
    last_error: Optional[str] = None


class UserCreateRequest(BaseModel):
    clerk_id: str
    email: str = ""


class UserStatsResponse(BaseModel):
    user_id: str
    is_pro: bool
    remaining_prompts: int
    prompts_today: int
    total_prompts: int
    prompt_type_breakdown: Dict[str, int] = {}


class ErrorResponse(BaseModel):
    code: str
    message: str
