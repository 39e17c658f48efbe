from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional

DEFAULT_VIDEO_DURATION = "8 seconds"


class GenericPromptRequest(BaseModel):
    user_id: str
    user_goal: str = Field(..., examples=["Summarize customer support tickets"])
    context: Optional[str] = None
    output_format: Optional[str] = None
    tone: Optional[str] = None


class ImagePromptRequest(BaseModel):
    user_id: str
    description: str = Field(..., examples=["A lighthouse at dawn"])
    style: Optional[str] = None
    mood: Optional[str] = None
    details: List[str] = []


class VideoPromptRequest(BaseModel):
    user_id: str
    description: str = Field(..., examples=["A drone shot over a foggy forest"])
    style: Optional[str] = None
    mood: Optional[str] = None
    duration: Optional[str] = DEFAULT_VIDEO_DURATION
    audio: Optional[str] = None


# Results are read from camelCase LLM JSON and returned by the API in snake_case.

class LLMResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenericPromptResult(LLMResult):
    optimized_prompt: str
    explanation: str = ""
    tips: List[str] = []
    example_output: str = ""


class ImagePromptResult(LLMResult):
    midjourney_prompt: str
    dalle_prompt: str = ""
    stable_diffusion_prompt: str = ""
    tips: List[str] = []
    negative_prompts: List[str] = []


class VideoPromptResult(LLMResult):
    veo3_prompt: str
    runway_prompt: str = ""
    pika_prompt: str = ""
    tips: List[str] = []
    audio_elements: List[str] = []
