from fastapi import APIRouter, Depends
from prompt_builder.api.deps import get_single_prompt_service
from prompt_builder.schemas.prompts import (
    GenericPromptRequest,
    GenericPromptResult,
    ImagePromptRequest,
    ImagePromptResult,
    VideoPromptRequest,
    VideoPromptResult,
)
from prompt_builder.services.single_prompts import SinglePromptService

router = APIRouter(prefix="/prompts")

@router.post("/generic", response_model=GenericPromptResult, response_model_by_alias=False)
async def generate_generic_prompt(req: GenericPromptRequest,
                                  svc: SinglePromptService = Depends(get_single_prompt_service)):
    return await svc.generate_generic(req.user_id, req.user_goal, req.context, req.output_format, req.tone)

@router.post("/image", response_model=ImagePromptResult, response_model_by_alias=False)
async def generate_image_prompt(req: ImagePromptRequest,
                                svc: SinglePromptService = Depends(get_single_prompt_service)):
    return await svc.generate_image(req.user_id, req.description, req.style, req.mood, req.details)

@router.post("/video", response_model=VideoPromptResult, response_model_by_alias=False)
async def generate_video_prompt(req: VideoPromptRequest,
                                svc: SinglePromptService = Depends(get_single_prompt_service)):
    return await svc.generate_video(req.user_id, req.description, req.style, req.mood, req.duration, req.audio)
