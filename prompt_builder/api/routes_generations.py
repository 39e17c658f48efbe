from fastapi import APIRouter, Depends, HTTPException, Response
from prompt_builder.api.deps import get_generation_service
from prompt_builder.core.workflow import GenerationStatus, PromptCategory
from prompt_builder.export.archive import build_zip, download_filename, result_from_record
from prompt_builder.schemas.generations import (
    AckResponse,
    ApproveRequest,
    GenerationCreateRequest,
    GenerationCreateResponse,
    GenerationResponse,
    ItemPromptRequest,
    ItemPromptResponse,
    ListsRequest,
    ListsResponse,
    ProgressResponse,
    StageRequest,
    StatusUpdateRequest,
    TaskFileRequest,
    TextResponse,
    UserFlowsRequest,
)
from prompt_builder.services.generations import GenerationService, record_lists
from prompt_builder.tasks.generations import run_generation_workflow

router = APIRouter(prefix="/generations")

@router.post("", response_model=GenerationCreateResponse)
def create_generation(req: GenerationCreateRequest, svc: GenerationService = Depends(get_generation_service)):
    generation_id = svc.create_generation(
        user_id=req.user_id,
        project_name=req.project_name,
        form_data=req.form_data,
        selected_prompt_types=[c.value for c in req.selected_prompt_types],
    )
    return GenerationCreateResponse(generation_id=generation_id)

@router.get("/{generation_id}", response_model=GenerationResponse)
def get_generation(generation_id: str, user_id: str, svc: GenerationService = Depends(get_generation_service)):
    gen = svc.get_generation(generation_id, user_id)
    return GenerationResponse(
        id=gen.id,
        user_id=gen.user_id,
        project_name=gen.project_name,
        status=gen.status,
        form_data=gen.form_data or {},
        selected_prompt_types=[PromptCategory(c) for c in gen.selected_prompt_types or []],
        prd=gen.prd,
        user_flows=gen.user_flows,
        task_file=gen.task_file,
        lists=record_lists(gen),
        generated_prompts=gen.generated_prompts or {},
        last_error=gen.last_error,
        created_at=gen.created_at,
        updated_at=gen.updated_at,
    )

@router.post("/{generation_id}/prd", response_model=TextResponse)
async def generate_prd(generation_id: str, req: StageRequest, svc: GenerationService = Depends(get_generation_service)):
    text = await svc.generate_prd(generation_id, req.user_id, req.form_data)
    return TextResponse(text=text)

@router.post("/{generation_id}/user-flows", response_model=TextResponse)
async def generate_user_flows(generation_id: str, req: UserFlowsRequest,
                              svc: GenerationService = Depends(get_generation_service)):
    text = await svc.generate_user_flows(generation_id, req.user_id, req.form_data, req.prd)
    return TextResponse(text=text)

@router.post("/{generation_id}/task-file", response_model=TextResponse)
async def generate_task_file(generation_id: str, req: TaskFileRequest,
                             svc: GenerationService = Depends(get_generation_service)):
    text = await svc.generate_task_file(generation_id, req.user_id, req.form_data, req.prd, req.user_flows)
    return TextResponse(text=text)

@router.post("/{generation_id}/lists", response_model=ListsResponse)
async def generate_lists(generation_id: str, req: ListsRequest,
                         svc: GenerationService = Depends(get_generation_service)):
    lists = await svc.generate_lists(
        generation_id, req.user_id, req.form_data, req.prd, req.user_flows,
        [c.value for c in req.selected_prompt_types],
    )
    return ListsResponse(lists=lists)

@router.post("/{generation_id}/item-prompt", response_model=ItemPromptResponse)
async def generate_item_prompt(generation_id: str, req: ItemPromptRequest,
                               svc: GenerationService = Depends(get_generation_service)):
    prompt = await svc.generate_item_prompt(
        generation_id, req.user_id, req.item_type, req.item_name, req.form_data,
        req.prd, req.user_flows, req.task_file, req.prebuilt_components,
    )
    return ItemPromptResponse(prompt=prompt)

@router.post("/{generation_id}/approve", response_model=AckResponse)
def approve_step(generation_id: str, req: ApproveRequest, svc: GenerationService = Depends(get_generation_service)):
    svc.approve_step(generation_id, req.step)
    return AckResponse()

@router.patch("/{generation_id}/status", response_model=AckResponse)
def update_status(generation_id: str, req: StatusUpdateRequest,
                  svc: GenerationService = Depends(get_generation_service)):
    svc.update_status(generation_id, req.status)
    return AckResponse()

@router.get("/{generation_id}/progress", response_model=ProgressResponse)
def get_progress(generation_id: str, svc: GenerationService = Depends(get_generation_service)):
    progress = svc.get_progress(generation_id)
    if progress is None:
        raise HTTPException(status_code=404, detail={"code": "RESOURCE_NOT_FOUND", "message": "Generation not found"})
    return ProgressResponse(**progress)

@router.post("/{generation_id}/run", response_model=AckResponse, status_code=202)
def run_generation(generation_id: str, user_id: str, svc: GenerationService = Depends(get_generation_service)):
    gen = svc.get_generation(generation_id, user_id)
    if gen.status in (GenerationStatus.COMPLETED, GenerationStatus.CANCELLED):
        raise HTTPException(status_code=409, detail={
            "code": "INVALID_INPUT", "message": f"Generation is already {gen.status.value}",
        })
    svc.claim_workflow(generation_id)
    try:
        run_generation_workflow.delay(generation_id)
    except Exception:
        svc.release_workflow(generation_id)
        raise
    return AckResponse()

@router.get("/{generation_id}/export")
def export_generation(generation_id: str, user_id: str, svc: GenerationService = Depends(get_generation_service)):
    gen = svc.get_generation(generation_id, user_id)
    data = build_zip(result_from_record(gen))
    filename = download_filename(gen.project_name, "zip")
    return Response(
        content=data,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
