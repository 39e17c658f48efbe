from fastapi import APIRouter, Depends
from prompt_builder.api.deps import get_user_service
from prompt_builder.schemas.generations import UserCreateRequest, UserStatsResponse
from prompt_builder.services.users import UserService

router = APIRouter(prefix="/users")

def _stats(users: UserService, user_id: str) -> UserStatsResponse:
    stats = users.get_user_stats(user_id)
    return UserStatsResponse(
        user_id=stats.user_id,
        is_pro=stats.is_pro,
        remaining_prompts=stats.remaining_prompts,
        prompts_today=stats.prompts_today,
        total_prompts=stats.total_prompts,
        prompt_type_breakdown=stats.prompt_type_breakdown,
    )

@router.post("", response_model=UserStatsResponse)
def create_user(req: UserCreateRequest, users: UserService = Depends(get_user_service)):
    users.get_or_create_user(req.clerk_id, req.email)
    return _stats(users, req.clerk_id)

@router.get("/{user_id}/stats", response_model=UserStatsResponse)
def get_user_stats(user_id: str, users: UserService = Depends(get_user_service)):
    return _stats(users, user_id)
