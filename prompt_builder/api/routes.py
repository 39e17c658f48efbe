from fastapi import APIRouter
from prompt_builder.api.routes_health import router as health_router
from prompt_builder.api.routes_generations import router as generations_router
from prompt_builder.api.routes_prompts import router as prompts_router
from prompt_builder.api.routes_users import router as users_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(users_router, tags=["users"])
router.include_router(generations_router, tags=["generations"])
router.include_router(prompts_router, tags=["prompts"])
