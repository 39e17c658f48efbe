from fastapi import Depends
from sqlalchemy.orm import Session
from prompt_builder.db.session import get_db
from prompt_builder.llm.openrouter import OpenRouterClient
from prompt_builder.services.generations import GenerationService
from prompt_builder.services.single_prompts import SinglePromptService
from prompt_builder.services.users import UserService


def get_llm() -> OpenRouterClient:
    return OpenRouterClient()


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_generation_service(
    db: Session = Depends(get_db),
    llm: OpenRouterClient = Depends(get_llm),
    users: UserService = Depends(get_user_service),
) -> GenerationService:
    return GenerationService(db, llm, users)


def get_single_prompt_service(
    db: Session = Depends(get_db),
    llm: OpenRouterClient = Depends(get_llm),
    users: UserService = Depends(get_user_service),
) -> SinglePromptService:
    return SinglePromptService(db, llm, users)
