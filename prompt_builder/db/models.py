from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Boolean, DateTime, Enum, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from prompt_builder.db.session import Base
from prompt_builder.core.workflow import GenerationStatus


class AppBuilderGeneration(Base):
    __tablename__ = "app_builder_generations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    project_name: Mapped[str] = mapped_column(String(100), nullable=False)
    form_data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    selected_prompt_types: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    status: Mapped[GenerationStatus] = mapped_column(
        Enum(GenerationStatus, native_enum=False, length=32),
        default=GenerationStatus.PRD_PENDING,
        nullable=False,
    )

    prd: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_flows: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_file: Mapped[str | None] = mapped_column(Text, nullable=True)

    screen_list: Mapped[list | None] = mapped_column(JSON, nullable=True)
    endpoint_list: Mapped[list | None] = mapped_column(JSON, nullable=True)
    security_feature_list: Mapped[list | None] = mapped_column(JSON, nullable=True)
    functionality_feature_list: Mapped[list | None] = mapped_column(JSON, nullable=True)
    error_scenario_list: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # category -> [{"title", "prompt", "order"}]
    generated_prompts: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Set while a background workflow holds this generation.
    workflow_started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class User(Base):
    __tablename__ = "users"

    clerk_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    is_pro: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    prompts_created_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_prompt_reset_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    total_prompts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    prompt_type_breakdown: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
