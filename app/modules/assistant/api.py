from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, get_current_user
from app.models.job_ledger import JobStatus
from app.models.user_model import Users
from app.schemas import assistant_schema, job_schema
from app.modules.assistant.service import assistant_service

router = APIRouter(
    prefix="/assistants",
    tags=["Assistants"],
)


def _run_configuration(temperature, top_p, max_completion_tokens) -> dict:
    config = {}
    if temperature is not None:
        config["temperature"] = temperature
    if top_p is not None:
        config["top_p"] = top_p
    if max_completion_tokens is not None:
        config["max_completion_tokens"] = max_completion_tokens
    return config


def assistant_create_form(
    name: str = Form(...),
    instructions: str = Form(...),
    model: Optional[str] = Form(default=None),
    execution_mode: str = Form(default="FIXO"),
    output_format: str = Form(default="text"),
    temperature: Optional[float] = Form(default=None),
    top_p: Optional[float] = Form(default=None),
    max_completion_tokens: Optional[int] = Form(default=None),
) -> assistant_schema.AssistantCreate:
    """Multipart form fields for creation, validated like the JSON schema."""
    try:
        return assistant_schema.AssistantCreate(
            name=name,
            instructions=instructions,
            model=model,
            execution_mode=execution_mode,
            output_format=output_format,
            run_configuration=_run_configuration(temperature, top_p, max_completion_tokens),
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def assistant_update_form(
    name: Optional[str] = Form(default=None),
    instructions: Optional[str] = Form(default=None),
    model: Optional[str] = Form(default=None),
    execution_mode: Optional[str] = Form(default=None),
    output_format: Optional[str] = Form(default=None),
    temperature: Optional[float] = Form(default=None),
    top_p: Optional[float] = Form(default=None),
    max_completion_tokens: Optional[int] = Form(default=None),
    remove_file_ids: str = Form(default=""),
) -> assistant_schema.AssistantUpdate:
    fields = {
        key: value
        for key, value in {
            "name": name,
            "instructions": instructions,
            "model": model,
            "execution_mode": execution_mode,
            "output_format": output_format,
        }.items()
        if value is not None
    }
    run_configuration = _run_configuration(temperature, top_p, max_completion_tokens)
    if run_configuration:
        fields["run_configuration"] = run_configuration
    fields["remove_file_ids"] = [fid.strip() for fid in remove_file_ids.split(",") if fid.strip()]
    try:
        return assistant_schema.AssistantUpdate(**fields)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


@router.get("/", response_model=List[assistant_schema.Assistant])
async def list_available_assistants(
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await assistant_service.list_available_assistants(db, current_user)


@router.post("/", response_model=assistant_schema.Assistant, status_code=status.HTTP_201_CREATED)
async def create_assistant(
    assistant_in: assistant_schema.AssistantCreate = Depends(assistant_create_form),
    files: List[UploadFile] = File(default=[]),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Creates an assistant and, when files are sent, a knowledge base for it.
    If any provider step fails nothing is kept, locally or remotely.
    """
    return await assistant_service.create_assistant(db, current_user, assistant_in, files)


@router.put("/{assistant_id}", response_model=assistant_schema.Assistant)
async def update_assistant(
    assistant_id: int,
    assistant_in: assistant_schema.AssistantUpdate = Depends(assistant_update_form),
    files: List[UploadFile] = File(default=[]),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await assistant_service.update_assistant(db, current_user, assistant_id, assistant_in, files)


@router.delete("/{assistant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assistant(
    assistant_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await assistant_service.delete_assistant(db, current_user, assistant_id)


@router.post("/{assistant_id}/run", response_model=job_schema.JobAccepted, status_code=status.HTTP_202_ACCEPTED)
async def run_assistant(
    assistant_id: int,
    run_in: assistant_schema.AssistantRunRequest,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    history = await assistant_service.run_assistant(db, current_user, assistant_id, run_in)
    return job_schema.JobAccepted(
        id=history.id,
        status=history.status,
        status_url=f"/api/assistants/history/{history.id}",
        message="Assistente em execução. Consulte o status para obter o resultado.",
    )


@router.get("/history", response_model=job_schema.PaginatedAssistantHistory)
async def list_history(
    status_filter: Optional[JobStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    items, total = await assistant_service.list_history(
        db, current_user, status=status_filter.value if status_filter else None, page=page, limit=limit
    )
    return job_schema.PaginatedAssistantHistory(items=items, total=total, page=page, limit=limit)


@router.get("/history/{history_id}", response_model=job_schema.AssistantHistory)
async def get_history(
    history_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await assistant_service.get_history(db, current_user, history_id)


@router.post("/history/{history_id}/cancel", response_model=job_schema.AssistantHistory)
async def cancel_history(
    history_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await assistant_service.cancel_history(db, current_user, history_id)


@router.get("/history/{history_id}/download")
async def download_history_output(
    history_id: int,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    path = await assistant_service.get_history_file(db, current_user, history_id)
    return FileResponse(path, media_type="application/pdf", filename=f"assistant_history_{history_id}.pdf")
