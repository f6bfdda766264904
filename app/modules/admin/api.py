from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.dependencies import get_current_admin, get_db
from app.models.user_model import Users
from app.schemas import agent_schema, assistant_schema, plan_schema, subscription_schema, user_schema
from app.modules.admin import service as admin_service
from app.modules.admin.plan_service import plan_service
from app.modules.assistant.api import _run_configuration
from app.modules.assistant.service import assistant_service
from app.modules.subscription.service import subscription_service

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(get_current_admin)],
)

# --- Plans ---

@router.get("/plans", response_model=List[plan_schema.Plan])
async def read_plans(
    active_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return await plan_service.list_plans(db, active_only=active_only)

@router.post("/plans", response_model=plan_schema.Plan, status_code=status.HTTP_201_CREATED)
async def create_plan(
    plan_in: plan_schema.PlanCreate,
    db: AsyncSession = Depends(get_db),
):
    return await plan_service.create_plan(db, plan_in)

@router.get("/plans/{plan_id}", response_model=plan_schema.Plan)
async def read_plan(plan_id: int, db: AsyncSession = Depends(get_db)):
    return await plan_service.get_plan_by_id(db, plan_id)

@router.put("/plans/{plan_id}", response_model=plan_schema.Plan)
async def update_plan(
    plan_id: int,
    plan_in: plan_schema.PlanUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await plan_service.update_plan(db, plan_id, plan_in)

@router.post("/plans/{plan_id}/deactivate", response_model=plan_schema.Plan)
async def deactivate_plan(plan_id: int, db: AsyncSession = Depends(get_db)):
    return await plan_service.deactivate_plan(db, plan_id)

@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(plan_id: int, db: AsyncSession = Depends(get_db)):
    await plan_service.delete_plan(db, plan_id)

# --- Users and plan binding ---

@router.get("/users", response_model=List[user_schema.User])
async def read_users(
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.get_users_service(db, skip=(page - 1) * limit, limit=limit)

@router.get("/users/{user_id}", response_model=user_schema.User)
async def read_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await admin_service.get_user_service(db, user_id)

@router.put("/users/{user_id}/plan", response_model=user_schema.User)
async def assign_user_plan(
    user_id: int,
    assignment: user_schema.UserPlanAssign,
    db: AsyncSession = Depends(get_db),
):
    """Sets or removes a user's plan. Usage counters always start from zero."""
    return await subscription_service.assign_plan(
        db, user_id, assignment.plan_id, duration_in_days=assignment.duration_in_days
    )

@router.post("/subscriptions/activate", response_model=user_schema.User)
async def activate_subscription(
    activation: subscription_schema.PlanActivation,
    db: AsyncSession = Depends(get_db),
):
    """Entry point for the payment boundary once an order is paid."""
    return await subscription_service.activate_plan(
        db, activation.user_id, activation.plan_id, order_id=activation.order_id
    )

# --- System definitions ---

def _plan_ids(raw: Optional[str]) -> Optional[List[int]]:
    if raw is None:
        return None
    try:
        return [int(pid) for pid in raw.split(",") if pid.strip()]
    except ValueError:
        raise RequestValidationError(
            [{"loc": ("body", "allowed_plan_ids"), "msg": "must be a comma-separated list of plan ids", "type": "value_error"}]
        )


def system_assistant_create_form(
    name: str = Form(...),
    instructions: str = Form(...),
    model: Optional[str] = Form(default=None),
    execution_mode: str = Form(default="FIXO"),
    output_format: str = Form(default="text"),
    temperature: Optional[float] = Form(default=None),
    top_p: Optional[float] = Form(default=None),
    max_completion_tokens: Optional[int] = Form(default=None),
    requires_user_openai_token: bool = Form(default=False),
    plan_specific: bool = Form(default=False),
    allowed_plan_ids: str = Form(default=""),
) -> assistant_schema.SystemAssistantCreate:
    """Multipart fields for a system assistant; allowed_plan_ids is comma-separated."""
    try:
        return assistant_schema.SystemAssistantCreate(
            name=name,
            instructions=instructions,
            model=model,
            execution_mode=execution_mode,
            output_format=output_format,
            run_configuration=_run_configuration(temperature, top_p, max_completion_tokens),
            requires_user_openai_token=requires_user_openai_token,
            plan_specific=plan_specific,
            allowed_plan_ids=_plan_ids(allowed_plan_ids),
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def system_assistant_update_form(
    name: Optional[str] = Form(default=None),
    instructions: Optional[str] = Form(default=None),
    model: Optional[str] = Form(default=None),
    execution_mode: Optional[str] = Form(default=None),
    output_format: Optional[str] = Form(default=None),
    temperature: Optional[float] = Form(default=None),
    top_p: Optional[float] = Form(default=None),
    max_completion_tokens: Optional[int] = Form(default=None),
    requires_user_openai_token: Optional[bool] = Form(default=None),
    plan_specific: Optional[bool] = Form(default=None),
    allowed_plan_ids: Optional[str] = Form(default=None),
    remove_file_ids: str = Form(default=""),
) -> assistant_schema.SystemAssistantUpdate:
    fields = {
        key: value
        for key, value in {
            "name": name,
            "instructions": instructions,
            "model": model,
            "execution_mode": execution_mode,
            "output_format": output_format,
            "requires_user_openai_token": requires_user_openai_token,
            "plan_specific": plan_specific,
            "allowed_plan_ids": _plan_ids(allowed_plan_ids),
        }.items()
        if value is not None
    }
    run_configuration = _run_configuration(temperature, top_p, max_completion_tokens)
    if run_configuration:
        fields["run_configuration"] = run_configuration
    fields["remove_file_ids"] = [fid.strip() for fid in remove_file_ids.split(",") if fid.strip()]
    try:
        return assistant_schema.SystemAssistantUpdate(**fields)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


@router.get("/agents", response_model=List[agent_schema.Agent])
async def read_system_agents(db: AsyncSession = Depends(get_db)):
    return await admin_service.list_system_agents_service(db)

@router.post("/agents", response_model=agent_schema.Agent, status_code=status.HTTP_201_CREATED)
async def create_system_agent(
    agent_in: agent_schema.SystemAgentCreate,
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.create_system_agent_service(db, agent_in)

@router.put("/agents/{agent_id}", response_model=agent_schema.Agent)
async def update_system_agent(
    agent_id: int,
    agent_in: agent_schema.SystemAgentUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Also changes plan gating; plan_specific=false clears the allow-list."""
    return await admin_service.update_system_agent_service(db, agent_id, agent_in)

@router.delete("/agents/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_system_agent(agent_id: int, db: AsyncSession = Depends(get_db)):
    await admin_service.delete_system_agent_service(db, agent_id)

@router.get("/assistants", response_model=List[assistant_schema.Assistant])
async def read_system_assistants(db: AsyncSession = Depends(get_db)):
    return await admin_service.list_system_assistants_service(db)

@router.post("/assistants", response_model=assistant_schema.Assistant, status_code=status.HTTP_201_CREATED)
async def create_system_assistant(
    assistant_in: assistant_schema.SystemAssistantCreate = Depends(system_assistant_create_form),
    files: List[UploadFile] = File(default=[]),
    current_user: Users = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """System assistant, with a knowledge base when files are sent."""
    return await assistant_service.create_assistant(db, current_user, assistant_in, files)

@router.put("/assistants/{assistant_id}", response_model=assistant_schema.Assistant)
async def update_system_assistant(
    assistant_id: int,
    assistant_in: assistant_schema.SystemAssistantUpdate = Depends(system_assistant_update_form),
    files: List[UploadFile] = File(default=[]),
    current_user: Users = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.update_system_assistant_service(db, current_user, assistant_id, assistant_in, files)

@router.delete("/assistants/{assistant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_system_assistant(
    assistant_id: int,
    current_user: Users = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    await admin_service.delete_system_assistant_service(db, current_user, assistant_id)
