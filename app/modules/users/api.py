from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_db, get_current_user
from app.models.user_model import Users
from app.schemas import user_schema
from app.modules.users import service as user_service

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)


@router.get("/me", response_model=user_schema.User)
async def read_current_user(current_user: Users = Depends(get_current_user)):
    return current_user


@router.get("/me/plan-usage", response_model=user_schema.PlanUsage)
async def read_plan_usage(
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await user_service.get_plan_usage_service(db, current_user)


@router.put("/me/openai-key", status_code=status.HTTP_204_NO_CONTENT)
async def update_openai_key(
    key_in: user_schema.OpenAIKeyUpdate,
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await user_service.set_openai_key_service(db, current_user, key_in.api_key)


@router.delete("/me/openai-key", status_code=status.HTTP_204_NO_CONTENT)
async def delete_openai_key(
    current_user: Users = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await user_service.remove_openai_key_service(db, current_user)
