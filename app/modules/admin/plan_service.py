import logging
from typing import List
from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.core.exceptions import ResourceConflictError
from app.models.plan_model import Plan
from app.repository.definition_repository import plan_repository
from app.schemas.plan_schema import PlanCreate, PlanUpdate

logger = logging.getLogger(__name__)

class PlanService:
    async def get_plan_by_id(self, db: AsyncSession, plan_id: int) -> Plan:
        result = await db.execute(select(Plan).filter(Plan.id == plan_id))
        plan = result.scalars().first()
        if not plan:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plano não encontrado.")
        return plan

    async def list_plans(self, db: AsyncSession, active_only: bool = False) -> List[Plan]:
        return await plan_repository.get_all(db, active_only=active_only)

    async def create_plan(self, db: AsyncSession, plan_data: PlanCreate) -> Plan:
        if await plan_repository.get_by_name(db, plan_data.name):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Já existe um plano com o nome '{plan_data.name}'."
            )

        # features were validated by PlanFeatures; store the normalized dict
        db_plan = Plan(**plan_data.model_dump(mode="json", exclude={"price"}), price=plan_data.price)
        db.add(db_plan)
        await db.commit()
        await db.refresh(db_plan)
        logger.info(f"Plan {db_plan.id} '{db_plan.name}' created")
        return db_plan

    async def update_plan(self, db: AsyncSession, plan_id: int, plan_data: PlanUpdate) -> Plan:
        db_plan = await self.get_plan_by_id(db, plan_id)
        update_data = plan_data.model_dump(exclude_unset=True)
        if plan_data.features is not None:
            update_data["features"] = plan_data.features.model_dump(mode="json")
        if "name" in update_data and update_data["name"] != db_plan.name:
            if await plan_repository.get_by_name(db, update_data["name"]):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Já existe um plano com o nome '{update_data['name']}'."
                )
        for key, value in update_data.items():
            setattr(db_plan, key, value)

        await db.commit()
        await db.refresh(db_plan)
        return db_plan

    async def deactivate_plan(self, db: AsyncSession, plan_id: int) -> Plan:
        db_plan = await self.get_plan_by_id(db, plan_id)
        db_plan.is_active = False # Soft delete
        await db.commit()
        await db.refresh(db_plan)
        return db_plan

    async def delete_plan(self, db: AsyncSession, plan_id: int) -> None:
        db_plan = await self.get_plan_by_id(db, plan_id)
        if await plan_repository.is_referenced_by_orders(db, plan_id):
            raise ResourceConflictError(
                "Este plano possui pedidos de assinatura associados e não pode ser excluído. Desative-o em vez disso."
            )
        await db.delete(db_plan)
        await db.commit()
        logger.info(f"Plan {plan_id} deleted")

plan_service = PlanService()
