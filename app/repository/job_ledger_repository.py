from typing import List, Optional, Sequence, Tuple, Type

from sqlalchemy import update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.agent_action_model import AgentAction
from app.models.assistant_history_model import AssistantHistory
from app.models.job_ledger import JobStatus
from app.models.transcription_model import Transcription
from app.repository.base_repository import BaseRepository, ModelType


class JobLedgerRepository(BaseRepository[ModelType]):
    """
    Persistence and state machine for every job ledger table.

    Each transition is one conditional UPDATE guarded on the current status, so a
    row that already reached completed/failed is never rewritten. Transition
    methods return True when the row actually moved.
    """

    def __init__(self, model: Type[ModelType]):
        super().__init__(model)
        self.output_field = model.output_field

    async def _transition(self, db: AsyncSession, job_id: int, allowed_from, values: dict, commit: bool) -> bool:
        stmt = (
            update(self.model)
            .where(self.model.id == job_id, self.model.status.in_(allowed_from))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if commit:
            await db.commit()
        return result.rowcount == 1

    async def create_pending(self, db: AsyncSession, **fields) -> ModelType:
        fields.pop("status", None)
        db_obj = self.model(status=JobStatus.PENDING.value, **fields)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def mark_processing(self, db: AsyncSession, job_id: int, commit: bool = True) -> bool:
        return await self._transition(
            db, job_id, (JobStatus.PENDING.value,), {"status": JobStatus.PROCESSING.value}, commit
        )

    async def mark_completed(
        self,
        db: AsyncSession,
        job_id: int,
        output: Optional[str],
        commit: bool = True,
        **extra,
    ) -> bool:
        if output is None and not extra.get("output_file_path"):
            raise ValueError("A completed job needs its output in the same write.")
        values = {"status": JobStatus.COMPLETED.value, "error_message": None, self.output_field: output}
        values.update(extra)
        return await self._transition(db, job_id, (JobStatus.PROCESSING.value,), values, commit)

    async def mark_failed(self, db: AsyncSession, job_id: int, message: str, commit: bool = True, **extra) -> bool:
        if not message:
            raise ValueError("A failed job needs an error message in the same write.")
        values = {"status": JobStatus.FAILED.value, "error_message": message}
        values.update(extra)
        return await self._transition(db, job_id, JobStatus.in_flight(), values, commit)

    async def update_tracking(self, db: AsyncSession, job_id: int, commit: bool = True, **fields) -> bool:
        """Stores provider correlation ids. Only a processing row accepts them."""
        return await self._transition(db, job_id, (JobStatus.PROCESSING.value,), fields, commit)

    async def request_cancel(self, db: AsyncSession, job_id: int, commit: bool = True) -> bool:
        return await self._transition(db, job_id, JobStatus.in_flight(), {"cancel_requested": True}, commit)

    async def request_cancel_for(self, db: AsyncSession, *criteria, commit: bool = True) -> int:
        """Flags every in-flight row matching criteria. Returns the number of rows flagged."""
        stmt = (
            update(self.model)
            .where(self.model.status.in_(JobStatus.in_flight()), *criteria)
            .values(cancel_requested=True)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if commit:
            await db.commit()
        return result.rowcount

    async def is_cancel_requested(self, db: AsyncSession, job_id: int) -> Optional[bool]:
        """None when the row no longer exists."""
        result = await db.execute(select(self.model.cancel_requested).where(self.model.id == job_id))
        row = result.first()
        if row is None:
            return None
        return bool(row[0])

    async def get_for_user(self, db: AsyncSession, job_id: int, user_id: int) -> Optional[ModelType]:
        result = await db.execute(
            select(self.model)
            .where(self.model.id == job_id, self.model.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: int,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        criteria: Sequence = (),
    ) -> Tuple[List[ModelType], int]:
        filters = [self.model.user_id == user_id, *criteria]
        if status:
            filters.append(self.model.status == status)

        total = (await db.execute(select(func.count(self.model.id)).where(*filters))).scalar_one()
        result = await db.execute(
            select(self.model)
            .where(*filters)
            .order_by(self.model.created_at.desc(), self.model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all(), total


transcription_repository = JobLedgerRepository(Transcription)
agent_action_repository = JobLedgerRepository(AgentAction)
assistant_history_repository = JobLedgerRepository(AssistantHistory)
