import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ExecutionError, RemoteRunFailedError
from app.models.job_ledger import JobStatus
from app.models.user_model import Users
from app.modules.credentials.service import ClientFactory, client_for_job
from app.modules.entitlements.service import Capability, has_active_plan
from app.modules.quota.service import quota_service
from app.modules.runner.cancellation import CancellationToken
from app.modules.runner.poller import RunPoller
from app.repository.definition_repository import agent_repository, assistant_repository
from app.repository.job_ledger_repository import (
    JobLedgerRepository,
    agent_action_repository,
    assistant_history_repository,
    transcription_repository,
)
from app.repository.user_repository import user_repository
from app.schemas.plan_schema import UNLIMITED
from app.utils.file_manager import delete_local_file
from app.utils.pdf_generator import generate_text_pdf

logger = logging.getLogger(__name__)

INTERRUPTED = "Execução interrompida antes da conclusão. Envie a solicitação novamente."
ASSISTANT_PROMPT = "Baseado na transcrição a seguir, execute suas instruções.\n\n--- TRANSCRIÇÃO ---\n{text}"


@dataclass
class JobResult:
    output: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)
    minutes: float = 0


@dataclass
class RunContext:
    """What one execution allocated, so failure handling knows what to undo."""
    client: Any = None
    artifacts: List[str] = field(default_factory=list)
    thread_id: Optional[str] = None
    run_id: Optional[str] = None


def estimate_duration_seconds(file_size_kb, bitrate_kbps: Optional[int] = None) -> float:
    """Rough audio length from file size, assuming a constant bitrate."""
    bitrate_kbps = bitrate_kbps or settings.AUDIO_BITRATE_KBPS
    return float(file_size_kb or 0) * 8 / bitrate_kbps


def describe_error(exc: Exception) -> str:
    message = str(exc).strip()
    return message or type(exc).__name__


class JobRunner:
    """
    Drives one ledger row from pending to a terminal state.

    Subclasses implement `execute`; `run` owns the state machine, the quota
    charge and the cleanup, and always ends with completed or failed.
    """

    repository: JobLedgerRepository
    capability: Capability

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        client_factory: Optional[ClientFactory] = None,
        system_api_key: Optional[str] = None,
        output_dir: Optional[str] = None,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory
        self.system_api_key = system_api_key
        self.output_dir = output_dir or settings.OUTPUT_DIR

    def client_for(self, user: Users, used_system_token: bool):
        return client_for_job(
            user,
            used_system_token,
            system_api_key=self.system_api_key,
            client_factory=self.client_factory,
        )

    def cancellation_token(self, db: AsyncSession, job_id: int) -> CancellationToken:
        async def check() -> bool:
            requested = await self.repository.is_cancel_requested(db, job_id)
            # a vanished row counts as cancelled
            return requested is None or requested

        return CancellationToken(check=check)

    async def execute(self, db: AsyncSession, job, user: Users, token: CancellationToken, ctx: RunContext) -> JobResult:
        raise NotImplementedError

    def input_files(self, job) -> List[str]:
        """Local inputs owned by this job. Removed on every exit path."""
        return []

    async def on_failure(self, job_id: int, ctx: RunContext) -> None:
        """Best-effort undo of remote allocations after a failure."""

    def failure_fields(self, exc: Exception) -> Dict[str, Any]:
        return {}

    def _discard(self, paths: List[str]) -> None:
        for path in paths:
            if not delete_local_file(path):
                logger.warning(f"File {path} could not be removed")
        paths.clear()

    async def run(self, job_id: int) -> Optional[str]:
        """Returns the terminal status reached, or None when the job was not runnable."""
        async with self.session_factory() as db:
            job = await self.repository.get(db, job_id)
            if job is None:
                logger.warning(f"{self.capability.value} job {job_id} not found, nothing to run")
                return None

            if job.status == JobStatus.PROCESSING.value:
                # Redelivered after a worker died mid-run
                logger.error(f"{self.capability.value} job {job_id} was left processing; marking failed")
                await self.repository.mark_failed(db, job_id, INTERRUPTED)
                self._discard(self.input_files(job))
                return JobStatus.FAILED.value

            if not await self.repository.mark_processing(db, job_id):
                logger.info(f"{self.capability.value} job {job_id} is already {job.status}; skipping")
                return None

            ctx = RunContext()
            inputs = self.input_files(job)
            token = self.cancellation_token(db, job_id)
            try:
                await token.raise_if_cancelled()
                user = await user_repository.get_user(db, job.user_id)
                if user is None:
                    raise ExecutionError("Usuário não encontrado.")

                result = await self.execute(db, job, user, token, ctx)
                await token.raise_if_cancelled()

                completed = await self.repository.mark_completed(
                    db, job_id, result.output, commit=False, **result.fields
                )
                if completed and job.used_system_token:
                    await quota_service.charge(
                        db, job.user_id, self.capability, minutes=result.minutes, commit=False
                    )
                await db.commit()

                if not completed:
                    logger.warning(f"{self.capability.value} job {job_id} left processing before completion; output discarded")
                    self._discard(ctx.artifacts)
                    return None

                logger.info(f"{self.capability.value} job {job_id} completed")
                return JobStatus.COMPLETED.value

            except Exception as e:
                await db.rollback()
                message = describe_error(e)
                logger.error(f"{self.capability.value} job {job_id} failed: {message}")
                await self.repository.mark_failed(db, job_id, message, **self.failure_fields(e))
                self._discard(ctx.artifacts)
                await self.on_failure(job_id, ctx)
                return JobStatus.FAILED.value

            finally:
                self._discard(inputs)


class TranscriptionRunner(JobRunner):
    repository = transcription_repository
    capability = Capability.TRANSCRIBE

    async def execute(self, db, job, user, token, ctx) -> JobResult:
        if not job.audio_path or not os.path.exists(job.audio_path):
            raise ExecutionError("Arquivo de áudio não encontrado para transcrição.")

        # Transcription always runs on the shared key
        ctx.client = self.client_for(user, True)
        text = await ctx.client.transcribe_audio(job.audio_path, model=settings.WHISPER_MODEL)

        duration_seconds = estimate_duration_seconds(job.file_size_kb)
        minutes = round(duration_seconds / 60, 2)

        if not user.is_admin and has_active_plan(user, datetime.utcnow()):
            limit = user.current_plan.feature_set.max_transcription_minutes
            used = float(user.transcription_minutes_used or 0)
            if limit != UNLIMITED and used + minutes > limit:
                raise ExecutionError(
                    f"A duração estimada do áudio ({minutes:.2f} min) excede os minutos restantes "
                    f"do seu plano ({max(limit - used, 0):.2f} min)."
                )

        return JobResult(
            output=text,
            fields={"duration_seconds": Decimal(str(round(duration_seconds, 2)))},
            minutes=minutes,
        )

    def input_files(self, job) -> List[str]:
        return [job.audio_path] if job.audio_path else []


class AgentRunner(JobRunner):
    repository = agent_action_repository
    capability = Capability.RUN_AGENT

    async def execute(self, db, job, user, token, ctx) -> JobResult:
        agent = await agent_repository.get(db, job.agent_id)
        if agent is None:
            raise ExecutionError("Agente não encontrado.")

        ctx.client = self.client_for(user, job.used_system_token)
        prompt = agent.prompt_template.replace("{text}", job.input_text)
        output = await ctx.client.create_chat_completion(prompt, model=agent.model_used)
        await token.raise_if_cancelled()

        fields = {}
        if job.output_format == "pdf":
            path = generate_text_pdf(output, f"agent_action_{job.id}", self.output_dir)
            ctx.artifacts.append(path)
            fields["output_file_path"] = path
        return JobResult(output=output, fields=fields)


class AssistantRunner(JobRunner):
    repository = assistant_history_repository
    capability = Capability.RUN_ASSISTANT

    def __init__(self, *args, poller: Optional[RunPoller] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.poller = poller or RunPoller()

    async def execute(self, db, job, user, token, ctx) -> JobResult:
        assistant = await assistant_repository.get(db, job.assistant_id) if job.assistant_id else None
        if assistant is None:
            raise ExecutionError("Assistente não encontrado.")
        if not assistant.openai_assistant_id:
            raise ExecutionError("Assistente não sincronizado com a OpenAI. Edite e salve o assistente novamente.")

        ctx.client = self.client_for(user, job.used_system_token)

        ctx.thread_id = await ctx.client.create_thread()
        await self.repository.update_tracking(db, job.id, openai_thread_id=ctx.thread_id)
        await token.raise_if_cancelled()

        await ctx.client.create_message(ctx.thread_id, ASSISTANT_PROMPT.replace("{text}", job.input_text))

        run_config = assistant.run_configuration or {}
        run = await ctx.client.create_run(
            ctx.thread_id,
            assistant.openai_assistant_id,
            instructions=job.dynamic_prompt or assistant.instructions,
            temperature=run_config.get("temperature", 1.0),
            top_p=run_config.get("top_p", 1.0),
            max_completion_tokens=run_config.get("max_completion_tokens"),
        )
        ctx.run_id = run["id"]
        await self.repository.update_tracking(
            db, job.id, openai_run_id=ctx.run_id, openai_run_status=run.get("status")
        )

        async def on_status(status: str) -> None:
            await self.repository.update_tracking(db, job.id, openai_run_status=status)

        await self.poller.poll_until_terminal(ctx.client, ctx.thread_id, ctx.run_id, token, on_status)
        output = await self.poller.fetch_output(ctx.client, ctx.thread_id)

        fields = {"openai_run_status": "completed"}
        if job.output_format == "pdf":
            path = generate_text_pdf(output, f"assistant_history_{job.id}", self.output_dir)
            ctx.artifacts.append(path)
            fields["output_file_path"] = path
        return JobResult(output=output, fields=fields)

    def failure_fields(self, exc: Exception) -> Dict[str, Any]:
        if isinstance(exc, RemoteRunFailedError) and exc.status:
            return {"openai_run_status": exc.status}
        return {}

    async def on_failure(self, job_id: int, ctx: RunContext) -> None:
        if ctx.client is None or ctx.thread_id is None:
            return
        try:
            await ctx.client.delete_thread(ctx.thread_id)
        except Exception as e:
            logger.warning(f"Could not delete thread {ctx.thread_id} for assistant history {job_id}: {e}")
