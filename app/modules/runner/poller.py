import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.core.config import settings
from app.core.exceptions import (
    JobCancelledError,
    RemoteRunFailedError,
    RemoteRunNotFoundError,
    RunTimeoutError,
)
from app.core.openai_client import OpenAIAPIError
from app.modules.runner.cancellation import CancellationToken

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "completed"
FAILURE_STATUSES = ("failed", "cancelled", "expired", "incomplete")
# No tool-call handler exists, so a run waiting for one can never finish
ACTION_STATUS = "requires_action"

StatusCallback = Callable[[str], Awaitable[None]]


class RunPoller:
    """Cooperative polling of a remote assistant run until it reaches a terminal state."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.interval_seconds = settings.RUN_POLL_INTERVAL_SEC if interval_seconds is None else interval_seconds
        self.timeout_seconds = settings.RUN_POLL_TIMEOUT_SEC if timeout_seconds is None else timeout_seconds
        self._sleep = sleep
        self._clock = clock

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def _cancel_remote(self, client, thread_id: str, run_id: str) -> None:
        try:
            await client.cancel_run(thread_id, run_id)
        except (OpenAIAPIError, httpx.HTTPError) as e:
            logger.warning(f"Could not cancel remote run {run_id} on thread {thread_id}: {e}")

    async def poll_until_terminal(
        self,
        client,
        thread_id: str,
        run_id: str,
        token: Optional[CancellationToken] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> Dict[str, Any]:
        """
        Returns the run payload once it completes. Raises RemoteRunFailedError,
        RemoteRunNotFoundError, RunTimeoutError or JobCancelledError otherwise.
        """
        deadline = self._now() + self.timeout_seconds
        last_status = None

        while True:
            if token is not None and await token.is_cancelled():
                await self._cancel_remote(client, thread_id, run_id)
                raise JobCancelledError(token.reason or "Execução cancelada.")

            try:
                run = await client.retrieve_run(thread_id, run_id)
            except OpenAIAPIError as e:
                if e.status_code == 404:
                    raise RemoteRunNotFoundError(f"Run {run_id} não encontrada na OpenAI: {e}") from e
                if not e.is_transient:
                    raise
                logger.warning(f"Transient error polling run {run_id}: {e}")
                run = None
            except httpx.TransportError as e:
                logger.warning(f"Transport error polling run {run_id}: {e}")
                run = None

            if run is not None:
                status = run.get("status")
                if status != last_status:
                    logger.info(f"Run {run_id} status: {status}")
                    last_status = status
                    if on_status is not None:
                        await on_status(status)

                if status == SUCCESS_STATUS:
                    return run
                if status in FAILURE_STATUSES or status == ACTION_STATUS:
                    error = run.get("last_error") or run.get("incomplete_details") or run.get("required_action")
                    raise RemoteRunFailedError(
                        f"Execução do assistente terminou com status '{status}': {error}",
                        status=status,
                        payload=error,
                    )

            if self._now() >= deadline:
                await self._cancel_remote(client, thread_id, run_id)
                raise RunTimeoutError(
                    f"Tempo limite de {int(self.timeout_seconds)}s excedido aguardando a execução do assistente."
                )
            await self._sleep(self.interval_seconds)

    async def fetch_output(self, client, thread_id: str) -> str:
        """Text of the newest assistant message on the thread."""
        messages = await client.list_messages(thread_id, order="desc", limit=20)
        for message in messages:
            if message.get("role") != "assistant":
                continue
            parts = [
                part["text"]["value"]
                for part in message.get("content", [])
                if part.get("type") == "text" and part.get("text")
            ]
            if parts:
                return "\n".join(parts).strip()
        raise ValueError("Nenhuma resposta do assistente encontrada na thread.")
