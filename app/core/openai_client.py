import json
import os
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings


class OpenAIAPIError(Exception):
    """Non-2xx answer from the provider. Keeps the status code and the raw body."""

    def __init__(self, status_code: int, body: Any, path: str = ""):
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(f"OpenAI API error {status_code} on {path}: {self._body_text()}")

    def _body_text(self) -> str:
        if isinstance(self.body, (dict, list)):
            return json.dumps(self.body, ensure_ascii=False)
        return str(self.body)

    @property
    def is_transient(self) -> bool:
        return self.status_code in (408, 409, 429) or self.status_code >= 500


class OpenAIClient:
    """
    Thin REST client for the provider endpoints the engine needs: speech-to-text,
    chat completions, files, vector stores, assistants and the thread/run protocol.
    Instances hold nothing but the credential; build one per job.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.OPENAI_TIMEOUT_SEC
        self._transport = transport

    def _headers(self, assistants: bool = False) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if assistants:
            headers["OpenAI-Beta"] = "assistants=v2"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        assistants: bool = False,
        json_body: Optional[dict] = None,
        params: Optional[dict] = None,
        data: Optional[dict] = None,
        files: Optional[dict] = None,
    ) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.request(
                method,
                path,
                headers=self._headers(assistants),
                json=json_body,
                params=params,
                data=data,
                files=files,
            )
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise OpenAIAPIError(response.status_code, body, path)
        if not response.content:
            return {}
        return response.json()

    # --- Speech to text ---

    async def transcribe_audio(self, file_path: str, model: Optional[str] = None) -> str:
        with open(file_path, "rb") as audio:
            result = await self._request(
                "POST",
                "/audio/transcriptions",
                data={"model": model or settings.WHISPER_MODEL},
                files={"file": (os.path.basename(file_path), audio)},
            )
        return result.get("text", "")

    # --- Single-shot completion ---

    async def create_chat_completion(self, prompt: str, model: str, **params) -> str:
        payload = {"model": model, "messages": [{"role": "user", "content": prompt}]}
        payload.update({k: v for k, v in params.items() if v is not None})
        result = await self._request("POST", "/chat/completions", json_body=payload)
        choices = result.get("choices") or []
        if not choices or not choices[0].get("message", {}).get("content"):
            raise ValueError("Resposta vazia da OpenAI para a conclusão de chat.")
        return choices[0]["message"]["content"].strip()

    # --- Files and vector stores ---

    async def upload_file(self, file_path: str, filename: Optional[str] = None, purpose: str = "assistants") -> str:
        with open(file_path, "rb") as fh:
            result = await self._request(
                "POST",
                "/files",
                data={"purpose": purpose},
                files={"file": (filename or os.path.basename(file_path), fh)},
            )
        return result["id"]

    async def delete_file(self, file_id: str) -> None:
        await self._request("DELETE", f"/files/{file_id}")

    async def create_vector_store(self, name: str, file_ids: Optional[List[str]] = None) -> str:
        payload = {"name": name}
        if file_ids:
            payload["file_ids"] = file_ids
        result = await self._request("POST", "/vector_stores", assistants=True, json_body=payload)
        return result["id"]

    async def create_file_batch(self, vector_store_id: str, file_ids: List[str]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/vector_stores/{vector_store_id}/file_batches",
            assistants=True,
            json_body={"file_ids": file_ids},
        )

    async def delete_vector_store(self, vector_store_id: str) -> None:
        await self._request("DELETE", f"/vector_stores/{vector_store_id}", assistants=True)

    # --- Assistants ---

    async def create_assistant(
        self,
        name: str,
        instructions: str,
        model: str,
        vector_store_id: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
    ) -> str:
        payload: Dict[str, Any] = {"name": name, "instructions": instructions, "model": model}
        if vector_store_id:
            payload["tools"] = [{"type": "file_search"}]
            payload["tool_resources"] = {"file_search": {"vector_store_ids": [vector_store_id]}}
        if temperature is not None:
            payload["temperature"] = temperature
        if top_p is not None:
            payload["top_p"] = top_p
        result = await self._request("POST", "/assistants", assistants=True, json_body=payload)
        return result["id"]

    async def update_assistant(self, assistant_id: str, **fields) -> Dict[str, Any]:
        payload = {k: v for k, v in fields.items() if v is not None}
        return await self._request("POST", f"/assistants/{assistant_id}", assistants=True, json_body=payload)

    async def delete_assistant(self, assistant_id: str) -> None:
        await self._request("DELETE", f"/assistants/{assistant_id}", assistants=True)

    # --- Threads and runs ---

    async def create_thread(self) -> str:
        result = await self._request("POST", "/threads", assistants=True, json_body={})
        return result["id"]

    async def delete_thread(self, thread_id: str) -> None:
        await self._request("DELETE", f"/threads/{thread_id}", assistants=True)

    async def create_message(self, thread_id: str, content: str, role: str = "user") -> str:
        result = await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            assistants=True,
            json_body={"role": role, "content": content},
        )
        return result["id"]

    async def list_messages(self, thread_id: str, order: str = "desc", limit: int = 20) -> List[Dict[str, Any]]:
        result = await self._request(
            "GET",
            f"/threads/{thread_id}/messages",
            assistants=True,
            params={"order": order, "limit": limit},
        )
        return result.get("data", [])

    async def create_run(self, thread_id: str, assistant_id: str, **params) -> Dict[str, Any]:
        payload = {"assistant_id": assistant_id}
        payload.update({k: v for k, v in params.items() if v is not None})
        return await self._request("POST", f"/threads/{thread_id}/runs", assistants=True, json_body=payload)

    async def retrieve_run(self, thread_id: str, run_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/threads/{thread_id}/runs/{run_id}", assistants=True)

    async def cancel_run(self, thread_id: str, run_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/threads/{thread_id}/runs/{run_id}/cancel", assistants=True)
