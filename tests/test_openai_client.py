import json

import httpx
import pytest

from app.core.openai_client import OpenAIAPIError, OpenAIClient


def make_client(handler, api_key="sk-test"):
    return OpenAIClient(api_key, base_url="https://provider.test/v1", transport=httpx.MockTransport(handler))


def test_api_key_is_required():
    with pytest.raises(ValueError):
        OpenAIClient("")


@pytest.mark.asyncio
async def test_chat_completion_sends_bearer_and_parses_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["beta"] = request.headers.get("OpenAI-Beta")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Resumo pronto.  "}}]})

    output = await make_client(handler).create_chat_completion("Resuma: texto", model="gpt-3.5-turbo", temperature=None)

    assert output == "Resumo pronto."
    assert seen["path"] == "/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["beta"] is None
    assert seen["body"] == {
        "model": "gpt-3.5-turbo",
        "messages": [{"role": "user", "content": "Resuma: texto"}],
    }


@pytest.mark.asyncio
async def test_empty_completion_is_an_error():
    client = make_client(lambda request: httpx.Response(200, json={"choices": []}))

    with pytest.raises(ValueError):
        await client.create_chat_completion("prompt", model="gpt-4o")


@pytest.mark.asyncio
async def test_assistant_endpoints_send_beta_header():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.headers.get("OpenAI-Beta")))
        if request.url.path.endswith("/runs"):
            return httpx.Response(200, json={"id": "run_1", "status": "queued"})
        return httpx.Response(200, json={"id": "thread_1"})

    client = make_client(handler)
    thread_id = await client.create_thread()
    run = await client.create_run(thread_id, "asst_1", temperature=0.2, max_completion_tokens=None)

    assert thread_id == "thread_1"
    assert run["status"] == "queued"
    assert seen == [
        ("POST", "/v1/threads", "assistants=v2"),
        ("POST", "/v1/threads/thread_1/runs", "assistants=v2"),
    ]


@pytest.mark.asyncio
async def test_create_run_drops_unset_parameters():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "run_1", "status": "queued"})

    await make_client(handler).create_run("thread_1", "asst_1", instructions="Seja breve.", top_p=None)

    assert bodies == [{"assistant_id": "asst_1", "instructions": "Seja breve."}]


@pytest.mark.asyncio
async def test_create_assistant_with_vector_store_enables_file_search():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "asst_9"})

    assistant_id = await make_client(handler).create_assistant(
        "Ata", "Gere atas.", "gpt-4o", vector_store_id="vs_1", temperature=0.5
    )

    assert assistant_id == "asst_9"
    assert bodies[0]["tools"] == [{"type": "file_search"}]
    assert bodies[0]["tool_resources"] == {"file_search": {"vector_store_ids": ["vs_1"]}}
    assert bodies[0]["temperature"] == 0.5
    assert "top_p" not in bodies[0]


@pytest.mark.asyncio
async def test_error_response_raises_with_status_and_body():
    client = make_client(lambda request: httpx.Response(401, json={"error": {"message": "Incorrect API key"}}))

    with pytest.raises(OpenAIAPIError) as exc_info:
        await client.retrieve_run("thread_1", "run_1")

    assert exc_info.value.status_code == 401
    assert exc_info.value.body == {"error": {"message": "Incorrect API key"}}
    assert exc_info.value.is_transient is False
    assert "Incorrect API key" in str(exc_info.value)


@pytest.mark.parametrize("status_code, transient", [(429, True), (500, True), (503, True), (400, False), (404, False)])
def test_transient_classification(status_code, transient):
    assert OpenAIAPIError(status_code, "x").is_transient is transient


@pytest.mark.asyncio
async def test_transcribe_audio_uploads_multipart(tmp_path):
    audio = tmp_path / "audio.mp3"
    audio.write_bytes(b"ID3data")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"text": "olá mundo"})

    text = await make_client(handler).transcribe_audio(str(audio), model="whisper-1")

    assert text == "olá mundo"
    assert seen["path"] == "/v1/audio/transcriptions"
    assert seen["content_type"].startswith("multipart/form-data")
    assert b"whisper-1" in seen["body"]
    assert b"ID3data" in seen["body"]
    # the provider detects the spoken language
    assert b'name="language"' not in seen["body"]


@pytest.mark.asyncio
async def test_list_messages_returns_data_and_delete_accepts_empty_body():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "DELETE":
            return httpx.Response(204)
        assert request.url.params["order"] == "desc"
        return httpx.Response(200, json={"data": [{"role": "assistant"}]})

    client = make_client(handler)

    assert await client.list_messages("thread_1") == [{"role": "assistant"}]
    assert await client.delete_thread("thread_1") is None
