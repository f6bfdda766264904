import pytest

from app.models.job_ledger import JobStatus
from app.repository.job_ledger_repository import (
    agent_action_repository,
    assistant_history_repository,
    transcription_repository,
)


@pytest.fixture
def create_transcription(db_session):
    async def _create(user, **fields):
        values = dict(user_id=user.id, title="Reunião", audio_path=None, used_system_token=True)
        values.update(fields)
        return await transcription_repository.create_pending(db_session, **values)
    return _create


@pytest.mark.asyncio
async def test_create_pending_ignores_requested_status(db_session, create_user, create_transcription):
    user = await create_user()

    job = await create_transcription(user, status="completed")

    assert job.status == JobStatus.PENDING.value
    assert job.cancel_requested is False


@pytest.mark.asyncio
async def test_happy_path_transitions(db_session, create_user, create_transcription):
    user = await create_user()
    job = await create_transcription(user)

    assert await transcription_repository.mark_processing(db_session, job.id) is True
    assert (await transcription_repository.get(db_session, job.id)).status == "processing"

    assert await transcription_repository.mark_completed(db_session, job.id, "olá mundo") is True
    stored = await transcription_repository.get(db_session, job.id)
    assert stored.status == "completed"
    assert stored.transcription_text == "olá mundo"
    assert stored.error_message is None


@pytest.mark.asyncio
async def test_terminal_rows_are_final(db_session, create_user, create_transcription):
    user = await create_user()
    job = await create_transcription(user)
    await transcription_repository.mark_processing(db_session, job.id)
    await transcription_repository.mark_completed(db_session, job.id, "texto final")

    assert await transcription_repository.mark_failed(db_session, job.id, "tarde demais") is False
    assert await transcription_repository.mark_processing(db_session, job.id) is False
    assert await transcription_repository.mark_completed(db_session, job.id, "outro texto") is False
    assert await transcription_repository.update_tracking(db_session, job.id, title="x") is False
    assert await transcription_repository.request_cancel(db_session, job.id) is False

    stored = await transcription_repository.get(db_session, job.id)
    assert stored.status == "completed"
    assert stored.transcription_text == "texto final"
    assert stored.title == "Reunião"


@pytest.mark.asyncio
async def test_failed_rows_are_final(db_session, create_user, create_transcription):
    user = await create_user()
    job = await create_transcription(user)
    assert await transcription_repository.mark_failed(db_session, job.id, "erro do provedor") is True

    assert await transcription_repository.mark_processing(db_session, job.id) is False
    stored = await transcription_repository.get(db_session, job.id)
    assert stored.status == "failed"
    assert stored.error_message == "erro do provedor"


@pytest.mark.asyncio
async def test_pending_cannot_skip_to_completed(db_session, create_user, create_transcription):
    user = await create_user()
    job = await create_transcription(user)

    assert await transcription_repository.mark_completed(db_session, job.id, "texto") is False
    assert (await transcription_repository.get(db_session, job.id)).status == "pending"


@pytest.mark.asyncio
async def test_completion_and_failure_need_payload(db_session, create_user, create_transcription):
    user = await create_user()
    job = await create_transcription(user)
    await transcription_repository.mark_processing(db_session, job.id)

    with pytest.raises(ValueError):
        await transcription_repository.mark_completed(db_session, job.id, None)
    with pytest.raises(ValueError):
        await transcription_repository.mark_failed(db_session, job.id, "")


@pytest.mark.asyncio
async def test_cancel_flag(db_session, create_user, create_transcription):
    user = await create_user()
    job = await create_transcription(user)

    assert await transcription_repository.is_cancel_requested(db_session, job.id) is False
    assert await transcription_repository.request_cancel(db_session, job.id) is True
    assert await transcription_repository.is_cancel_requested(db_session, job.id) is True
    assert await transcription_repository.is_cancel_requested(db_session, 9999) is None


@pytest.mark.asyncio
async def test_tracking_fields_only_while_processing(db_session, create_user, create_transcription):
    user = await create_user()
    transcription = await create_transcription(user)
    history = await assistant_history_repository.create_pending(
        db_session, user_id=user.id, assistant_id=None, transcription_id=transcription.id, input_text="texto"
    )

    assert await assistant_history_repository.update_tracking(db_session, history.id, openai_thread_id="thread_1") is False
    await assistant_history_repository.mark_processing(db_session, history.id)
    assert await assistant_history_repository.update_tracking(db_session, history.id, openai_thread_id="thread_1") is True

    stored = await assistant_history_repository.get(db_session, history.id)
    assert stored.openai_thread_id == "thread_1"


@pytest.mark.asyncio
async def test_pdf_output_counts_as_completion_payload(db_session, create_user, create_transcription):
    user = await create_user()
    transcription = await create_transcription(user)
    action = await agent_action_repository.create_pending(
        db_session, user_id=user.id, agent_id=1, transcription_id=transcription.id, input_text="texto", output_format="pdf"
    )
    await agent_action_repository.mark_processing(db_session, action.id)

    assert await agent_action_repository.mark_completed(
        db_session, action.id, None, output_file_path="/tmp/out.pdf"
    ) is True


@pytest.mark.asyncio
async def test_list_for_user_paginates_and_filters(db_session, create_user, create_transcription):
    owner = await create_user()
    other = await create_user()
    jobs = [await create_transcription(owner, title=f"Áudio {i}") for i in range(5)]
    await create_transcription(other)
    await transcription_repository.mark_failed(db_session, jobs[0].id, "falhou")

    items, total = await transcription_repository.list_for_user(db_session, owner.id, page=1, limit=2)
    assert total == 5
    assert len(items) == 2

    items, total = await transcription_repository.list_for_user(db_session, owner.id, page=3, limit=2)
    assert total == 5
    assert len(items) == 1

    items, total = await transcription_repository.list_for_user(db_session, owner.id, status="failed")
    assert total == 1
    assert items[0].id == jobs[0].id


@pytest.mark.asyncio
async def test_get_for_user_enforces_ownership(db_session, create_user, create_transcription):
    owner = await create_user()
    other = await create_user()
    job = await create_transcription(owner)

    assert (await transcription_repository.get_for_user(db_session, job.id, owner.id)).id == job.id
    assert await transcription_repository.get_for_user(db_session, job.id, other.id) is None
