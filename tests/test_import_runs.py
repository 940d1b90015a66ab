# tests/test_import_runs.py
import pytest
from services.import_runs import (
    ImportRunService,
    ImportRunNotFoundError,
    ImportRunStateError,
    DuplicateImportError,
)


@pytest.mark.asyncio
async def test_start_creates_running_run(test_session):
    service = ImportRunService(test_session)
    run = await service.start("Phish", "corr-1")

    assert run.run_id is not None
    assert run.status == "running"
    assert run.completed_at is None
    assert len(run.uuid) == 36
    assert (await service.get_by_correlation_id("corr-1")).run_id == run.run_id
    assert (await service.get_by_uuid(run.uuid)).run_id == run.run_id


@pytest.mark.asyncio
async def test_start_without_correlation_id_uses_uuid(test_session):
    run = await ImportRunService(test_session).start("Phish")
    assert run.correlation_id == run.uuid


@pytest.mark.asyncio
async def test_duplicate_correlation_id_is_rejected(test_session):
    service = ImportRunService(test_session)
    await service.start("Phish", "corr-1")

    with pytest.raises(DuplicateImportError):
        await service.start("Phish", "corr-1")


@pytest.mark.asyncio
async def test_complete_transitions_exactly_once(test_session):
    service = ImportRunService(test_session)
    run = await service.start("Phish", "corr-1")
    await service.complete(run, shows_processed=3, tracks_processed=42)

    assert run.status == "completed"
    assert run.completed_at is not None
    assert run.tracks_processed == 42

    with pytest.raises(ImportRunStateError):
        await service.fail(run, "too late")
    with pytest.raises(ImportRunStateError):
        await service.complete(run, 1, 1)


@pytest.mark.asyncio
async def test_fail_records_error(test_session):
    service = ImportRunService(test_session)
    run = await service.start("Phish", "corr-1")
    await service.fail(run, "Archive.org returned 503")

    stored = await service.get_by_id(run.run_id)
    assert stored.status == "failed"
    assert stored.error_message == "Archive.org returned 503"


@pytest.mark.asyncio
async def test_missing_and_deleted_runs(test_session):
    service = ImportRunService(test_session)
    with pytest.raises(ImportRunNotFoundError):
        await service.get_by_id(404)

    run = await service.start("Phish", "corr-1")
    run_id = run.run_id
    assert await service.delete_by_id(run_id)
    with pytest.raises(ImportRunNotFoundError):
        await service.get_by_id(run_id)
