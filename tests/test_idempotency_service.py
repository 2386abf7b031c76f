import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.services.idempotency import IdempotencyService, extract_idempotency_key

ENDPOINT = "/fixpos/pos/checkout/settle"


def _run(database_url, scenario):
    async def runner():
        engine = create_async_engine(database_url)
        try:
            async with async_sessionmaker(bind=engine, expire_on_commit=False)() as db:
                return await scenario(IdempotencyService(db))
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def _start(service, key, request_hash):
    return service.start(endpoint=ENDPOINT, method="POST", idempotency_key=key, request_hash=request_hash)


def test_fingerprint_ignores_key_order():
    assert IdempotencyService.fingerprint({"a": 1, "b": 2}) == IdempotencyService.fingerprint({"b": 2, "a": 1})
    assert IdempotencyService.fingerprint({"a": 1}) != IdempotencyService.fingerprint({"a": 2})


def test_succeeded_request_is_replayed(client, database_url):
    async def scenario(service):
        context, replay = await _start(service, "key-1", "hash-1")
        assert replay is None
        await context.record_success(status_code=200, response_body={"sale_id": "s-1"})
        return await _start(service, "key-1", "hash-1")

    context, replay = _run(database_url, scenario)

    assert context is None
    assert replay.status_code == 200
    assert replay.response_body == {"sale_id": "s-1"}


def test_in_progress_and_reused_keys_are_rejected(client, database_url):
    async def scenario(service):
        await _start(service, "key-2", "hash-1")
        with pytest.raises(AppError) as in_progress:
            await _start(service, "key-2", "hash-1")
        with pytest.raises(AppError) as reused:
            await _start(service, "key-2", "hash-2")
        return in_progress.value.error, reused.value.error

    in_progress, reused = _run(database_url, scenario)

    assert in_progress == ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS
    assert reused == ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD


def test_failed_request_is_driven_again(client, database_url):
    async def scenario(service):
        context, _ = await _start(service, "key-3", "hash-1")
        await context.record_failure(status_code=409, response_body={"code": "DRAWER_CLOSED"})
        return await _start(service, "key-3", "hash-1")

    context, replay = _run(database_url, scenario)

    assert replay is None
    assert context is not None


def test_failure_is_recorded_after_request_session_closed(client, database_url):
    async def scenario(service):
        context, _ = await _start(service, "key-4", "hash-1")
        # Exception handlers run once the request's session has been closed.
        await service.repo.db.close()
        await context.record_failure(status_code=409, response_body={"code": "DRAWER_CLOSED"})
        stored = await service.repo.get_by_key(endpoint=ENDPOINT, method="POST", idempotency_key="key-4")
        return stored.state, stored.status_code

    state, status_code = _run(database_url, scenario)

    assert state == "failed"
    assert status_code == 409


def test_extract_idempotency_key():
    assert extract_idempotency_key({"Idempotency-Key": "abc"}, required=True) == "abc"
    assert extract_idempotency_key({}, required=False) is None
    with pytest.raises(AppError) as excinfo:
        extract_idempotency_key({}, required=True)
    assert excinfo.value.error == ErrorCatalog.IDEMPOTENCY_KEY_REQUIRED
