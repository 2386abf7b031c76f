import hashlib
import json
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.fixpos.core.error_catalog import AppError, ErrorCatalog
from app.fixpos.db.models import IdempotencyRecord
from app.fixpos.repos.idempotency import IdempotencyRepository


IDEMPOTENCY_HEADER = "Idempotency-Key"


@dataclass
class IdempotencyReplay:
    status_code: int
    response_body: dict


class IdempotencyContext:
    def __init__(self, record: IdempotencyRecord, repo: IdempotencyRepository):
        self._record = record
        self._record_id = record.id
        self._repo = repo

    async def record_success(self, *, status_code: int, response_body: dict) -> None:
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body)
        self._record.state = "succeeded"
        self._record.updated_at = datetime.utcnow()
        await self._repo.update(self._record)

    async def record_failure(self, *, status_code: int, response_body: dict) -> None:
        # Error handlers run after the request session has closed, so the
        # instance held here may be detached; work on a freshly loaded row.
        await self._repo.db.rollback()
        record = await self._repo.get_by_id(self._record_id)
        if record is None:
            return
        self._record = record
        self._record.status_code = status_code
        self._record.response_body = json.dumps(response_body)
        self._record.state = "failed"
        self._record.updated_at = datetime.utcnow()
        await self._repo.update(self._record)


class IdempotencyService:
    def __init__(self, db):
        self.repo = IdempotencyRepository(db)

    @staticmethod
    def fingerprint(payload: object) -> str:
        payload_bytes = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(payload_bytes).hexdigest()

    async def start(
        self,
        *,
        endpoint: str,
        method: str,
        idempotency_key: str,
        request_hash: str,
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        existing = await self.repo.get_by_key(endpoint=endpoint, method=method, idempotency_key=idempotency_key)
        if existing:
            return await self._handle_existing(existing, request_hash)

        record = IdempotencyRecord(
            endpoint=endpoint,
            method=method,
            idempotency_key=idempotency_key,
            request_hash=request_hash,
            state="in_progress",
            status_code=None,
            response_body=None,
        )
        try:
            record = await self.repo.create(record)
        except IntegrityError:
            await self.repo.db.rollback()
            return await self._handle_existing(
                await self.repo.get_by_key(endpoint=endpoint, method=method, idempotency_key=idempotency_key),
                request_hash,
            )

        return IdempotencyContext(record, self.repo), None

    async def _handle_existing(
        self, existing: IdempotencyRecord | None, request_hash: str
    ) -> tuple[IdempotencyContext | None, IdempotencyReplay | None]:
        if existing is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        if existing.request_hash != request_hash:
            raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD)
        if existing.state == "in_progress":
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        # Failures are never replayed: the same key re-drives the request, which
        # resumes a partially written settlement or re-checks a closed drawer.
        if existing.state == "failed":
            existing.state = "in_progress"
            existing.updated_at = datetime.utcnow()
            await self.repo.update(existing)
            return IdempotencyContext(existing, self.repo), None
        if existing.response_body is None or existing.status_code is None:
            raise AppError(ErrorCatalog.IDEMPOTENCY_REQUEST_IN_PROGRESS)
        response_body = json.loads(existing.response_body)
        return None, IdempotencyReplay(status_code=existing.status_code, response_body=response_body)


def extract_idempotency_key(headers, *, required: bool) -> str | None:
    key = headers.get(IDEMPOTENCY_HEADER)
    if not key and required:
        raise AppError(ErrorCatalog.IDEMPOTENCY_KEY_REQUIRED)
    return key
