from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error; nothing was recorded",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Resource not found",
        status.HTTP_404_NOT_FOUND,
    )
    DRAWER_CLOSED = ErrorDefinition(
        "DRAWER_CLOSED",
        "Cash drawer is closed; open a drawer session before taking payments. Nothing was recorded",
        status.HTTP_409_CONFLICT,
    )
    DRAWER_ALREADY_OPEN = ErrorDefinition(
        "DRAWER_ALREADY_OPEN",
        "A drawer session is already open for this business date",
        status.HTTP_409_CONFLICT,
    )
    STOCK_INSUFFICIENT = ErrorDefinition(
        "STOCK_INSUFFICIENT",
        "Insufficient stock; item was not added",
        status.HTTP_409_CONFLICT,
    )
    SETTLEMENT_IN_PROGRESS = ErrorDefinition(
        "SETTLEMENT_IN_PROGRESS",
        "Settlement already in progress for this checkout",
        status.HTTP_409_CONFLICT,
    )
    SETTLEMENT_WRITE_FAILURE = ErrorDefinition(
        "SETTLEMENT_WRITE_FAILURE",
        "Settlement failed after some records were written; verify inventory, "
        "customer and order state manually before retrying",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REQUIRED = ErrorDefinition(
        "IDEMPOTENCY_KEY_REQUIRED",
        "Idempotency key required",
        status.HTTP_400_BAD_REQUEST,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
