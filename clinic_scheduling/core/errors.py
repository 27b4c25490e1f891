class SchedulingError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(SchedulingError):
    """Missing or malformed input; raised before any transaction opens."""

    status_code = 422
    code = "VALIDATION_ERROR"


class InvalidStatusTransitionError(ValidationError):
    code = "INVALID_STATUS_TRANSITION"


class NotFoundError(SchedulingError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(SchedulingError):
    """The slot is taken. Expected and frequent; never retried."""

    status_code = 409
    code = "SLOT_CONFLICT"

    def __init__(self, message: str, *, code: str | None = None, alternatives: list[dict] | None = None) -> None:
        super().__init__(message, code=code)
        # Filled in by the HTTP layer for booking conflicts
        self.alternatives = alternatives or []


class TransientStoreError(SchedulingError):
    """Serialization failure, deadlock or lock timeout reported by the store."""

    status_code = 503
    code = "TRANSIENT_STORE_ERROR"


class RetryExhaustedError(SchedulingError):
    status_code = 503
    code = "RETRY_EXHAUSTED"

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts
