from typing import Any, Dict, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(AppException):
    """Malformed input: bad date range, empty required field, unknown leave type."""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details={"field": field} if field else None
        )
        self.field = field


class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )


class InvalidTransitionError(AppException):
    """Raised when a status change is not an edge of the lifecycle state machine."""
    def __init__(self, request_id: Any, current: Optional[str], target: str):
        super().__init__(
            message=f"Leave request {request_id} cannot move from '{current}' to '{target}'",
            status_code=409,
            error_code="INVALID_TRANSITION",
            details={"id": request_id, "current_status": current, "target_status": target}
        )
        self.current = current
        self.target = target


class ForbiddenError(AppException):
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="FORBIDDEN"
        )


class StorageUnavailableError(AppException):
    """Underlying persistence failure. The only error that is retried automatically."""
    def __init__(self, message: str = "Leave storage is temporarily unavailable"):
        super().__init__(
            message=message,
            status_code=503,
            error_code="STORAGE_UNAVAILABLE"
        )
