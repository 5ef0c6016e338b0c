"""
Error taxonomy shared by the API server and the client view-models.

Server handlers raise these and the exception handlers in ``main`` turn
them into ``{"message", "code"}`` JSON bodies with the matching status.
The client maps HTTP failures back onto the same classes.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for all application errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(AppError):
    """Missing or malformed fields"""

    status_code = 422

    def __init__(self, message: str = "Validation failed", errors: Optional[Dict[str, str]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=errors)
        self.errors = errors or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "errors": self.errors}


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, resource: str = "Record", record_id: Optional[str] = None, message: Optional[str] = None):
        message = message or f"{resource} not found"
        super().__init__(message, code="NOT_FOUND", details={"id": record_id} if record_id else None)


class UnauthorizedError(AppError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, code="UNAUTHORIZED")


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message, code="CONFLICT")


class StorageUnavailableError(AppError):
    status_code = 500

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message, code="STORAGE_UNAVAILABLE")


class NetworkUnreachableError(AppError):
    """Raised client-side when no HTTP response came back at all"""

    status_code = 0

    def __init__(self, message: str = "Server not reachable. Check if backend is running."):
        super().__init__(message, code="NETWORK_UNREACHABLE")
