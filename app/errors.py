from fastapi import status


class AppError(Exception):
    """Base for errors translated to ``{"success": false, "error": ...}`` at the HTTP boundary."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_payload(self) -> dict:
        payload = {"success": False, "error": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class UnauthorizedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class PersistenceError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigurationError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class GatewayError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        upstream_body: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message, hint=hint)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.upstream_status is not None:
            payload["details"] = {"upstream_status": self.upstream_status}
        return payload
