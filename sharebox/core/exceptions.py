import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("sharebox")


class ShareboxError(Exception):
    """Base for every error that is turned into a structured response."""

    status_code = 500
    kind = "error"
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, headers: dict[str, str] | None = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def payload(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class QuotaExceeded(ShareboxError):
    status_code = 400
    kind = "quota_exceeded"
    default_message = "Upload would exceed storage limit"


class InvalidInput(ShareboxError):
    status_code = 400
    kind = "invalid_input"
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    def payload(self) -> dict:
        body = super().payload()
        body["errors"] = self.errors
        return body


class InvalidFileType(ShareboxError):
    status_code = 415
    kind = "invalid_file_type"
    default_message = "File type is not allowed"


class FileTooLarge(InvalidFileType):
    status_code = 413
    kind = "file_too_large"
    default_message = "File too large"


class NotFound(ShareboxError):
    status_code = 404
    kind = "not_found"
    default_message = "File not found"


class Gone(ShareboxError):
    status_code = 410
    kind = "gone"
    default_message = "File is no longer available"


class Unauthorized(ShareboxError):
    status_code = 401
    kind = "unauthorized"
    # Same text for a missing and a wrong password
    default_message = "Incorrect password"

    def payload(self) -> dict:
        body = super().payload()
        body["requiresPassword"] = True
        return body


class AuthenticationRequired(ShareboxError):
    status_code = 401
    kind = "unauthenticated"
    default_message = "Authentication required"


class Forbidden(ShareboxError):
    status_code = 403
    kind = "forbidden"
    default_message = "Forbidden"


class UnsupportedPreview(ShareboxError):
    status_code = 415
    kind = "unsupported_preview"
    default_message = "File type not supported for preview"


class StorageInconsistency(ShareboxError):
    status_code = 404
    kind = "storage_inconsistency"
    default_message = "File not found on disk"


class StorageWriteFailed(ShareboxError):
    status_code = 500
    kind = "storage_write_failed"
    default_message = "Could not store the uploaded file"


class RateLimited(ShareboxError):
    status_code = 429
    kind = "rate_limited"
    default_message = "Rate limit exceeded"


def _field_name(loc) -> str:
    # Drop the "body"/"query" prefix FastAPI puts in front of the field path
    parts = [str(part) for part in loc[1:]] if len(loc) > 1 else [str(part) for part in loc]
    return ".".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShareboxError)
    async def sharebox_error_handler(request: Request, exc: ShareboxError):
        if exc.status_code >= 500:
            logger.error("event=request_failed path=%s kind=%s detail=%s", request.url.path, exc.kind, exc.message)
        return JSONResponse(exc.payload(), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _field_name(error.get("loc", ())), "message": error.get("msg", "Invalid value")}
            for error in exc.errors()
        ]
        return JSONResponse(InvalidInput(errors=errors).payload(), status_code=InvalidInput.status_code)
