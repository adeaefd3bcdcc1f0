from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class AppError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request") -> None:
        super().__init__(code="bad_request", message=message, status_code=400)


class UnresolvableReferenceError(AppError):
    def __init__(self, reference_type: str, missing_ids: Sequence[str]) -> None:
        missing = sorted(set(missing_ids))
        super().__init__(
            code="unresolvable_reference",
            message=f"Unknown {reference_type} reference(s): {', '.join(missing)}",
            status_code=400,
            details={"referenceType": reference_type, "missingIds": missing},
        )


class ReportGenerationError(AppError):
    def __init__(self, report_type: str) -> None:
        super().__init__(
            code="report_generation_failed",
            message=f"Failed to generate {report_type} report",
            status_code=500,
        )


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    envelope = ErrorEnvelope(
        error=ErrorDetail(code=exc.code, message=exc.message, details=exc.details)
    )
    return JSONResponse(status_code=exc.status_code, content=envelope.model_dump())


def describe_validation_errors(errors: Sequence[Dict[str, Any]]) -> str:
    messages: List[str] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        path = ".".join(location) or "request"
        if error.get("type") == "missing":
            messages.append(f"{path} is required")
        else:
            messages.append(f"{path}: {error.get('msg', 'invalid value')}")
    return "; ".join(messages) or "Validation error"


def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    envelope = ErrorEnvelope(
        error=ErrorDetail(
            code="validation_error",
            message=describe_validation_errors(errors),
            details={"errors": [_json_safe_error(error) for error in errors]},
        )
    )
    return JSONResponse(status_code=422, content=envelope.model_dump())


def _json_safe_error(error: Dict[str, Any]) -> Dict[str, Any]:
    # pydantic puts the raw exception in ctx for custom validators.
    safe = {key: value for key, value in error.items() if key not in ("ctx", "url")}
    if "ctx" in error:
        safe["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
    return safe
