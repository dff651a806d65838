# =========================================================
# ERROR TAXONOMY (RFC 7807 PROBLEM DETAILS)
#
# 400 syntactic validation failure
# 404 referenced entity does not exist
# 409 uniqueness violation
# 422 semantic validation failure or business-rule violation
# 500 unexpected failure (detail never leaked)
# =========================================================

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.validation.classifier import (
    ValidationResult,
    classify_validation_errors,
    outcomes_from_pydantic,
)

logger = logging.getLogger("app")

PROBLEM_MEDIA_TYPE = "application/problem+json"

TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
}


def problem_type(slug: str) -> str:
    return f"{settings.PROBLEM_TYPE_BASE_URL.rstrip('/')}/{slug}"


class AppError(Exception):
    status_code = 500
    slug = "internal-error"

    def __init__(self, detail: str, code: str | None = None, errors: list | None = None):
        super().__init__(detail)
        self.detail = detail
        self.code = code
        self.errors = errors

    def to_problem(self) -> dict:
        problem = {
            "type": problem_type(self.slug),
            "title": TITLES.get(self.status_code, "Error"),
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.code:
            problem["code"] = self.code
        if self.errors is not None:
            problem["errors"] = self.errors
        return problem


class NotFoundError(AppError):
    status_code = 404
    slug = "not-found"


class ConflictError(AppError):
    status_code = 409
    slug = "conflict"


class BusinessRuleError(AppError):
    status_code = 422
    slug = "business-rule-violation"


class InternalServerError(AppError):
    status_code = 500
    slug = "internal-server-error"

    def __init__(self, detail: str = "An unexpected error occurred."):
        super().__init__(detail)


class ValidationProblem(AppError):
    def __init__(self, result: ValidationResult):
        self.status_code = result.status_code
        if result.status_code == 400:
            self.slug = "bad-request"
            code = "INVALID_REQUEST"
        else:
            self.slug = "validation-error"
            code = "VALIDATION_FAILED"

        super().__init__(
            "The request contains invalid fields.",
            code=code,
            errors=[{"field": error.field, "message": error.message} for error in result.errors],
        )
        self.result = result


def problem_response(status_code: int, problem: dict, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=problem,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


# =========================================================
# EXCEPTION HANDLERS
# =========================================================

async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return problem_response(exc.status_code, exc.to_problem())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    result = classify_validation_errors(outcomes_from_pydantic(exc.errors()))
    problem = ValidationProblem(result)
    return problem_response(problem.status_code, problem.to_problem())


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    problem = {
        "type": problem_type("http-error"),
        "title": TITLES.get(exc.status_code, "Error"),
        "status": exc.status_code,
        "detail": str(exc.detail),
    }
    return problem_response(exc.status_code, problem, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return problem_response(500, InternalServerError().to_problem())
