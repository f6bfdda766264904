from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from typing import Any, List, Optional
import traceback
import logging
from app.core.exceptions import EngineError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VALIDATION_FAILED = "Falha na validação dos dados enviados."
INTERNAL_ERROR = "Ocorreu um erro interno inesperado."


def create_error_response(status_code: int, message: str, details: Optional[Any] = None) -> dict:
    response = {
        "message": message,
        "code": status_code,
    }
    if details:
        response["details"] = details
    return response


def _respond(status_code: int, message: str, details: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(status_code=status_code, message=message, details=details),
    )


def _describe(request: Request) -> str:
    return f"{request.method} {request.url.path}"


def format_validation_errors(errors: List[dict]) -> List[str]:
    """One readable line per failing field, e.g. "Field 'body.agent_id': field required"."""
    return [f"Field '{'.'.join(map(str, error['loc']))}': {error['msg']}" for error in errors]


async def engine_exception_handler(request: Request, exc: EngineError):
    """Entitlement, credential and admission rejections carry their own status code."""
    logger.warning(f"{type(exc).__name__}: {exc.detail} for {_describe(request)}")
    return _respond(exc.status_code, exc.detail, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail} for {_describe(request)}")
    return _respond(exc.status_code, exc.detail)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation Error: {exc.errors()} for {_describe(request)}")
    return _respond(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        VALIDATION_FAILED,
        {"errors": format_validation_errors(exc.errors())},
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc}\n{traceback.format_exc()} for {_describe(request)}")
    return _respond(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR)


def register_global_exception_handlers(app: FastAPI):
    app.exception_handler(EngineError)(engine_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
