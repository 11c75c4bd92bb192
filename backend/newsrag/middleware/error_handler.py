"""Global error handlers producing RFC 7807 problem details."""
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from newsrag.exceptions import NewsRAGError
from newsrag.schemas.common import ErrorDetail

logger = structlog.get_logger()


def _problem(request: Request, status: int, title: str, detail: str) -> JSONResponse:
    body = ErrorDetail(title=title, status=status, detail=detail, instance=request.url.path)
    return JSONResponse(status_code=status, content=body.model_dump())


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors())
        return _problem(request, 422, "Unprocessable Entity", f"Invalid or missing fields: {fields}")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _problem(request, 400, "Bad Request", str(exc))

    @app.exception_handler(NewsRAGError)
    async def core_error_handler(request: Request, exc: NewsRAGError) -> JSONResponse:
        logger.warning("core_error", path=request.url.path, error=str(exc), kind=type(exc).__name__)
        return _problem(request, 503, "Service Unavailable", "The chat service is temporarily unavailable.")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
        return _problem(request, 500, "Internal Server Error", "An unexpected error occurred.")
