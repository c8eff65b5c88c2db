from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from runinsight.api.insight import error_response
from runinsight.api.insight import router as insight_router
from runinsight.coach.insight_client import close_insight_client
from runinsight.config.settings import settings
from runinsight.core.errors import InsightError, ValidationError
from runinsight.core.logger import setup_logger


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Release the tool server connection on shutdown."""
    yield
    await close_insight_client()


def create_app() -> FastAPI:
    """Create the insight API application."""
    setup_logger(level=settings.log_level, component="api")
    settings.export_llm_keys()

    app = FastAPI(title="RunInsight", version="1.0.0", lifespan=lifespan)
    app.include_router(insight_router)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [{"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]} for error in exc.errors()]
        logger.warning(f"Invalid request body: {details}")
        return error_response(400, "Invalid request body", details)

    @app.exception_handler(ValidationError)
    async def insight_validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
        return error_response(400, "Invalid request body", exc.message)

    @app.exception_handler(InsightError)
    async def insight_error_handler(_request: Request, exc: InsightError) -> JSONResponse:
        logger.error(f"Unhandled insight error: code={exc.code} message={exc.message}")
        return error_response(500, "Error generating insight", exc.message)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests."""
        logger.debug(f"Request: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.debug(f"Response: {response.status_code} for {request.method} {request.url.path}")
        return response

    logger.info("FastAPI application initialized")
    return app
