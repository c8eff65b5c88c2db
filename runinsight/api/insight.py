from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from runinsight.coach.insight_client import InsightClient, get_insight_client
from runinsight.coach.schemas import ErrorResponse, InsightPayload, InsightRequest
from runinsight.core.errors import ValidationError

router = APIRouter(prefix="/api", tags=["insight"])


def error_response(status: int, message: str, details: object = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(status=status, message=message, details=details).model_dump(),
    )


@router.post(
    "/insight",
    response_model=InsightPayload,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_insight(
    req: InsightRequest,
    client: InsightClient = Depends(get_insight_client),
) -> InsightPayload | JSONResponse:
    """Answer a question about the athlete's activity history."""
    logger.info(f"Insight request: {req.question}")
    try:
        return await client.get_insight(req.question)
    except ValidationError as e:
        logger.warning(f"Insight request rejected: {e.message}")
        return error_response(400, "Invalid request body", e.message)
    except Exception as e:
        # Stack detail stays in the logs
        logger.exception(f"Error generating insight: {e}")
        return error_response(500, "Error generating insight", str(e))
