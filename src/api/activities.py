"""Activity generation endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from api.deps import get_generator
from models import GenerateActivitiesRequest
from planner import ActivityGenerator, GenerationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["activities"])


@router.post("/generate-activities")
async def generate_activities(
    body: GenerateActivitiesRequest,
    generator: Annotated[ActivityGenerator, Depends(get_generator)],
) -> JSONResponse:
    """
    Generate activities for the given trip days.

    Client errors answer ``{error, details}`` with status 400. Every other
    failure answers ``{"error": "Failed to generate activities", details}``
    with status 500.
    """
    try:
        activities = await generator.generate(body)
    except GenerationError as e:
        if e.status_code < 500:
            logger.warning(f"Rejected generation request: {e.message}")
            return JSONResponse(
                status_code=e.status_code,
                content={"error": e.message, "details": e.details},
            )
        logger.error(f"Error generating activities: {e.message} ({e.details})")
        return JSONResponse(
            status_code=e.status_code,
            content={"error": "Failed to generate activities", "details": e.details},
        )

    return JSONResponse(
        content={
            "success": True,
            "activities": jsonable_encoder([a.model_dump() for a in activities]),
        }
    )
