"""
Split Endpoint - Tile Ingestion Trigger

POST /api/v1/split-images - Split files staged in the original container
into tiles, upload them and register them against the project.
"""

from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from sat_ingest.api.dependencies import get_ingestion_pipeline
from sat_ingest.core.logging import get_logger
from sat_ingest.pipeline.driver import IngestionPipeline

logger = get_logger(__name__)
router = APIRouter()


class SplitImagesRequest(BaseModel):
    """Files are addressed as {project_id}/{file_name} in the original container."""
    project_id: str = Field(..., min_length=1)
    file_names: List[str] = Field(..., min_length=1)


@router.post("", response_class=PlainTextResponse)
async def split_images(
    request: SplitImagesRequest,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
):
    """
    Run the split-and-upload pipeline and answer with a status message.

    Failures are rendered by the registered exception handlers as the error
    message with its status code; the project is back in DRAFT by then.
    """
    logger.info(
        "split_request_received",
        project_id=request.project_id,
        files=len(request.file_names),
    )
    await pipeline.split_and_upload_images(request.project_id, request.file_names)
    return PlainTextResponse("Split and upload images successfully!")
