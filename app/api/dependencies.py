"""
Dependency injection for FastAPI.
"""
import logging
from typing import Annotated
from fastapi import Depends, HTTPException, Request, status

from app.config import settings
from app.infrastructure.dataset_store import DatasetStore, get_dataset_store
from app.services.application.analysis_service import AnalysisService


logger = logging.getLogger(__name__)


def get_analysis_service(
    store: Annotated[DatasetStore, Depends(get_dataset_store)],
) -> AnalysisService:
    """
    Dependency factory for AnalysisService.
    
    Args:
        store: Dataset store (injected)
        
    Returns:
        AnalysisService instance
    """
    return AnalysisService(store=store)


def _too_large() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"Document exceeds the {settings.max_import_bytes} byte import limit",
    )


async def read_import_body(request: Request) -> bytes:
    """
    Read the raw import document, bounded by ``settings.max_import_bytes``.

    A declared Content-Length over the limit is rejected before reading;
    otherwise the stream is read until it ends or passes the limit.

    Raises:
        HTTPException: 413 if the document is too large
    """
    limit = settings.max_import_bytes
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        logger.warning(f"Rejected import of {declared} bytes (limit {limit})")
        raise _too_large()

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            logger.warning(f"Rejected streamed import over {limit} bytes")
            raise _too_large()
    return bytes(body)


# Type aliases for cleaner route signatures
AnalysisServiceDep = Annotated[AnalysisService, Depends(get_analysis_service)]
ImportBody = Annotated[bytes, Depends(read_import_body)]
