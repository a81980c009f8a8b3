"""
Contact lookup routes.
HTTP endpoints resolving phone numbers against the directory snapshot.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from callmonitor.infrastructure.observability.logging import get_logger
from callmonitor.models.api.contact_request import LookupBatchRequest
from callmonitor.models.api.contact_response import (
    ContactMatchResponse,
    LookupBatchResponse,
    LookupResponse,
)
from callmonitor.routes.dependencies import get_monitor_service
from callmonitor.services.monitor_service import CallMonitorService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


@router.get("/lookup", response_model=LookupResponse)
async def lookup_number(
    number: str = Query(..., min_length=1, max_length=64, description="Raw phone number"),
    service: CallMonitorService = Depends(get_monitor_service),
):
    """Resolve one phone number."""
    match = service.resolver.resolve_one(number)
    if match is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty phone number")
    return LookupResponse(number=number, match=ContactMatchResponse.model_validate(match.to_dict()))


@router.post("/lookup-batch", response_model=LookupBatchResponse)
async def lookup_batch(
    request: LookupBatchRequest,
    service: CallMonitorService = Depends(get_monitor_service),
):
    """Resolve several phone numbers; empty entries are skipped."""
    matches = service.resolver.resolve_many(request.numbers)
    logger.debug("Batch lookup", requested=len(request.numbers), resolved=len(matches))
    return LookupBatchResponse(
        results={
            number: ContactMatchResponse.model_validate(match.to_dict())
            for number, match in matches.items()
        },
        directory_ready=service.directory.is_ready,
    )
