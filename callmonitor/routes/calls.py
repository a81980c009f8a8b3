"""
Call API routes.
"""

from fastapi import APIRouter, Depends

from callmonitor.models.api.call_response import ActiveCallsResponse, CallRecordResponse
from callmonitor.routes.dependencies import get_monitor_service
from callmonitor.services.monitor_service import CallMonitorService

router = APIRouter(prefix="/api/calls", tags=["calls"])


@router.get("/active", response_model=ActiveCallsResponse)
async def list_active_calls(service: CallMonitorService = Depends(get_monitor_service)):
    """Live (ringing or active) call legs, oldest first."""
    records = sorted(service.aggregator.active_calls(), key=lambda r: r.start_time)
    calls = [CallRecordResponse.model_validate(record.to_dict()) for record in records]
    return ActiveCallsResponse(calls=calls, count=len(calls))
