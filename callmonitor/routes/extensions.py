"""
Extension API routes.
"""

from fastapi import APIRouter, Depends

from callmonitor.models.api.call_response import ExtensionResponse, ExtensionsResponse
from callmonitor.routes.dependencies import get_monitor_service
from callmonitor.services.monitor_service import CallMonitorService

router = APIRouter(prefix="/api/extensions", tags=["extensions"])


@router.get("", response_model=ExtensionsResponse)
async def list_extensions(service: CallMonitorService = Depends(get_monitor_service)):
    """Configured extensions with their current line and presence state."""
    extensions = [
        ExtensionResponse.model_validate(state.to_dict())
        for state in service.extensions.list_states()
    ]
    return ExtensionsResponse(extensions=extensions, count=len(extensions))
