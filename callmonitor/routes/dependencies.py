"""
Request-scoped access to the process-wide CallMonitorService.
"""

from fastapi import HTTPException, Request, status

from callmonitor.services.monitor_service import CallMonitorService


def get_monitor_service(request: Request) -> CallMonitorService:
    service = getattr(request.app.state, "monitor", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Call monitor not initialized",
        )
    return service
