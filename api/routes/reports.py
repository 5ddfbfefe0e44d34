"""
Report Delivery API Route

    POST /api/send-report-email - Export a report and email it as an attachment

The route only collects the raw request; ordering of checks and all error
mapping live in ``core.delivery``.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from core.logging import get_client_ip, get_logger, log_with_context

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["reports"])


@router.post("/send-report-email")
async def send_report_email(request: Request) -> JSONResponse:
    """
    Export ``reportData`` in the requested format and email it to ``recipient``.

    Example:
        POST /api/send-report-email
        Authorization: Bearer <firebase id token>
        {
            "recipient": "buyer@gmail.com",
            "format": "pdf",
            "reportData": {"product": "Ceylon tea", "units": 400},
            "message": "Quarterly numbers attached"
        }
        Returns: {"message": "Report sent successfully", "messageId": "..."}
    """
    services = request.app.state.services
    result = await services.delivery.deliver(request.headers, request.body, get_client_ip(request))
    log_with_context(logger, "info", "Report email delivered", request=request, message_id=result.message_id)
    return JSONResponse(result.to_dict())
