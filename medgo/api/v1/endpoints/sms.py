"""Direct SMS endpoint for operators."""

import structlog
from fastapi import APIRouter, status

from medgo.core.exceptions import UpstreamServiceException
from medgo.dependencies import CurrentAdmin, SmsServiceDep
from medgo.schemas.delivery import SmsSendRequest, SmsSendResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sms", tags=["SMS"])


@router.post(
    "/send",
    response_model=SmsSendResponse,
    status_code=status.HTTP_200_OK,
    summary="Send an SMS (admin only)",
)
async def send_sms(
    request: SmsSendRequest,
    current_user: CurrentAdmin,
    sms_service: SmsServiceDep,
) -> SmsSendResponse:
    """
    Send one SMS through the gateway.

    Raises:
        BadRequestException: If the phone number is malformed (no call is made)
        UpstreamServiceException: If the gateway is unconfigured or rejects the message
    """
    result = await sms_service.send(request.phone_number, request.message)

    logger.info(
        "direct_sms_requested",
        admin_id=str(current_user["id"]),
        phone=result.phone,
        success=result.success,
    )

    if not result.success:
        raise UpstreamServiceException(f"SMS provider error: {result.error}")

    return SmsSendResponse(success=True, phone=result.phone, message="SMS sent successfully")
