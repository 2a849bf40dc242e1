"""Push token registration endpoints."""

from fastapi import APIRouter, status

from medgo.core.exceptions import NotFoundException
from medgo.dependencies import CurrentUser, DatabaseSession
from medgo.schemas.notifications import PushTokenRegister, PushTokenResponse
from medgo.services.push_service import PushService

router = APIRouter(prefix="/push-tokens", tags=["Push Tokens"])


@router.post(
    "",
    response_model=PushTokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register FCM token",
)
async def register_push_token(
    token_data: PushTokenRegister,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> PushTokenResponse:
    """
    Register or refresh the caller's FCM token.

    Should be called after sign-in and whenever the device token rotates.
    """
    token = await PushService.register_token(
        db=db,
        user_id=current_user["id"],
        fcm_token=token_data.fcm_token,
        platform=token_data.platform,
    )
    return PushTokenResponse.model_validate(token)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate FCM token",
)
async def deactivate_push_token(
    token_data: PushTokenRegister,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> None:
    """
    Deactivate one of the caller's tokens, e.g. on sign-out.

    Raises:
        NotFoundException: If the token is not registered for the caller
    """
    deactivated = await PushService.deactivate_token(
        db=db,
        user_id=current_user["id"],
        fcm_token=token_data.fcm_token,
    )
    if not deactivated:
        raise NotFoundException("Push token not found")
