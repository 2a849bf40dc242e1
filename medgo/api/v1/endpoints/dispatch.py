"""Ambulance dispatch endpoints for customers."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from medgo.config import settings
from medgo.core.exceptions import ForbiddenException, NotFoundException, RateLimitException
from medgo.dependencies import (
    CurrentCustomer,
    CurrentUser,
    DatabaseSession,
    DispatchServiceDep,
    RateLimiterDep,
)
from medgo.schemas.delivery import DeliveryStatusResponse
from medgo.schemas.dispatch import (
    AmbulanceRequestListResponse,
    AmbulanceRequestRecord,
    DispatchRequest,
    DispatchResponse,
)
from medgo.services.delivery_service import DeliveryService
from medgo.services.dispatch_service import DispatchService

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])


@router.post(
    "",
    response_model=DispatchResponse,
    status_code=status.HTTP_200_OK,
    summary="Call an ambulance",
)
async def dispatch_ambulance(
    payload: DispatchRequest,
    current_user: CurrentCustomer,
    db: DatabaseSession,
    service: DispatchServiceDep,
    rate_limiter: RateLimiterDep,
) -> DispatchResponse:
    """
    Create an ambulance request and alert drivers.

    The response is 200 even when no driver could be found; in that case
    ``success`` is false and the message points to the emergency number.
    Individual channel failures only show up in the counts.

    Raises:
        RateLimitException: If the caller exceeded the per-minute limit
    """
    allowed = rate_limiter.allow(
        f"ratelimit:dispatch:{current_user['id']}",
        settings.rate_limit_per_minute,
    )
    if not allowed:
        raise RateLimitException("Too many dispatch requests, please wait a minute")

    return await service.dispatch(db, current_user, payload)


@router.get(
    "/requests",
    response_model=AmbulanceRequestListResponse,
    summary="List my ambulance requests",
)
async def list_my_requests(
    current_user: CurrentCustomer,
    db: DatabaseSession,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> AmbulanceRequestListResponse:
    """Get the caller's requests, newest first."""
    result = await DispatchService.list_customer_requests(
        db, current_user["id"], page=page, page_size=page_size
    )
    return AmbulanceRequestListResponse(
        requests=[AmbulanceRequestRecord.model_validate(r) for r in result["requests"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.get(
    "/requests/{request_id}",
    response_model=AmbulanceRequestRecord,
    summary="Get one ambulance request",
)
async def get_request(
    request_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AmbulanceRequestRecord:
    """
    Get a request by ID.

    Raises:
        NotFoundException: If the request does not exist
        ForbiddenException: If the caller neither owns it nor is admin
    """
    request = await DispatchService.get_request(db, request_id)
    if not request:
        raise NotFoundException("Request not found")

    if current_user.get("role") != "admin" and request["customer_id"] != current_user["id"]:
        raise ForbiddenException("Not allowed to view this request")

    return AmbulanceRequestRecord.model_validate(request)


@router.get(
    "/requests/{request_id}/delivery-status",
    response_model=DeliveryStatusResponse,
    summary="Delivery status of a request",
)
async def get_delivery_status(
    request_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> DeliveryStatusResponse:
    """Combined SMS and in-app delivery state for one request."""
    result = await DeliveryService.get_delivery_status(db, request_id, current_user)
    return DeliveryStatusResponse.model_validate(result)
