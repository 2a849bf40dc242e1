"""FastAPI dependencies: authentication, role guards and service wiring."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.core.exceptions import ForbiddenException, UnauthorizedException
from medgo.core.realtime import ChangeFeed, get_change_feed
from medgo.core.redis_client import CacheManager, RateLimiter, get_redis_client
from medgo.core.security import user_id_from_token
from medgo.database import get_db
from medgo.services.dispatch_service import DispatchService
from medgo.services.notification_service import NotificationService
from medgo.services.sms_service import SmsService
from medgo.services.user_service import UserService

bearer = HTTPBearer()


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer)],
) -> UUID:
    """
    Resolve the bearer token to a user id.

    Raises:
        UnauthorizedException: If the token is invalid or expired
    """
    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise UnauthorizedException("Could not validate credentials")
    return user_id


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Load the caller's user row; the role used by the guards comes from here.

    Raises:
        UnauthorizedException: If the token subject has no user row
        ForbiddenException: If the account is deactivated
    """
    user = await UserService.get_user_by_id(db, user_id)
    if not user:
        raise UnauthorizedException("User not found")
    if not user["is_active"]:
        raise ForbiddenException("User account is deactivated")
    return user


def require_role(*roles: str) -> Any:
    """Build a dependency that only admits users with one of ``roles``."""

    async def checker(current_user: Annotated[dict, Depends(get_current_user)]) -> dict:
        if current_user.get("role") not in roles:
            raise ForbiddenException(f"Requires role: {', '.join(roles)}")
        return current_user

    return checker


require_driver = require_role("driver")
require_customer = require_role("customer", "admin")
require_admin = require_role("admin")


def get_cache_manager(
    redis_client: Annotated[Any, Depends(get_redis_client)],
) -> CacheManager:
    """Get a cache manager over the shared Redis client."""
    return CacheManager(redis_client)


def get_rate_limiter(
    redis_client: Annotated[Any, Depends(get_redis_client)],
) -> RateLimiter:
    """Get a rate limiter over the shared Redis client."""
    return RateLimiter(redis_client)


def get_dispatch_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
    feed: Annotated[ChangeFeed, Depends(get_change_feed)],
) -> DispatchService:
    """Get dispatch service wired to the configured channels."""
    return DispatchService(user_service=UserService(cache_manager), feed=feed)


def get_notification_service(
    feed: Annotated[ChangeFeed, Depends(get_change_feed)],
) -> NotificationService:
    """Get notification service publishing to the change feed."""
    return NotificationService(feed)


def get_sms_service() -> SmsService:
    """Get SMS service configured from settings."""
    return SmsService()


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentDriver = Annotated[dict, Depends(require_driver)]
CurrentCustomer = Annotated[dict, Depends(require_customer)]
CurrentAdmin = Annotated[dict, Depends(require_admin)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
DispatchServiceDep = Annotated[DispatchService, Depends(get_dispatch_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
SmsServiceDep = Annotated[SmsService, Depends(get_sms_service)]
