"""Push channel: FCM multicast to registered device tokens."""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from firebase_admin import messaging
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.core.firebase import is_firebase_initialized
from medgo.models.push_tokens import push_tokens

logger = structlog.get_logger(__name__)


class PushService:
    """Service for device tokens and push delivery."""

    @staticmethod
    async def send_push_notification(
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> tuple[int, int]:
        """
        Send push notification to multiple devices.

        When Firebase is not initialised the payload is only logged.

        Args:
            tokens: List of FCM tokens
            title: Notification title
            body: Notification body
            data: Optional data payload

        Returns:
            Tuple of (success_count, failure_count)
        """
        if not tokens:
            logger.info("no_push_tokens", title=title)
            return 0, 0

        if not is_firebase_initialized():
            logger.info(
                "push_notification_skipped",
                reason="firebase_not_configured",
                title=title,
                body=body,
                data=data,
                token_count=len(tokens),
            )
            return 0, 0

        message = messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            data=data or {},
            tokens=tokens,
            android=messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    sound="default",
                    priority="max",
                    tag="emergency-notification",
                ),
            ),
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    title=title,
                    body=body,
                    tag="emergency-notification",
                    require_interaction=True,
                ),
            ),
        )

        try:
            response = await asyncio.to_thread(messaging.send_each_for_multicast, message)
        except Exception as e:
            logger.error("push_notification_failed", error=str(e), title=title)
            return 0, len(tokens)

        logger.info(
            "push_notification_sent",
            title=title,
            success_count=response.success_count,
            failure_count=response.failure_count,
        )
        return response.success_count, response.failure_count

    @staticmethod
    async def send_to_users(
        db: AsyncSession,
        user_ids: list[UUID],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> tuple[int, int]:
        """
        Send a notification to every active device of the given users.

        Returns:
            Tuple of (success_count, failure_count)
        """
        if not user_ids:
            return 0, 0

        result = await db.execute(
            select(push_tokens.c.fcm_token).where(
                push_tokens.c.user_id.in_(user_ids),
                push_tokens.c.is_active.is_(True),
            )
        )
        tokens = [row.fcm_token for row in result.fetchall()]

        return await PushService.send_push_notification(tokens, title, body, data)

    @staticmethod
    async def register_token(
        db: AsyncSession,
        user_id: UUID,
        fcm_token: str,
        platform: str,
    ) -> dict[str, Any]:
        """
        Register or update FCM token for a user.

        Older tokens of the same user on the same platform are deactivated.

        Returns:
            Created/updated token record
        """
        now = datetime.now(UTC)

        await db.execute(
            update(push_tokens)
            .where(
                push_tokens.c.user_id == user_id,
                push_tokens.c.platform == platform,
                push_tokens.c.fcm_token != fcm_token,
            )
            .values(is_active=False)
        )

        result = await db.execute(
            select(push_tokens.c.id).where(
                push_tokens.c.user_id == user_id,
                push_tokens.c.fcm_token == fcm_token,
            )
        )
        existing = result.first()

        if existing:
            token_id = existing.id
            await db.execute(
                update(push_tokens)
                .where(push_tokens.c.id == token_id)
                .values(is_active=True, last_used_at=now, platform=platform)
            )
        else:
            insert_result = await db.execute(
                push_tokens.insert().values(
                    user_id=user_id,
                    fcm_token=fcm_token,
                    platform=platform,
                    is_active=True,
                    last_used_at=now,
                    created_at=now,
                )
            )
            token_id = insert_result.inserted_primary_key[0]

        await db.commit()

        result = await db.execute(select(push_tokens).where(push_tokens.c.id == token_id))
        return dict(result.mappings().one())

    @staticmethod
    async def deactivate_token(db: AsyncSession, user_id: UUID, fcm_token: str) -> bool:
        """
        Deactivate a specific FCM token.

        Returns:
            True if token was deactivated
        """
        result = await db.execute(
            update(push_tokens)
            .where(
                push_tokens.c.user_id == user_id,
                push_tokens.c.fcm_token == fcm_token,
            )
            .values(is_active=False)
        )
        await db.commit()
        return result.rowcount > 0
