"""User profile lookups."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.core.redis_client import CacheManager
from medgo.models.users import users


class UserService:
    """Service for user profile reads."""

    # Contact details change rarely; short TTL keeps phone edits visible quickly
    CONTACT_CACHE_TTL = 300

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_contact_cache_key(user_id: UUID | str) -> str:
        """Generate cache key for a user's contact details."""
        return f"user:contact:{user_id}"

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by ID."""
        result = await db.execute(select(users).where(users.c.id == user_id))
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_contacts(self, db: AsyncSession, user_ids: list[UUID]) -> dict[str, dict]:
        """
        Get name, email and phone for several users.

        Args:
            db: Database session
            user_ids: Users to look up

        Returns:
            Mapping of str(user_id) to contact dict
        """
        contacts: dict[str, dict] = {}
        missing: list[UUID] = []

        for user_id in user_ids:
            cached = self.cache.get_json(self._get_contact_cache_key(user_id)) if self.cache else None
            if cached:
                contacts[str(user_id)] = cached
            else:
                missing.append(user_id)

        if missing:
            result = await db.execute(
                select(users.c.id, users.c.full_name, users.c.email, users.c.phone).where(
                    users.c.id.in_(missing)
                )
            )
            for row in result.mappings().all():
                contact = {
                    "id": str(row["id"]),
                    "full_name": row["full_name"],
                    "email": row["email"],
                    "phone": row["phone"],
                }
                contacts[contact["id"]] = contact
                if self.cache:
                    self.cache.set_json(
                        self._get_contact_cache_key(row["id"]),
                        contact,
                        ttl=self.CONTACT_CACHE_TTL,
                    )

        return contacts
