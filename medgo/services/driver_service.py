"""Driver availability, directory reads and nearby search."""

import math
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.core.exceptions import BadRequestException
from medgo.core.geo import Coordinates, haversine_km
from medgo.models.driver_status import driver_status

logger = structlog.get_logger(__name__)


class DriverService:
    """Service for driver status operations."""

    @staticmethod
    async def upsert_status(
        db: AsyncSession,
        driver_id: UUID,
        available: bool,
        location: Coordinates | None = None,
    ) -> dict:
        """
        Set a driver's availability and, when given, last known location.

        The row is keyed on user_id, so repeated toggles never create a
        second row. A toggle without a location keeps the previous one.

        Args:
            db: Database session
            driver_id: Driver user ID
            available: New availability
            location: Current position from the driver's device

        Returns:
            The stored status row
        """
        now = datetime.now(UTC)
        values: dict = {"user_id": driver_id, "available": available, "updated_at": now}
        changes: dict = {"available": available, "updated_at": now}
        if location is not None:
            values.update(latitude=location.latitude, longitude=location.longitude)
            changes.update(latitude=location.latitude, longitude=location.longitude)

        dialect = db.get_bind().dialect.name
        insert_fn = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert_fn(driver_status).values(**values)
        stmt = stmt.on_conflict_do_update(index_elements=[driver_status.c.user_id], set_=changes)

        await db.execute(stmt)
        await db.commit()

        logger.info(
            "driver_status_updated",
            driver_id=str(driver_id),
            available=available,
            has_location=location is not None,
        )

        status = await DriverService.get_status(db, driver_id)
        if status is None:
            raise RuntimeError("Driver status upsert did not persist")
        return status

    @staticmethod
    async def get_status(db: AsyncSession, driver_id: UUID) -> dict | None:
        """Get a driver's status row."""
        result = await db.execute(select(driver_status).where(driver_status.c.user_id == driver_id))
        row = result.mappings().first()
        return dict(row) if row else None

    @staticmethod
    async def list_available_drivers(
        db: AsyncSession,
        require_location: bool = True,
    ) -> list[dict]:
        """
        Read the directory of drivers currently marked available.

        Args:
            db: Database session
            require_location: Only return drivers with a known position

        Returns:
            Status rows in a stable order
        """
        query = select(driver_status).where(driver_status.c.available.is_(True))
        if require_location:
            query = query.where(
                driver_status.c.latitude.isnot(None),
                driver_status.c.longitude.isnot(None),
            )
        query = query.order_by(driver_status.c.updated_at, driver_status.c.user_id)

        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    @staticmethod
    def rank_by_distance(
        origin: Coordinates,
        drivers: list[dict],
        radius_km: float | None,
    ) -> list[dict]:
        """
        Attach distances and filter/sort drivers.

        Drivers without a usable location get ``distance_km=None``; they are
        dropped when a radius applies and listed last otherwise.
        """
        ranked = []
        for driver in drivers:
            position = Coordinates.from_optional(driver.get("latitude"), driver.get("longitude"))
            distance = (
                haversine_km(
                    origin.latitude, origin.longitude, position.latitude, position.longitude
                )
                if position
                else None
            )
            if radius_km is not None and (distance is None or distance > radius_km):
                continue
            ranked.append(
                {
                    "driver_id": driver["user_id"],
                    "latitude": driver.get("latitude"),
                    "longitude": driver.get("longitude"),
                    "distance_km": distance,
                    "updated_at": driver.get("updated_at"),
                }
            )

        # sorted() is stable, so equal distances keep directory order
        return sorted(
            ranked,
            key=lambda d: (d["distance_km"] is None, d["distance_km"] or 0.0),
        )

    @staticmethod
    async def find_nearby_drivers(
        db: AsyncSession,
        origin: Coordinates,
        radius_km: float,
    ) -> list[dict]:
        """
        Find available drivers within ``radius_km`` of ``origin``.

        Args:
            db: Database session
            origin: Pickup location
            radius_km: Search radius in kilometres

        Returns:
            Drivers ordered nearest first

        Raises:
            BadRequestException: If the radius is not a positive number
        """
        if not math.isfinite(radius_km) or radius_km <= 0:
            raise BadRequestException("radius_km must be a positive number")

        drivers = await DriverService.list_available_drivers(db, require_location=True)
        nearby = DriverService.rank_by_distance(origin, drivers, radius_km)

        logger.info(
            "nearby_drivers_found",
            checked=len(drivers),
            found=len(nearby),
            radius_km=radius_km,
        )
        return nearby
