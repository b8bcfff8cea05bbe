"""
Masjid store - masjid records and nearby search

Callers check authorization before any write; the store only guards
data invariants (required fields, a valid coordinate pair).
"""
import math
import uuid
from typing import Any, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.database import utcnow
from ..common.errors import InvalidInput, NotFound, parse_id
from ..common.geo import bounding_box, distance_m
from ..common.logger import get_logger
from ..common.models import MasjidCreate, MasjidUpdate
from ..common.phone import normalize_phone
from ..common.tables import MasjidRecord

logger = get_logger("masjid_store")

DEFAULT_MAX_DISTANCE_M = 5000


def _coerce_number(value: Any, message: str) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidInput(message)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise InvalidInput(message)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(message) from None
    if not math.isfinite(number):
        raise InvalidInput(message)
    return number


class MasjidStore:
    """CRUD and geospatial lookup over masjid records"""

    def __init__(self, session: AsyncSession, phone_region: str = "US"):
        self.session = session
        self.phone_region = phone_region

    async def find_by_id(self, masjid_id) -> MasjidRecord:
        masjid = await self.get_optional(masjid_id)
        if masjid is None:
            raise NotFound("Masjid not found")
        return masjid

    async def get_optional(self, masjid_id) -> Optional[MasjidRecord]:
        return await self.session.get(MasjidRecord, parse_id(masjid_id, "Masjid"))

    async def find_all(self) -> List[MasjidRecord]:
        result = await self.session.execute(
            select(MasjidRecord).order_by(MasjidRecord.created_at, MasjidRecord.name)
        )
        return list(result.scalars().all())

    async def find_near(
        self,
        longitude: Any,
        latitude: Any,
        max_distance: Any = DEFAULT_MAX_DISTANCE_M,
    ) -> List[Tuple[MasjidRecord, float]]:
        """Masjids within ``max_distance`` meters, nearest first, with their distance"""
        missing = "Please provide longitude and latitude"
        lon = _coerce_number(longitude, missing)
        lat = _coerce_number(latitude, missing)
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            raise InvalidInput("Longitude must be within [-180, 180] and latitude within [-90, 90]")
        if max_distance is None:
            max_distance = DEFAULT_MAX_DISTANCE_M
        radius = _coerce_number(max_distance, "maxDistance must be a number of meters")
        if radius < 0:
            raise InvalidInput("maxDistance must be a number of meters")

        box = bounding_box(lon, lat, radius)
        query = select(MasjidRecord).where(MasjidRecord.latitude.between(box.south, box.north))
        if not box.crosses_antimeridian:
            query = query.where(MasjidRecord.longitude.between(box.west, box.east))

        result = await self.session.execute(query)
        matches = []
        for masjid in result.scalars().all():
            distance = distance_m(lon, lat, masjid.longitude, masjid.latitude)
            if distance <= radius:
                matches.append((masjid, distance))

        matches.sort(key=lambda pair: pair[1])
        logger.info(f"Nearby search ({lon}, {lat}) within {radius}m matched {len(matches)} masjids")
        return matches

    def normalize_phone_field(self, phone: Optional[str]) -> str:
        """E.164 when the number parses for the region, otherwise the trimmed input as given"""
        if not phone or not phone.strip():
            return ""
        normalized = normalize_phone(phone, self.phone_region)
        if normalized is None:
            logger.warning(f"Keeping phone number as given: {phone.strip()}")
            return phone.strip()
        return normalized

    async def create(self, data: MasjidCreate, added_by: uuid.UUID) -> MasjidRecord:
        masjid = MasjidRecord(
            name=data.name,
            address=data.address,
            longitude=data.longitude,
            latitude=data.latitude,
            prayer_times=data.prayer_times.model_dump(),
            description=data.description or "",
            phone_number=self.normalize_phone_field(data.phone_number),
            added_by_id=added_by,
        )
        self.session.add(masjid)
        await self.session.flush()
        masjid = await self._reload(masjid.id)
        logger.info(f"Created masjid {masjid.name}", extra={"masjid_id": masjid.id, "user_id": added_by})
        return masjid

    async def update(self, masjid_id, data: MasjidUpdate) -> MasjidRecord:
        masjid = await self.find_by_id(masjid_id)
        changes = data.changes()

        latitude = changes.pop("latitude", None)
        longitude = changes.pop("longitude", None)
        # Location is only rebuilt from a complete pair
        if latitude is not None and longitude is not None:
            masjid.latitude = latitude
            masjid.longitude = longitude

        if "phone_number" in changes:
            changes["phone_number"] = self.normalize_phone_field(changes["phone_number"])

        for field, value in changes.items():
            setattr(masjid, field, value)

        masjid.updated_at = max(utcnow(), masjid.updated_at)
        await self.session.flush()
        logger.info(f"Updated masjid {masjid.name}", extra={"masjid_id": masjid.id})
        return masjid

    async def delete(self, masjid_id) -> None:
        masjid = await self.find_by_id(masjid_id)
        await self.session.delete(masjid)
        await self.session.flush()
        logger.info(f"Deleted masjid {masjid.name}", extra={"masjid_id": masjid.id})

    async def _reload(self, masjid_id: uuid.UUID) -> MasjidRecord:
        result = await self.session.execute(
            select(MasjidRecord)
            .where(MasjidRecord.id == masjid_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
