"""
Pydantic models for the Masjid Finder backend

API payloads use camelCase field names (``prayerTimes``, ``masjidData``...);
Python code uses the snake_case attribute names.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel


# Enums
class Role(str, Enum):
    MAIN_ADMIN = "main_admin"
    ADMIN = "admin"
    USER = "user"


class RequestType(str, Enum):
    ADMIN_ACCESS = "admin_access"
    ADD_MASJID = "add_masjid"
    EDIT_MASJID = "edit_masjid"
    DELETE_MASJID = "delete_masjid"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Credentials are kept exactly as typed
Password = Annotated[str, StringConstraints(strip_whitespace=False, min_length=1)]


class APIModel(BaseModel):
    """Base for every model that crosses the API boundary"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        str_strip_whitespace = True


# Common models
class GeoPoint(APIModel):
    """GeoJSON point, coordinates are [longitude, latitude]"""
    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]


class PrayerTimes(APIModel):
    """Daily prayer schedule, jummah is the optional weekly time"""
    fajr: str = Field(..., min_length=1)
    dhuhr: str = Field(..., min_length=1)
    asr: str = Field(..., min_length=1)
    maghrib: str = Field(..., min_length=1)
    isha: str = Field(..., min_length=1)
    jummah: str = ""


class UserRef(APIModel):
    """User in display form, embedded in masjids and requests"""
    id: UUID
    name: str
    email: str


class RequesterRef(UserRef):
    """Requester in display form; the role shows who already holds admin"""
    role: Optional[Role] = None


class MasjidRef(APIModel):
    """Masjid in display form, embedded in requests"""
    id: UUID
    name: str
    address: str


# Auth models
class RegisterIn(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: Password


class LoginIn(APIModel):
    email: str = Field(..., min_length=1)
    password: Password


class ProfileUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    password: Optional[Password] = None


class RoleUpdate(APIModel):
    role: str


class UserOut(APIModel):
    """User projection, never carries the credential hash"""
    id: UUID
    name: str
    email: str
    role: Role
    created_at: datetime


class AuthOut(APIModel):
    id: UUID
    name: str
    email: str
    role: Role
    token: str


# Masjid models
class MasjidUpdate(APIModel):
    """Partial masjid payload, unset fields are left untouched"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    prayer_times: Optional[PrayerTimes] = None
    description: Optional[str] = None
    phone_number: Optional[str] = Field(None, max_length=50)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly provided and not null"""
        return {
            key: value for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class MasjidCreate(MasjidUpdate):
    """Complete masjid payload"""
    name: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=500)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    prayer_times: PrayerTimes
    description: str = ""
    phone_number: str = Field("", max_length=50)


class MasjidData(MasjidUpdate):
    """Immutable snapshot of a masjid payload carried by a change request"""

    class Config:
        frozen = True


class MasjidOut(APIModel):
    id: UUID
    name: str
    address: str
    location: GeoPoint
    prayer_times: PrayerTimes
    description: str = ""
    phone_number: str = ""
    added_by: Optional[UserRef] = None
    distance: Optional[float] = Field(None, description="Meters from the query point (nearby search only)")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record, distance: Optional[float] = None) -> "MasjidOut":
        return cls(
            id=record.id,
            name=record.name,
            address=record.address,
            location=GeoPoint(coordinates=(record.longitude, record.latitude)),
            prayer_times=PrayerTimes.model_validate(record.prayer_times),
            description=record.description or "",
            phone_number=record.phone_number or "",
            added_by=UserRef.model_validate(record.added_by) if record.added_by else None,
            distance=round(distance, 1) if distance is not None else None,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


# Request (change proposal) models
class RequestIn(APIModel):
    type: str
    masjid_id: Optional[str] = None
    masjid_data: Optional[dict[str, Any]] = None
    reason: Optional[str] = Field(None, max_length=1000)


class ProcessIn(APIModel):
    status: str
    admin_response: Optional[str] = Field(None, max_length=1000)


class RequestOut(APIModel):
    id: UUID
    type: RequestType
    status: RequestStatus
    requested_by: Optional[RequesterRef] = None
    masjid_id: Optional[UUID] = None
    masjid: Optional[MasjidRef] = None
    masjid_data: Optional[MasjidData] = None
    reason: Optional[str] = None
    admin_response: Optional[str] = None
    processed_by: Optional[UserRef] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record) -> "RequestOut":
        return cls(
            id=record.id,
            type=record.type,
            status=record.status,
            requested_by=RequesterRef.model_validate(record.requested_by) if record.requested_by else None,
            masjid_id=record.masjid_id,
            masjid=MasjidRef.model_validate(record.masjid) if record.masjid else None,
            masjid_data=MasjidData.model_validate(record.masjid_data) if record.masjid_data else None,
            reason=record.reason,
            admin_response=record.admin_response,
            processed_by=UserRef.model_validate(record.processed_by) if record.processed_by else None,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


# API response envelope
class Envelope(BaseModel):
    """Uniform response body for every action"""
    success: bool = True
    data: Optional[Any] = None
    count: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None
    detail: Optional[str] = None  # internal error text, development only
