"""
SQLAlchemy tables for users, masjids and change requests
"""
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import JSON, Enum, Float, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base, utcnow
from .models import RequestStatus, RequestType, Role


def _enum(enum_cls):
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [m.value for m in members],
    )


class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[Role] = mapped_column(_enum(Role), default=Role.USER)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow)

    __table_args__ = (
        # Only one account can ever hold main_admin
        Index(
            "uq_users_single_main_admin",
            "role",
            unique=True,
            sqlite_where=text("role = 'main_admin'"),
            postgresql_where=text("role = 'main_admin'"),
        ),
    )


class MasjidRecord(Base):
    __tablename__ = "masjids"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200))
    address: Mapped[str] = mapped_column(String(500))
    longitude: Mapped[float] = mapped_column(Float)
    latitude: Mapped[float] = mapped_column(Float)
    prayer_times: Mapped[dict] = mapped_column(JSON)
    description: Mapped[str] = mapped_column(Text, default="")
    phone_number: Mapped[str] = mapped_column(String(50), default="")
    added_by_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow)

    added_by: Mapped[Optional[UserRecord]] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_masjids_lat_lon", "latitude", "longitude"),
    )


class RequestRecord(Base):
    __tablename__ = "requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[RequestType] = mapped_column(_enum(RequestType))
    status: Mapped[RequestStatus] = mapped_column(_enum(RequestStatus), default=RequestStatus.PENDING)
    requested_by_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), index=True)
    # Kept after the masjid is deleted, so not a foreign key
    masjid_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    masjid_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow)

    requested_by: Mapped[Optional[UserRecord]] = relationship(
        foreign_keys=[requested_by_id], lazy="selectin"
    )
    processed_by: Mapped[Optional[UserRecord]] = relationship(
        foreign_keys=[processed_by_id], lazy="selectin"
    )
    masjid: Mapped[Optional[MasjidRecord]] = relationship(
        primaryjoin="foreign(RequestRecord.masjid_id) == MasjidRecord.id",
        viewonly=True,
        lazy="selectin",
    )

    __table_args__ = (
        # At most one pending admin_access request per requester
        Index(
            "uq_requests_pending_admin_access",
            "requested_by_id",
            unique=True,
            sqlite_where=text("type = 'admin_access' AND status = 'pending'"),
            postgresql_where=text("type = 'admin_access' AND status = 'pending'"),
        ),
    )
