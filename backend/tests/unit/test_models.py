"""
Unit tests for Pydantic models
"""
import pytest
from datetime import datetime
from types import SimpleNamespace
from uuid import uuid4
from pydantic import ValidationError

from backend.services.common.models import (
    GeoPoint, LoginIn, MasjidCreate, MasjidData, MasjidOut, MasjidUpdate, PrayerTimes,
    ProfileUpdate, RegisterIn, RequestOut, RequestStatus, RequestType, Role,
)
from backend.tests.helpers import masjid_payload


def test_prayer_times_model():
    """Test PrayerTimes model, jummah is optional"""
    times = PrayerTimes(fajr="05:30", dhuhr="13:00", asr="16:30", maghrib="19:45", isha="21:15")
    assert times.jummah == ""

    with pytest.raises(ValidationError):
        PrayerTimes(fajr="05:30", dhuhr="13:00", asr="16:30", maghrib="19:45")


def test_masjid_create_accepts_camel_case():
    """Test MasjidCreate reads the API field names"""
    masjid = MasjidCreate.model_validate(masjid_payload())
    assert masjid.name == "Masjid Al-Noor"
    assert masjid.prayer_times.jummah == "13:30"
    assert masjid.phone_number == "970-231-0576"


def test_masjid_create_requires_fields():
    """Test MasjidCreate rejects missing required fields"""
    payload = masjid_payload()
    del payload["prayerTimes"]
    with pytest.raises(ValidationError):
        MasjidCreate.model_validate(payload)

    with pytest.raises(ValidationError):
        MasjidCreate.model_validate(masjid_payload(name="   "))


def test_masjid_create_rejects_invalid_coordinates():
    """Test coordinates outside WGS84 ranges are rejected"""
    with pytest.raises(ValidationError):
        MasjidCreate.model_validate(masjid_payload(latitude=91))
    with pytest.raises(ValidationError):
        MasjidCreate.model_validate(masjid_payload(longitude=-181))


def test_masjid_update_changes_only_set_fields():
    """Test MasjidUpdate.changes keeps explicitly provided, non-null fields"""
    update = MasjidUpdate.model_validate({"name": "New Name", "description": "", "address": None})
    assert update.changes() == {"name": "New Name", "description": ""}


def test_masjid_data_is_frozen():
    """Test the request snapshot cannot be mutated"""
    snapshot = MasjidData.model_validate({"name": "Masjid Bilal"})
    with pytest.raises(ValidationError):
        snapshot.name = "Changed"


def test_passwords_are_not_stripped():
    """Test that credentials keep surrounding whitespace while names are trimmed"""
    register = RegisterIn(name="  Alice ", email="a@x.com", password=" pw ")
    assert register.name == "Alice"
    assert register.password == " pw "
    assert LoginIn(email="a@x.com", password="pw ").password == "pw "
    assert ProfileUpdate(password=" new").password == " new"
    with pytest.raises(ValidationError):
        RegisterIn(name="Alice", email="a@x.com", password="")


def test_register_requires_valid_email():
    """Test RegisterIn email validation"""
    assert RegisterIn(name="Alice", email="a@x.com", password="pw").email == "a@x.com"
    with pytest.raises(ValidationError):
        RegisterIn(name="Alice", email="not-an-email", password="pw")


def test_masjid_out_serializes_location_as_point():
    """Test MasjidOut builds a GeoJSON point in (lon, lat) order"""
    now = datetime(2025, 1, 10, 12, 0)
    owner = SimpleNamespace(id=uuid4(), name="Alice", email="a@x.com")
    record = SimpleNamespace(
        id=uuid4(), name="Masjid Al-Noor", address="123 Colfax Ave", longitude=-104.99, latitude=39.74,
        prayer_times=PrayerTimes(fajr="1", dhuhr="2", asr="3", maghrib="4", isha="5").model_dump(),
        description="", phone_number="", added_by=owner, created_at=now, updated_at=now,
    )
    out = MasjidOut.from_record(record, distance=1234.567).model_dump(by_alias=True)

    assert out["location"] == {"type": "Point", "coordinates": (-104.99, 39.74)}
    assert out["prayerTimes"]["isha"] == "5"
    assert out["addedBy"]["name"] == "Alice"
    assert out["distance"] == 1234.6


def test_request_out_serializes_with_camel_case():
    """Test RequestOut exposes API field names and the snapshot"""
    now = datetime(2025, 1, 10, 12, 0)
    requester = SimpleNamespace(id=uuid4(), name="Bob", email="b@x.com", role=Role.ADMIN)
    record = SimpleNamespace(
        id=uuid4(), type=RequestType.ADD_MASJID, status=RequestStatus.PENDING,
        requested_by=requester, masjid_id=None, masjid=None,
        masjid_data={"name": "Masjid Bilal"}, reason="New masjid", admin_response=None,
        processed_by=None, created_at=now, updated_at=now,
    )
    out = RequestOut.from_record(record).model_dump(by_alias=True, mode="json")

    assert out["type"] == "add_masjid"
    assert out["status"] == "pending"
    assert out["requestedBy"]["email"] == "b@x.com"
    assert out["requestedBy"]["role"] == "admin"
    assert out["masjidData"]["name"] == "Masjid Bilal"
    assert out["processedBy"] is None


def test_geo_point_defaults_to_point_type():
    assert GeoPoint(coordinates=(1.0, 2.0)).type == "Point"
