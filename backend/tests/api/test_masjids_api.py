"""
API tests for /api/masjids
"""
from backend.tests.helpers import accounts, bearer, masjid_payload


def create(client, account, **overrides):
    response = client.post("/api/masjids", json=masjid_payload(**overrides), headers=bearer(account))
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestReadMasjids:
    """Public read endpoints"""

    def test_list_is_public(self, client):
        response = client.get("/api/masjids")
        assert response.status_code == 200
        assert response.json()["data"] == []
        assert response.json()["count"] == 0

    def test_get_masjid(self, client):
        _, admin, _ = accounts(client)
        masjid = create(client, admin)

        response = client.get(f"/api/masjids/{masjid['id']}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Masjid Al-Noor"
        assert data["location"] == {"type": "Point", "coordinates": [-104.9903, 39.7392]}
        assert data["prayerTimes"]["fajr"] == "05:30"
        assert data["addedBy"]["email"] == "c@x.com"
        assert data["distance"] is None

    def test_get_missing_masjid(self, client):
        for masjid_id in ("not-a-uuid", "c0ffee00-0000-4000-8000-000000000000"):
            response = client.get(f"/api/masjids/{masjid_id}")
            assert response.status_code == 404
            assert response.json() == {"success": False, "message": "Masjid not found", "error": "NotFound"}

    def test_nearby(self, client):
        _, admin, _ = accounts(client)
        create(client, admin, name="North", latitude=39.7492)
        create(client, admin, name="Here")
        create(client, admin, name="Boulder", latitude=40.015, longitude=-105.2705)

        response = client.get("/api/masjids/nearby", params={"longitude": -104.9903, "latitude": 39.7392})
        assert response.status_code == 200
        body = response.json()
        assert [m["name"] for m in body["data"]] == ["Here", "North"]
        assert body["count"] == 2
        assert body["data"][0]["distance"] == 0.0
        assert 1090 < body["data"][1]["distance"] < 1130

        response = client.get(
            "/api/masjids/nearby",
            params={"longitude": -104.9903, "latitude": 39.7392, "maxDistance": 100000},
        )
        assert [m["name"] for m in response.json()["data"]] == ["Here", "North", "Boulder"]

    def test_nearby_requires_coordinates(self, client):
        response = client.get("/api/masjids/nearby", params={"latitude": 39.7392})
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide longitude and latitude"

        response = client.get("/api/masjids/nearby", params={"longitude": "east", "latitude": 39.7392})
        assert response.status_code == 400


class TestWriteMasjids:
    """Direct writes, admin and main admin only"""

    def test_admin_creates_masjid(self, client):
        main, admin, _ = accounts(client)
        response = client.post("/api/masjids", json=masjid_payload(), headers=bearer(admin))
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Masjid created successfully"
        assert body["data"]["phoneNumber"] == "+19702310576"

        create(client, main, name="Masjid Bilal")
        assert client.get("/api/masjids").json()["count"] == 2

    def test_user_cannot_create_even_with_bad_payload(self, client):
        _, _, user = accounts(client)
        for payload in (masjid_payload(), {"name": "Incomplete"}):
            response = client.post("/api/masjids", json=payload, headers=bearer(user))
            assert response.status_code == 403
            assert response.json()["error"] == "Forbidden"

    def test_create_requires_token_and_valid_payload(self, client):
        _, admin, _ = accounts(client)
        assert client.post("/api/masjids", json=masjid_payload()).status_code == 401

        response = client.post("/api/masjids", json={"name": "Incomplete"}, headers=bearer(admin))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

        response = client.post("/api/masjids", json=masjid_payload(phoneNumber="1" * 51), headers=bearer(admin))
        assert response.status_code == 400

    def test_uk_phone_number_is_accepted(self, client):
        main, _, user = accounts(client)
        response = client.post("/api/masjids", json=masjid_payload(phoneNumber="020 7946 0958"), headers=bearer(main))
        assert response.status_code == 201
        assert response.json()["data"]["phoneNumber"] == "020 7946 0958"

        response = client.post(
            "/api/requests",
            json={"type": "add_masjid", "masjidData": masjid_payload(phoneNumber="020 7946 0958")},
            headers=bearer(user),
        )
        assert response.status_code == 201
        assert response.json()["data"]["masjidData"]["phoneNumber"] == "020 7946 0958"

    def test_partial_update(self, client):
        _, admin, user = accounts(client)
        masjid = create(client, admin)

        response = client.put(
            f"/api/masjids/{masjid['id']}",
            json={"description": "Renovated", "latitude": 40.0},
            headers=bearer(admin),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["description"] == "Renovated"
        assert data["name"] == masjid["name"]
        # Half a coordinate pair does not move the masjid
        assert data["location"] == masjid["location"]

        response = client.put(f"/api/masjids/{masjid['id']}", json={"name": "Mine"}, headers=bearer(user))
        assert response.status_code == 403

    def test_delete_needs_admin(self, client):
        _, admin, user = accounts(client)
        masjid = create(client, admin)

        response = client.delete(f"/api/masjids/{masjid['id']}", headers=bearer(user))
        assert response.status_code == 403

        response = client.delete(f"/api/masjids/{masjid['id']}", headers=bearer(admin))
        assert response.status_code == 200
        assert response.json()["message"] == "Masjid deleted successfully"

        assert client.get(f"/api/masjids/{masjid['id']}").status_code == 404
        assert client.delete(f"/api/masjids/{masjid['id']}", headers=bearer(admin)).status_code == 404
