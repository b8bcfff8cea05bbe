"""
Shared builders for tests
"""
import asyncio
from contextlib import asynccontextmanager

from backend.services.auth.identity import IdentityStore
from backend.services.common.database import AsyncSessionLocal
from backend.services.masjids.store import MasjidStore
from backend.services.workflow.engine import RequestWorkflow


def run(coro):
    """Drive a coroutine to completion from a sync test"""
    return asyncio.run(coro)


def masjid_payload(**overrides) -> dict:
    """A complete, valid masjid payload in API (camelCase) form"""
    data = {
        "name": "Masjid Al-Noor",
        "address": "123 Colfax Ave, Denver, CO",
        "latitude": 39.7392,
        "longitude": -104.9903,
        "prayerTimes": {
            "fajr": "05:30",
            "dhuhr": "13:00",
            "asr": "16:30",
            "maghrib": "19:45",
            "isha": "21:15",
            "jummah": "13:30",
        },
        "description": "Community masjid downtown",
        "phoneNumber": "970-231-0576",
    }
    data.update(overrides)
    return data


class Stores:
    def __init__(self, session):
        self.session = session
        self.identity = IdentityStore(session)
        self.masjids = MasjidStore(session)
        self.workflow = RequestWorkflow(session, self.identity, self.masjids)


@asynccontextmanager
async def stores():
    """One unit of work: a session with every store bound to it, committed on success"""
    async with AsyncSessionLocal() as session:
        yield Stores(session)
        await session.commit()


def register(client, name: str, email: str, password: str = "pw") -> dict:
    """Register through the API and return the auth payload (id, role, token...)"""
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def bearer(account: dict) -> dict:
    return {"Authorization": f"Bearer {account['token']}"}


def accounts(client) -> tuple:
    """main_admin, admin and user accounts registered through the API"""
    main = register(client, "Alice", "a@x.com")
    admin = register(client, "Carol", "c@x.com")
    user = register(client, "Bob", "b@x.com")
    response = client.put(f"/api/auth/users/{admin['id']}/role", json={"role": "admin"}, headers=bearer(main))
    assert response.status_code == 200, response.text
    return main, admin, user
