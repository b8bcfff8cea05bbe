"""
Change handlers, one per request type

Each handler knows which masjid reference and payload its request type
carries, how to snapshot the payload at submission, and what to do when
the request is approved.
"""
import uuid
from typing import Any, Dict, Optional

from ..auth.identity import IdentityStore
from ..common.errors import InvalidInput, validate_as
from ..common.logger import get_logger
from ..common.models import MasjidCreate, MasjidData, MasjidUpdate, RequestType
from ..common.tables import RequestRecord
from ..masjids.store import MasjidStore

logger = get_logger("workflow")


class Change:
    """Base handler; subclasses override the hooks they need"""
    type: RequestType
    # True: masjidId required and must exist; False: masjidId must be absent
    targets_masjid = False

    async def resolve_target(self, masjid_id: Optional[str], masjids: MasjidStore) -> Optional[uuid.UUID]:
        if not self.targets_masjid:
            if masjid_id:
                raise InvalidInput(f"masjidId is not allowed for {self.type.value} requests")
            return None
        if not masjid_id:
            raise InvalidInput(f"masjidId is required for {self.type.value} requests")
        masjid = await masjids.find_by_id(masjid_id)
        return masjid.id

    def snapshot(self, masjid_data: Optional[Dict[str, Any]], masjids: MasjidStore) -> Optional[Dict[str, Any]]:
        """By-value copy of the payload stored on the request, None if unused"""
        return None

    async def apply(self, request: RequestRecord, identity: IdentityStore, masjids: MasjidStore) -> None:
        raise NotImplementedError


class AdminAccess(Change):
    type = RequestType.ADMIN_ACCESS

    async def apply(self, request, identity, masjids):
        await identity.grant_admin(request.requested_by_id)


class AddMasjid(Change):
    type = RequestType.ADD_MASJID

    def snapshot(self, masjid_data, masjids):
        if not masjid_data:
            raise InvalidInput("masjidData is required for add_masjid requests")
        data = validate_as(MasjidCreate, masjid_data)
        snapshot = data.model_dump()
        snapshot["phone_number"] = masjids.normalize_phone_field(data.phone_number)
        return snapshot

    async def apply(self, request, identity, masjids):
        data = validate_as(MasjidCreate, request.masjid_data)
        masjid = await masjids.create(data, added_by=request.requested_by_id)
        logger.info(
            "Approved masjid addition applied",
            extra={"request_id": request.id, "masjid_id": masjid.id},
        )


class EditMasjid(Change):
    type = RequestType.EDIT_MASJID
    targets_masjid = True

    def snapshot(self, masjid_data, masjids):
        changes = validate_as(MasjidUpdate, masjid_data or {}).changes()
        if not changes:
            raise InvalidInput("masjidData must contain at least one field to change")
        if "phone_number" in changes:
            changes["phone_number"] = masjids.normalize_phone_field(changes["phone_number"])
        return changes

    async def apply(self, request, identity, masjids):
        data = validate_as(MasjidData, request.masjid_data or {})
        # A masjid deleted since submission surfaces as NotFound
        await masjids.update(request.masjid_id, data)


class DeleteMasjid(Change):
    type = RequestType.DELETE_MASJID
    targets_masjid = True

    async def apply(self, request, identity, masjids):
        if await masjids.get_optional(request.masjid_id) is None:
            logger.info("Masjid already gone, nothing to delete", extra={"request_id": request.id})
            return
        await masjids.delete(request.masjid_id)


CHANGES: Dict[RequestType, Change] = {
    handler.type: handler
    for handler in (AdminAccess(), AddMasjid(), EditMasjid(), DeleteMasjid())
}


def change_for(request_type: RequestType) -> Change:
    return CHANGES[request_type]
