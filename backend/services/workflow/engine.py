"""
Request workflow engine - change proposals and their approval

A request starts ``pending`` and is moved exactly once, by the main admin,
to ``approved`` or ``rejected``. Approval applies the proposed change
before the status flip is written; both share one database transaction.
"""
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.identity import IdentityStore
from ..auth.policy import Action, authorize
from ..common.database import utcnow
from ..common.errors import Conflict, InvalidInput, NotFound, parse_id
from ..common.logger import get_logger
from ..common.models import RequestStatus, RequestType
from ..common.tables import RequestRecord, UserRecord
from ..masjids.store import MasjidStore
from .changes import change_for

logger = get_logger("workflow")

E = TypeVar("E", bound=Enum)

TRANSITIONS: Dict[RequestStatus, frozenset] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

DECISIONS = TRANSITIONS[RequestStatus.PENDING]


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in TRANSITIONS[current]


def _parse_enum(enum_cls: Type[E], value: Any, message: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidInput(message) from None


class RequestWorkflow:
    """Lifecycle of change requests"""

    def __init__(self, session: AsyncSession, identity: IdentityStore, masjids: MasjidStore):
        self.session = session
        self.identity = identity
        self.masjids = masjids

    async def get(self, request_id) -> RequestRecord:
        record = await self.session.get(RequestRecord, parse_id(request_id, "Request"))
        if record is None:
            raise NotFound("Request not found")
        return record

    async def submit(
        self,
        requester: UserRecord,
        type: str,
        masjid_id: Optional[str] = None,
        masjid_data: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
    ) -> RequestRecord:
        authorize(requester.role, Action.SUBMIT_REQUEST)
        request_type = _parse_enum(RequestType, type, "Invalid request type")
        change = change_for(request_type)

        target_id = await change.resolve_target(masjid_id, self.masjids)
        snapshot = change.snapshot(masjid_data, self.masjids)

        requester_id = requester.id
        if request_type == RequestType.ADMIN_ACCESS and await self._has_pending_admin_access(requester_id):
            raise Conflict("You already have a pending admin access request")

        record = RequestRecord(
            type=request_type,
            requested_by_id=requester_id,
            masjid_id=target_id,
            masjid_data=snapshot,
            reason=reason or None,
        )
        self.session.add(record)
        try:
            await self.session.flush()
        except IntegrityError:
            # Concurrent submit won the pending admin_access slot
            await self.session.rollback()
            raise Conflict("You already have a pending admin access request")

        logger.info(
            f"Request {request_type.value} submitted",
            extra={"request_id": record.id, "user_id": requester_id, "masjid_id": target_id},
        )
        return await self._reload(record.id)

    async def _has_pending_admin_access(self, requester_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(RequestRecord.id).where(
                RequestRecord.requested_by_id == requester_id,
                RequestRecord.type == RequestType.ADMIN_ACCESS,
                RequestRecord.status == RequestStatus.PENDING,
            )
        )
        return result.first() is not None

    async def list_all(
        self,
        acting_user: UserRecord,
        status: Optional[str] = None,
        type: Optional[str] = None,
    ) -> List[RequestRecord]:
        """Every request matching the filters, newest first"""
        authorize(acting_user.role, Action.LIST_ALL_REQUESTS, "Only main admin can view all requests")
        query = select(RequestRecord)
        if status:
            query = query.where(RequestRecord.status == _parse_enum(RequestStatus, status, "Invalid status filter"))
        if type:
            query = query.where(RequestRecord.type == _parse_enum(RequestType, type, "Invalid type filter"))
        result = await self.session.execute(query.order_by(RequestRecord.created_at.desc()))
        return list(result.scalars().all())

    async def list_for(self, user: UserRecord) -> List[RequestRecord]:
        """The user's own requests, newest first"""
        authorize(user.role, Action.VIEW_OWN_REQUESTS)
        result = await self.session.execute(
            select(RequestRecord)
            .where(RequestRecord.requested_by_id == user.id)
            .order_by(RequestRecord.created_at.desc())
        )
        return list(result.scalars().all())

    async def process(
        self,
        acting_user: UserRecord,
        request_id,
        decision: str,
        admin_response: Optional[str] = None,
    ) -> RequestRecord:
        authorize(acting_user.role, Action.PROCESS_REQUEST, "Only main admin can process requests")
        target = _parse_enum(RequestStatus, decision, "Invalid status. Must be approved or rejected")
        if target not in DECISIONS:
            raise InvalidInput("Invalid status. Must be approved or rejected")

        record = await self.get(request_id)
        if not can_transition(record.status, target):
            raise Conflict("Request has already been processed")

        actor_id = acting_user.id
        record_id = record.id

        if target == RequestStatus.APPROVED:
            await change_for(record.type).apply(record, self.identity, self.masjids)

        # Flip only if still pending; a concurrent processor makes this match nothing
        result = await self.session.execute(
            update(RequestRecord)
            .where(RequestRecord.id == record_id, RequestRecord.status == RequestStatus.PENDING)
            .values(
                status=target,
                admin_response=admin_response or None,
                processed_by_id=actor_id,
                updated_at=max(utcnow(), record.updated_at),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.session.rollback()
            logger.warning("Request processed concurrently, change rolled back", extra={"request_id": record_id})
            raise Conflict("Request has already been processed")

        logger.info(
            f"Request {record.type.value} {target.value}",
            extra={"request_id": record_id, "user_id": actor_id, "status": target.value},
        )
        return await self._reload(record_id)

    async def delete(self, acting_user: UserRecord, request_id) -> None:
        record = await self.get(request_id)
        authorize(
            acting_user.role,
            Action.DELETE_REQUEST,
            "Not authorized to delete this request",
            actor_id=acting_user.id,
            owner_id=record.requested_by_id,
        )
        if record.status != RequestStatus.PENDING:
            raise Conflict("Cannot delete processed requests")

        record_id = record.id
        result = await self.session.execute(
            delete(RequestRecord)
            .where(RequestRecord.id == record_id, RequestRecord.status == RequestStatus.PENDING)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict("Cannot delete processed requests")
        self.session.expunge(record)
        logger.info("Request deleted", extra={"request_id": record_id, "user_id": acting_user.id})

    async def _reload(self, request_id: uuid.UUID) -> RequestRecord:
        result = await self.session.execute(
            select(RequestRecord)
            .where(RequestRecord.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
