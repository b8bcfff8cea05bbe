"""
Identity store - user accounts and roles
"""
import uuid
from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.database import utcnow
from ..common.errors import AuthFailure, Conflict, Forbidden, InvalidInput, NotFound, parse_id
from ..common.logger import get_logger
from ..common.models import Role
from ..common.tables import UserRecord
from .credentials import hash_password, verify_password
from .policy import ASSIGNABLE_ROLES, Action, authorize

logger = get_logger("identity")


def normalize_email(email: str) -> str:
    """Lowercase the domain, as email validation does when an account registers"""
    email = email.strip()
    local, at, domain = email.rpartition("@")
    if not at:
        return email
    return f"{local}@{domain.lower()}"


class IdentityStore:
    """User accounts; the first account ever registered becomes main_admin"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id) -> UserRecord:
        user = await self.session.get(UserRecord, parse_id(user_id, "User"))
        if user is None:
            raise NotFound("User not found")
        return user

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        email = normalize_email(email)
        result = await self.session.execute(select(UserRecord).where(UserRecord.email == email))
        return result.scalar_one_or_none()

    async def count(self) -> int:
        return await self.session.scalar(select(func.count()).select_from(UserRecord))

    async def register(self, name: str, email: str, password: str) -> UserRecord:
        email = normalize_email(email)
        if await self.find_by_email(email) is not None:
            raise Conflict("User already exists with this email")

        password_hash = hash_password(password)
        role = Role.MAIN_ADMIN if await self.count() == 0 else Role.USER

        try:
            user = await self._insert(name, email, password_hash, role)
        except IntegrityError:
            await self.session.rollback()
            if await self.find_by_email(email) is not None:
                raise Conflict("User already exists with this email")
            if role != Role.MAIN_ADMIN:
                raise
            # A concurrent registration took main_admin first
            logger.warning("Lost main_admin bootstrap race, registering as user")
            role = Role.USER
            user = await self._insert(name, email, password_hash, role)

        logger.info(f"Registered user {email}", extra={"user_id": user.id, "role": role.value})
        return user

    async def _insert(self, name: str, email: str, password_hash: str, role: Role) -> UserRecord:
        user = UserRecord(name=name, email=email, password_hash=password_hash, role=role)
        self.session.add(user)
        await self.session.flush()
        return user

    async def authenticate(self, email: str, password: str) -> UserRecord:
        user = await self.find_by_email(email)
        # Same failure for unknown email and wrong password
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt")
            raise AuthFailure("Invalid credentials")
        return user

    async def set_role(self, acting_user: UserRecord, target_user_id, new_role: str) -> UserRecord:
        authorize(acting_user.role, Action.UPDATE_USER_ROLE, "Only main admin can change user roles")

        target = await self.get(target_user_id)
        authorize(
            acting_user.role,
            Action.UPDATE_USER_ROLE,
            "Cannot change main admin role",
            target_role=target.role,
        )

        try:
            role = Role(new_role)
        except ValueError:
            role = None
        if role not in ASSIGNABLE_ROLES:
            raise InvalidInput("Invalid role. Can only set to user or admin")

        await self._apply_role(target, role)
        logger.info(
            f"Role of {target.email} set to {role.value}",
            extra={"user_id": target.id, "role": role.value, "action": Action.UPDATE_USER_ROLE.value},
        )
        return target

    async def grant_admin(self, user_id: uuid.UUID) -> UserRecord:
        """Escalation path used when an admin_access request is approved"""
        user = await self.get(user_id)
        if user.role == Role.MAIN_ADMIN:
            return user
        await self._apply_role(user, Role.ADMIN)
        logger.info(f"Granted admin to {user.email}", extra={"user_id": user.id, "role": Role.ADMIN.value})
        return user

    async def _apply_role(self, user: UserRecord, role: Role) -> None:
        if user.role == Role.MAIN_ADMIN:
            raise Forbidden("Cannot change main admin role")
        user.role = role
        user.updated_at = max(utcnow(), user.updated_at)
        await self.session.flush()

    async def list(self) -> List[UserRecord]:
        result = await self.session.execute(
            select(UserRecord).order_by(UserRecord.created_at, UserRecord.email)
        )
        return list(result.scalars().all())

    async def update_profile(
        self,
        user: UserRecord,
        name: Optional[str] = None,
        password: Optional[str] = None,
    ) -> UserRecord:
        authorize(user.role, Action.UPDATE_PROFILE)
        if name is None and password is None:
            raise InvalidInput("Nothing to update")
        if name is not None:
            user.name = name
        if password is not None:
            user.password_hash = hash_password(password)
        user.updated_at = max(utcnow(), user.updated_at)
        await self.session.flush()
        logger.info("Profile updated", extra={"user_id": user.id})
        return user
