"""
Role-based authorization policy

``is_permitted`` is a pure decision over (role, action, resource facts);
``authorize`` turns a deny into ``Forbidden``.
"""
import uuid
from enum import Enum
from typing import Optional

from ..common.errors import Forbidden
from ..common.logger import get_logger
from ..common.models import Role

logger = get_logger("policy")


class Action(str, Enum):
    READ_PUBLIC = "read_public"
    VIEW_PROFILE = "view_profile"
    UPDATE_PROFILE = "update_profile"
    LIST_USERS = "list_users"
    UPDATE_USER_ROLE = "update_user_role"
    CREATE_MASJID = "create_masjid"
    UPDATE_MASJID = "update_masjid"
    DELETE_MASJID = "delete_masjid"
    SUBMIT_REQUEST = "submit_request"
    VIEW_OWN_REQUESTS = "view_own_requests"
    DELETE_REQUEST = "delete_request"
    LIST_ALL_REQUESTS = "list_all_requests"
    PROCESS_REQUEST = "process_request"


# ============================================
# ROLE → PERMISSIONS MAP
# ============================================
USER_ACTIONS = frozenset({
    Action.READ_PUBLIC,
    Action.VIEW_PROFILE,
    Action.UPDATE_PROFILE,
    Action.SUBMIT_REQUEST,
    Action.VIEW_OWN_REQUESTS,
    Action.DELETE_REQUEST,
})

ROLE_PERMISSIONS: dict[Role, frozenset] = {
    # Full access, including role changes and request processing
    Role.MAIN_ADMIN: frozenset({"*"}),
    # Direct masjid writes on top of everything a user can do
    Role.ADMIN: USER_ACTIONS | {
        Action.CREATE_MASJID,
        Action.UPDATE_MASJID,
        Action.DELETE_MASJID,
    },
    Role.USER: USER_ACTIONS,
}

ASSIGNABLE_ROLES = frozenset({Role.USER, Role.ADMIN})

# Actions that only apply to a resource the caller owns, unless main_admin
OWNED_ACTIONS = frozenset({Action.DELETE_REQUEST})


def has_permission(role: Role, action: Action) -> bool:
    granted = ROLE_PERMISSIONS.get(role, frozenset())
    return "*" in granted or action in granted


def is_permitted(
    role: Role,
    action: Action,
    *,
    actor_id: Optional[uuid.UUID] = None,
    owner_id: Optional[uuid.UUID] = None,
    target_role: Optional[Role] = None,
    new_role: Optional[Role] = None,
) -> bool:
    """Decide whether ``role`` may perform ``action`` on the described resource"""
    if not has_permission(role, action):
        return False

    if action == Action.UPDATE_USER_ROLE:
        # main_admin is immutable and can never be handed out
        if target_role == Role.MAIN_ADMIN or new_role == Role.MAIN_ADMIN:
            return False

    if action in OWNED_ACTIONS and role != Role.MAIN_ADMIN:
        return owner_id is not None and owner_id == actor_id

    return True


def authorize(role: Role, action: Action, message: Optional[str] = None, **resource) -> None:
    """Raise Forbidden unless the action is permitted"""
    if not is_permitted(role, action, **resource):
        logger.warning(
            f"Denied {action.value} for role {Role(role).value}",
            extra={"role": Role(role).value, "action": action.value},
        )
        raise Forbidden(message)
