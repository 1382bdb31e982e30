"""Capability table: (role, ownership, action) -> permit/deny.

Pure; no I/O. Callers work out ``is_owner`` / ``is_provider_of_record``
from the records they already loaded.
"""
from dataclasses import dataclass
from enum import Enum

from dental_clinic.core.errors import AuthorizationError
from dental_clinic.models.user import Role


class Action(str, Enum):
    CREATE_BOOKING = "create_booking"
    CREATE_UNAVAILABLE_MARKER = "create_unavailable_marker"
    UPDATE_BOOKING = "update_booking"
    DELETE_BOOKING = "delete_booking"
    VIEW_BOOKING = "view_booking"
    MANAGE_OFF_HOUR = "manage_off_hour"
    CREATE_GLOBAL_OFF_HOUR = "create_global_off_hour"
    MANAGE_PROVIDER = "manage_provider"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as handed over by the routing layer."""

    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


_BOOKING_RECORD_ACTIONS = {Action.UPDATE_BOOKING, Action.DELETE_BOOKING, Action.VIEW_BOOKING}


def is_permitted(
    role: Role,
    action: Action,
    *,
    is_owner: bool = False,
    is_provider_of_record: bool = False,
) -> bool:
    if role == Role.ADMIN:
        return True

    if role == Role.USER:
        if action == Action.CREATE_BOOKING or action in _BOOKING_RECORD_ACTIONS:
            return is_owner
        return False

    if role == Role.DENTIST:
        if action == Action.CREATE_BOOKING or action in _BOOKING_RECORD_ACTIONS:
            return is_owner or is_provider_of_record
        if action == Action.CREATE_UNAVAILABLE_MARKER:
            return is_provider_of_record
        if action == Action.MANAGE_OFF_HOUR:
            return is_owner
        return False

    return False


def require(
    actor: Actor,
    action: Action,
    *,
    is_owner: bool = False,
    is_provider_of_record: bool = False,
    message: str | None = None,
) -> None:
    """Raise ``AuthorizationError`` unless the table permits the action."""
    if not is_permitted(
        actor.role,
        action,
        is_owner=is_owner,
        is_provider_of_record=is_provider_of_record,
    ):
        raise AuthorizationError(
            message or f"User {actor.id} is not authorized to {action.value.replace('_', ' ')}"
        )
