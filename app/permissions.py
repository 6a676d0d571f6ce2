"""
Capability checks for booking mutations.

Every mutating endpoint asks one of these functions for a Decision instead of
combining role and ownership booleans inline.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    ROOT_ADMIN = "root_admin"
    PARTNER_ADMIN = "partner_admin"
    TSMART_TEAM = "tsmart_team"
    CLEANING_COMPANY = "cleaning_company"
    PROVIDER = "provider"
    CUSTOMER = "customer"


ADMIN_ROLES = frozenset(
    {
        UserRole.ROOT_ADMIN.value,
        UserRole.PARTNER_ADMIN.value,
        UserRole.TSMART_TEAM.value,
        UserRole.CLEANING_COMPANY.value,
    }
)

# Statuses each non-admin party may set through the generic update path
CUSTOMER_SETTABLE_STATUSES = frozenset({"cancelled"})
PROVIDER_SETTABLE_STATUSES = frozenset({"in-progress", "completed"})

# Fields a non-admin party may touch besides status
NON_ADMIN_UPDATABLE_FIELDS = frozenset({"status", "special_instructions", "cancellation_reason"})


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Actor:
    """The caller as seen by capability checks"""

    user_id: str
    role: str
    provider_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return is_admin_role(self.role)


def is_admin_role(role: Optional[str]) -> bool:
    return (role or "").lower() in ADMIN_ROLES


def _is_owner(actor: Actor, booking) -> bool:
    return booking.customer_id == actor.user_id


def _is_assigned_provider(actor: Actor, booking) -> bool:
    return bool(actor.provider_id) and booking.provider_id == actor.provider_id


def can_view_booking(actor: Actor, booking) -> Decision:
    if actor.is_admin or _is_owner(actor, booking) or _is_assigned_provider(actor, booking):
        return Decision.ALLOW
    return Decision.DENY


def can_cancel_booking(actor: Actor, booking) -> Decision:
    """Only the booking's customer or an admin may cancel"""
    if actor.is_admin or _is_owner(actor, booking):
        return Decision.ALLOW
    return Decision.DENY


def can_update_booking(actor: Actor, booking, changes: dict) -> Decision:
    """
    Decide whether actor may apply changes to booking through the update path.

    Admins may change anything. The owning customer may only move the booking to
    cancelled; the assigned provider may only move it to in-progress or completed.
    """
    if actor.is_admin:
        return Decision.ALLOW

    is_owner = _is_owner(actor, booking)
    is_provider = _is_assigned_provider(actor, booking)
    if not (is_owner or is_provider):
        return Decision.DENY

    if set(changes) - NON_ADMIN_UPDATABLE_FIELDS:
        return Decision.DENY

    new_status = changes.get("status")
    if new_status is None or new_status == booking.status:
        return Decision.ALLOW

    if is_owner and new_status in CUSTOMER_SETTABLE_STATUSES:
        return Decision.ALLOW
    if is_provider and new_status in PROVIDER_SETTABLE_STATUSES:
        return Decision.ALLOW

    logger.warning(
        f"🚫 Status change {booking.status} → {new_status} denied for user {actor.user_id} "
        f"(role={actor.role}) on booking {booking.id}"
    )
    return Decision.DENY


def can_manage_webhooks(actor: Actor) -> Decision:
    return Decision.ALLOW if actor.is_admin else Decision.DENY
