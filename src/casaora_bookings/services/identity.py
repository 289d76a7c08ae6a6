"""Actor role lookup and booking-level authorization checks."""

from typing import Optional, Protocol

from ..models.booking import Booking
from ..models.enums import ActorRole
from ..models.errors import Unauthorized
from ..utils.logging import get_logger
from .dynamodb import DynamoDBService, get_dynamodb_service

logger = get_logger(__name__)

PROFILES_TABLE = "profiles"


class IdentityResolver(Protocol):
    def resolve_role(self, actor_ref: str) -> Optional[ActorRole]: ...


class ProfileRoleResolver:
    """Reads actor roles from the ``profiles`` table (key ``profile_id``)."""

    def __init__(self, db: Optional[DynamoDBService] = None) -> None:
        self.db = db or get_dynamodb_service()

    def resolve_role(self, actor_ref: str) -> Optional[ActorRole]:
        """Resolve an actor reference to its role.

        Args:
            actor_ref: Profile ID (the Cognito sub)

        Returns:
            The actor's role, or None if the profile is unknown or has no valid role
        """
        item = self.db.get_item(PROFILES_TABLE, {"profile_id": actor_ref})
        if not item:
            return None
        try:
            return ActorRole(item.get("role"))
        except ValueError:
            logger.warning("Profile %s has unknown role %r", actor_ref, item.get("role"))
            return None


def check_party_access(
    resolver: IdentityResolver,
    actor_ref: str,
    customer_ref: str,
    professional_ref: str,
    allowed_roles: Optional[frozenset[ActorRole]] = None,
) -> ActorRole:
    """Ensure ``actor_ref`` may act on a record between two parties.

    Admins may act on anything. Customers and professionals only on records
    they are a party to, and only if their role is in ``allowed_roles``.

    Returns:
        The actor's resolved role

    Raises:
        Unauthorized: If the actor is unknown, not a party, or not allowed
    """
    role = resolver.resolve_role(actor_ref)
    if role is None:
        raise Unauthorized(actor_ref, "unknown actor")
    if role == ActorRole.ADMIN:
        return role
    if allowed_roles is not None and role not in allowed_roles:
        raise Unauthorized(actor_ref, f"{role.value} may not perform this action")
    if role == ActorRole.CUSTOMER and customer_ref == actor_ref:
        return role
    if role == ActorRole.PROFESSIONAL and professional_ref == actor_ref:
        return role
    raise Unauthorized(actor_ref, f"{role.value} is not a party to this booking")


def check_booking_access(
    resolver: IdentityResolver,
    booking: Booking,
    actor_ref: str,
    allowed_roles: Optional[frozenset[ActorRole]] = None,
) -> ActorRole:
    """Ensure ``actor_ref`` may act on ``booking``."""
    return check_party_access(
        resolver, actor_ref, booking.customer_ref, booking.professional_ref, allowed_roles
    )
