"""
Authorization Gate

A non-admin caller may only touch their own customer id; admins may touch any.
The caller identity is always passed in explicitly as a Principal.
"""

from dataclasses import dataclass
from typing import Optional

from .audit import AuditEventType, AuditTrail
from .customers import Role
from .errors import access_denied, authentication_required
from .logging_config import get_logger, log_action

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller identity"""
    customer_id: int
    role: Role
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def can_access(principal: Optional[Principal], target_customer_id: int) -> bool:
    """True if the caller is an admin or owns ``target_customer_id``"""
    if principal is None:
        return False
    if principal.is_admin:
        return True
    return principal.customer_id == target_customer_id


def require_access(
    principal: Optional[Principal],
    target_customer_id: int,
    audit_trail: Optional[AuditTrail] = None,
    resource: str = "customer"
) -> None:
    """
    Fail with CUSTOMER_ACCESS_DENIED unless ``can_access`` holds.

    Denials are logged and, when an audit trail is supplied, recorded as
    ACCESS_DENIED events. A missing principal is AUTHENTICATION_REQUIRED.
    """
    if principal is None:
        raise authentication_required()

    if can_access(principal, target_customer_id):
        return

    log_action(
        logger, "warning",
        f"Customer {principal.customer_id} denied access to customer {target_customer_id}",
        user_id=principal.customer_id, action="access_denied", resource=resource,
        extra={"target_customer_id": target_customer_id}
    )
    if audit_trail is not None:
        audit_trail.log_event(
            event_type=AuditEventType.ACCESS_DENIED,
            entity_type="customer",
            entity_id=target_customer_id,
            metadata={"resource": resource},
            user_id=principal.customer_id
        )
    raise access_denied(target_customer_id, principal.customer_id)
