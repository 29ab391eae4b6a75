"""
Tests for the authorization gate
"""

import pytest

from loan_management.storage import InMemoryStorage
from loan_management.audit import AuditEventType, AuditTrail
from loan_management.authorization import Principal, can_access, require_access
from loan_management.customers import Role
from loan_management.errors import ErrorKind, LoanManagementError


class TestAuthorization:
    """Test owner/admin access rules"""

    def setup_method(self):
        self.audit_trail = AuditTrail(InMemoryStorage())
        self.customer = Principal(customer_id=1, role=Role.CUSTOMER, email="alice@example.com")
        self.admin = Principal(customer_id=99, role=Role.ADMIN)

    def test_customer_can_access_own_data(self):
        assert can_access(self.customer, 1)
        require_access(self.customer, 1, self.audit_trail)
        assert self.audit_trail.count_events() == 0

    def test_customer_cannot_access_other_customer(self):
        """Access denied is raised, logged and audited"""
        assert not can_access(self.customer, 2)

        with pytest.raises(LoanManagementError, match="Customer 1 cannot access data for customer 2") as exc_info:
            require_access(self.customer, 2, self.audit_trail, resource="loan")

        assert exc_info.value.kind == ErrorKind.CUSTOMER_ACCESS_DENIED
        assert exc_info.value.http_status == 403

        events = self.audit_trail.get_events_by_type(AuditEventType.ACCESS_DENIED)
        assert len(events) == 1
        assert events[0].entity_id == "2"
        assert events[0].user_id == "1"
        assert events[0].metadata == {"resource": "loan"}

    def test_admin_can_access_anyone(self):
        assert self.admin.is_admin
        assert can_access(self.admin, 1)
        assert can_access(self.admin, 12345)
        require_access(self.admin, 12345, self.audit_trail)

    def test_missing_principal(self):
        """No principal means authentication is required"""
        assert not can_access(None, 1)
        with pytest.raises(LoanManagementError) as exc_info:
            require_access(None, 1)
        assert exc_info.value.kind == ErrorKind.AUTHENTICATION_REQUIRED

    def test_denial_without_audit_trail(self):
        """The gate still denies when no audit trail is supplied"""
        with pytest.raises(LoanManagementError):
            require_access(self.customer, 2)
