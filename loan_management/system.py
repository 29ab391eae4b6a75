"""
Loan System

Wires storage, audit trail, stores, ledger and services into one object.
"""

from datetime import datetime
from typing import Callable, Optional

from .audit import AuditTrail
from .config import LoanManagementConfig, get_config
from .customers import CustomerLedger, CustomerStore
from .loans import LoanStore
from .origination import LoanFactory
from .payments import PaymentAllocator
from .queries import LoanQueryService
from .security import AuthenticationService, PrincipalResolver, TokenService
from .storage import StorageInterface, create_storage


class LoanSystem:
    """Loan management system with all components initialized"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[LoanManagementConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.customer_store = CustomerStore(self.storage)
        self.loan_store = LoanStore(self.storage)
        self.customer_ledger = CustomerLedger(self.customer_store, clock=clock)

        self.token_service = TokenService(
            secret=self.config.jwt_secret,
            algorithm=self.config.jwt_algorithm,
            expiry_hours=self.config.jwt_expiry_hours
        )
        self.principal_resolver = PrincipalResolver(self.token_service)
        self.auth_service = AuthenticationService(
            self.storage, self.customer_store, self.token_service, self.audit_trail,
            config=self.config, clock=clock
        )

        self.loan_factory = LoanFactory(
            self.storage, self.customer_ledger, self.loan_store, self.audit_trail,
            config=self.config, clock=clock
        )
        self.loan_queries = LoanQueryService(
            self.customer_store, self.loan_store, self.audit_trail, config=self.config
        )
        self.payment_allocator = PaymentAllocator(
            self.storage, self.customer_ledger, self.loan_store, self.audit_trail,
            config=self.config, clock=clock
        )

    def close(self) -> None:
        self.storage.close()
