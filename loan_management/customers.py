"""
Customer Module

Customer profiles and the customer credit ledger. A CUSTOMER carries a credit
limit and a used-credit balance; an ADMIN carries neither and can never own a
loan. The ledger keeps 0 <= used_credit_limit <= credit_limit after every
mutation and serializes read-modify-write per customer.
"""

import re
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from .errors import customer_not_found, data_integrity, insufficient_credit_limit
from .money import ZERO, round2
from .storage import StorageInterface, StorageRecord

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


class Role(Enum):
    """Caller roles"""
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


@dataclass
class Customer(StorageRecord):
    """Customer profile with optional credit fields"""
    email: str
    name: str
    surname: str
    role: Role
    password_hash: str = ""
    password_salt: str = ""
    credit_limit: Optional[Decimal] = None
    used_credit_limit: Optional[Decimal] = None

    @property
    def has_credit_fields(self) -> bool:
        return self.credit_limit is not None and self.used_credit_limit is not None

    @property
    def available_credit(self) -> Decimal:
        if not self.has_credit_fields:
            return ZERO
        return self.credit_limit - self.used_credit_limit

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        data = dict(data)
        data['role'] = Role(data['role'])
        for key in ('credit_limit', 'used_credit_limit'):
            if data.get(key) is not None:
                data[key] = Decimal(data[key])
        return super().from_dict(data)


class CustomerStore:
    """Persistence for customers (``findById`` / ``save`` / lookup by email)"""

    table_name = "customers"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def next_id(self) -> int:
        return self.storage.next_id(self.table_name)

    def find_by_id(self, customer_id: int) -> Optional[Customer]:
        data = self.storage.load(self.table_name, customer_id)
        if data:
            return Customer.from_dict(data)
        return None

    def find_by_email(self, email: str) -> Optional[Customer]:
        matches = self.storage.find(self.table_name, {"email": email.lower()})
        if matches:
            return Customer.from_dict(matches[0])
        return None

    def exists_by_email(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def save(self, customer: Customer) -> Customer:
        customer.email = customer.email.lower()
        self.storage.save(self.table_name, customer.id, customer.to_dict())
        return customer


class CustomerLedger:
    """
    Credit-limit accounting for customers.

    ``debit`` reserves credit when a loan is created, ``credit`` releases it as
    installments are paid. Callers wrap the read-modify-write in
    ``customer_lock(customer_id)`` so concurrent operations on the same
    customer run one after another; other customers are never blocked.
    """

    def __init__(self, customer_store: CustomerStore,
                 clock: Optional[Callable[[], datetime]] = None):
        self.customer_store = customer_store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        # Entries vanish once no caller holds or waits on the lock
        self._locks = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    @contextmanager
    def customer_lock(self, customer_id: int) -> Iterator[None]:
        """Serialize ledger mutations for one customer"""
        with self._registry_lock:
            lock = self._locks.get(customer_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[customer_id] = lock
        with lock:
            yield

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.customer_store.find_by_id(customer_id)
        if customer is None:
            raise customer_not_found(customer_id)
        return customer

    def debit(self, customer: Customer, amount: Decimal) -> Customer:
        """Reserve ``amount`` of the customer's credit limit"""
        if not customer.has_credit_fields:
            raise data_integrity(f"Customer {customer.id} has no credit fields to debit")

        available = customer.available_credit
        if available < amount:
            raise insufficient_credit_limit(available, amount)

        customer.used_credit_limit = round2(customer.used_credit_limit + amount)
        return self._save(customer)

    def credit(self, customer: Customer, amount: Decimal) -> Customer:
        """Release ``amount`` of previously reserved credit"""
        if not customer.has_credit_fields:
            raise data_integrity(f"Customer {customer.id} has no credit fields to credit")

        new_used = round2(customer.used_credit_limit - amount)
        if new_used < ZERO:
            raise data_integrity(
                f"Crediting {amount} would make used credit negative for customer {customer.id}"
            )

        customer.used_credit_limit = new_used
        return self._save(customer)

    def _save(self, customer: Customer) -> Customer:
        check_credit_invariant(customer)
        customer.updated_at = self.clock()
        return self.customer_store.save(customer)


def check_credit_invariant(customer: Customer) -> None:
    """Raise if 0 <= used_credit_limit <= credit_limit does not hold"""
    if not customer.has_credit_fields:
        return
    if not (ZERO <= customer.used_credit_limit <= customer.credit_limit):
        raise data_integrity(
            f"Credit invariant violated for customer {customer.id}: "
            f"used {customer.used_credit_limit}, limit {customer.credit_limit}"
        )
