"""
Loan Module

Loan and installment records, their persistence, and the schedule math shared
by origination, queries and payments.

A loan owns its installments. Installments reference their loan by id only,
and the loan's installment list is always ordered by due date ascending.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .errors import data_integrity
from .money import round2
from .storage import StorageInterface, StorageRecord


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping the day to the target month's length"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_total_amount(loan_amount: Decimal, interest_rate: Decimal) -> Decimal:
    """Total payable: principal * (1 + rate), rounded half-up to cents"""
    return round2(loan_amount * (Decimal("1") + interest_rate))


def calculate_installment_amount(total_amount: Decimal, number_of_installments: int) -> Decimal:
    """
    Equal share of the total, rounded half-up to cents.

    The per-installment rounding drift is not reconciled against the total.
    """
    return round2(total_amount / Decimal(number_of_installments))


def first_due_date(created_on: date) -> date:
    """First day of the month after ``created_on``"""
    return add_months(created_on.replace(day=1), 1)


def schedule_due_dates(created_on: date, number_of_installments: int) -> List[date]:
    start = first_due_date(created_on)
    return [add_months(start, i) for i in range(number_of_installments)]


@dataclass
class LoanInstallment(StorageRecord):
    """One scheduled repayment; paid in full exactly once, never partially"""
    loan_id: int
    amount: Decimal
    due_date: date
    payment_date: Optional[date] = None
    paid_amount: Optional[Decimal] = None
    is_paid: bool = False

    def mark_paid(self, payment_date: date, paid_at: datetime) -> None:
        if self.is_paid:
            raise data_integrity(f"Installment {self.id} of loan {self.loan_id} is already paid")
        self.paid_amount = self.amount
        self.payment_date = payment_date
        self.is_paid = True
        self.updated_at = paid_at

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LoanInstallment':
        data = dict(data)
        data['amount'] = Decimal(data['amount'])
        data['due_date'] = date.fromisoformat(data['due_date'])
        if data.get('payment_date'):
            data['payment_date'] = date.fromisoformat(data['payment_date'])
        if data.get('paid_amount') is not None:
            data['paid_amount'] = Decimal(data['paid_amount'])
        return super().from_dict(data)


@dataclass
class Loan(StorageRecord):
    """Loan against a customer's credit limit with its installment schedule"""
    customer_id: int
    loan_amount: Decimal
    interest_rate: Decimal
    number_of_installments: int
    create_date: datetime
    is_paid: bool = False
    installments: List[LoanInstallment] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return calculate_total_amount(self.loan_amount, self.interest_rate)

    @property
    def remaining_installments(self) -> int:
        return sum(1 for installment in self.installments if not installment.is_paid)

    @property
    def all_installments_paid(self) -> bool:
        return all(installment.is_paid for installment in self.installments)

    def mark_paid(self, paid_at: datetime) -> None:
        """Flip is_paid to True; it never goes back"""
        self.is_paid = True
        self.updated_at = paid_at

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        del result['installments']
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = dict(data)
        data.pop('installments', None)
        data['loan_amount'] = Decimal(data['loan_amount'])
        data['interest_rate'] = Decimal(data['interest_rate'])
        if isinstance(data['create_date'], str):
            data['create_date'] = datetime.fromisoformat(data['create_date'])
        return super().from_dict(data)


class LoanStore:
    """Persistence for loans and their installments"""

    loans_table = "loans"
    installments_table = "loan_installments"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def next_loan_id(self) -> int:
        return self.storage.next_id(self.loans_table)

    def next_installment_id(self) -> int:
        return self.storage.next_id(self.installments_table)

    def find_by_id(self, loan_id: int) -> Optional[Loan]:
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            return None
        loan = Loan.from_dict(data)
        loan.installments = self._load_installments(loan.id)
        return loan

    def find_by_customer(
        self,
        customer_id: int,
        is_paid: Optional[bool] = None,
        number_of_installments: Optional[int] = None
    ) -> List[Loan]:
        """Loans of one customer, optionally filtered by paid status and installment count"""
        filters: Dict[str, Any] = {"customer_id": customer_id}
        if is_paid is not None:
            filters["is_paid"] = is_paid
        if number_of_installments is not None:
            filters["number_of_installments"] = number_of_installments

        loans = [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]
        loans.sort(key=lambda loan: loan.id)
        for loan in loans:
            loan.installments = self._load_installments(loan.id)
        return loans

    def save(self, loan: Loan) -> Loan:
        """Save the loan record and every installment it owns"""
        for installment in loan.installments:
            if installment.loan_id != loan.id:
                raise data_integrity(
                    f"Installment {installment.id} belongs to loan {installment.loan_id}, "
                    f"not loan {loan.id}"
                )
            self.storage.save(self.installments_table, installment.id, installment.to_dict())
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
        return loan

    def _load_installments(self, loan_id: int) -> List[LoanInstallment]:
        rows = self.storage.find(self.installments_table, {"loan_id": loan_id})
        installments = [LoanInstallment.from_dict(row) for row in rows]
        installments.sort(key=lambda installment: (installment.due_date, installment.id))
        return installments
