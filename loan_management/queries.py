"""
Loan Query Module

Read-only listings of a customer's loans and of a loan's installments, gated
by the caller's access to the owning customer.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from .audit import AuditTrail
from .authorization import Principal, require_access
from .config import LoanManagementConfig, get_config
from .customers import Customer, CustomerStore
from .errors import (
    LoanManagementError, customer_not_found, data_access, data_integrity,
    invalid_parameter, loan_not_found
)
from .loans import Loan, LoanInstallment, LoanStore
from .logging_config import get_logger, log_action

logger = get_logger(__name__)


@dataclass
class LoanSummary:
    """A loan as listed for its customer"""
    id: int
    customer_id: int
    customer_name: str
    customer_surname: str
    loan_amount: Decimal
    interest_rate: Decimal
    number_of_installments: int
    create_date: datetime
    is_paid: bool
    total_amount: Decimal
    remaining_installments: int

    @classmethod
    def from_loan(cls, loan: Loan, customer: Customer) -> 'LoanSummary':
        return cls(
            id=loan.id,
            customer_id=loan.customer_id,
            customer_name=customer.name,
            customer_surname=customer.surname,
            loan_amount=loan.loan_amount,
            interest_rate=loan.interest_rate,
            number_of_installments=loan.number_of_installments,
            create_date=loan.create_date,
            is_paid=loan.is_paid,
            total_amount=loan.total_amount,
            remaining_installments=loan.remaining_installments
        )


@dataclass
class InstallmentDetail:
    """One installment with its 1-based position in the schedule"""
    id: int
    loan_id: int
    amount: Decimal
    due_date: date
    payment_date: Optional[date]
    paid_amount: Optional[Decimal]
    is_paid: bool
    installment_number: int

    @classmethod
    def from_installment(cls, installment: LoanInstallment, number: int) -> 'InstallmentDetail':
        return cls(
            id=installment.id,
            loan_id=installment.loan_id,
            amount=installment.amount,
            due_date=installment.due_date,
            payment_date=installment.payment_date,
            paid_amount=installment.paid_amount,
            is_paid=installment.is_paid,
            installment_number=number
        )


class LoanQueryService:
    """Lists loans and installments for authorized callers"""

    def __init__(
        self,
        customer_store: CustomerStore,
        loan_store: LoanStore,
        audit_trail: Optional[AuditTrail] = None,
        config: Optional[LoanManagementConfig] = None
    ):
        self.customer_store = customer_store
        self.loan_store = loan_store
        self.audit_trail = audit_trail
        self.config = config or get_config()

    def list_loans(
        self,
        customer_id: int,
        principal: Optional[Principal],
        is_paid: Optional[bool] = None,
        number_of_installments: Optional[int] = None
    ) -> List[LoanSummary]:
        """
        List a customer's loans, optionally filtered by paid status and/or
        installment count. An empty list is a valid result.
        """
        if customer_id is None or customer_id <= 0:
            raise invalid_parameter("customerId", "must be a positive number")

        if number_of_installments is not None:
            if number_of_installments <= 0:
                raise invalid_parameter("numberOfInstallments", "must be a positive number")
            allowed = self.config.allowed_installment_counts
            if number_of_installments not in allowed:
                raise invalid_parameter(
                    "numberOfInstallments",
                    f"must be one of: {', '.join(str(n) for n in allowed[:-1])}, or {allowed[-1]}"
                )

        require_access(principal, customer_id, self.audit_trail, resource="loan")

        try:
            customer = self.customer_store.find_by_id(customer_id)
            if customer is None:
                raise customer_not_found(customer_id)

            loans = self.loan_store.find_by_customer(
                customer_id, is_paid=is_paid, number_of_installments=number_of_installments
            )
        except LoanManagementError:
            raise
        except Exception as e:
            log_action(
                logger, "error", f"Failed to retrieve loans for customer {customer_id}",
                user_id=principal.customer_id, action="list_loans", resource="loan",
                exc_info=True
            )
            raise data_access(f"Failed to retrieve loans for customer ID: {customer_id}") from e

        return [LoanSummary.from_loan(loan, customer) for loan in loans]

    def list_loan_installments(
        self,
        loan_id: int,
        principal: Optional[Principal]
    ) -> List[InstallmentDetail]:
        """List a loan's installments in due-date order, numbered from 1"""
        if loan_id is None or loan_id <= 0:
            raise invalid_parameter("loanId", "must be a positive number")

        try:
            loan = self.loan_store.find_by_id(loan_id)
        except Exception as e:
            log_action(
                logger, "error", f"Failed to load loan {loan_id}",
                action="list_installments", resource="loan", exc_info=True
            )
            raise data_access(
                f"Database error while retrieving loan installments for loan ID: {loan_id}"
            ) from e

        if loan is None:
            raise loan_not_found(loan_id)

        require_access(principal, loan.customer_id, self.audit_trail, resource="loan")

        if loan.installments is None:
            raise data_integrity(f"Loan installments data is corrupted for loan ID: {loan_id}")
        if not loan.installments:
            raise data_integrity(
                f"No installments found for loan ID: {loan_id}. "
                "This might indicate a data integrity issue."
            )

        return [
            InstallmentDetail.from_installment(installment, number)
            for number, installment in enumerate(loan.installments, start=1)
        ]
