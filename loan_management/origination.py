"""
Loan Origination Module

Creates a loan against a customer's credit limit: validates the request,
checks eligibility, builds the installment schedule and debits the customer
ledger, all inside one atomic unit of work.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from .audit import AuditEventType, AuditTrail
from .authorization import Principal, require_access
from .config import LoanManagementConfig, get_config
from .customers import CustomerLedger
from .errors import (
    LoanManagementError, admin_cannot_create_loan, data_access, validation_failed
)
from .loans import (
    Loan, LoanInstallment, LoanStore, calculate_installment_amount,
    calculate_total_amount, schedule_due_dates
)
from .logging_config import get_logger, log_action
from .money import to_decimal
from .storage import StorageInterface

logger = get_logger(__name__)


def validate_loan_request(
    customer_id: Optional[int],
    amount: Optional[Decimal],
    interest_rate: Optional[Decimal],
    number_of_installments: Optional[int],
    config: LoanManagementConfig
) -> List[str]:
    """Return every field-level problem with a loan request (empty when valid)"""
    errors = []

    if customer_id is None:
        errors.append("customerId: Customer ID is required")
    elif customer_id <= 0:
        errors.append("customerId: Customer ID must be a positive number")

    if amount is None:
        errors.append("amount: Loan amount is required")
    elif not amount.is_finite():
        errors.append("amount: Loan amount must be a finite number")
    elif amount < config.min_loan_amount:
        errors.append(f"amount: Loan amount must be at least {config.min_loan_amount}")
    elif amount > config.max_amount:
        errors.append(f"amount: Loan amount must be at most {config.max_amount}")

    if interest_rate is None:
        errors.append("interestRate: Interest rate is required")
    elif not interest_rate.is_finite():
        errors.append("interestRate: Interest rate must be a finite number")
    else:
        if interest_rate < config.min_interest_rate:
            errors.append(f"interestRate: Interest rate must be at least {config.min_interest_rate}")
        if interest_rate > config.max_interest_rate:
            errors.append(f"interestRate: Interest rate must be at most {config.max_interest_rate}")

    allowed = config.allowed_installment_counts
    if number_of_installments is None:
        errors.append("numberOfInstallments: Number of installments is required")
    elif number_of_installments not in allowed:
        errors.append(
            "numberOfInstallments: Number of installments must be "
            f"{', '.join(str(n) for n in allowed[:-1])}, or {allowed[-1]}"
        )

    return errors


class LoanFactory:
    """Originates loans and their installment schedules"""

    def __init__(
        self,
        storage: StorageInterface,
        customer_ledger: CustomerLedger,
        loan_store: LoanStore,
        audit_trail: AuditTrail,
        config: Optional[LoanManagementConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.customer_ledger = customer_ledger
        self.loan_store = loan_store
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def create_loan(
        self,
        customer_id: int,
        amount: Decimal,
        interest_rate: Decimal,
        number_of_installments: int,
        principal: Optional[Principal]
    ) -> Loan:
        """
        Create a loan with its full installment schedule

        Args:
            customer_id: Borrowing customer
            amount: Principal amount (at least the configured minimum)
            interest_rate: Flat one-time rate as a fraction, e.g. 0.2 for 20%
            number_of_installments: One of the allowed installment counts
            principal: Authenticated caller

        Returns:
            The persisted Loan with its installments

        Raises:
            LoanManagementError: VALIDATION_FAILED, CUSTOMER_ACCESS_DENIED,
                CUSTOMER_NOT_FOUND, ADMIN_CANNOT_CREATE_LOAN,
                INSUFFICIENT_CREDIT_LIMIT or LOAN_DATA_ACCESS_ERROR
        """
        amount = to_decimal(amount) if amount is not None else None
        interest_rate = to_decimal(interest_rate) if interest_rate is not None else None

        errors = validate_loan_request(
            customer_id, amount, interest_rate, number_of_installments, self.config
        )
        if errors:
            raise validation_failed(errors)

        require_access(principal, customer_id, self.audit_trail, resource="loan")

        try:
            with self.customer_ledger.customer_lock(customer_id):
                with self.storage.atomic():
                    loan = self._originate(customer_id, amount, interest_rate, number_of_installments)
                    self.audit_trail.log_event(
                        event_type=AuditEventType.LOAN_CREATED,
                        entity_type="loan",
                        entity_id=loan.id,
                        metadata={
                            "customer_id": customer_id,
                            "loan_amount": loan.loan_amount,
                            "interest_rate": loan.interest_rate,
                            "total_amount": loan.total_amount,
                            "number_of_installments": number_of_installments,
                            "first_due_date": loan.installments[0].due_date.isoformat()
                        },
                        user_id=principal.customer_id
                    )
        except LoanManagementError:
            raise
        except Exception as e:
            log_action(
                logger, "error", f"Loan creation failed for customer {customer_id}",
                user_id=principal.customer_id, action="create_loan", resource="loan",
                exc_info=True
            )
            raise data_access(
                f"Database error while creating loan for customer ID: {customer_id}"
            ) from e

        log_action(
            logger, "info", f"Created loan {loan.id} for customer {customer_id}",
            user_id=principal.customer_id, action="create_loan", resource="loan",
            extra={
                "loan_id": loan.id,
                "total_amount": str(loan.total_amount),
                "installment_amount": str(loan.installments[0].amount),
                "number_of_installments": number_of_installments
            }
        )
        return loan

    def _originate(
        self,
        customer_id: int,
        amount: Decimal,
        interest_rate: Decimal,
        number_of_installments: int
    ) -> Loan:
        customer = self.customer_ledger.get_customer(customer_id)
        if not customer.has_credit_fields:
            raise admin_cannot_create_loan()

        total_amount = calculate_total_amount(amount, interest_rate)
        # Raises INSUFFICIENT_CREDIT_LIMIT before anything is written
        self.customer_ledger.debit(customer, total_amount)

        now = self.clock()
        installment_amount = calculate_installment_amount(total_amount, number_of_installments)

        loan = Loan(
            id=self.loan_store.next_loan_id(),
            created_at=now,
            updated_at=now,
            customer_id=customer_id,
            loan_amount=amount,
            interest_rate=interest_rate,
            number_of_installments=number_of_installments,
            create_date=now,
            is_paid=False
        )
        loan.installments = [
            LoanInstallment(
                id=self.loan_store.next_installment_id(),
                created_at=now,
                updated_at=now,
                loan_id=loan.id,
                amount=installment_amount,
                due_date=due_date
            )
            for due_date in schedule_due_dates(now.date(), number_of_installments)
        ]

        return self.loan_store.save(loan)
