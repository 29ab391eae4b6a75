"""
Loan Payment Module

Distributes an incoming payment across a loan's payable installments.

Only unpaid installments due within the payment window (today plus three
months by default) are payable. Funds are consumed greedily in due-date
order, whole installments only; allocation stops at the first installment the
remaining funds cannot cover, even if a later one would fit. Whatever is left
over is neither applied nor refunded.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from .audit import AuditEventType, AuditTrail
from .authorization import Principal, require_access
from .config import LoanManagementConfig, get_config
from .customers import CustomerLedger
from .errors import (
    LoanManagementError, data_access, invalid_parameter, invalid_payment_amount,
    loan_already_paid, loan_not_found, no_payable_installments, validation_failed
)
from .loans import Loan, LoanInstallment, LoanStore, add_months
from .logging_config import get_logger, log_action
from .money import ZERO, format_amount, to_decimal
from .storage import StorageInterface

logger = get_logger(__name__)


@dataclass
class PaymentResult:
    """Outcome of a payment"""
    installments_paid: int
    total_amount_spent: Decimal
    is_loan_fully_paid: bool
    message: str
    paid_installment_ids: List[int] = field(default_factory=list)


def payable_installments(loan: Loan, today: date, window_months: int = 3) -> List[LoanInstallment]:
    """Unpaid installments due on or before ``today + window_months``, earliest first"""
    max_payable_date = add_months(today, window_months)
    eligible = [
        installment for installment in loan.installments
        if not installment.is_paid and installment.due_date <= max_payable_date
    ]
    # sorted() is stable: equal due dates keep schedule order
    return sorted(eligible, key=lambda installment: installment.due_date)


def allocate_payment(
    eligible: List[LoanInstallment],
    amount: Decimal
) -> Tuple[List[LoanInstallment], Decimal]:
    """
    Pick the installments ``amount`` pays, in order, stopping at the first one
    it cannot fully cover.

    Returns:
        (installments to pay, total amount spent)
    """
    remaining = amount
    selected = []
    total_spent = ZERO
    for installment in eligible:
        if remaining < installment.amount:
            break
        selected.append(installment)
        remaining -= installment.amount
        total_spent += installment.amount
    return selected, total_spent


def payment_message(installments_paid: int, total_spent: Decimal, fully_paid: bool) -> str:
    message = (
        f"Successfully paid {installments_paid} installment(s) for a total of "
        f"{format_amount(total_spent)}"
    )
    if fully_paid:
        message += ". Loan is now fully paid!"
    return message


class PaymentAllocator:
    """Applies payments to loans and releases the paid credit back to the customer"""

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

    def pay_loan(
        self,
        loan_id: int,
        amount: Decimal,
        principal: Optional[Principal]
    ) -> PaymentResult:
        """
        Pay as many payable installments as ``amount`` covers

        Raises:
            LoanManagementError: INVALID_PARAMETER, VALIDATION_FAILED,
                LOAN_NOT_FOUND, CUSTOMER_ACCESS_DENIED, LOAN_ALREADY_PAID,
                NO_PAYABLE_INSTALLMENTS, INVALID_PAYMENT_AMOUNT or
                LOAN_DATA_ACCESS_ERROR
        """
        if loan_id is None or loan_id <= 0:
            raise invalid_parameter("loanId", "must be a positive number")
        if amount is None:
            raise validation_failed(["amount: Payment amount is required"])
        amount = to_decimal(amount)
        if not amount.is_finite():
            raise validation_failed(["amount: Payment amount must be a finite number"])
        if amount <= ZERO:
            raise validation_failed(["amount: Payment amount must be positive"])
        if amount > self.config.max_amount:
            raise validation_failed([f"amount: Payment amount must be at most {self.config.max_amount}"])

        try:
            loan = self.loan_store.find_by_id(loan_id)
        except Exception as e:
            raise self._wrap(loan_id, principal, e) from e
        if loan is None:
            raise loan_not_found(loan_id)

        # The owner of a loan never changes, so the gate can run before locking
        require_access(principal, loan.customer_id, self.audit_trail, resource="loan")

        try:
            with self.customer_ledger.customer_lock(loan.customer_id):
                with self.storage.atomic():
                    result = self._apply(loan_id, amount, principal)
        except LoanManagementError:
            raise
        except Exception as e:
            raise self._wrap(loan_id, principal, e) from e

        log_action(
            logger, "info", result.message,
            user_id=principal.customer_id, action="pay_loan", resource="loan",
            extra={
                "loan_id": loan_id,
                "payment_amount": str(amount),
                "installments_paid": result.installments_paid,
                "total_amount_spent": str(result.total_amount_spent),
                "fully_paid": result.is_loan_fully_paid
            }
        )
        return result

    def _apply(self, loan_id: int, amount: Decimal, principal: Principal) -> PaymentResult:
        # Re-read under the customer lock so the paid state is current
        loan = self.loan_store.find_by_id(loan_id)
        if loan is None:
            raise loan_not_found(loan_id)
        if loan.is_paid:
            raise loan_already_paid(loan_id)

        now = self.clock()
        today = now.date()
        window = self.config.payment_window_months

        eligible = payable_installments(loan, today, window)
        if not eligible:
            raise no_payable_installments(loan_id, window)

        if amount < eligible[0].amount:
            raise invalid_payment_amount(amount, eligible[0].amount)

        selected, total_spent = allocate_payment(eligible, amount)
        for installment in selected:
            installment.mark_paid(today, now)

        fully_paid = loan.all_installments_paid
        if fully_paid:
            loan.mark_paid(now)
        else:
            loan.updated_at = now

        customer = self.customer_ledger.get_customer(loan.customer_id)
        self.customer_ledger.credit(customer, total_spent)
        self.loan_store.save(loan)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_PAYMENT_APPLIED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "payment_amount": amount,
                "installments_paid": len(selected),
                "installment_ids": [installment.id for installment in selected],
                "total_amount_spent": total_spent,
                "used_credit_limit": customer.used_credit_limit
            },
            user_id=principal.customer_id
        )
        if fully_paid:
            self.audit_trail.log_event(
                event_type=AuditEventType.LOAN_PAID_OFF,
                entity_type="loan",
                entity_id=loan.id,
                metadata={"customer_id": loan.customer_id},
                user_id=principal.customer_id
            )
            log_action(
                logger, "info", f"Loan {loan.id} is fully paid",
                user_id=principal.customer_id, action="loan_paid_off", resource="loan"
            )

        return PaymentResult(
            installments_paid=len(selected),
            total_amount_spent=total_spent,
            is_loan_fully_paid=fully_paid,
            message=payment_message(len(selected), total_spent, fully_paid),
            paid_installment_ids=[installment.id for installment in selected]
        )

    def _wrap(self, loan_id: int, principal: Optional[Principal], error: Exception) -> LoanManagementError:
        log_action(
            logger, "error", f"Payment processing failed for loan {loan_id}",
            user_id=principal.customer_id if principal else None,
            action="pay_loan", resource="loan", exc_info=True
        )
        return data_access(
            f"Database error while processing loan payment for loan ID: {loan_id}"
        )
