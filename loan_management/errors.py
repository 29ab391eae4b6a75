"""
Error Kinds Module

Every business-rule failure is a LoanManagementError tagged with an ErrorKind.
Each kind carries a stable machine-readable code and the HTTP status class it
maps to, so callers branch on the kind rather than on exception subclasses.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    """Error kinds with (code, HTTP status)"""
    # Not found
    CUSTOMER_NOT_FOUND = ("CUSTOMER_NOT_FOUND", 404)
    LOAN_NOT_FOUND = ("LOAN_NOT_FOUND", 404)

    # Access control
    CUSTOMER_ACCESS_DENIED = ("CUSTOMER_ACCESS_DENIED", 403)
    ADMIN_CANNOT_CREATE_LOAN = ("ADMIN_CANNOT_CREATE_LOAN", 403)

    # Validation and business rules
    INVALID_PARAMETER = ("INVALID_PARAMETER", 400)
    VALIDATION_FAILED = ("VALIDATION_FAILED", 400)
    INSUFFICIENT_CREDIT_LIMIT = ("INSUFFICIENT_CREDIT_LIMIT", 400)
    LOAN_ALREADY_PAID = ("LOAN_ALREADY_PAID", 400)
    NO_PAYABLE_INSTALLMENTS = ("NO_PAYABLE_INSTALLMENTS", 400)
    INVALID_PAYMENT_AMOUNT = ("INVALID_PAYMENT_AMOUNT", 400)

    # Registration and authentication
    DUPLICATE_EMAIL = ("DUPLICATE_EMAIL", 409)
    INVALID_CREDENTIALS = ("INVALID_CREDENTIALS", 401)
    USER_NOT_FOUND = ("USER_NOT_FOUND", 401)  # same status as a wrong password
    AUTHENTICATION_REQUIRED = ("AUTHENTICATION_REQUIRED", 401)

    # Storage
    LOAN_DATA_INTEGRITY_ERROR = ("LOAN_DATA_INTEGRITY_ERROR", 500)
    LOAN_DATA_ACCESS_ERROR = ("LOAN_DATA_ACCESS_ERROR", 500)
    INTERNAL_SERVER_ERROR = ("INTERNAL_SERVER_ERROR", 500)

    def __init__(self, code: str, http_status: int):
        self.code = code
        self.http_status = http_status


class LoanManagementError(Exception):
    """Typed failure raised by every core operation"""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = list(details) if details else []

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def __repr__(self) -> str:
        return f"LoanManagementError({self.kind.name}, {self.message!r})"


def _fmt(amount: Decimal) -> str:
    return f"{amount:.2f}"


def customer_not_found(customer_id: int) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.CUSTOMER_NOT_FOUND, f"Customer not found with ID: {customer_id}"
    )


def loan_not_found(loan_id: int) -> LoanManagementError:
    return LoanManagementError(ErrorKind.LOAN_NOT_FOUND, f"Loan not found with ID: {loan_id}")


def access_denied(target_customer_id: int, caller_customer_id: Optional[int]) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.CUSTOMER_ACCESS_DENIED,
        f"Access denied. Customer {caller_customer_id} cannot access data for "
        f"customer {target_customer_id}"
    )


def admin_cannot_create_loan() -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.ADMIN_CANNOT_CREATE_LOAN,
        "Admin users cannot create loans. Only customers with credit limits can create loans."
    )


def invalid_parameter(name: str, reason: str) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.INVALID_PARAMETER, f"Invalid parameter '{name}': {reason}"
    )


def validation_failed(details: List[str]) -> LoanManagementError:
    return LoanManagementError(ErrorKind.VALIDATION_FAILED, "Input validation failed", details)


def insufficient_credit_limit(available: Decimal, required: Decimal) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.INSUFFICIENT_CREDIT_LIMIT,
        f"Insufficient credit limit. Available: {_fmt(available)}, Required: {_fmt(required)}"
    )


def loan_already_paid(loan_id: int) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.LOAN_ALREADY_PAID, f"Loan with ID {loan_id} is already fully paid"
    )


def no_payable_installments(loan_id: int, window_months: int = 3) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.NO_PAYABLE_INSTALLMENTS,
        f"No installments available for payment within the next {window_months} months "
        f"for loan ID: {loan_id}"
    )


def invalid_payment_amount(amount: Decimal, minimum: Decimal) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.INVALID_PAYMENT_AMOUNT,
        f"Payment amount {_fmt(amount)} is insufficient. Minimum amount required to pay "
        f"at least one installment: {_fmt(minimum)}"
    )


def duplicate_email(email: str) -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.DUPLICATE_EMAIL, f"An account with email {email} already exists"
    )


def invalid_credentials() -> LoanManagementError:
    return LoanManagementError(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password")


def user_not_found(email: str) -> LoanManagementError:
    return LoanManagementError(ErrorKind.USER_NOT_FOUND, f"User not found with email: {email}")


def authentication_required() -> LoanManagementError:
    return LoanManagementError(
        ErrorKind.AUTHENTICATION_REQUIRED,
        "Authentication is required to access this resource"
    )


def data_integrity(message: str) -> LoanManagementError:
    return LoanManagementError(ErrorKind.LOAN_DATA_INTEGRITY_ERROR, message)


def data_access(message: str) -> LoanManagementError:
    return LoanManagementError(ErrorKind.LOAN_DATA_ACCESS_ERROR, message)
