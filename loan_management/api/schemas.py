"""
Pydantic schemas for API requests and responses

Field names on the wire are camelCase; money is serialized as decimal strings.
"""

from decimal import Decimal
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..customers import Role
from ..loans import Loan
from ..payments import PaymentResult
from ..queries import InstallmentDetail, LoanSummary
from ..security import AuthenticationResult, RegistrationResult


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# Auth schemas
class RegisterRequest(CamelModel):
    email: str
    password: str
    role: Role
    name: str
    surname: str
    credit_limit: Optional[Decimal] = Field(None, alias="creditLimit")
    used_credit_limit: Optional[Decimal] = Field(None, alias="usedCreditLimit")


class AuthenticationRequest(CamelModel):
    email: str
    password: str


class UserProfile(CamelModel):
    name: str
    surname: str
    email: str
    role: str


class RegisterResponse(CamelModel):
    token: str
    message: str
    user_id: int = Field(..., alias="userId")
    user: UserProfile
    registration_time: datetime = Field(..., alias="registrationTime")

    @classmethod
    def from_result(cls, result: RegistrationResult) -> 'RegisterResponse':
        return cls(
            token=result.token,
            message=result.message,
            user_id=result.customer.id,
            user=UserProfile(**result.profile()),
            registration_time=result.registered_at
        )


class AuthenticationResponse(CamelModel):
    token: str
    message: str
    timestamp: datetime

    @classmethod
    def from_result(cls, result: AuthenticationResult) -> 'AuthenticationResponse':
        return cls(token=result.token, message=result.message, timestamp=result.timestamp)


# Loan schemas
class CreateLoanRequest(CamelModel):
    customer_id: int = Field(..., alias="customerId", description="Borrowing customer ID")
    amount: Decimal = Field(..., description="Loan principal")
    interest_rate: Decimal = Field(..., alias="interestRate", description="Rate as a fraction, e.g. 0.2")
    number_of_installments: int = Field(..., alias="numberOfInstallments", description="6, 9, 12 or 24")


class PayLoanRequest(CamelModel):
    amount: Decimal = Field(..., description="Amount available for installments")


class CreateLoanResponse(CamelModel):
    id: int
    customer_id: int = Field(..., alias="customerId")
    customer_name: str = Field(..., alias="customerName")
    customer_surname: str = Field(..., alias="customerSurname")
    loan_amount: Decimal = Field(..., alias="loanAmount")
    interest_rate: Decimal = Field(..., alias="interestRate")
    number_of_installments: int = Field(..., alias="numberOfInstallments")
    create_date: datetime = Field(..., alias="createDate")
    is_paid: bool = Field(..., alias="isPaid")
    total_amount: Decimal = Field(..., alias="totalAmount")

    @classmethod
    def from_loan(cls, loan: Loan, customer_name: str, customer_surname: str) -> 'CreateLoanResponse':
        return cls(
            id=loan.id,
            customer_id=loan.customer_id,
            customer_name=customer_name,
            customer_surname=customer_surname,
            loan_amount=loan.loan_amount,
            interest_rate=loan.interest_rate,
            number_of_installments=loan.number_of_installments,
            create_date=loan.create_date,
            is_paid=loan.is_paid,
            total_amount=loan.total_amount
        )


class LoanListResponse(CreateLoanResponse):
    remaining_installments: int = Field(..., alias="remainingInstallments")

    @classmethod
    def from_summary(cls, summary: LoanSummary) -> 'LoanListResponse':
        return cls(
            id=summary.id,
            customer_id=summary.customer_id,
            customer_name=summary.customer_name,
            customer_surname=summary.customer_surname,
            loan_amount=summary.loan_amount,
            interest_rate=summary.interest_rate,
            number_of_installments=summary.number_of_installments,
            create_date=summary.create_date,
            is_paid=summary.is_paid,
            total_amount=summary.total_amount,
            remaining_installments=summary.remaining_installments
        )


class LoanInstallmentResponse(CamelModel):
    id: int
    loan_id: int = Field(..., alias="loanId")
    amount: Decimal
    due_date: date = Field(..., alias="dueDate")
    payment_date: Optional[date] = Field(None, alias="paymentDate")
    paid_amount: Optional[Decimal] = Field(None, alias="paidAmount")
    is_paid: bool = Field(..., alias="isPaid")
    installment_number: int = Field(..., alias="installmentNumber")

    @classmethod
    def from_detail(cls, detail: InstallmentDetail) -> 'LoanInstallmentResponse':
        return cls(
            id=detail.id,
            loan_id=detail.loan_id,
            amount=detail.amount,
            due_date=detail.due_date,
            payment_date=detail.payment_date,
            paid_amount=detail.paid_amount,
            is_paid=detail.is_paid,
            installment_number=detail.installment_number
        )


class PayLoanResponse(CamelModel):
    installments_paid: int = Field(..., alias="installmentsPaid")
    total_amount_spent: Decimal = Field(..., alias="totalAmountSpent")
    is_loan_fully_paid: bool = Field(..., alias="isLoanFullyPaid")
    message: str

    @classmethod
    def from_result(cls, result: PaymentResult) -> 'PayLoanResponse':
        return cls(
            installments_paid=result.installments_paid,
            total_amount_spent=result.total_amount_spent,
            is_loan_fully_paid=result.is_loan_fully_paid,
            message=result.message
        )


class ErrorResponse(CamelModel):
    error: str
    message: str
    status: int
    timestamp: datetime
    path: str
    details: Optional[List[str]] = None
