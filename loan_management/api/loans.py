"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from ..authorization import Principal
from ..system import LoanSystem
from .dependencies import get_current_principal, get_loan_system
from .schemas import (
    CreateLoanRequest, CreateLoanResponse, LoanInstallmentResponse, LoanListResponse,
    PayLoanRequest, PayLoanResponse
)


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_loan(
    request: CreateLoanRequest,
    principal: Principal = Depends(get_current_principal),
    system: LoanSystem = Depends(get_loan_system)
):
    """Originate a new loan with its installment schedule"""
    loan = system.loan_factory.create_loan(
        customer_id=request.customer_id,
        amount=request.amount,
        interest_rate=request.interest_rate,
        number_of_installments=request.number_of_installments,
        principal=principal
    )
    customer = system.customer_store.find_by_id(loan.customer_id)
    return CreateLoanResponse.from_loan(loan, customer.name, customer.surname).to_json()


@router.get("")
def list_loans(
    customer_id: int = Query(..., alias="customerId"),
    is_paid: Optional[bool] = Query(None, alias="isPaid"),
    number_of_installments: Optional[int] = Query(None, alias="numberOfInstallments"),
    principal: Principal = Depends(get_current_principal),
    system: LoanSystem = Depends(get_loan_system)
):
    """List a customer's loans, optionally filtered"""
    summaries = system.loan_queries.list_loans(
        customer_id,
        principal,
        is_paid=is_paid,
        number_of_installments=number_of_installments
    )
    return [LoanListResponse.from_summary(summary).to_json() for summary in summaries]


@router.get("/{loan_id}/installments")
def list_loan_installments(
    loan_id: int,
    principal: Principal = Depends(get_current_principal),
    system: LoanSystem = Depends(get_loan_system)
):
    """List a loan's installments in due-date order"""
    details = system.loan_queries.list_loan_installments(loan_id, principal)
    return [LoanInstallmentResponse.from_detail(detail).to_json() for detail in details]


@router.post("/{loan_id}/pay")
def pay_loan(
    loan_id: int,
    request: PayLoanRequest,
    principal: Principal = Depends(get_current_principal),
    system: LoanSystem = Depends(get_loan_system)
):
    """Pay as many due installments as the amount covers"""
    result = system.payment_allocator.pay_loan(loan_id, request.amount, principal)
    return PayLoanResponse.from_result(result).to_json()
