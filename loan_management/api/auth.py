"""
Authentication endpoints
"""

from fastapi import APIRouter, Depends

from ..system import LoanSystem
from .dependencies import get_loan_system
from .schemas import (
    AuthenticationRequest, AuthenticationResponse, RegisterRequest, RegisterResponse
)


router = APIRouter()


@router.post("/register")
def register(
    request: RegisterRequest,
    system: LoanSystem = Depends(get_loan_system)
):
    """Register a CUSTOMER or ADMIN account and return a bearer token"""
    result = system.auth_service.register(
        email=request.email,
        password=request.password,
        role=request.role,
        name=request.name,
        surname=request.surname,
        credit_limit=request.credit_limit,
        used_credit_limit=request.used_credit_limit
    )
    return RegisterResponse.from_result(result).to_json()


@router.post("/authenticate")
def authenticate(
    request: AuthenticationRequest,
    system: LoanSystem = Depends(get_loan_system)
):
    """Exchange email and password for a bearer token"""
    result = system.auth_service.authenticate(request.email, request.password)
    return AuthenticationResponse.from_result(result).to_json()
