"""
Request dependencies: the loan system and the authenticated principal
"""

from typing import Optional
from fastapi import Depends, Header, Request

from ..authorization import Principal
from ..errors import authentication_required
from ..system import LoanSystem


def get_loan_system(request: Request) -> LoanSystem:
    """The LoanSystem attached to the running application"""
    return request.app.state.loan_system


def get_current_principal(
    authorization: Optional[str] = Header(None),
    system: LoanSystem = Depends(get_loan_system)
) -> Principal:
    """Resolve the caller from a Bearer token, or reject the request"""
    principal = system.principal_resolver.resolve(authorization)
    if principal is None:
        raise authentication_required()
    return principal
