"""
Security Module

Password hashing, JWT issuance and verification, principal resolution from an
Authorization header, and the registration / authentication service.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import jwt

from .audit import AuditEventType, AuditTrail
from .authorization import Principal
from .config import LoanManagementConfig, get_config
from .customers import EMAIL_PATTERN, Customer, CustomerStore, Role
from .errors import (
    duplicate_email, invalid_credentials, user_not_found, validation_failed
)
from .logging_config import get_logger, log_action
from .money import ZERO, round2, to_decimal
from .storage import StorageInterface

logger = get_logger(__name__)


def generate_salt() -> str:
    """Generate random salt for password hashing"""
    return secrets.token_hex(16)


def hash_password(password: str, salt: str) -> str:
    """Hash password with salt using scrypt"""
    return hashlib.scrypt(
        password.encode(),
        salt=salt.encode(),
        n=16384, r=8, p=1
    ).hex()


def verify_password(password: str, salt: str, password_hash: str) -> bool:
    """Constant-time comparison of a candidate password against a stored hash"""
    if not password_hash or not salt:
        return False
    return hmac.compare_digest(hash_password(password, salt), password_hash)


class TokenService:
    """Issues and verifies signed JWTs carrying the caller's role and customer id"""

    def __init__(self, secret: str, algorithm: str = "HS256", expiry_hours: int = 24,
                 clock: Optional[Callable[[], datetime]] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.expiry = timedelta(hours=expiry_hours)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, customer: Customer) -> str:
        now = self.clock()
        payload = {
            "sub": customer.email,
            "role": customer.role.value,
            "userId": customer.id,
            "customerId": customer.id,
            "iat": now,
            "exp": now + self.expiry
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Principal:
        """
        Verify a token and return its principal.

        Raises jwt.InvalidTokenError (including ExpiredSignatureError) for bad
        tokens and KeyError/ValueError for tokens missing the expected claims.
        """
        payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        return Principal(
            customer_id=int(payload["customerId"]),
            role=Role(payload["role"]),
            email=payload.get("sub")
        )


class PrincipalResolver:
    """Turns an ``Authorization: Bearer <jwt>`` header into a Principal"""

    def __init__(self, token_service: TokenService):
        self.token_service = token_service

    def resolve(self, authorization: Optional[str]) -> Optional[Principal]:
        if not authorization or not authorization.startswith("Bearer "):
            return None

        token = authorization[len("Bearer "):].strip()
        try:
            return self.token_service.decode(token)
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired token")
        except (jwt.InvalidTokenError, KeyError, ValueError) as e:
            logger.debug(f"Rejected token: {e}")
        return None


@dataclass
class RegistrationResult:
    customer: Customer
    token: str
    message: str
    registered_at: datetime

    def profile(self) -> Dict[str, Any]:
        return {
            "name": self.customer.name,
            "surname": self.customer.surname,
            "email": self.customer.email,
            "role": self.customer.role.value
        }


@dataclass
class AuthenticationResult:
    customer: Customer
    token: str
    message: str
    timestamp: datetime


class AuthenticationService:
    """Registers customers/admins and authenticates them with email and password"""

    def __init__(
        self,
        storage: StorageInterface,
        customer_store: CustomerStore,
        token_service: TokenService,
        audit_trail: AuditTrail,
        config: Optional[LoanManagementConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.customer_store = customer_store
        self.token_service = token_service
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def register(
        self,
        email: str,
        password: str,
        role: Role,
        name: str,
        surname: str,
        credit_limit: Optional[Decimal] = None,
        used_credit_limit: Optional[Decimal] = None
    ) -> RegistrationResult:
        """
        Register a new account.

        CUSTOMER accounts require a credit limit; the used credit limit defaults
        to zero. ADMIN accounts never carry credit fields. All validation
        problems are reported together.

        Raises:
            LoanManagementError: VALIDATION_FAILED or DUPLICATE_EMAIL
        """
        errors = self._validate_registration(
            email, password, role, name, surname, credit_limit, used_credit_limit
        )
        if errors:
            raise validation_failed(errors)

        email = email.strip().lower()
        with self.storage.atomic():
            if self.customer_store.exists_by_email(email):
                raise duplicate_email(email)

            now = self.clock()
            salt = generate_salt()
            customer = Customer(
                id=self.customer_store.next_id(),
                created_at=now,
                updated_at=now,
                email=email,
                name=name.strip(),
                surname=surname.strip(),
                role=role,
                password_hash=hash_password(password, salt),
                password_salt=salt
            )
            if role == Role.CUSTOMER:
                customer.credit_limit = round2(credit_limit)
                customer.used_credit_limit = round2(
                    used_credit_limit if used_credit_limit is not None else ZERO
                )
            self.customer_store.save(customer)

            self.audit_trail.log_event(
                event_type=AuditEventType.CUSTOMER_REGISTERED,
                entity_type="customer",
                entity_id=customer.id,
                metadata={
                    "email": customer.email,
                    "role": customer.role.value,
                    "credit_limit": customer.credit_limit
                },
                user_id=customer.id
            )

        log_action(
            logger, "info", f"Registered {role.value} account {customer.id}",
            user_id=customer.id, action="register", resource="customer"
        )

        return RegistrationResult(
            customer=customer,
            token=self.token_service.issue(customer),
            message=f"User account created successfully with ID: {customer.id}",
            registered_at=now
        )

    def authenticate(self, email: str, password: str) -> AuthenticationResult:
        """
        Verify credentials and issue a token.

        Raises:
            LoanManagementError: USER_NOT_FOUND or INVALID_CREDENTIALS
        """
        customer = self.customer_store.find_by_email(email.strip())
        if customer is None:
            log_action(
                logger, "warning", "Authentication failed: unknown email",
                action="login_failed", resource="auth"
            )
            raise user_not_found(email)

        if not verify_password(password, customer.password_salt, customer.password_hash):
            log_action(
                logger, "warning", "Authentication failed: wrong password",
                user_id=customer.id, action="login_failed", resource="auth"
            )
            self.audit_trail.log_event(
                event_type=AuditEventType.LOGIN_FAILED,
                entity_type="customer",
                entity_id=customer.id,
                user_id=customer.id
            )
            raise invalid_credentials()

        self.audit_trail.log_event(
            event_type=AuditEventType.LOGIN_SUCCESS,
            entity_type="customer",
            entity_id=customer.id,
            user_id=customer.id
        )
        log_action(
            logger, "info", "User authenticated successfully",
            user_id=customer.id, action="login", resource="auth"
        )

        return AuthenticationResult(
            customer=customer,
            token=self.token_service.issue(customer),
            message=f"Successful login, {customer.name}!",
            timestamp=self.clock()
        )

    def _validate_registration(
        self,
        email: Optional[str],
        password: Optional[str],
        role: Optional[Role],
        name: Optional[str],
        surname: Optional[str],
        credit_limit: Optional[Decimal],
        used_credit_limit: Optional[Decimal]
    ) -> List[str]:
        errors = []

        if not email or not email.strip():
            errors.append("email: Email is required")
        elif not EMAIL_PATTERN.match(email.strip()):
            errors.append("email: Invalid email format")

        if not password:
            errors.append("password: Password is required")
        elif len(password) < self.config.password_min_length:
            errors.append(
                f"password: Password must be at least "
                f"{self.config.password_min_length} characters long"
            )

        if role is None:
            errors.append("role: Role is required")
        if not name or not name.strip():
            errors.append("name: Name is required")
        if not surname or not surname.strip():
            errors.append("surname: Surname is required")

        if role == Role.CUSTOMER:
            limit = to_decimal(credit_limit) if credit_limit is not None else None
            used = to_decimal(used_credit_limit) if used_credit_limit is not None else ZERO
            maximum = self.config.max_amount
            if limit is None:
                errors.append("creditLimit: Credit limit is required for CUSTOMER role")
            elif not limit.is_finite() or limit > maximum:
                errors.append(f"creditLimit: Credit limit must be at most {maximum}")
                limit = None
            elif limit < ZERO:
                errors.append("creditLimit: Credit limit must be positive")
            if not used.is_finite() or used > maximum:
                errors.append(f"usedCreditLimit: Used credit limit must be at most {maximum}")
            elif used < ZERO:
                errors.append("usedCreditLimit: Used credit limit must be positive")
            elif limit is not None and used > limit:
                errors.append("usedCreditLimit: Used credit limit cannot exceed credit limit")

        return errors
