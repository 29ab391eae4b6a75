"""
Test suite for loan origination

Tests request validation, credit checks, installment schedule generation and
the all-or-nothing unit of work around loan creation.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from loan_management.audit import AuditEventType
from loan_management.authorization import Principal
from loan_management.config import LoanManagementConfig
from loan_management.customers import Role
from loan_management.errors import ErrorKind, LoanManagementError
from loan_management.loans import (
    add_months, calculate_installment_amount, calculate_total_amount, first_due_date
)
from loan_management.origination import validate_loan_request
from loan_management.storage import InMemoryStorage
from loan_management.system import LoanSystem


FIXED_NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def principal_for(customer):
    return Principal(customer_id=customer.id, role=customer.role, email=customer.email)


class TestScheduleMath:
    """Test the pure schedule helpers"""

    def test_total_amount(self):
        assert calculate_total_amount(Decimal("10000"), Decimal("0.2")) == Decimal("12000.00")
        assert calculate_total_amount(Decimal("333.33"), Decimal("0.15")) == Decimal("383.33")

    def test_installment_amount_rounds_half_up(self):
        assert calculate_installment_amount(Decimal("12000.00"), 12) == Decimal("1000.00")
        assert calculate_installment_amount(Decimal("1100.00"), 9) == Decimal("122.22")
        assert calculate_installment_amount(Decimal("100.01"), 6) == Decimal("16.67")

    def test_first_due_date_is_first_of_next_month(self):
        assert first_due_date(date(2024, 1, 15)) == date(2024, 2, 1)
        assert first_due_date(date(2024, 1, 31)) == date(2024, 2, 1)
        assert first_due_date(date(2024, 12, 1)) == date(2025, 1, 1)

    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


class TestLoanRequestValidation:
    """Test field-level validation of loan requests"""

    def setup_method(self):
        self.config = LoanManagementConfig(database_url="memory://")

    def test_valid_request(self):
        assert validate_loan_request(1, Decimal("100"), Decimal("0.1"), 6, self.config) == []
        assert validate_loan_request(1, Decimal("5000"), Decimal("0.5"), 24, self.config) == []

    def test_all_errors_reported(self):
        """Every invalid field is listed"""
        errors = validate_loan_request(0, Decimal("99.99"), Decimal("0.6"), 7, self.config)

        assert errors == [
            "customerId: Customer ID must be a positive number",
            "amount: Loan amount must be at least 100",
            "interestRate: Interest rate must be at most 0.5",
            "numberOfInstallments: Number of installments must be 6, 9, 12, or 24",
        ]

    def test_missing_fields(self):
        errors = validate_loan_request(None, None, None, None, self.config)
        assert len(errors) == 4
        assert "interestRate: Interest rate is required" in errors

    def test_non_finite_and_oversized_values(self):
        """Values that cannot be stored at two decimal places are field errors"""
        errors = validate_loan_request(1, Decimal("1E+27"), Decimal("NaN"), 6, self.config)
        assert errors == [
            "amount: Loan amount must be at most 99999999.99",
            "interestRate: Interest rate must be a finite number",
        ]

        errors = validate_loan_request(1, Decimal("Infinity"), Decimal("0.1"), 6, self.config)
        assert errors == ["amount: Loan amount must be a finite number"]

        assert validate_loan_request(1, Decimal("99999999.99"), Decimal("0.1"), 6, self.config) == []


class TestLoanCreation:
    """Test creating loans through the loan factory"""

    def setup_method(self):
        self.system = LoanSystem(
            storage=InMemoryStorage(),
            config=LoanManagementConfig(database_url="memory://"),
            clock=lambda: FIXED_NOW
        )
        auth = self.system.auth_service
        self.alice = auth.register(
            "alice@example.com", "secret123", Role.CUSTOMER, "Alice", "Smith",
            credit_limit=Decimal("20000")
        ).customer
        self.bob = auth.register(
            "bob@example.com", "secret123", Role.CUSTOMER, "Bob", "Jones",
            credit_limit=Decimal("10000"), used_credit_limit=Decimal("5000")
        ).customer
        self.admin = auth.register(
            "admin@example.com", "secret123", Role.ADMIN, "Ada", "Admin"
        ).customer

    def create(self, customer_id, amount="10000", rate="0.2", count=12, principal=None):
        return self.system.loan_factory.create_loan(
            customer_id, Decimal(amount), Decimal(rate), count,
            principal or principal_for(self.alice)
        )

    def test_create_loan(self):
        """10000 at 20% over 12 installments is 12 x 1000.00"""
        loan = self.create(self.alice.id)

        assert loan.id == 1
        assert loan.customer_id == self.alice.id
        assert loan.total_amount == Decimal("12000.00")
        assert not loan.is_paid
        assert loan.create_date == FIXED_NOW
        assert len(loan.installments) == 12
        assert all(i.amount == Decimal("1000.00") for i in loan.installments)
        assert all(not i.is_paid and i.paid_amount is None for i in loan.installments)

        customer = self.system.customer_store.find_by_id(self.alice.id)
        assert customer.used_credit_limit == Decimal("12000.00")

    def test_due_dates(self):
        """Due dates fall on the 1st, starting next month, strictly increasing"""
        loan = self.create(self.alice.id)
        due_dates = [i.due_date for i in loan.installments]

        assert due_dates[0] == date(2024, 2, 1)
        assert due_dates[-1] == date(2025, 1, 1)
        assert all(d.day == 1 for d in due_dates)
        assert all(a < b for a, b in zip(due_dates, due_dates[1:]))

    def test_installment_sum_within_rounding_tolerance(self):
        """Equal installments may drift from the total by at most half a cent each"""
        loan = self.create(self.alice.id, amount="1000", rate="0.1", count=9)
        installment_sum = sum(i.amount for i in loan.installments)

        assert loan.total_amount == Decimal("1100.00")
        assert abs(installment_sum - loan.total_amount) <= Decimal("0.005") * 9

    def test_loan_is_persisted_with_installments(self):
        loan = self.create(self.alice.id, count=6)
        stored = self.system.loan_store.find_by_id(loan.id)

        assert stored.number_of_installments == 6
        assert [i.id for i in stored.installments] == [i.id for i in loan.installments]
        assert all(i.loan_id == loan.id for i in stored.installments)

    def test_loan_created_audit_event(self):
        loan = self.create(self.alice.id)
        events = self.system.audit_trail.get_events_by_type(AuditEventType.LOAN_CREATED)

        assert len(events) == 1
        assert events[0].entity_id == str(loan.id)
        assert events[0].metadata["total_amount"] == "12000.00"

    def test_insufficient_credit_limit(self):
        """Bob has 5000 available and asks for 12000"""
        with pytest.raises(LoanManagementError, match="Available: 5000.00, Required: 12000.00") as exc_info:
            self.create(self.bob.id, principal=principal_for(self.bob))

        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_CREDIT_LIMIT
        assert self.system.customer_store.find_by_id(self.bob.id).used_credit_limit == Decimal("5000.00")
        assert self.system.loan_store.find_by_customer(self.bob.id) == []

    def test_admin_cannot_own_a_loan(self):
        admin = principal_for(self.admin)
        with pytest.raises(LoanManagementError) as exc_info:
            self.create(self.admin.id, principal=admin)

        assert exc_info.value.kind == ErrorKind.ADMIN_CANNOT_CREATE_LOAN
        assert exc_info.value.http_status == 403

    def test_admin_can_create_for_customer(self):
        loan = self.create(self.alice.id, principal=principal_for(self.admin))
        assert loan.customer_id == self.alice.id

    def test_customer_cannot_create_for_someone_else(self):
        with pytest.raises(LoanManagementError) as exc_info:
            self.create(self.bob.id, amount="1000")

        assert exc_info.value.kind == ErrorKind.CUSTOMER_ACCESS_DENIED
        assert self.system.customer_store.find_by_id(self.bob.id).used_credit_limit == Decimal("5000.00")

    def test_unknown_customer(self):
        with pytest.raises(LoanManagementError) as exc_info:
            self.create(999, principal=principal_for(self.admin))
        assert exc_info.value.kind == ErrorKind.CUSTOMER_NOT_FOUND

    def test_invalid_request(self):
        with pytest.raises(LoanManagementError) as exc_info:
            self.create(self.alice.id, amount="50", count=10)

        assert exc_info.value.kind == ErrorKind.VALIDATION_FAILED
        assert len(exc_info.value.details) == 2

    def test_oversized_amount_is_a_validation_error(self):
        with pytest.raises(LoanManagementError, match="Input validation failed") as exc_info:
            self.create(self.alice.id, amount="1E+27")

        assert exc_info.value.kind == ErrorKind.VALIDATION_FAILED
        assert exc_info.value.details == ["amount: Loan amount must be at most 99999999.99"]
        assert self.system.loan_store.find_by_customer(self.alice.id) == []

    def test_largest_amount_reaches_the_credit_check(self):
        with pytest.raises(LoanManagementError, match="Required: 119999999.99") as exc_info:
            self.create(self.alice.id, amount="99999999.99")
        assert exc_info.value.kind == ErrorKind.INSUFFICIENT_CREDIT_LIMIT

    def test_storage_failure_rolls_back_debit(self, monkeypatch):
        """A failing save leaves no loan and no debit behind"""
        def failing_save(loan):
            raise RuntimeError("disk full")

        monkeypatch.setattr(self.system.loan_store, "save", failing_save)

        with pytest.raises(LoanManagementError) as exc_info:
            self.create(self.alice.id)

        assert exc_info.value.kind == ErrorKind.LOAN_DATA_ACCESS_ERROR
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert self.system.customer_store.find_by_id(self.alice.id).used_credit_limit == Decimal("0.00")
        assert self.system.loan_store.find_by_customer(self.alice.id) == []

    def test_december_loan_rolls_into_next_year(self):
        system = LoanSystem(
            storage=InMemoryStorage(),
            config=LoanManagementConfig(database_url="memory://"),
            clock=lambda: datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc)
        )
        customer = system.auth_service.register(
            "carol@example.com", "secret123", Role.CUSTOMER, "Carol", "White",
            credit_limit=Decimal("5000")
        ).customer
        loan = system.loan_factory.create_loan(
            customer.id, Decimal("1000"), Decimal("0.1"), 6, principal_for(customer)
        )

        assert loan.installments[0].due_date == date(2025, 1, 1)
        assert loan.installments[-1].due_date == date(2025, 6, 1)
