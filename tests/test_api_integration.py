"""
Integration tests for the Loan Management API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone
from fastapi.testclient import TestClient

from loan_management.api import create_app
from loan_management.config import LoanManagementConfig
from loan_management.storage import InMemoryStorage
from loan_management.system import LoanSystem


FIXED_NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def system():
    """In-memory loan system with a fixed clock"""
    return LoanSystem(
        storage=InMemoryStorage(),
        config=LoanManagementConfig(database_url="memory://"),
        clock=lambda: FIXED_NOW
    )


@pytest.fixture
def client(system):
    """Create a test client for the API backed by the test system"""
    return TestClient(create_app(system))


def register(client, email, role="CUSTOMER", credit_limit=20000, **extra):
    body = {
        "email": email,
        "password": "secret123",
        "role": role,
        "name": email.split("@")[0].title(),
        "surname": "Tester",
    }
    if role == "CUSTOMER":
        body["creditLimit"] = credit_limit
    body.update(extra)
    r = client.post("/api/auth/register", json=body)
    assert r.status_code == 200, r.text
    data = r.json()
    return data["userId"], {"Authorization": f"Bearer {data['token']}"}


def create_loan(client, headers, customer_id, amount=10000, rate="0.2", count=12):
    return client.post("/api/loans", headers=headers, json={
        "customerId": customer_id,
        "amount": amount,
        "interestRate": rate,
        "numberOfInstallments": count
    })


class TestHealthEndpoints:
    """Test basic health endpoint"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestAuthFlow:
    """Registration and login over HTTP"""

    def test_register(self, client):
        r = client.post("/api/auth/register", json={
            "email": "alice@example.com",
            "password": "secret123",
            "role": "CUSTOMER",
            "name": "Alice",
            "surname": "Smith",
            "creditLimit": 10000
        })
        assert r.status_code == 200
        data = r.json()
        assert data["userId"] == 1
        assert data["token"]
        assert data["message"] == "User account created successfully with ID: 1"
        assert data["user"] == {
            "name": "Alice", "surname": "Smith", "email": "alice@example.com", "role": "CUSTOMER"
        }

    def test_register_validation_envelope(self, client):
        """Validation errors use the standard envelope with every detail"""
        r = client.post("/api/auth/register", json={
            "email": "bad",
            "password": "1",
            "role": "CUSTOMER",
            "name": "Alice",
            "surname": "Smith"
        })
        assert r.status_code == 400
        data = r.json()
        assert data["error"] == "VALIDATION_FAILED"
        assert data["status"] == 400
        assert data["path"] == "/api/auth/register"
        assert "timestamp" in data
        assert "email: Invalid email format" in data["details"]
        assert "creditLimit: Credit limit is required for CUSTOMER role" in data["details"]

    def test_register_duplicate_email(self, client):
        register(client, "alice@example.com")
        r = client.post("/api/auth/register", json={
            "email": "alice@example.com", "password": "secret123", "role": "ADMIN",
            "name": "Alice", "surname": "Again"
        })
        assert r.status_code == 409
        assert r.json()["error"] == "DUPLICATE_EMAIL"

    def test_authenticate(self, client):
        register(client, "alice@example.com")

        r = client.post("/api/auth/authenticate", json={
            "email": "alice@example.com", "password": "secret123"
        })
        assert r.status_code == 200
        assert r.json()["message"] == "Successful login, Alice!"

        r = client.post("/api/auth/authenticate", json={
            "email": "alice@example.com", "password": "wrong-password"
        })
        assert r.status_code == 401
        assert r.json()["error"] == "INVALID_CREDENTIALS"


class TestLoanFlow:
    """End-to-end loan tests"""

    def test_requires_authentication(self, client):
        r = client.get("/api/loans", params={"customerId": 1})
        assert r.status_code == 401
        assert r.json()["error"] == "AUTHENTICATION_REQUIRED"

        r = client.get("/api/loans", params={"customerId": 1}, headers={"Authorization": "Bearer junk"})
        assert r.status_code == 401

    def test_create_list_and_pay(self, client):
        customer_id, headers = register(client, "alice@example.com")

        r = create_loan(client, headers, customer_id)
        assert r.status_code == 201
        loan = r.json()
        assert loan["customerId"] == customer_id
        assert loan["customerName"] == "Alice"
        assert loan["totalAmount"] == "12000.00"
        assert Decimal(loan["loanAmount"]) == Decimal("10000")
        assert loan["isPaid"] is False

        r = client.get("/api/loans", params={"customerId": customer_id}, headers=headers)
        assert r.status_code == 200
        loans = r.json()
        assert len(loans) == 1
        assert loans[0]["remainingInstallments"] == 12

        r = client.get(f"/api/loans/{loan['id']}/installments", headers=headers)
        assert r.status_code == 200
        installments = r.json()
        assert [i["installmentNumber"] for i in installments] == list(range(1, 13))
        assert installments[0]["dueDate"] == "2024-02-01"
        assert installments[0]["amount"] == "1000.00"
        assert installments[0]["paymentDate"] is None

        r = client.post(f"/api/loans/{loan['id']}/pay", headers=headers, json={"amount": 2500})
        assert r.status_code == 200
        assert r.json() == {
            "installmentsPaid": 2,
            "totalAmountSpent": "2000.00",
            "isLoanFullyPaid": False,
            "message": "Successfully paid 2 installment(s) for a total of 2000.00"
        }

        r = client.get(f"/api/loans/{loan['id']}/installments", headers=headers)
        paid = [i for i in r.json() if i["isPaid"]]
        assert [i["paymentDate"] for i in paid] == ["2024-01-15", "2024-01-15"]

    def test_list_filters(self, client):
        customer_id, headers = register(client, "alice@example.com")
        create_loan(client, headers, customer_id, count=12)
        create_loan(client, headers, customer_id, amount=600, count=6)

        r = client.get("/api/loans", headers=headers, params={
            "customerId": customer_id, "numberOfInstallments": 6, "isPaid": "false"
        })
        assert r.status_code == 200
        assert [loan["numberOfInstallments"] for loan in r.json()] == [6]

        r = client.get("/api/loans", headers=headers, params={
            "customerId": customer_id, "numberOfInstallments": 7
        })
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_PARAMETER"

    def test_create_loan_validation(self, client):
        customer_id, headers = register(client, "alice@example.com")

        r = create_loan(client, headers, customer_id, amount=50, count=7)
        assert r.status_code == 400
        assert r.json()["error"] == "VALIDATION_FAILED"
        assert len(r.json()["details"]) == 2

        r = client.post("/api/loans", headers=headers, json={"amount": 1000})
        assert r.status_code == 400
        details = r.json()["details"]
        assert any(d.startswith("customerId:") for d in details)
        assert any(d.startswith("numberOfInstallments:") for d in details)

        r = create_loan(client, headers, customer_id, amount="1E+27")
        assert r.status_code == 400
        assert r.json()["error"] == "VALIDATION_FAILED"
        assert r.json()["details"] == ["amount: Loan amount must be at most 99999999.99"]

    def test_insufficient_credit(self, client):
        customer_id, headers = register(client, "bob@example.com", credit_limit=10000, usedCreditLimit=5000)

        r = create_loan(client, headers, customer_id)
        assert r.status_code == 400
        assert r.json()["error"] == "INSUFFICIENT_CREDIT_LIMIT"
        assert r.json()["message"] == "Insufficient credit limit. Available: 5000.00, Required: 12000.00"

    def test_access_control(self, client):
        alice_id, alice = register(client, "alice@example.com")
        bob_id, bob = register(client, "bob@example.com")
        _, admin = register(client, "admin@example.com", role="ADMIN")
        loan_id = create_loan(client, alice, alice_id).json()["id"]

        r = client.get("/api/loans", params={"customerId": alice_id}, headers=bob)
        assert r.status_code == 403
        assert r.json()["error"] == "CUSTOMER_ACCESS_DENIED"

        r = client.post(f"/api/loans/{loan_id}/pay", headers=bob, json={"amount": 1000})
        assert r.status_code == 403

        r = client.get("/api/loans", params={"customerId": alice_id}, headers=admin)
        assert r.status_code == 200
        assert len(r.json()) == 1

    def test_admin_cannot_borrow(self, client):
        admin_id, admin = register(client, "admin@example.com", role="ADMIN")

        r = create_loan(client, admin, admin_id)
        assert r.status_code == 403
        assert r.json()["error"] == "ADMIN_CANNOT_CREATE_LOAN"

    def test_payment_errors(self, client):
        customer_id, headers = register(client, "alice@example.com")
        loan_id = create_loan(client, headers, customer_id).json()["id"]

        r = client.post("/api/loans/999/pay", headers=headers, json={"amount": 1000})
        assert r.status_code == 404
        assert r.json()["error"] == "LOAN_NOT_FOUND"

        r = client.post(f"/api/loans/{loan_id}/pay", headers=headers, json={"amount": 10})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_PAYMENT_AMOUNT"

        r = client.post(f"/api/loans/{loan_id}/pay", headers=headers, json={"amount": 0})
        assert r.status_code == 400
        assert r.json()["error"] == "VALIDATION_FAILED"

    def test_unexpected_error_envelope(self, system, monkeypatch):
        """Unhandled failures surface as INTERNAL_SERVER_ERROR"""
        client = TestClient(create_app(system), raise_server_exceptions=False)
        customer_id, headers = register(client, "alice@example.com")

        def broken(*args, **kwargs):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(system.loan_queries, "list_loans", broken)
        r = client.get("/api/loans", params={"customerId": customer_id}, headers=headers)

        assert r.status_code == 500
        assert r.json()["error"] == "INTERNAL_SERVER_ERROR"
